"""Indexing components: file discovery and chunking."""

from .file_finder import GitFileFinder
from .fixed_size_chunker import FixedSizeChunker

__all__ = ["GitFileFinder", "FixedSizeChunker"]
