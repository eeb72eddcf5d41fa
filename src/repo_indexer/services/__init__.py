"""Repository services and clients for external APIs."""

from .commit_history import CommitHistoryReconstructor
from .diff_extractor import DiffTextExtractor
from .git_repository import validate_git_repository
from .index_synchronizer import IndexSynchronizer
from .ollama import OllamaClient
from .qdrant import QdrantClient

__all__ = [
    "CommitHistoryReconstructor",
    "DiffTextExtractor",
    "validate_git_repository",
    "IndexSynchronizer",
    "OllamaClient",
    "QdrantClient",
]
