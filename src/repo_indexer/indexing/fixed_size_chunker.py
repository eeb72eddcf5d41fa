"""Fixed-size chunker with overlapping windows.

- Window length: chunk_size characters (the last window may be shorter)
- Overlap: chunk_overlap characters shared by adjacent windows
- Pure arithmetic: no parsing, no boundary detection
- Pattern: next_start = current_start + (chunk_size - chunk_overlap)
"""

from pathlib import Path
from typing import List

from ..config import IndexingConfig

# Encodings tried in order when reading a file
FILE_ENCODINGS = ["utf-8", "utf-8-sig", "latin-1", "cp1252"]


def read_text_file(file_path: Path) -> str:
    """Read a file as text, trying FILE_ENCODINGS in order.

    Raises:
        OSError: If the file cannot be read
        ValueError: If no encoding can decode the file
    """
    for encoding in FILE_ENCODINGS:
        try:
            with open(file_path, "r", encoding=encoding) as f:
                return f.read()
        except UnicodeDecodeError:
            continue
    raise ValueError(f"Could not decode file {file_path}")


class FixedSizeChunker:
    """Splits text into overlapping fixed-size windows.

    Algorithm:
    1. Cut a window of chunk_size characters at current_start
    2. Stop if that window reaches the end of the text
    3. Otherwise advance by step_size = chunk_size - chunk_overlap

    The number of windows for text longer than chunk_size is
    ceil((len(text) - chunk_overlap) / step_size).
    """

    def __init__(self, chunk_size: int, chunk_overlap: int):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= chunk_overlap < chunk_size:
            # With overlap >= size the window would never advance
            raise ValueError(
                f"chunk_overlap must be in [0, {chunk_size}), got {chunk_overlap}"
            )
        self.chunk_size = chunk_size
        self.overlap_size = chunk_overlap
        self.step_size = chunk_size - chunk_overlap

    @classmethod
    def from_config(cls, config: IndexingConfig) -> "FixedSizeChunker":
        return cls(config.chunk_size, config.chunk_overlap)

    def needs_chunking(self, text: str) -> bool:
        """Text at or below chunk_size is indexed whole."""
        return len(text) > self.chunk_size

    def chunk_text(self, text: str) -> List[str]:
        """Split text into fixed-size overlapping windows.

        Args:
            text: Text to chunk

        Returns:
            List of window strings; empty for empty or whitespace-only text
        """
        if not text or not text.strip():
            return []

        chunks = []
        current_start = 0

        while current_start < len(text):
            chunk_end = current_start + self.chunk_size
            chunks.append(text[current_start:chunk_end])

            # This window contains all remaining text
            if chunk_end >= len(text):
                break

            current_start += self.step_size

        return chunks
