"""Tests for FixedSizeChunker - overlapping fixed-size windows."""

import math
import string

import pytest

from repo_indexer.config import IndexingConfig
from repo_indexer.indexing.fixed_size_chunker import FixedSizeChunker, read_text_file


def make_text(length: int) -> str:
    """Text whose characters vary so misplaced windows are detectable."""
    alphabet = string.ascii_letters + string.digits
    return "".join(alphabet[i % len(alphabet)] for i in range(length))


class TestFixedSizeChunker:
    """Test suite for FixedSizeChunker implementation."""

    @pytest.fixture
    def chunker(self):
        """Chunker with 100 character windows and 20 characters of overlap."""
        return FixedSizeChunker(chunk_size=100, chunk_overlap=20)

    def test_empty_and_whitespace_text_yield_no_chunks(self, chunker):
        assert chunker.chunk_text("") == []
        assert chunker.chunk_text("   \n\t  ") == []

    def test_text_at_chunk_size_does_not_need_chunking(self, chunker):
        text = make_text(100)
        assert not chunker.needs_chunking(text)
        assert chunker.needs_chunking(text + "x")

    def test_chunks_follow_step_pattern(self, chunker):
        """Chunk i starts at i * (size - overlap)."""
        text = make_text(250)

        chunks = chunker.chunk_text(text)

        # 0-99, 80-179, 160-249
        assert chunks == [text[0:100], text[80:180], text[160:250]]

    def test_adjacent_chunks_share_overlap(self, chunker):
        text = make_text(1000)

        chunks = chunker.chunk_text(text)

        for i in range(len(chunks) - 1):
            assert chunks[i][-20:] == chunks[i + 1][:20], f"Chunk {i} overlap mismatch"

    @pytest.mark.parametrize(
        "length,size,overlap",
        [
            (101, 100, 20),
            (180, 100, 20),
            (181, 100, 20),
            (1000, 100, 0),
            (1001, 100, 99),
            (5000, 1500, 150),
            (3001, 1000, 150),
        ],
    )
    def test_chunk_count_and_content(self, length, size, overlap):
        chunker = FixedSizeChunker(chunk_size=size, chunk_overlap=overlap)
        text = make_text(length)
        step = size - overlap

        chunks = chunker.chunk_text(text)

        assert len(chunks) == math.ceil((length - overlap) / step)
        for i, chunk in enumerate(chunks):
            assert chunk == text[i * step : i * step + size]
            assert len(chunk) <= size
        # The final window reaches the end of the text
        assert text.endswith(chunks[-1])

    def test_last_chunk_may_be_shorter(self, chunker):
        chunks = chunker.chunk_text(make_text(185))

        assert [len(c) for c in chunks] == [100, 100, 25]

    def test_short_text_is_single_chunk(self, chunker):
        text = "def main():\n    pass\n"
        assert chunker.chunk_text(text) == [text]

    @pytest.mark.parametrize("overlap", [100, 150, -1])
    def test_invalid_overlap_rejected(self, overlap):
        with pytest.raises(ValueError):
            FixedSizeChunker(chunk_size=100, chunk_overlap=overlap)

    def test_zero_chunk_size_rejected(self):
        with pytest.raises(ValueError):
            FixedSizeChunker(chunk_size=0, chunk_overlap=0)

    def test_from_config_uses_indexing_settings(self):
        chunker = FixedSizeChunker.from_config(
            IndexingConfig(chunk_size=500, chunk_overlap=50)
        )

        assert chunker.chunk_size == 500
        assert chunker.overlap_size == 50
        assert chunker.step_size == 450


class TestFileReading:
    def test_utf8_file(self, tmp_path):
        file_path = tmp_path / "module.py"
        file_path.write_text("héllo wörld", encoding="utf-8")

        assert read_text_file(file_path) == "héllo wörld"

    def test_latin1_file_falls_back(self, tmp_path):
        file_path = tmp_path / "legacy.c"
        file_path.write_bytes("caf\xe9".encode("latin-1"))

        assert read_text_file(file_path) == "café"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_text_file(tmp_path / "missing.py")
