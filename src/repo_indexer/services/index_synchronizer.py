"""
Repository to vector index synchronization.

An indexing run has two phases:

1. Stale sweep: scroll every point's ``filepath`` out of the collection and
   delete, in one batch, the points whose file is no longer tracked at HEAD.
   A failed sweep is logged and never stops the write phase.
2. Write phase: every indexable file is read, chunked when larger than the
   chunk size, embedded, and upserted. Each file is an independent unit of
   work: its failure is logged and counted, and the run moves on.

The sweep always completes before the first write starts because it needs
the full set of current file paths.
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..config import Config
from ..indexing.file_finder import GitFileFinder
from ..indexing.fixed_size_chunker import FixedSizeChunker, read_text_file
from .embedding_provider import EmbeddingProvider
from .git_repository import validate_git_repository
from .qdrant import PointId, QdrantClient

logger = logging.getLogger(__name__)

# Namespace for deterministic point ids
POINT_ID_NAMESPACE = uuid.UUID("6f1c1b1e-8f0a-4d55-9a55-3c3b7c0e2a41")


@dataclass
class IndexingStats:
    """Outcome of one indexing run."""

    files_found: int = 0
    files_indexed: int = 0
    files_skipped: int = 0
    errors: int = 0
    points_written: int = 0
    stale_points_deleted: int = 0
    duration_seconds: float = 0.0
    error_details: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_found": self.files_found,
            "files_indexed": self.files_indexed,
            "files_skipped": self.files_skipped,
            "errors": self.errors,
            "points_written": self.points_written,
            "stale_points_deleted": self.stale_points_deleted,
            "duration_seconds": round(self.duration_seconds, 2),
        }


@dataclass
class FileIndexResult:
    """Result of indexing a single file."""

    filepath: str
    status: str  # "indexed", "skipped" or "error"
    points_written: int = 0
    error: Optional[str] = None


def format_last_modified(mtime: float) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T10:00:00.000Z."""
    moment = datetime.fromtimestamp(mtime, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IndexSynchronizer:
    """Keeps a Qdrant collection in sync with the files tracked at HEAD."""

    def __init__(
        self,
        config: Config,
        qdrant_client: QdrantClient,
        embedding_provider: EmbeddingProvider,
        file_finder: Optional[GitFileFinder] = None,
        validator: Callable[[Union[str, Path]], bool] = validate_git_repository,
    ):
        self.config = config
        self.qdrant_client = qdrant_client
        self.embedding_provider = embedding_provider
        self.file_finder = file_finder or GitFileFinder(config.indexing)
        self.chunker = FixedSizeChunker.from_config(config.indexing)
        self.validator = validator

    def index_repository(
        self, repo_path: Optional[Union[str, Path]] = None
    ) -> IndexingStats:
        """Run a full synchronization of the repository into the collection.

        Never raises for per-file or sweep failures; the returned stats carry
        the error count.
        """
        repo_dir = Path(repo_path) if repo_path else self.config.repository_dir
        stats = IndexingStats()
        start_time = time.time()

        if not self.validator(repo_dir):
            logger.warning(
                f"Skipping repository indexing: {repo_dir} is not a valid Git repository"
            )
            return stats

        files = self.file_finder.list_indexable_files(repo_dir)
        stats.files_found = len(files)
        if not files:
            logger.warning("No files to index in repository.")
            return stats

        try:
            stats.stale_points_deleted = self.sweep_stale_points(files)
        except Exception as e:
            logger.error(
                "Error during stale entry cleanup in Qdrant. "
                f"Indexing of current files will proceed: {e}"
            )

        for result in self._run_write_phase(repo_dir, files):
            self._record_result(stats, result)

        stats.duration_seconds = time.time() - start_time
        logger.info(
            f"Indexing complete: {stats.files_indexed} files indexed successfully, "
            f"{stats.errors} errors"
        )
        return stats

    def sweep_stale_points(self, current_files: Iterable[str]) -> int:
        """Delete points whose filepath is not among current_files.

        Points without a filepath payload are never deleted.

        Returns:
            Number of points deleted

        Raises:
            httpx.HTTPError: If scrolling or deleting fails
        """
        logger.info("Checking for stale entries in Qdrant index...")
        current_paths = set(current_files)
        points_to_delete: List[PointId] = []
        offset: Optional[PointId] = None

        while True:
            points, cursor = self.qdrant_client.scroll_points(
                limit=self.config.qdrant.scroll_limit,
                with_payload=["filepath"],
                with_vectors=False,
                offset=offset,
            )
            if points:
                logger.debug(f"Scrolled {len(points)} points from Qdrant.")

            for point in points:
                point_id = point.get("id")
                indexed_filepath = (point.get("payload") or {}).get("filepath")

                if not indexed_filepath:
                    logger.warning(
                        f"Found point in Qdrant (ID: {point_id}) without a 'filepath' "
                        "in its payload. Skipping stale check for this point."
                    )
                    continue

                if indexed_filepath not in current_paths:
                    logger.debug(
                        f"Marking stale entry for deletion: {indexed_filepath} "
                        f"(ID: {point_id})"
                    )
                    points_to_delete.append(point_id)

            if not cursor.has_more:
                break
            offset = cursor.token

        if not points_to_delete:
            logger.info("No stale entries found in Qdrant index.")
            return 0

        logger.info(
            f"Found {len(points_to_delete)} stale entries to remove from Qdrant."
        )
        deleted = self.qdrant_client.delete_points(points_to_delete)
        logger.info(f"Successfully removed {deleted} stale entries from Qdrant.")
        return deleted

    def _run_write_phase(self, repo_dir: Path, files: List[str]):
        max_workers = self.config.indexing.max_workers

        if max_workers == 1:
            for filepath in files:
                yield self._process_file(repo_dir, filepath)
            return

        # Results are aggregated on this thread, workers share no counters
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="repo-indexer"
        ) as executor:
            futures = [
                executor.submit(self._process_file, repo_dir, filepath)
                for filepath in files
            ]
            for future in as_completed(futures):
                yield future.result()

    def _process_file(self, repo_dir: Path, filepath: str) -> FileIndexResult:
        try:
            return self.index_file(repo_dir, filepath)
        except Exception as e:
            logger.error(f"Failed to index {filepath}: {e}")
            return FileIndexResult(filepath=filepath, status="error", error=str(e))

    @staticmethod
    def _record_result(stats: IndexingStats, result: FileIndexResult) -> None:
        if result.status == "indexed":
            stats.files_indexed += 1
            stats.points_written += result.points_written
        elif result.status == "skipped":
            stats.files_skipped += 1
        else:
            stats.errors += 1
            stats.error_details.append(f"{result.filepath}: {result.error}")

    def index_file(self, repo_dir: Path, filepath: str) -> FileIndexResult:
        """Embed and upsert one file, whole or in chunks.

        Raises:
            Exception: Any read, embedding or store failure
        """
        full_path = repo_dir / filepath
        content = read_text_file(full_path)
        last_modified = format_last_modified(full_path.stat().st_mtime)

        if not content.strip():
            logger.info(f"Skipping {filepath}: empty file")
            return FileIndexResult(filepath=filepath, status="skipped")

        if not self.chunker.needs_chunking(content):
            payload = {
                "filepath": filepath,
                "content": content,
                "last_modified": last_modified,
                "is_chunked": False,
            }
            self._write_point(filepath, None, content, payload)
            logger.info(f"Indexed whole file: {filepath}")
            return FileIndexResult(filepath=filepath, status="indexed", points_written=1)

        chunks = self.chunker.chunk_text(content)
        logger.info(f"Indexing {filepath} in {len(chunks)} chunks.")

        written = 0
        for chunk_index, chunk_content in enumerate(chunks):
            if not chunk_content.strip():
                continue
            payload = {
                "filepath": filepath,
                "content": chunk_content,
                "last_modified": last_modified,
                "is_chunked": True,
                "chunk_index": chunk_index,
                "total_chunks": len(chunks),
            }
            self._write_point(filepath, chunk_index, chunk_content, payload)
            written += 1

        logger.info(f"Successfully indexed {written} chunks for {filepath}")
        return FileIndexResult(
            filepath=filepath, status="indexed", points_written=written
        )

    def _write_point(
        self,
        filepath: str,
        chunk_index: Optional[int],
        text: str,
        payload: Dict[str, Any],
    ) -> None:
        embedding = self.embedding_provider.get_embedding(text)
        point_id = self.generate_point_id(filepath, chunk_index)
        logger.debug(f"Upserting point for {filepath} (ID: {point_id})")
        self.qdrant_client.upsert_points(
            [self.qdrant_client.create_point(point_id, embedding, payload)]
        )

    def generate_point_id(self, filepath: str, chunk_index: Optional[int]) -> str:
        """Fresh uuid4, or a uuid5 of filepath and chunk index in deterministic mode."""
        if self.config.indexing.point_id_strategy == "deterministic":
            key = filepath if chunk_index is None else f"{filepath}#{chunk_index}"
            return str(uuid.uuid5(POINT_ID_NAMESPACE, key))
        return str(uuid.uuid4())
