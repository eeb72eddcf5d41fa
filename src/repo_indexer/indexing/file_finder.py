"""Discovery of indexable files among those tracked at HEAD."""

import logging
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

import pathspec

from ..config import IndexingConfig
from ..utils.git_runner import run_git_command

logger = logging.getLogger(__name__)


class GitFileFinder:
    """Lists files tracked at HEAD and filters them for indexing."""

    def __init__(self, config: IndexingConfig, timeout: Optional[float] = 60):
        self.config = config
        self.timeout = timeout
        self._create_exclude_spec()

    def _create_exclude_spec(self) -> None:
        """Create pathspec for excluded directories."""
        patterns = []
        for exclude_dir in self.config.exclude_dirs:
            exclude_dir = exclude_dir.strip("/")
            if not exclude_dir:
                continue
            # Matches the directory at the root and at any depth
            patterns.append(f"{exclude_dir}/")
            patterns.append(f"**/{exclude_dir}/")

        self.exclude_spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns)

    def list_tracked_files(self, repo_path: Union[str, Path]) -> List[str]:
        """List every path tracked at HEAD, relative to the repository root."""
        result = run_git_command(
            ["git", "ls-tree", "-r", "-z", "--name-only", "HEAD"],
            cwd=Path(repo_path),
            timeout=self.timeout,
        )
        return [path for path in result.stdout.split("\0") if path]

    def should_index(self, filepath: str) -> bool:
        """Check extension allow-list and excluded directory segments."""
        extension = PurePosixPath(filepath).suffix.lower()
        if extension not in self.config.file_extensions:
            return False
        return not self.exclude_spec.match_file(filepath)

    def list_indexable_files(self, repo_path: Union[str, Path]) -> List[str]:
        """List tracked files that should be indexed.

        An empty list is a normal result (nothing tracked, or nothing left
        after filtering).
        """
        files = self.list_tracked_files(repo_path)
        logger.info(f"Found {len(files)} files in repository")

        indexable = [f for f in files if self.should_index(f)]
        logger.info(f"Filtered to {len(indexable)} code files for indexing")
        return indexable
