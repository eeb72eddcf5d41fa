"""Textual diff between the two most recent commits."""

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from ..utils.git_runner import run_git_command, run_git_command_bounded
from .git_repository import validate_git_repository

logger = logging.getLogger(__name__)

MAX_DIFF_LENGTH = 10000
MAX_DIFF_BUFFER = 5 * 1024 * 1024
TRUNCATION_SUFFIX = "\n... (diff truncated)"

NO_REPOSITORY = "No Git repository found"
NO_PREVIOUS_COMMITS = "No previous commits to compare"
NO_TEXTUAL_CHANGES = "No textual changes found between last two commits."


class DiffTextExtractor:
    """Renders `git diff <previous> <latest>` as display text.

    get_repository_diff always returns a string: validation failures,
    short histories and git errors are all reported as messages.
    """

    def __init__(
        self,
        max_diff_length: int = MAX_DIFF_LENGTH,
        max_buffer: int = MAX_DIFF_BUFFER,
        timeout: Optional[float] = 60,
    ):
        self.max_diff_length = max_diff_length
        self.max_buffer = max_buffer
        self.timeout = timeout

    def get_repository_diff(
        self,
        repo_path: Union[str, Path],
        validator: Optional[Callable[[Union[str, Path]], bool]] = None,
    ) -> str:
        repo_dir = Path(repo_path)
        is_git_repo = (validator or validate_git_repository)(repo_dir)
        if not is_git_repo:
            logger.warning(
                f"Cannot get repository diff: {repo_dir} is not a valid Git repository"
            )
            return NO_REPOSITORY

        try:
            commits = run_git_command(
                ["git", "log", "--format=%H", "--max-count=2", "HEAD", "--"],
                cwd=repo_dir,
                timeout=self.timeout,
            ).stdout.split()
            if len(commits) < 2:
                logger.info(
                    f"Not enough commits in {repo_dir} to generate a diff "
                    f"(found {len(commits)})."
                )
                return NO_PREVIOUS_COMMITS
            latest, previous = commits

            logger.info(f"Executing diff command: git diff {previous} {latest}")
            result = run_git_command_bounded(
                ["git", "diff", previous, latest],
                cwd=repo_dir,
                max_output=self.max_buffer,
                timeout=self.timeout,
            )
        except Exception as e:
            stderr = getattr(e, "stderr", None)
            logger.error(
                f"Error retrieving git diff for {repo_dir}: {e}"
                + (f" (stderr: {stderr.strip()})" if stderr else "")
            )
            return f"Failed to retrieve diff for {repo_dir}: {e}"

        if result.stderr:
            logger.warning(f"Git diff command produced stderr: {result.stderr.strip()}")

        diff_output = result.stdout.strip()
        if not diff_output:
            return NO_TEXTUAL_CHANGES

        if len(diff_output) > self.max_diff_length:
            logger.info(
                f"Diff output is too long ({len(diff_output)} chars), "
                f"truncating to {self.max_diff_length} chars."
            )
            diff_output = diff_output[: self.max_diff_length] + TRUNCATION_SUFFIX

        return diff_output
