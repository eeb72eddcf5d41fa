"""
Git repository validation.

Every repository operation is gated on validate_git_repository: callers
short-circuit when it returns False.
"""

import logging
from pathlib import Path
from typing import Union

from ..utils.git_runner import run_git_command

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 10


def validate_git_repository(repo_path: Union[str, Path]) -> bool:
    """Check that repo_path is a git working copy whose HEAD resolves to a commit.

    Never raises: any failure, including an unborn HEAD or a missing git
    binary, is logged at debug level and reported as False.
    """
    try:
        repo_dir = Path(repo_path)
        git_dir = repo_dir / ".git"
        # .git may be a directory or a gitfile (worktrees, submodules)
        if not git_dir.exists():
            logger.debug(f"No .git metadata at {git_dir}")
            return False

        run_git_command(
            ["git", "rev-parse", "--verify", "--quiet", "HEAD^{commit}"],
            cwd=repo_dir,
            timeout=GIT_TIMEOUT_SECONDS,
        )
        return True
    except Exception as e:
        logger.debug(f"{repo_path} is not a valid git repository: {e}")
        return False
