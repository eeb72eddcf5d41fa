"""
Commit history reconstruction.

Walks the commit log and, for every commit, lists the files it touched
relative to its first parent. Root commits report every file in their tree
as added. Git failures propagate to the caller: a partial history is never
returned.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..utils.git_runner import run_git_command

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    EQUAL = "equal"
    MODIFY = "modify"
    ADD = "add"
    DELETE = "delete"
    TYPECHANGE = "typechange"


# git diff-tree status letters
_STATUS_TO_CHANGE = {
    "M": ChangeType.MODIFY,
    "A": ChangeType.ADD,
    "D": ChangeType.DELETE,
    "T": ChangeType.TYPECHANGE,
}


@dataclass
class CommitChange:
    path: str
    type: ChangeType


@dataclass
class GitSignature:
    """Author or committer of a commit.

    timezone_offset is in minutes west of UTC, so a +0100 commit has -60.
    """

    name: str
    email: str
    timestamp: int
    timezone_offset: int


@dataclass
class CommitDetail:
    oid: str
    message: str
    author: GitSignature
    committer: GitSignature
    changed_files: List[CommitChange] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["changed_files"] = [
            {"path": change.path, "type": change.type.value}
            for change in self.changed_files
        ]
        return data


@dataclass
class CommitObject:
    """Parsed raw commit object."""

    tree: str
    parents: List[str]
    author: GitSignature
    committer: GitSignature
    message: str


def parse_signature(value: str) -> GitSignature:
    """Parse 'Name <email> 1700000000 +0100' into a GitSignature."""
    try:
        identity, timestamp, tz = value.rsplit(" ", 2)
        name, _, email = identity.partition("<")
        sign = -1 if tz.startswith("+") else 1
        minutes = int(tz[1:3]) * 60 + int(tz[3:5])
        return GitSignature(
            name=name.strip(),
            email=email.rstrip(">"),
            timestamp=int(timestamp),
            timezone_offset=sign * minutes,
        )
    except ValueError:
        raise ValueError(f"Malformed git signature: {value!r}")


def parse_commit_object(raw: str) -> CommitObject:
    """Parse the output of `git cat-file commit <oid>`."""
    header, _, message = raw.partition("\n\n")
    tree = None
    parents: List[str] = []
    author = committer = None

    for line in header.splitlines():
        # Continuation lines (e.g. gpgsig) start with a space
        if line.startswith(" "):
            continue
        key, _, value = line.partition(" ")
        if key == "tree":
            tree = value
        elif key == "parent":
            parents.append(value)
        elif key == "author":
            author = parse_signature(value)
        elif key == "committer":
            committer = parse_signature(value)

    if tree is None or author is None or committer is None:
        raise ValueError("Commit object is missing tree, author or committer")

    return CommitObject(
        tree=tree,
        parents=parents,
        author=author,
        committer=committer,
        message=message,
    )


class CommitHistoryReconstructor:
    """Builds per-commit change lists from a repository's history."""

    def __init__(self, repo_path: Union[str, Path], timeout: Optional[float] = 60):
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    def _git(self, *args: str) -> str:
        return run_git_command(
            ["git", *args], cwd=self.repo_path, timeout=self.timeout
        ).stdout

    def get_history(
        self,
        since: Optional[datetime] = None,
        count: Optional[int] = None,
        ref: Optional[str] = None,
    ) -> List[CommitDetail]:
        """Commits reachable from ref (default HEAD), newest first.

        Args:
            since: Only commits newer than this moment
            count: Maximum number of commits
            ref: Branch, tag or commit to start from

        Raises:
            subprocess.CalledProcessError: If a git command fails
            ValueError: If a commit object cannot be parsed
        """
        try:
            commits = [
                self.get_commit_detail(oid)
                for oid in self.list_commits(since=since, count=count, ref=ref)
            ]
        except Exception as e:
            logger.error(
                f"Failed to get commit history with changes for {self.repo_path}: {e}"
            )
            raise

        logger.info(
            f"Retrieved {len(commits)} commits with changes for {self.repo_path}"
        )
        return commits

    def list_commits(
        self,
        since: Optional[datetime] = None,
        count: Optional[int] = None,
        ref: Optional[str] = None,
    ) -> List[str]:
        """Commit ids in log order."""
        args = ["log", "--format=%H"]
        if count:
            args.append(f"--max-count={count}")
        if since:
            utc = since.astimezone(timezone.utc)
            args.append(f"--since={utc:%Y-%m-%d %H:%M:%S} +0000")
        args.extend([ref or "HEAD", "--"])
        return self._git(*args).split()

    def read_commit(self, oid: str) -> CommitObject:
        return parse_commit_object(self._git("cat-file", "commit", oid))

    def get_commit_detail(self, oid: str) -> CommitDetail:
        commit = self.read_commit(oid)

        if commit.parents:
            # Merge parents beyond the first are ignored
            parent = self.read_commit(commit.parents[0])
            changed_files = self.diff_trees(parent.tree, commit.tree)
        else:
            changed_files = self.list_tree_files(commit.tree)

        return CommitDetail(
            oid=oid,
            message=commit.message,
            author=commit.author,
            committer=commit.committer,
            changed_files=changed_files,
        )

    def diff_trees(self, old_tree: str, new_tree: str) -> List[CommitChange]:
        """Files that differ between two trees."""
        output = self._git("diff-tree", "-r", "-z", "--no-renames", old_tree, new_tree)
        return [
            CommitChange(
                path=path, type=_STATUS_TO_CHANGE.get(status, ChangeType.MODIFY)
            )
            for status, path in _parse_diff_tree(output)
        ]

    def list_tree_files(self, tree: str) -> List[CommitChange]:
        """Every file in a tree, reported as added."""
        output = self._git("ls-tree", "-r", "-z", tree)
        changes = []
        for entry in output.split("\0"):
            if not entry:
                continue
            meta, _, path = entry.partition("\t")
            # meta is "<mode> <type> <oid>"; submodules have type commit
            if meta.split(" ")[1] == "blob":
                changes.append(CommitChange(path=path, type=ChangeType.ADD))
        return changes


def _parse_diff_tree(output: str) -> List[Tuple[str, str]]:
    """Parse `git diff-tree -r -z` output into (status letter, path) pairs.

    Records are ':<modes> <oids> <status>' followed by the path, each
    NUL-terminated.
    """
    fields = output.split("\0")
    changes = []
    i = 0
    while i < len(fields) - 1:
        meta = fields[i]
        if not meta.startswith(":"):
            i += 1
            continue
        status = meta.split(" ")[-1][:1]
        changes.append((status, fields[i + 1]))
        i += 2
    return changes
