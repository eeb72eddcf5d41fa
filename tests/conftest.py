"""
Shared pytest fixtures for Repo Indexer tests.

Git-backed tests build real throwaway repositories with the git binary;
commit timestamps advance by one minute per commit so log order is stable.
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from repo_indexer.services.qdrant import ScrollCursor


class GitRepoBuilder:
    """Creates files and commits in a scratch repository."""

    BASE_TIMESTAMP = 1700000000

    def __init__(self, path: Path):
        self.path = path
        self.path.mkdir(parents=True, exist_ok=True)
        self._clock = self.BASE_TIMESTAMP
        self.git("init", "-q")

    def git(self, *args: str) -> str:
        env = os.environ.copy()
        env["GIT_AUTHOR_DATE"] = f"{self._clock} +0100"
        env["GIT_COMMITTER_DATE"] = f"{self._clock} +0100"
        result = subprocess.run(
            [
                "git",
                "-c",
                "user.name=Test User",
                "-c",
                "user.email=test@example.com",
                "-c",
                "commit.gpgsign=false",
                *args,
            ],
            cwd=self.path,
            env=env,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def write(self, relpath: str, content: str) -> Path:
        file_path = self.path / relpath
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        return file_path

    def remove(self, relpath: str) -> None:
        self.git("rm", "-q", relpath)

    def commit(self, message: str) -> str:
        self._clock += 60
        self.git("add", "-A")
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD").strip()


@pytest.fixture
def git_repo(tmp_path) -> GitRepoBuilder:
    """An initialized repository without commits."""
    return GitRepoBuilder(tmp_path / "repo")


class InMemoryQdrant:
    """Stand-in for QdrantClient keeping points in insertion order.

    Scroll offsets are integer positions into the point list.
    """

    def __init__(self, points: Optional[List[Dict]] = None):
        self.points: Dict = {}
        self.calls: List[str] = []
        self.delete_requests: List[List] = []
        for point in points or []:
            self.points[point["id"]] = point

    def create_point(self, point_id, vector, payload):
        return {"id": point_id, "vector": vector, "payload": payload.copy()}

    def upsert_points(self, points, collection_name=None):
        self.calls.append("upsert")
        for point in points:
            self.points[point["id"]] = point

    def scroll_points(
        self,
        collection_name=None,
        limit=100,
        with_payload=True,
        with_vectors=False,
        offset=None,
    ):
        self.calls.append("scroll")
        ids = list(self.points)
        start = offset or 0
        page = ids[start : start + limit]
        next_start = start + limit
        raw_offset = next_start if next_start < len(ids) else None

        results = []
        for point_id in page:
            payload = self.points[point_id].get("payload") or {}
            if isinstance(with_payload, list):
                payload = {k: v for k, v in payload.items() if k in with_payload}
            results.append({"id": point_id, "payload": payload})
        return results, ScrollCursor.from_raw(raw_offset)

    def delete_points(self, point_ids, collection_name=None):
        self.calls.append("delete")
        self.delete_requests.append(list(point_ids))
        for point_id in point_ids:
            self.points.pop(point_id, None)
        return len(point_ids)

    def payloads_for(self, filepath: str) -> List[Dict]:
        return [
            point["payload"]
            for point in self.points.values()
            if point["payload"].get("filepath") == filepath
        ]


class FakeEmbedder:
    """Embedding provider returning a tiny deterministic vector."""

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.texts: List[str] = []

    def get_embedding(self, text, model=None):
        if self.fail_on is not None and self.fail_on in text:
            raise RuntimeError("Ollama API error: 500 Internal Server Error")
        self.texts.append(text)
        return [float(len(text)), 1.0, 0.0]


@pytest.fixture
def in_memory_qdrant() -> InMemoryQdrant:
    return InMemoryQdrant()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def make_qdrant():
    """Factory for pre-populated in-memory stores."""
    return InMemoryQdrant


@pytest.fixture
def make_embedder():
    return FakeEmbedder
