"""Tests for CommitHistoryReconstructor."""

import os
import subprocess
from datetime import datetime, timezone

import pytest

from repo_indexer.services.commit_history import (
    ChangeType,
    CommitChange,
    CommitHistoryReconstructor,
    _parse_diff_tree,
    parse_commit_object,
    parse_signature,
)


def changes(commit):
    return [(change.path, change.type) for change in commit.changed_files]


@pytest.fixture
def history(git_repo):
    return CommitHistoryReconstructor(git_repo.path)


class TestGetHistory:
    def test_root_commit_lists_every_file_as_added(self, git_repo, history):
        git_repo.write("a.txt", "a\n")
        git_repo.write("dir/b.txt", "b\n")
        root = git_repo.commit("root")

        (commit,) = history.get_history()

        assert commit.oid == root
        assert changes(commit) == [
            ("a.txt", ChangeType.ADD),
            ("dir/b.txt", ChangeType.ADD),
        ]

    def test_newest_first_with_changes_against_parent(self, git_repo, history):
        git_repo.write("x.ts", "one\n")
        git_repo.commit("C1")
        git_repo.write("x.ts", "two\n")
        git_repo.write("y.ts", "new\n")
        c2 = git_repo.commit("C2")

        commits = history.get_history(count=2)

        assert [c.message for c in commits] == ["C2\n", "C1\n"]
        assert commits[0].oid == c2
        assert changes(commits[0]) == [
            ("x.ts", ChangeType.MODIFY),
            ("y.ts", ChangeType.ADD),
        ]
        assert changes(commits[1]) == [("x.ts", ChangeType.ADD)]

    def test_count_limits_result(self, git_repo, history):
        for i in range(4):
            git_repo.write("f.py", f"v{i}\n")
            git_repo.commit(f"commit {i}")

        commits = history.get_history(count=2)

        assert [c.message for c in commits] == ["commit 3\n", "commit 2\n"]

    def test_deleted_file(self, git_repo, history):
        git_repo.write("keep.md", "k\n")
        git_repo.write("old.md", "o\n")
        git_repo.commit("initial")
        git_repo.remove("old.md")
        git_repo.commit("remove old")

        latest = history.get_history(count=1)[0]

        assert changes(latest) == [("old.md", ChangeType.DELETE)]

    def test_file_replaced_by_symlink_is_typechange(self, git_repo, history):
        git_repo.write("target.txt", "t\n")
        git_repo.write("link.txt", "plain file\n")
        git_repo.commit("initial")
        (git_repo.path / "link.txt").unlink()
        os.symlink("target.txt", git_repo.path / "link.txt")
        git_repo.commit("make link")

        latest = history.get_history(count=1)[0]

        assert changes(latest) == [("link.txt", ChangeType.TYPECHANGE)]

    def test_unchanged_commit_has_no_changes(self, git_repo, history):
        git_repo.write("a.txt", "a\n")
        git_repo.commit("initial")
        git_repo.commit("empty")

        latest = history.get_history(count=1)[0]

        assert latest.changed_files == []

    def test_merge_commit_compares_first_parent_only(self, git_repo, history):
        git_repo.write("base.txt", "base\n")
        git_repo.commit("base")
        main_branch = git_repo.git("rev-parse", "--abbrev-ref", "HEAD").strip()
        git_repo.git("checkout", "-q", "-b", "feature")
        git_repo.write("feature.txt", "feature\n")
        git_repo.commit("feature work")
        git_repo.git("checkout", "-q", main_branch)
        git_repo.write("main.txt", "main\n")
        git_repo.commit("main work")
        git_repo.git("merge", "-q", "--no-ff", "-m", "merge feature", "feature")

        merge = history.get_history(count=1)[0]

        assert merge.message == "merge feature\n"
        assert changes(merge) == [("feature.txt", ChangeType.ADD)]

    def test_since_filters_older_commits(self, git_repo, history):
        git_repo.write("a.txt", "1\n")
        git_repo.commit("first")  # 1700000060
        git_repo.write("a.txt", "2\n")
        git_repo.commit("second")  # 1700000120

        since = datetime.fromtimestamp(1700000090, tz=timezone.utc)
        commits = history.get_history(since=since)

        assert [c.message for c in commits] == ["second\n"]

    def test_ref_selects_starting_commit(self, git_repo, history):
        git_repo.write("a.txt", "1\n")
        first = git_repo.commit("first")
        git_repo.write("a.txt", "2\n")
        git_repo.commit("second")

        commits = history.get_history(ref=first)

        assert [c.oid for c in commits] == [first]

    def test_unknown_ref_raises(self, git_repo, history):
        git_repo.write("a.txt", "1\n")
        git_repo.commit("first")

        with pytest.raises(subprocess.CalledProcessError):
            history.get_history(ref="no-such-branch")

    def test_repository_without_commits_raises(self, history):
        with pytest.raises(subprocess.CalledProcessError):
            history.get_history()

    def test_signatures(self, git_repo, history):
        git_repo.write("a.txt", "1\n")
        git_repo.commit("first")

        (commit,) = history.get_history()

        assert commit.author.name == "Test User"
        assert commit.author.email == "test@example.com"
        assert commit.author.timestamp == 1700000060
        assert commit.author.timezone_offset == -60
        assert commit.committer == commit.author

    def test_to_dict(self, git_repo, history):
        git_repo.write("a.txt", "1\n")
        oid = git_repo.commit("first")

        data = history.get_history()[0].to_dict()

        assert data["oid"] == oid
        assert data["message"] == "first\n"
        assert data["author"]["timezone_offset"] == -60
        assert data["changed_files"] == [{"path": "a.txt", "type": "add"}]


class TestParsing:
    def test_parse_signature_west_of_utc(self):
        signature = parse_signature("Jane Doe <jane@example.com> 1700000000 -0530")

        assert signature.name == "Jane Doe"
        assert signature.email == "jane@example.com"
        assert signature.timestamp == 1700000000
        assert signature.timezone_offset == 330

    def test_parse_signature_empty_name(self):
        signature = parse_signature("<bot@example.com> 1 +0000")

        assert signature.name == ""
        assert signature.email == "bot@example.com"
        assert signature.timezone_offset == 0

    def test_parse_signature_malformed(self):
        with pytest.raises(ValueError, match="Malformed git signature"):
            parse_signature("nobody")

    def test_parse_commit_object_skips_continuation_lines(self):
        raw = (
            "tree 1111111111111111111111111111111111111111\n"
            "parent 2222222222222222222222222222222222222222\n"
            "parent 3333333333333333333333333333333333333333\n"
            "author A <a@x> 10 +0200\n"
            "committer C <c@x> 20 -0100\n"
            "gpgsig -----BEGIN PGP SIGNATURE-----\n"
            " abcdef\n"
            " -----END PGP SIGNATURE-----\n"
            "\n"
            "Subject line\n\nBody text\n"
        )

        commit = parse_commit_object(raw)

        assert commit.tree == "1" * 40
        assert commit.parents == ["2" * 40, "3" * 40]
        assert commit.author.timezone_offset == -120
        assert commit.committer.timezone_offset == 60
        assert commit.message == "Subject line\n\nBody text\n"

    def test_parse_commit_object_requires_tree(self):
        with pytest.raises(ValueError):
            parse_commit_object("author A <a@x> 10 +0000\n\nmsg\n")

    def test_parse_diff_tree(self):
        output = (
            ":100644 100644 aaa bbb M\0src/a.py\0"
            ":000000 100644 000 ccc A\0new file.md\0"
            ":100644 000000 ddd 000 D\0gone.txt\0"
        )

        assert _parse_diff_tree(output) == [
            ("M", "src/a.py"),
            ("A", "new file.md"),
            ("D", "gone.txt"),
        ]

    def test_parse_diff_tree_empty(self):
        assert _parse_diff_tree("") == []


def test_unknown_status_is_reported_as_modify(history):
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(history, "_git", lambda *args: ":100644 100644 a b X\0odd\0")
        assert history.diff_trees("t1", "t2") == [
            CommitChange(path="odd", type=ChangeType.MODIFY)
        ]
