"""Unit tests for git_tags with mocked git calls."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tagchangelog_utils import TagDiscoveryError, run
from tagchangelog_utils.git_tags import (
    GitRepository,
    collect_tags,
    filter_tags,
    parse_decorated_tags,
    parse_git_version,
)


def fake_git(responses: dict[tuple[str, ...], str]):
    """Build a replacement for `run` that answers git commands from a table."""

    def _run(cmd, *, cwd=None, error_cls=Exception):
        key = tuple(cmd[1:])
        if key not in responses:
            raise error_cls(f"unexpected command {cmd!r}")
        return responses[key]

    return _run


class TestParseGitVersion:
    """Tests for parse_git_version."""

    def test_plain(self):
        assert parse_git_version("git version 2.39.2\n") == (2, 39, 2)

    def test_vendor_suffix(self):
        assert parse_git_version("git version 2.37.1 (Apple Git-137.1)") == (2, 37, 1)

    def test_two_components(self):
        assert parse_git_version("git version 1.8") == (1, 8, 0)

    def test_garbage(self):
        with pytest.raises(TagDiscoveryError, match="Could not determine git version"):
            parse_git_version("no version here")


class TestParseDecoratedTags:
    """Tests for parse_decorated_tags."""

    def test_extracts_tags_in_order(self):
        """Test that tag markers are extracted and branches are ignored."""
        output = (
            " (HEAD -> refs/heads/main, tag: refs/tags/v2.0, refs/remotes/origin/main)\n"
            " (tag: refs/tags/v1.1)\n"
            "\n"
            " (tag: refs/tags/v1.0, tag: refs/tags/release-1.0)\n"
        )
        assert parse_decorated_tags(output) == ["v2.0", "v1.1", "v1.0", "release-1.0"]

    def test_no_tags(self):
        assert parse_decorated_tags(" (HEAD -> refs/heads/main)\n") == []


class TestGitRepository:
    """Tests for GitRepository queries."""

    def test_merged_tags_modern_git(self):
        """Test that git >= 2.7.0 uses `git tag --merged`."""
        responses = {
            ("--version",): "git version 2.43.0\n",
            ("tag", "--merged", "abc123"): "v1.0\nv1.1\n\nv2.0\n",
        }
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            tags = GitRepository(Path("/repo")).merged_tags("abc123")
        assert tags == ["v1.0", "v1.1", "v2.0"]

    def test_merged_tags_old_git_falls_back_to_log(self):
        """Test that older git versions parse decorated log output."""
        responses = {
            ("--version",): "git version 2.6.4\n",
            (
                "log",
                "--simplify-by-decoration",
                "--decorate=full",
                "--pretty=format:%d",
                "abc123",
            ): " (HEAD -> refs/heads/main, tag: refs/tags/v2.0)\n (tag: refs/tags/v1.0)\n",
        }
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            tags = GitRepository(Path("/repo")).merged_tags("abc123")
        assert tags == ["v2.0", "v1.0"]

    def test_commands_run_in_workdir(self):
        """Test that every git call is given the repository as cwd."""
        with patch("tagchangelog_utils.git_tags.run", return_value="deadbeef\n") as mock_run:
            tip = GitRepository(Path("/some/repo")).branch_tip()
        assert tip == "deadbeef"
        mock_run.assert_called_once_with(
            ["git", "rev-parse", "HEAD"], cwd=Path("/some/repo"), error_cls=TagDiscoveryError
        )

    def test_single_root_commit(self, capsys):
        responses = {("rev-list", "--max-parents=0", "tip"): "root1\n"}
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            assert GitRepository(Path("/repo")).root_commit("tip") == "root1"
        assert "Warning" not in capsys.readouterr().err

    def test_multiple_root_commits_warn_and_use_first(self, capsys):
        """Test that merged histories warn and use the first root."""
        responses = {("rev-list", "--max-parents=0", "tip"): "root1\nroot2\n"}
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            assert GitRepository(Path("/repo")).root_commit("tip") == "root1"
        assert "Found 2 root commits" in capsys.readouterr().err

    def test_no_root_commit(self):
        responses = {("rev-list", "--max-parents=0", "tip"): ""}
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            with pytest.raises(TagDiscoveryError, match="No root commit"):
                GitRepository(Path("/repo")).root_commit("tip")

    def test_commit_count(self):
        responses = {("rev-list", "--count", "v2.0..tip"): "3\n"}
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            assert GitRepository(Path("/repo")).commit_count("v2.0", "tip") == 3

    def test_commit_count_garbage(self):
        responses = {("rev-list", "--count", "v2.0..tip"): "lots\n"}
        with patch("tagchangelog_utils.git_tags.run", side_effect=fake_git(responses)):
            with pytest.raises(TagDiscoveryError, match="Unexpected commit count"):
                GitRepository(Path("/repo")).commit_count("v2.0", "tip")


class TestRun:
    """Tests for the shared run helper."""

    @patch("tagchangelog_utils.subprocess.run")
    def test_failure_raises_requested_error(self, mock_run):
        """Test that a nonzero exit is raised as the caller's error type."""
        mock_run.return_value = MagicMock(returncode=128, stdout=b"", stderr=b"fatal: not a git repository")

        with pytest.raises(TagDiscoveryError, match="not a git repository"):
            run(["git", "rev-parse", "HEAD"], error_cls=TagDiscoveryError)

    @patch("tagchangelog_utils.subprocess.run")
    def test_missing_executable(self, mock_run):
        mock_run.side_effect = FileNotFoundError("git")

        with pytest.raises(TagDiscoveryError, match="Command not found: git"):
            run(["git", "--version"], error_cls=TagDiscoveryError)

    @patch("tagchangelog_utils.subprocess.run")
    def test_success_returns_stdout_and_passes_cwd(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=b"v1.0\n", stderr=b"")

        assert run(["git", "tag"], cwd=Path("/repo")) == "v1.0\n"
        assert mock_run.call_args[1]["cwd"] == Path("/repo")


class TestCollectTags:
    """Tests for collect_tags and filter_tags."""

    def test_filter_keeps_matching_tags(self):
        """Test that ^rel- keeps only release tags."""
        assert filter_tags(["v1.0", "rel-1.0", "rel-2.0"], "^rel-") == ["rel-1.0", "rel-2.0"]

    def test_filter_is_substring_search(self):
        """Test that the filter is not anchored."""
        assert filter_tags(["v1.0", "debian/1.0", "v2.0-rc1"], "rc|debian") == ["debian/1.0", "v2.0-rc1"]

    def test_no_filter_keeps_everything(self):
        assert filter_tags(["a", "b"], None) == ["a", "b"]

    def test_invalid_filter(self):
        with pytest.raises(TagDiscoveryError, match="Invalid tag filter"):
            filter_tags(["v1.0"], "(")

    def test_no_tags_is_fatal(self):
        repo = MagicMock()
        repo.merged_tags.return_value = []
        with pytest.raises(TagDiscoveryError, match="No tags found"):
            collect_tags(repo, "tip")

    def test_filter_removing_all_tags_is_fatal(self):
        repo = MagicMock()
        repo.merged_tags.return_value = ["v1.0", "v2.0"]
        with pytest.raises(TagDiscoveryError, match="No tags match"):
            collect_tags(repo, "tip", "^rel-")

    def test_collect_with_filter(self):
        repo = MagicMock()
        repo.merged_tags.return_value = ["v1.0", "rel-1.0", "rel-2.0"]
        assert collect_tags(repo, "tip", "^rel-") == ["rel-1.0", "rel-2.0"]
        repo.merged_tags.assert_called_once_with("tip")
