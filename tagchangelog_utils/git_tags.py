from __future__ import annotations

import re
from pathlib import Path

from . import TagDiscoveryError, debug, run, warn


# `git tag --merged` first shipped in git 2.7.0.
TAG_MERGED_MIN_VERSION = (2, 7, 0)

_DECORATION_TAG = re.compile(r"tag: refs/tags/([^,)]+)")


def parse_git_version(output: str) -> tuple[int, int, int]:
    """
    Parse `git --version` output such as 'git version 2.39.2 (Apple Git-143)'.
    """
    match = re.search(r"(\d+)\.(\d+)(?:\.(\d+))?", output)
    if not match:
        raise TagDiscoveryError(f"Could not determine git version from {output.strip()!r}")
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch or 0)


def parse_decorated_tags(output: str) -> list[str]:
    """Extract tag names from `git log --decorate=full --pretty=format:%d` output.

    Lines look like ` (HEAD -> refs/heads/main, tag: refs/tags/v1.2, refs/remotes/origin/main)`.
    """
    tags: list[str] = []
    for line in output.splitlines():
        for name in _DECORATION_TAG.findall(line):
            name = name.strip()
            if name and name not in tags:
                tags.append(name)
    return tags


class GitRepository:
    """Version control queries against the repository at ``workdir``."""

    def __init__(self, workdir: Path, executable: str = "git") -> None:
        self.workdir = workdir
        self.executable = executable

    def _git(self, *args: str) -> str:
        return run([self.executable, *args], cwd=self.workdir, error_cls=TagDiscoveryError)

    def version(self) -> tuple[int, int, int]:
        return parse_git_version(self._git("--version"))

    def branch_tip(self) -> str:
        tip = self._git("rev-parse", "HEAD").strip()
        if not tip:
            raise TagDiscoveryError("Could not resolve the current branch tip")
        return tip

    def root_commits(self, tip: str) -> list[str]:
        return [line.strip() for line in self._git("rev-list", "--max-parents=0", tip).splitlines() if line.strip()]

    def root_commit(self, tip: str) -> str:
        roots = self.root_commits(tip)
        if not roots:
            raise TagDiscoveryError(f"No root commit found for {tip}")
        if len(roots) > 1:
            warn(f"Found {len(roots)} root commits, using {roots[0]} as the start of history")
        debug(f"root commit {roots[0]}")
        return roots[0]

    def merged_tags(self, tip: str) -> list[str]:
        """Return tags reachable from ``tip``."""
        if self.version() >= TAG_MERGED_MIN_VERSION:
            output = self._git("tag", "--merged", tip)
            return [line.strip() for line in output.splitlines() if line.strip()]

        debug("git is older than 2.7.0, reading tags from decorated log")
        output = self._git(
            "log",
            "--simplify-by-decoration",
            "--decorate=full",
            "--pretty=format:%d",
            tip,
        )
        return parse_decorated_tags(output)

    def commit_count(self, since: str, until: str) -> int:
        output = self._git("rev-list", "--count", f"{since}..{until}").strip()
        try:
            return int(output)
        except ValueError as exc:
            raise TagDiscoveryError(f"Unexpected commit count {output!r} for {since}..{until}") from exc


def filter_tags(tags: list[str], tag_filter: str | None) -> list[str]:
    if not tag_filter:
        return list(tags)
    try:
        pattern = re.compile(tag_filter)
    except re.error as exc:
        raise TagDiscoveryError(f"Invalid tag filter {tag_filter!r}: {exc}") from exc
    return [tag for tag in tags if pattern.search(tag)]


def collect_tags(repo: GitRepository, tip: str, tag_filter: str | None = None) -> list[str]:
    tags = repo.merged_tags(tip)
    if not tags:
        raise TagDiscoveryError(f"No tags found in the history of {tip}")
    debug(f"found {len(tags)} tag(s): {', '.join(tags)}")

    filtered = filter_tags(tags, tag_filter)
    if not filtered:
        raise TagDiscoveryError(f"No tags match the filter {tag_filter!r}")
    if tag_filter:
        debug(f"{len(filtered)} tag(s) match {tag_filter!r}")
    return filtered
