from __future__ import annotations

import contextlib
import fcntl
import os
from pathlib import Path
from typing import Iterator

from . import ChangelogLockError, check_commands_available, debug
from .changelog import ChangelogWriter, StanzaWriter, append_snapshot, emit_changelog
from .environment import ChangelogOptions, ChangelogSettings, resolve_settings
from .git_tags import GitRepository, collect_tags
from .versions import DpkgComparator, VersionComparator, check_expressions, derive_versions, sort_versions


@contextlib.contextmanager
def changelog_lock(lock_path: Path) -> Iterator[None]:
    """Hold an exclusive lock next to the changelog for the duration of a run."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o644)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise ChangelogLockError(f"Another run is already updating the changelog ({lock_path})") from exc
        debug(f"acquired {lock_path}")
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
    finally:
        os.close(fd)


def build_changelog(
    options: ChangelogOptions,
    settings: ChangelogSettings,
    repo: GitRepository,
    comparator: VersionComparator,
    writer: StanzaWriter,
) -> list[str]:
    """Collect, derive, sort and emit. Returns the versions written, oldest first."""
    expressions = list(options.patterns)
    check_expressions(expressions)

    tip = repo.branch_tip()
    root = repo.root_commit(tip)
    tags = collect_tags(repo, tip, options.tag_filter)

    version_map = derive_versions(tags, expressions, comparator)
    ordered = sort_versions(version_map, comparator)
    debug(f"ordered versions: {', '.join(ordered)}")

    if options.snapshot:
        append_snapshot(version_map, ordered, repo, tip)

    emit_changelog(ordered, version_map, root, writer, settings)
    return ordered


def run_changelog_workflow(options: ChangelogOptions) -> list[str]:
    settings = resolve_settings(options)
    check_commands_available(["git", "dpkg", "sed", options.writer])

    repo = GitRepository(settings.workdir)
    writer = ChangelogWriter(options.writer, settings.workdir)
    with changelog_lock(settings.lock_path):
        ordered = build_changelog(options, settings, repo, DpkgComparator(), writer)
    print(f"Wrote {len(ordered)} changelog entr{'y' if len(ordered) == 1 else 'ies'} to {settings.changelog}")
    return ordered
