from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from . import ChangelogWriterError, debug
from .environment import ChangelogSettings
from .git_tags import GitRepository


class StanzaWriter(Protocol):
    def write_stanza(self, since: str, until: str, version: str, settings: ChangelogSettings) -> None:
        ...


@dataclass(frozen=True)
class ChangelogWriter:
    """Adds one stanza per call by running the external changelog writer."""

    executable: str
    workdir: Path
    min_parents: int = 2

    def build_command(self, since: str, until: str, version: str, settings: ChangelogSettings) -> list[str]:
        return [
            self.executable,
            "--since",
            since,
            "--until",
            until,
            "--version",
            version,
            "--distribution",
            settings.distribution,
            "--urgency",
            settings.urgency,
            "--package",
            settings.package,
            "--author-name",
            settings.author_name,
            "--author-email",
            settings.author_email,
            "--changelog",
            str(settings.changelog),
            "--squash-merges",
            "--min-parents",
            str(self.min_parents),
            "--quiet",
        ]

    def write_stanza(self, since: str, until: str, version: str, settings: ChangelogSettings) -> None:
        """
        Raises:
            ChangelogWriterError: If the writer is missing or exits nonzero.
        """
        cmd = self.build_command(since, until, version, settings)
        debug(f"running {' '.join(cmd)!r}")
        try:
            result = subprocess.run(cmd, cwd=self.workdir, capture_output=True, text=True, check=True)
        except FileNotFoundError as exc:
            raise ChangelogWriterError(f"Command not found: {self.executable}") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise ChangelogWriterError(
                f"{self.executable} failed for version {version} ({since}..{until}) "
                f"with code {exc.returncode}:\n{stderr}"
            ) from exc
        if result.stdout.strip():
            debug(result.stdout.strip())


def append_snapshot(
    version_map: dict[str, str],
    ordered: list[str],
    repo: GitRepository,
    tip: str,
) -> str | None:
    """Append a `<latest>+<count>` entry for commits after the latest tag.

    Updates ``version_map`` and ``ordered`` in place and returns the snapshot
    version, or None when the tip is the latest tag.
    """
    if not ordered:
        return None
    latest = ordered[-1]
    latest_tag = version_map[latest]
    count = repo.commit_count(latest_tag, tip)
    if count == 0:
        debug(f"no commits after {latest_tag}, skipping snapshot entry")
        return None

    snapshot = f"{latest}+{count}"
    version_map[snapshot] = tip
    ordered.append(snapshot)
    debug(f"snapshot version {snapshot} -> {tip}")
    return snapshot


def emit_changelog(
    ordered: Sequence[str],
    version_map: dict[str, str],
    root: str,
    writer: StanzaWriter,
    settings: ChangelogSettings,
) -> int:
    """Write one stanza per version, oldest first.

    Each range starts at the previous version's endpoint, the first at
    ``root``. Returns the number of stanzas written.
    """
    previous = root
    written = 0
    for version in ordered:
        endpoint = version_map[version]
        print(f"Writing stanza for {version} ({previous}..{endpoint})")
        writer.write_stanza(previous, endpoint, version, settings)
        previous = endpoint
        written += 1
    return written
