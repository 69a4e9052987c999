from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Iterable


DEFAULT_REQUIRED_COMMANDS = ["git", "dpkg", "sed"]


class TagChangelogError(Exception):
    """Base exception for fatal changelog generation errors."""

    pass


class UsageError(TagChangelogError):
    """Raised for invalid command line usage."""

    pass


class EnvironmentSetupError(TagChangelogError):
    """Raised when the environment is missing a tool, directory or setting."""

    pass


class TagDiscoveryError(TagChangelogError):
    """Raised when git queries fail or no usable tags are found."""

    pass


class VersionDerivationError(TagChangelogError):
    """Raised when a tag cannot be turned into a valid Debian version."""

    pass


class ChangelogWriterError(TagChangelogError):
    """Raised when the changelog writer tool fails."""

    pass


class ChangelogLockError(TagChangelogError):
    """Raised when another run already holds the changelog lock."""

    pass


def debug_enabled() -> bool:
    value = os.environ.get("DEBUG", "")
    return bool(value) and value != "0"


def debug(message: str) -> None:
    if debug_enabled():
        print(f"DEBUG: {message}", file=sys.stderr)


def warn(message: str) -> None:
    print(f"Warning: {message}", file=sys.stderr)


def check_commands_available(required: Iterable[str] | None = None) -> None:
    commands = list(required) if required is not None else DEFAULT_REQUIRED_COMMANDS
    missing = [cmd for cmd in commands if shutil.which(cmd) is None]
    if missing:
        missing_str = ", ".join(missing)
        raise EnvironmentSetupError(f"required command(s) {missing_str!r} are not available in PATH")


def run(
    cmd: list[str],
    *,
    input_text: str | None = None,
    cwd: Path | None = None,
    error_cls: type[TagChangelogError] = TagChangelogError,
) -> str:
    """Run a command and return its decoded stdout.

    A missing executable or a nonzero exit status is raised as ``error_cls``
    with the command line and its stderr in the message.
    """
    debug(f"running {' '.join(cmd)!r}" + (f" in {cwd}" if cwd else ""))
    try:
        result = subprocess.run(
            cmd,
            input=input_text.encode("utf-8") if input_text is not None else None,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except FileNotFoundError as exc:
        raise error_cls(f"Command not found: {cmd[0]}") from exc
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise error_cls(f"Command {' '.join(cmd)!r} failed with code {result.returncode}:\n{stderr}")
    return result.stdout.decode("utf-8", errors="replace")
