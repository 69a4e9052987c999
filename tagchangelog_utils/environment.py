from __future__ import annotations

import getpass
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from . import EnvironmentSetupError, debug, run, warn


DEFAULT_CHANGELOG = "debian/changelog"
DEFAULT_URGENCY = "low"
DEFAULT_WRITER = "git-debchange"


@dataclass(frozen=True)
class ChangelogOptions:
    """Raw command line values before the environment is consulted."""

    directory: str | None = None
    changelog: str = DEFAULT_CHANGELOG
    email: str | None = None
    name: str | None = None
    package: str | None = None
    distribution: str | None = None
    urgency: str = DEFAULT_URGENCY
    tag_filter: str | None = None
    snapshot: bool = False
    writer: str = DEFAULT_WRITER
    patterns: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class ChangelogSettings:
    """Fully resolved settings for one run."""

    workdir: Path
    changelog: Path
    package: str
    distribution: str
    author_name: str
    author_email: str
    urgency: str

    @property
    def lock_path(self) -> Path:
        return self.changelog.with_name(self.changelog.name + ".lock")


def resolve_workdir(directory: str | None) -> Path:
    if not directory:
        return Path.cwd()
    path = Path(directory).expanduser()
    try:
        path = path.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise EnvironmentSetupError(f"Cannot use directory {directory!r}: {exc}") from exc
    if not path.is_dir():
        raise EnvironmentSetupError(f"Cannot use directory {directory!r}: not a directory")
    return path


def current_user(environ: Mapping[str, str]) -> str:
    user = environ.get("USER")
    if user:
        return user
    try:
        return getpass.getuser()
    except (KeyError, OSError) as exc:
        raise EnvironmentSetupError("Could not determine the current user; set USER or use -n/-e") from exc


def _resolve_identity(
    flag_value: str | None,
    env_name: str,
    environ: Mapping[str, str],
    fallback: str,
    label: str,
) -> str:
    env_value = environ.get(env_name)
    if flag_value:
        if env_value and env_value != flag_value:
            warn(f"Overriding {label} {env_value!r} from ${env_name} with {flag_value!r}")
        return flag_value
    if env_value:
        return env_value
    return fallback


def detect_distribution(workdir: Path) -> str:
    """Return the release codename reported by `lsb_release -cs`."""
    try:
        codename = run(["lsb_release", "-cs"], cwd=workdir, error_cls=EnvironmentSetupError).strip()
    except EnvironmentSetupError as exc:
        raise EnvironmentSetupError(f"Could not determine the release codename, use -d: {exc}") from exc
    if not codename:
        raise EnvironmentSetupError("Could not determine the release codename, use -d")
    return codename


def resolve_settings(
    options: ChangelogOptions,
    environ: Mapping[str, str] | None = None,
) -> ChangelogSettings:
    env = os.environ if environ is None else environ
    workdir = resolve_workdir(options.directory)
    changelog = workdir / options.changelog

    user = None
    if not options.name or not options.email:
        if not env.get("DEBFULLNAME") or not env.get("DEBEMAIL"):
            user = current_user(env)

    author_name = _resolve_identity(options.name, "DEBFULLNAME", env, user or "", "author name")
    author_email = _resolve_identity(
        options.email,
        "DEBEMAIL",
        env,
        f"{user}@{socket.gethostname()}" if user else "",
        "author email",
    )

    package = options.package or workdir.name
    distribution = options.distribution or detect_distribution(workdir)

    if changelog.is_file() and changelog.stat().st_size > 0:
        warn(f"{changelog} already exists and is not empty; new entries will be added on top")

    settings = ChangelogSettings(
        workdir=workdir,
        changelog=changelog,
        package=package,
        distribution=distribution,
        author_name=author_name,
        author_email=author_email,
        urgency=options.urgency,
    )
    debug(f"settings: {settings}")
    return settings
