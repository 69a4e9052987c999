from __future__ import annotations

import subprocess
from functools import cmp_to_key
from typing import Callable, Iterable, Protocol, Sequence

from . import EnvironmentSetupError, VersionDerivationError, debug, run, warn


MINIMUM_VERSION = "0.0"

SED = "sed"

_COMPARE_OPERATORS = {"lt", "le", "eq", "ne", "ge", "gt"}


class VersionComparator(Protocol):
    def satisfies(self, left: str, op: str, right: str) -> bool:
        ...

    def compare(self, left: str, right: str) -> int:
        ...


class DpkgComparator:
    """Debian version ordering backed by ``dpkg --compare-versions``."""

    def __init__(self, executable: str = "dpkg") -> None:
        self.executable = executable

    def satisfies(self, left: str, op: str, right: str) -> bool:
        """Return True when ``left op right`` holds.

        dpkg exits 0 when the relation holds, 1 when it does not and 2 when a
        version is unparsable, which is treated as not holding.
        """
        if op not in _COMPARE_OPERATORS:
            raise ValueError(f"Unknown comparison operator: {op!r}")
        try:
            result = subprocess.run(
                [self.executable, "--compare-versions", left, op, right],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except FileNotFoundError as exc:
            raise EnvironmentSetupError(
                f"{self.executable} is required for version comparisons but was not found in PATH"
            ) from exc
        return result.returncode == 0

    def compare(self, left: str, right: str) -> int:
        if left == right:
            return 0
        if self.satisfies(left, "lt", right):
            return -1
        if self.satisfies(left, "eq", right):
            return 0
        return 1


def _sed(expression: str, text: str) -> str:
    try:
        return run([SED, "-e", expression], input_text=text, error_cls=VersionDerivationError)
    except VersionDerivationError as exc:
        raise VersionDerivationError(f"Invalid substitution {expression!r}: {exc}") from exc


def check_expressions(expressions: Iterable[str]) -> None:
    """Have sed compile each expression against empty input.

    Raises:
        VersionDerivationError: Naming the first expression sed rejects.
    """
    for expression in expressions:
        _sed(expression, "")


def apply_expression(value: str, expression: str) -> str:
    """Run ``value`` through ``sed -e expression`` as a single line."""
    output = _sed(expression, value + "\n")
    if output.endswith("\n"):
        output = output[:-1]
    return output


def apply_expressions(tag: str, expressions: Sequence[str]) -> str:
    value = tag
    for expression in expressions:
        value = apply_expression(value, expression)
    return value


def derive_version(tag: str, expressions: Sequence[str], comparator: VersionComparator) -> str:
    """Turn a tag name into a Debian version.

    Raises:
        VersionDerivationError: If sed rejects an expression or the result
            does not compare >= 0.0.
    """
    version = apply_expressions(tag, expressions)
    if not version or not comparator.satisfies(version, "ge", MINIMUM_VERSION):
        raise VersionDerivationError(
            f"Unresolved version {version!r} derived from tag {tag!r} (must be >= {MINIMUM_VERSION})"
        )
    debug(f"tag {tag!r} -> version {version!r}")
    return version


def derive_versions(
    tags: Iterable[str],
    expressions: Sequence[str],
    comparator: VersionComparator,
) -> dict[str, str]:
    """Map each derived version to the tag it came from.

    Tags are processed in the order given and the first failure aborts. When
    two tags derive the same version the later tag wins.
    """
    version_map: dict[str, str] = {}
    for tag in tags:
        version = derive_version(tag, expressions, comparator)
        previous = version_map.get(version)
        if previous is not None and previous != tag:
            warn(f"Tags {previous!r} and {tag!r} both derive version {version!r}; using {tag!r}")
        version_map[version] = tag
    return version_map


def sort_versions(versions: Iterable[str], comparator: VersionComparator) -> list[str]:
    key: Callable[[str], object] = cmp_to_key(comparator.compare)
    return sorted(versions, key=key)
