from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn, Sequence

from . import TagChangelogError
from .environment import DEFAULT_CHANGELOG, DEFAULT_URGENCY, DEFAULT_WRITER, ChangelogOptions
from .workflow import run_changelog_workflow


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _parser_inputs(argv: Sequence[str] | None) -> tuple[list[str] | None, str | None]:
    """Return (args_without_prog, prog_name) given a raw argv style sequence."""
    if argv is None:
        return None, None
    values = list(argv)
    if not values:
        return [], None
    prog = Path(values[0]).name
    return values[1:], prog


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=prog,
        description="Generate a Debian changelog from the git tags reachable from the current branch.",
        epilog="Example: %(prog)s -d bookworm -A 's/^v//' 's/_/~/g'",
    )
    parser.add_argument("-C", dest="directory", metavar="DIR", help="Run in DIR instead of the current directory")
    parser.add_argument(
        "-f",
        dest="changelog",
        metavar="PATH",
        default=DEFAULT_CHANGELOG,
        help="Changelog file to write (default: %(default)s)",
    )
    parser.add_argument("-e", dest="email", metavar="EMAIL", help="Author email (default: $DEBEMAIL or user@hostname)")
    parser.add_argument("-n", dest="name", metavar="NAME", help="Author name (default: $DEBFULLNAME or $USER)")
    parser.add_argument("-p", dest="package", metavar="PKG", help="Package name (default: name of the directory)")
    parser.add_argument(
        "-d",
        dest="distribution",
        metavar="CODENAME",
        help="Release codename (default: output of lsb_release -cs)",
    )
    parser.add_argument(
        "-u",
        dest="urgency",
        metavar="URGENCY",
        default=DEFAULT_URGENCY,
        help="Urgency of the entries (default: %(default)s)",
    )
    parser.add_argument("-F", dest="tag_filter", metavar="REGEX", help="Only use tags matching REGEX")
    parser.add_argument(
        "-A",
        dest="snapshot",
        action="store_true",
        help="Append a snapshot entry for commits after the latest tag",
    )
    parser.add_argument(
        "--writer",
        metavar="CMD",
        default=DEFAULT_WRITER,
        help="Changelog writer executable (default: %(default)s)",
    )
    parser.add_argument(
        "patterns",
        nargs="*",
        metavar="PATTERN",
        help="sed substitutions turning a tag into a version, applied in order (e.g. 's/^v//')",
    )
    return parser


def parse_options(argv: Sequence[str] | None = None) -> ChangelogOptions:
    arg_list, prog = _parser_inputs(argv)
    args = build_parser(prog).parse_args(arg_list)
    return ChangelogOptions(
        directory=args.directory,
        changelog=args.changelog,
        email=args.email,
        name=args.name,
        package=args.package,
        distribution=args.distribution,
        urgency=args.urgency,
        tag_filter=args.tag_filter,
        snapshot=args.snapshot,
        writer=args.writer,
        patterns=tuple(args.patterns),
    )


def git_tag_changelog(argv: Sequence[str] | None = None) -> None:
    """
    Main entry point for generating debian/changelog from git tags.

    Every fatal condition is reported as 'Error: ...' on stderr with exit status 1.
    """
    options = parse_options(argv)
    try:
        run_changelog_workflow(options)
    except TagChangelogError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1)