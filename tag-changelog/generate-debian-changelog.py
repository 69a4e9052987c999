#!/usr/bin/env python3
"""
Standalone launcher for the git tag changelog CLI.
"""

from tagchangelog_utils.cli import git_tag_changelog


if __name__ == "__main__":
    git_tag_changelog()
