#!/usr/bin/env python3
"Work with Keep a Changelog CHANGELOG.md files."

from .changelog import Changelog, ChangelogError, Release, parse
from .cli import entrypoint
from .remote import UrlFormatError, normalize_url, resolve_remote_url
from .selector import (
    SelectionError,
    create_release,
    find_latest_released,
    promote_unreleased,
)
from .settings import bind_settings, lookup

__all__ = [
    "Changelog",
    "ChangelogError",
    "Release",
    "SelectionError",
    "UrlFormatError",
    "bind_settings",
    "create_release",
    "entrypoint",
    "find_latest_released",
    "lookup",
    "normalize_url",
    "parse",
    "promote_unreleased",
    "resolve_remote_url",
]
