"""Command line interface to update CHANGELOG.md files."""

import argparse
import datetime
import logging
import os
import sys
import zoneinfo

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, TextIO

from .changelog import (
    FORMATS,
    Changelog,
    ChangelogError,
    Release,
    markdown_blocks,
    parse,
    plain_tag_name,
)
from .logging import NOTICE, setup_logging
from .remote import UrlFormatError, normalize_url, resolve_remote_url
from .selector import (
    SelectionError,
    create_release,
    find_latest_released,
    promote_unreleased,
)
from .settings import bind_settings
from .utils import ABSENT, FLAG, OptionValue


PLACEHOLDER_URL = "https://example.com"


def get_timezone(environ: Mapping[str, str]) -> datetime.tzinfo:
    """Return the time zone named by CHANGELOG_TIMEZONE (default UTC)."""
    logger = logging.getLogger(__name__)

    try:
        input_timezone = environ["CHANGELOG_TIMEZONE"]
    except KeyError:
        logger.debug("No time zone provided, defaulting to UTC")
        return datetime.timezone.utc

    try:
        return zoneinfo.ZoneInfo(input_timezone)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Time zone `%s` not found! Defaulting to UTC", input_timezone)
        return datetime.timezone.utc


@dataclass
class RunContext:
    """Process-level state handed to a single run."""

    cwd: Path
    today: datetime.date
    stdout: TextIO = field(default_factory=lambda: sys.stdout)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None):
        """Capture the working directory and today's date."""
        if environ is None:
            environ = os.environ

        return cls(
            cwd=Path.cwd(),
            today=datetime.datetime.now(get_timezone(environ)).date(),
        )


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the command line tool."""
    parser = argparse.ArgumentParser(
        prog="keepchanges", description="Update a Keep a Changelog CHANGELOG.md file."
    )
    parser.add_argument("--file", type=Path, default=Path("CHANGELOG.md"))
    parser.add_argument("--format", choices=FORMATS, default=FORMATS[0])
    parser.add_argument(
        "--release",
        nargs="?",
        type=OptionValue.of,
        const=FLAG,
        default=ABSENT,
        metavar="VERSION",
        help="Date the newest unreleased entry (optionally setting its version)",
    )
    parser.add_argument(
        "--create",
        nargs="?",
        type=OptionValue.of,
        const=FLAG,
        default=ABSENT,
        metavar="VERSION",
        help="Add a new unreleased entry",
    )
    parser.add_argument("--url", help="The repository URL")
    parser.add_argument(
        "--https",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use https when inferring the URL from the git remote",
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Exit successfully even on errors"
    )
    parser.add_argument("--head", help="The name of the head ref for comparisons")
    parser.add_argument(
        "--init", action="store_true", help="Create a new CHANGELOG file"
    )
    parser.add_argument(
        "--latest-release",
        action="store_true",
        help="Print the most recent released version and exit",
    )
    parser.add_argument(
        "--no-v-prefix",
        action="store_true",
        help="Don't prefix version tags with `v`",
    )
    parser.add_argument("--verbose", "-v", action="store_true")

    return parser


def resolve_url(
    args: argparse.Namespace, context: RunContext, changelog: Changelog
) -> str:
    """Pick the repository URL, falling back to a placeholder."""
    logger = logging.getLogger(__name__)

    try:
        if args.url:
            url = normalize_url(args.url, args.https)
        else:
            url = changelog.url or resolve_remote_url(context.cwd, args.https)
    except UrlFormatError as err:
        logger.warning("%s - using %s instead", err, PLACEHOLDER_URL)
        return PLACEHOLDER_URL

    if not url:
        logger.error(
            "Please, set the repository url with "
            '--url="https://github.com/username/repository"'
        )
        return PLACEHOLDER_URL

    return url


def read_changelog(changelog_file: Path) -> Changelog:
    """Read and parse an existing CHANGELOG file."""
    try:
        text = changelog_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as err:
        raise ChangelogError(f"{changelog_file} is not valid UTF-8: {err}") from err

    return parse(text)


def save(
    args: argparse.Namespace,
    context: RunContext,
    changelog: Changelog,
    changelog_file: Path,
    is_new: bool = False,
):
    """Bind the link settings and write the CHANGELOG."""
    bind_settings(changelog, resolve_url(args, context, changelog), args.head)

    changelog_file.write_text(changelog.render(), encoding="utf-8")

    logging.getLogger(__name__).log(
        NOTICE,
        "%s %s",
        "Generated new file" if is_new else "Updated file",
        changelog_file,
    )


def init_changelog(today: datetime.date) -> Changelog:
    """Return a brand new CHANGELOG with a single first release."""
    return Changelog.new().add_release(
        Release("0.1.0", today, description=markdown_blocks("First version"))
    )


def run(args: argparse.Namespace, context: RunContext) -> int:
    """Run the whole pipeline once and return the process exit code."""
    logger = logging.getLogger(__name__)

    changelog_file = context.cwd / args.file

    try:
        if args.init:
            changelog = init_changelog(context.today)
            changelog.format = args.format
            save(args, context, changelog, changelog_file, is_new=True)
            return 0

        changelog = read_changelog(changelog_file)
        changelog.format = args.format

        if args.no_v_prefix:
            changelog.tag_name_builder = plain_tag_name

        if args.latest_release:
            if release := find_latest_released(changelog):
                print(release.label, file=context.stdout)
            return 0

        if args.release.given:
            promote_unreleased(changelog, args.release, context.today)

        if args.create.given:
            create_release(changelog, args.create.value)

        save(args, context, changelog, changelog_file)

    except (ChangelogError, SelectionError, OSError) as err:
        logger.error("%s", err)
        return 0 if args.quiet else 1

    return 0


def entrypoint():
    """Main entrypoint."""
    args = build_parser().parse_args()
    setup_logging(args.verbose)

    sys.exit(run(args, RunContext.from_environment()))


if __name__ == "__main__":
    entrypoint()
