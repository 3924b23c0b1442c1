"""Pick the release that a CHANGELOG operation should act on."""

import datetime
import logging

from typing import Optional

from .changelog import Changelog, Release
from .logging import NOTICE
from .utils import OptionKind, OptionValue


class SelectionError(Exception):
    """Indicate that no release satisfies the requested operation."""


def find_latest_released(changelog: Changelog) -> Optional[Release]:
    """Return the newest release that has both a version and a date."""
    for release in changelog.releases:
        if release.released:
            return release

    return None


def is_promotable(release: Release, requested: OptionValue) -> bool:
    """Return True if `release` can be promoted for this request."""
    if release.date is not None:
        return False

    if requested.kind is OptionKind.VALUE:
        return release.version is None or str(release.version) == requested.value

    # A bare flag only promotes releases that already carry a version
    return release.version is not None


def promote_unreleased(
    changelog: Changelog, requested: OptionValue, today: datetime.date
) -> Release:
    """
    Date the newest unreleased entry, setting its version if one was given.

    Raises SelectionError if there is no suitable unreleased entry.
    """
    if requested.kind is OptionKind.ABSENT:
        raise ValueError("A release must be requested to promote one")

    logger = logging.getLogger(__name__)

    for release in changelog.releases:
        if not is_promotable(release, requested):
            continue

        release.date = today
        if requested.kind is OptionKind.VALUE:
            release.set_version(requested.value)

        logger.log(NOTICE, "Released %s on %s", release.label, today.isoformat())
        return release

    raise SelectionError("No unreleased version available")


def create_release(changelog: Changelog, version: Optional[str] = None) -> Release:
    """Add a new unreleased entry at the top of the CHANGELOG."""
    release = Release(version)
    changelog.add_release(release)

    logging.getLogger(__name__).log(NOTICE, "Created release %s", release.label)
    return release
