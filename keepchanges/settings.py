"""Hosting provider settings used to link versions in the CHANGELOG."""

import logging
import re

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .changelog import Changelog


# (url, tag, previous tag, head) -> href
TagLinkBuilder = Callable[[str, Optional[str], Optional[str], str], str]


def github_tag_link(
    url: str, tag: Optional[str], previous: Optional[str], head: str
) -> str:
    """Link a tag the way GitHub (and most GitHub-alikes) lay out URLs."""
    if previous:
        return f"{url}/compare/{previous}...{tag if tag else head}"

    if tag:
        return f"{url}/releases/tag/{tag}"

    return f"{url}/commits/{head}"


def gitlab_tag_link(
    url: str, tag: Optional[str], previous: Optional[str], head: str
) -> str:
    """Link a tag using GitLab's `/-/` scoped routes."""
    if previous:
        return f"{url}/-/compare/{previous}...{tag if tag else head}"

    if tag:
        return f"{url}/-/tags/{tag}"

    return f"{url}/-/commits/{head}"


def gitea_tag_link(
    url: str, tag: Optional[str], previous: Optional[str], head: str
) -> str:
    """Link a tag on Gitea-based forges such as Codeberg."""
    if previous:
        return f"{url}/compare/{previous}...{tag if tag else head}"

    if tag:
        return f"{url}/releases/tag/{tag}"

    return f"{url}/commits/branch/{head}"


@dataclass(frozen=True)
class ProviderSettings:
    """How to link versions for a single hosting provider."""

    name: str
    pattern: re.Pattern
    head: str
    tag_link: TagLinkBuilder


DEFAULT_HEAD = "HEAD"

PROVIDERS = (
    ProviderSettings(
        name="github",
        pattern=re.compile(r"^https?://(?:www\.)?github\.com/"),
        head=DEFAULT_HEAD,
        tag_link=github_tag_link,
    ),
    ProviderSettings(
        name="gitlab",
        pattern=re.compile(r"^https?://(?:www\.)?gitlab\.com/"),
        head=DEFAULT_HEAD,
        tag_link=gitlab_tag_link,
    ),
    ProviderSettings(
        name="codeberg",
        pattern=re.compile(r"^https?://codeberg\.org/"),
        head="main",
        tag_link=gitea_tag_link,
    ),
)


def lookup(url: str) -> Optional[ProviderSettings]:
    """Return the settings for the provider hosting `url`, if it is known."""
    for provider in PROVIDERS:
        if provider.pattern.match(url):
            return provider

    return None


def bind_settings(
    changelog: "Changelog", url: str, head: Optional[str] = None
) -> None:
    """
    Attach `url` and the matching provider's link rules to the changelog.

    Unknown providers keep whatever rules the changelog already has. An
    explicit `head` always wins over the provider's default.
    """
    logger = logging.getLogger(__name__)

    changelog.url = url

    if provider := lookup(url):
        logger.debug("Using %s link settings for %s", provider.name, url)
        changelog.head = provider.head
        changelog.tag_link_builder = provider.tag_link
    else:
        logger.debug("No known provider for %s - keeping default links", url)

    if head:
        changelog.head = head
