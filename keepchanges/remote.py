"""Infer the repository's web URL from its git remote."""

import configparser
import logging
import re

from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, urlunsplit


class UrlFormatError(ValueError):
    """Indicate that a URL could not be turned into an absolute web URL."""


# Any run of `.git` suffixes and slashes at the end of the remote
TRAILING_GIT_RE = re.compile(r"(?:\.git|/)+$")

# Short-hand scp-like remotes: `git@github.com:owner/repo`
SHORTHAND_RE = re.compile(r"^[\w.~-]+@(?P<host>[^:/]+):(?P<path>.*)$")

# Explicit ssh remotes: `ssh://git@github.com:22/owner/repo`
SSH_RE = re.compile(
    r"^(?:git\+)?ssh://(?:[^@/]+@)?(?P<host>[^:/]+)(?::\d*)?/?(?P<path>.*)$",
    flags=re.IGNORECASE,
)

TRAILING_SLASH_RE = re.compile(r"/+$")

ORIGIN_SECTION = 'remote "origin"'


def normalize_url(raw: str, prefer_secure: bool = True) -> str:
    """
    Turn a git remote into the web URL of the repository.

    Raises UrlFormatError if the result is not an absolute URL.
    """
    url = TRAILING_GIT_RE.sub("", raw.strip())

    scheme = "https" if prefer_secure else "http"

    for regex in (SHORTHAND_RE, SSH_RE):
        if match := regex.match(url):
            url = f"{scheme}://{match['host']}/{match['path']}"
            break

    url = TRAILING_SLASH_RE.sub("", url)

    parts = urlsplit(url)

    try:
        port = parts.port
    except ValueError as err:
        raise UrlFormatError(f"Invalid port in URL `{raw}`") from err

    if not parts.scheme or not parts.hostname:
        raise UrlFormatError(f"`{raw}` is not an absolute URL")

    # Drop any credentials from the authority
    netloc = f"[{parts.hostname}]" if ":" in parts.hostname else parts.hostname
    if port is not None:
        netloc = f"{netloc}:{port}"

    return urlunsplit(
        (parts.scheme.lower(), netloc, parts.path, parts.query, parts.fragment)
    )


def read_origin_url(config_file: Path) -> Optional[str]:
    """Return the raw url of the `origin` remote from a git config file."""
    logger = logging.getLogger(__name__)

    parser = configparser.ConfigParser(interpolation=None, strict=False)

    try:
        parser.read_string(config_file.read_text(encoding="utf-8"))
    except OSError as err:
        logger.debug("Unable to read %s: %s", config_file, err)
        return None
    except UnicodeDecodeError as err:
        logger.warning("Unable to decode %s: %s", config_file, err)
        return None
    except configparser.Error as err:
        logger.warning("Unable to parse %s: %s", config_file, err)
        return None

    url = parser.get(ORIGIN_SECTION, "url", fallback="").strip()

    if not url:
        logger.debug("No origin remote url in %s", config_file)
        return None

    return url


def resolve_remote_url(cwd: Path, prefer_secure: bool = True) -> Optional[str]:
    """
    Return the web URL of the `origin` remote of the repository at `cwd`.

    Returns None if there is no git config or no origin url. Raises
    UrlFormatError if the origin url cannot be normalized.
    """
    if not (raw_url := read_origin_url(cwd / ".git" / "config")):
        return None

    url = normalize_url(raw_url, prefer_secure)
    logging.getLogger(__name__).debug("Remote `%s` resolved to %s", raw_url, url)
    return url
