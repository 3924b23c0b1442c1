"""Classes to handle parsing and rendering CHANGELOG.md files."""

import datetime
import itertools
import logging
import re

from dataclasses import dataclass, field
from typing import Callable, ClassVar, Optional, Union

import mdformat.renderer
import semver
from markdown_it import MarkdownIt
from markdown_it.common.utils import normalizeReference
from markdown_it.token import Token

from .logging import NOTICE, LoggingMixin
from .settings import DEFAULT_HEAD, TagLinkBuilder, github_tag_link
from .utils import parse_version, version_to_tag_str


class ChangelogError(Exception):
    """Indicate a fundamental problem with the CHANGELOG structure."""


class EmptyListError(Exception):
    """Indicate that a section is empty and should be stripped."""


FORMATS = ("compact", "markdownlint")

DEFAULT_TITLE = "Changelog"

DEFAULT_DESCRIPTION = """\
All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.1.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).
"""

HEADING_REPLACEMENTS = {
    "updated": "changed",
    "change": "changed",
    "add": "added",
    "fix": "fixed",
}

SECTION_ORDER = (
    "added",
    "changed",
    "deprecated",
    "removed",
    "fixed",
    "security",
)


def markdown_parser() -> MarkdownIt:
    """Return the parser used for all CHANGELOG text."""
    # Keep reference labels so that reference-style links survive rendering
    return MarkdownIt("commonmark", {"store_labels": True})


def parse_heading(tokens: list[Token]) -> tuple[str, Token]:
    """Parse the `inline` element from the heading."""
    if (
        len(tokens) < 3
        or tokens[0].type != "heading_open"
        or tokens[1].type != "inline"
    ):
        raise ChangelogError(f"Invalid header section (line {tokens[0].map})")

    tag = tokens.pop(0).tag
    inline = tokens.pop(0)
    tokens.pop(0)

    return (tag, inline)


def parse_block(tokens: list[Token]) -> list[Token]:
    """Consume and return the tokens of one complete block."""
    nesting = 0
    block = []

    while tokens:
        block.append(tokens.pop(0))
        nesting += block[-1].nesting

        if nesting == 0:
            break

    if nesting != 0:
        raise ChangelogError(f"Unbalanced `{block[0].type}` block")

    return block


def parse_bullet_list(tokens: list[Token]) -> list[Token]:
    """Consume tokens and return all of the child list_items."""
    if not tokens or tokens[0].type != "bullet_list_open":
        raise EmptyListError()

    list_tokens = parse_block(tokens)

    if list_tokens[-1].type != "bullet_list_close":
        raise ChangelogError("Bullet list is malformed!")

    # Strip off the bullet list so that we can assert our own style and merge
    # lists
    return list_tokens[1:-1]


def markdown_blocks(text: str) -> list[list[Token]]:
    """Parse free markdown text into a list of top-level blocks."""
    tokens = markdown_parser().parse(text)

    blocks = []
    while tokens:
        blocks.append(parse_block(tokens))

    return blocks


def heading(level: int, children: list):
    """Return a heading of the appropriate level."""

    markup = "#" * level
    tag = f"h{level}"

    return [
        Token("heading_open", tag=tag, markup=markup, nesting=1),
        Token("inline", tag="", nesting=0, children=children),
        Token("heading_close", tag=tag, markup=markup, nesting=-1),
    ]


def text_token(content: str, level: int = 0) -> Token:
    """Return a plain inline text token."""
    return Token("text", tag="", nesting=0, level=level, content=content)


@dataclass
class Release:
    """A single release (or pending release) within a CHANGELOG."""

    # Regex to match versions with embedded links, with or without dates
    # Will match:
    #   [v1.2.3](https://foo.bar) - 2020-01-01
    #   [1.2.3](https://foo.bar) - 2020-01-01
    #   [1.2.3](https://foo.bar)
    #   [badversion](https://foo.bar)
    link_heading_re: ClassVar = re.compile(
        r"^\[(?P<version_str>.+?)\]\((?:.+?)\)(?:\s+-\s+(?P<date>.*))?$"
    )

    # Regex to match versions, with or without dates
    # Will match:
    #   [1.2.3] - 2020-01-01
    #   [badversion]
    #   1.2.3 - 2020-01-01
    #   1.2.3
    #   badversion
    heading_re: ClassVar = re.compile(
        r"^\[?(?P<version_str>.+?)\]?(?:\s+-\s+(?P<date>.*))?$"
    )

    # Regex to match the yanked marker after the date (possibly escaped)
    yanked_re: ClassVar = re.compile(r"\s*\\?\[YANKED\\?\]\s*$", flags=re.IGNORECASE)

    # Regex to match versions with leading `v`s (for removal)
    leading_v_re: ClassVar = re.compile(r"^[vV]\d")

    # Regex to match H1 version-like headers that should be H2s
    # Will match:
    #   [v1...
    #   [1....
    # Will not match:
    #   [ver...
    wrong_h1_re: ClassVar = re.compile(r"^\[?v?\d")

    # Regex to match H2 category-like headers that should be H3s
    wrong_h2_re: ClassVar = re.compile(
        r"Add|Fix|Change|Remove|Deprecat|Security", flags=re.IGNORECASE
    )

    UNRELEASED: ClassVar = "Unreleased"

    version: Union[None, str, semver.Version] = None
    date: Optional[datetime.date] = None

    # Free-form blocks between the heading and the first section
    description: list = field(default_factory=list)

    # Section name (lowercase) -> list_item tokens
    changes: dict = field(default_factory=dict)

    yanked: bool = False

    def __post_init__(self):
        if isinstance(self.version, str):
            self.set_version(self.version)

    def set_version(self, version: str):
        """Set the version, keeping it as a semantic version if it is one."""
        self.version = parse_version(version)

    @property
    def label(self) -> str:
        """The text used for the heading and link of this release."""
        return self.UNRELEASED if self.version is None else str(self.version)

    @property
    def reference(self) -> str:
        """The link reference key for this release, as markdown-it stores it."""
        return normalizeReference(self.label)

    @property
    def released(self) -> bool:
        """True once the release has both a version and a date."""
        return self.version is not None and self.date is not None

    @classmethod
    def from_tokens(cls, tokens):
        """
        Parse a Release from a token stream.

        Leading `v`s will be stripped from the version name.
        """
        # pylint: disable=too-many-branches
        # Open, content, close
        if (
            len(tokens) < 3
            or tokens[0].type != "heading_open"
            or tokens[0].tag != "h2"
            or tokens[1].type != "inline"
        ):
            raise ChangelogError("Invalid version section")

        logger = logging.getLogger(__name__)

        for regex in (cls.link_heading_re, cls.heading_re):
            match = regex.match(tokens[1].content.strip())
            if match:
                version_str, date_str = match.group("version_str", "date")
                break
        else:
            raise ChangelogError(f"Invalid section heading: {tokens[1].content}")

        logger.debug("Parsed version: %s", version_str)

        kwargs = {}

        if version_str.lower() != cls.UNRELEASED.lower():
            # Strip any leading `v`s from versions, as long as they are
            # followed by a digit
            if cls.leading_v_re.match(version_str):
                logger.warning(
                    "Stripping leading `v` from Changelog version `%s`", version_str
                )
                version_str = version_str[1:]

            kwargs["version"] = version_str

        if date_str:
            date_str, yank_count = cls.yanked_re.subn("", date_str)
            kwargs["yanked"] = bool(yank_count)

            try:
                kwargs["date"] = datetime.date.fromisoformat(date_str.strip())
            except ValueError as err:
                raise ChangelogError(
                    f"Invalid date `{date_str}` for version `{version_str}`"
                ) from err

        # The rest of the tokens should be the lists. Strip any rulers now.
        tokens = [token for token in tokens[3:] if token.type != "hr"]

        description = []
        changes = {}

        while tokens:
            if tokens[0].type == "heading_open":
                _, inline_heading = parse_heading(tokens)

                # For these headings, all we care about is the raw content
                heading_name = inline_heading.content

                # Strip off any stray brackets and trailing colons
                heading_name = re.sub(r"^\[?(.*?)\]?:?$", r"\1", heading_name).lower()
                heading_name = HEADING_REPLACEMENTS.get(heading_name, heading_name)

                try:
                    items = parse_bullet_list(tokens)
                except EmptyListError:
                    # Empty section - ignore it
                    continue

                # Merge multiple identical sections together
                changes.setdefault(heading_name, []).extend(items)

            elif tokens[0].type == "bullet_list_open":
                # Un-headered section - add these to "Changed"
                changes.setdefault("changed", []).extend(parse_bullet_list(tokens))

            else:
                # Paragraphs, code blocks, quotes, etc. describe the release
                description.append(parse_block(tokens))

        return cls(description=description, changes=changes, **kwargs)

    def heading_children(self, linked: bool) -> list[Token]:
        """Return the inline tokens for this release's heading."""
        if linked:
            children = [
                Token(
                    "link_open", tag="a", nesting=1, meta={"label": self.reference}
                ),
                text_token(self.label, level=1),
                Token("link_close", tag="a", nesting=-1),
            ]
        else:
            children = [text_token(self.label)]

        if self.date:
            children.append(text_token(f" - {self.date.isoformat()}"))

        if self.yanked:
            children.append(text_token(" [YANKED]"))

        return children

    def serialize(self, linked: bool = True):
        """Yield a stream of markdown tokens describing this Release."""
        yield from heading(2, self.heading_children(linked))

        for block in self.description:
            yield from block

        extra_sections = [name for name in self.changes if name not in SECTION_ORDER]

        for section in itertools.chain(SECTION_ORDER, extra_sections):
            section_items = self.changes.get(section)

            if section_items:
                yield from heading(3, [text_token(section.title())])

                yield Token(
                    "bullet_list_open",
                    tag="ul",
                    markup="-",
                    nesting=1,
                    block=True,
                    hidden=True,
                )
                yield from section_items
                yield Token(
                    "bullet_list_close",
                    tag="ul",
                    markup="-",
                    nesting=-1,
                    block=True,
                    hidden=True,
                )


def default_tag_name(release: Release) -> str:
    """Tag releases as `v<version>`."""
    return version_to_tag_str(release.version)


def plain_tag_name(release: Release) -> str:
    """Tag releases with the bare version."""
    return str(release.version)


# Regex to pull the repository URL out of an existing version link
REPO_URL_RE = re.compile(
    r"^(?P<url>https?://.+?)(?:/-)?/(?:compare|releases/tag|tags|commits)/"
)

# Regex to match the start of a fenced code block
FENCE_RE = re.compile(r"^\s*(?P<marker>`{3,}|~{3,})")

# Regex to match release and section headings (compacted in "compact" format)
COMPACT_HEADING_RE = re.compile(r"^#{2,3} ")

# Regex to match any ATX heading
ANY_HEADING_RE = re.compile(r"^#{1,6} ")


def compact(text: str) -> str:
    """
    Remove the blank line that follows each release and section heading.

    The blank line is kept when the heading has no body, so that an empty
    release doesn't run into the next heading.
    """
    source = text.split("\n")
    lines = []
    fence = None

    for index, line in enumerate(source):
        nextline = source[index + 1] if index + 1 < len(source) else ""

        if (
            not line
            and fence is None
            and lines
            and COMPACT_HEADING_RE.match(lines[-1])
            and nextline
            and not ANY_HEADING_RE.match(nextline)
        ):
            continue

        if match := FENCE_RE.match(line):
            if fence is None:
                fence = match["marker"]
            elif match["marker"].startswith(fence):
                fence = None

        lines.append(line)

    return "\n".join(lines)


class Changelog(LoggingMixin):
    """Class to help manage CHANGELOG.md files."""

    def __init__(
        self,
        header: list[Token],
        releases: Optional[list[Release]] = None,
        references: Optional[dict] = None,
    ):
        self.header = header
        self.releases: list[Release] = releases if releases is not None else []

        # Link reference definitions that are not version links
        self.references: dict = references if references is not None else {}

        self._format = FORMATS[0]
        self.url: Optional[str] = None
        self.head: str = DEFAULT_HEAD
        self.tag_name_builder: Callable[[Release], str] = default_tag_name
        self.tag_link_builder: TagLinkBuilder = github_tag_link

    @classmethod
    def new(cls, title: str = DEFAULT_TITLE, description: str = DEFAULT_DESCRIPTION):
        """Create an empty CHANGELOG with a title and introduction."""
        header = markdown_parser().parse(f"# {title}\n\n{description}")
        return cls(header)

    @classmethod
    def from_text(cls, text: str):
        """Parse a CHANGELOG from markdown text."""
        logger = logging.getLogger(__name__)

        env: dict = {}
        all_tokens = markdown_parser().parse(text, env)

        groups = [[]]

        for token, nexttoken in itertools.pairwise(
            itertools.chain(
                all_tokens,
                [
                    None,
                ],
            )
        ):
            # This check is mostly to make pyright happy
            if token is None:
                raise RuntimeError("This should never happen")

            if token.type == "heading_open":
                if nexttoken is None:
                    raise ChangelogError(
                        f"Heading without content (line {token.map})"
                    )

                if token.tag == "h1":
                    # Versions are sometimes mistakenly H1s rather than H2s.
                    # Catch those cases and fix them up.
                    if Release.wrong_h1_re.match(nexttoken.content):
                        token.tag = "h2"
                        logger.log(
                            NOTICE, "Changing `%s` from h1 to h2", nexttoken.content
                        )

                if token.tag == "h2":
                    # "Added", "Fixed", etc. are sometimes mistakenly H2s
                    # rather than H3s. Catch those cases and fix them up.
                    if Release.wrong_h2_re.match(nexttoken.content):
                        token.tag = "h3"
                        logger.log(
                            NOTICE, "Changing `%s` from h2 to h3", nexttoken.content
                        )
                    else:
                        # Split these tokens off into a new Release
                        groups.append([])

            groups[-1].append(token)

        header = [token for token in groups.pop(0) if token.type != "hr"]

        changelog = cls(header, [Release.from_tokens(group) for group in groups])
        changelog.adopt_references(env.get("references", {}))

        return changelog

    def adopt_references(self, references: dict):
        """
        Sort parsed link definitions into version links and everything else.

        Version links are regenerated on render, but they reveal the
        repository URL.
        """
        labels = {release.reference for release in self.releases}

        for label, reference in references.items():
            if label in labels or label.removeprefix("V") in labels:
                if not self.url and (match := REPO_URL_RE.match(reference["href"])):
                    self.url = match["url"]
                    self.logger.debug("Inferred repository URL %s", self.url)
            else:
                self.references[label] = reference

    @property
    def format(self) -> str:
        """The output format, either `compact` or `markdownlint`."""
        return self._format

    @format.setter
    def format(self, value: str):
        if value not in FORMATS:
            raise ValueError(f"Unknown format `{value}` (expected one of {FORMATS})")
        self._format = value

    def add_release(self, release: Release):
        """Insert a release as the newest entry."""
        self.logger.debug("Adding release %s", release.label)
        self.releases.insert(0, release)
        return self

    def version_links(self) -> dict:
        """Return link reference definitions for every release."""
        refs = {}

        if not self.url:
            return refs

        prior_tag = None

        for release in reversed(self.releases):
            this_tag = None
            if release.version is not None:
                this_tag = self.tag_name_builder(release)

            href = self.tag_link_builder(self.url, this_tag, prior_tag, self.head)
            refs[release.reference] = {"href": href, "title": ""}

            prior_tag = this_tag or prior_tag

        return refs

    def render(self) -> str:
        """Render the CHANGELOG to markdown."""
        renderer = mdformat.renderer.MDRenderer()

        options = {}

        linked = bool(self.url)

        all_tokens = list(
            itertools.chain(
                self.header,
                itertools.chain.from_iterable(
                    release.serialize(linked) for release in self.releases
                ),
            )
        )

        refs = dict(self.references)
        refs.update(self.version_links())

        text = renderer.render(all_tokens, options, {"references": refs})

        if self.format == "compact":
            text = compact(text)

        return text


def parse(text: str) -> Changelog:
    """Parse markdown text into a Changelog."""
    return Changelog.from_text(text)
