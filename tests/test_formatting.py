"""Tests for CHANGELOG parsing and reformatting."""

import datetime

import pytest

from keepchanges.changelog import (
    Changelog,
    ChangelogError,
    Release,
    compact,
    markdown_blocks,
    parse,
    plain_tag_name,
)


EXAMPLE = """\
# Changelog

All notable changes to this project will be documented in this file.

## [Unreleased]

### Added

- New feature

## [v1.1.0] - 2021-03-04

This release has a notice.

### Fixed

- A bug

### Add

- Something

## [1.0.0] - 2020-01-01 [YANKED]

- Un-headered change

[Unreleased]: https://github.com/owner/repo/compare/v1.1.0...HEAD
[v1.1.0]: https://github.com/owner/repo/compare/v1.0.0...v1.1.0
[1.0.0]: https://github.com/owner/repo/releases/tag/v1.0.0
"""


def test_parse_releases():
    """Releases are parsed newest first with their versions and dates."""
    changelog = parse(EXAMPLE)

    assert [release.label for release in changelog.releases] == [
        "Unreleased",
        "1.1.0",
        "1.0.0",
    ]

    unreleased, minor, major = changelog.releases

    assert unreleased.version is None
    assert unreleased.date is None
    assert list(unreleased.changes) == ["added"]

    assert minor.date == datetime.date(2021, 3, 4)
    assert len(minor.description) == 1
    assert sorted(minor.changes) == ["added", "fixed"]
    assert not minor.yanked

    assert major.date == datetime.date(2020, 1, 1)
    assert major.yanked
    assert list(major.changes) == ["changed"]


def test_parse_infers_url():
    """The repository URL is recovered from the version links."""
    assert parse(EXAMPLE).url == "https://github.com/owner/repo"


def test_leading_v_stripped(caplog):
    """Versions lose their leading `v` with a warning."""
    changelog = parse(EXAMPLE)

    assert str(changelog.releases[1].version) == "1.1.0"
    assert "Stripping leading `v`" in caplog.text


def test_render_links():
    """Every release gets a link definition built from the tags."""
    text = parse(EXAMPLE).render().lower()

    assert "[unreleased]: https://github.com/owner/repo/compare/v1.1.0...head" in text
    assert "[1.1.0]: https://github.com/owner/repo/compare/v1.0.0...v1.1.0" in text
    assert "[1.0.0]: https://github.com/owner/repo/releases/tag/v1.0.0" in text


def test_render_without_v_prefix():
    """Tags can be built without a leading `v`."""
    changelog = parse(EXAMPLE)
    changelog.tag_name_builder = plain_tag_name

    text = changelog.render()

    assert "https://github.com/owner/repo/compare/1.0.0...1.1.0" in text
    assert "https://github.com/owner/repo/releases/tag/1.0.0" in text


@pytest.mark.parametrize("changelog_format", ["compact", "markdownlint"])
def test_render_round_trip(changelog_format):
    """Rendering and re-parsing preserves the releases."""
    changelog = parse(EXAMPLE)
    changelog.format = changelog_format

    reparsed = parse(changelog.render())

    assert reparsed.url == changelog.url
    assert [
        (release.label, release.date, release.yanked, sorted(release.changes))
        for release in reparsed.releases
    ] == [
        (release.label, release.date, release.yanked, sorted(release.changes))
        for release in changelog.releases
    ]


def test_section_order():
    """Sections are rendered in the Keep a Changelog order."""
    text = parse(EXAMPLE).render()

    assert text.index("### Added") < text.index("- Something") < text.index("### Fixed")


def test_formats():
    """`markdownlint` keeps blank lines after headings, `compact` drops them."""
    changelog = parse(EXAMPLE)

    changelog.format = "markdownlint"
    markdownlint_text = changelog.render()

    changelog.format = "compact"
    compact_text = changelog.render()

    assert "### Fixed\n\n- A bug" in markdownlint_text
    assert "### Fixed\n- A bug" in compact_text

    # The title keeps its spacing either way
    assert compact_text.startswith("# Changelog\n\nAll notable changes")


def test_unknown_format():
    """Only the known formats are accepted."""
    with pytest.raises(ValueError):
        parse(EXAMPLE).format = "fancy"


def test_compact_leaves_code_alone():
    """Blank lines inside fenced code are kept in the compact format."""
    text = "## [1.0.0]\n\n```\n## not a heading\n\nmore\n```\n"

    assert compact(text) == "## [1.0.0]\n```\n## not a heading\n\nmore\n```\n"


def test_other_references_kept():
    """Link definitions that aren't versions survive a render."""
    text = EXAMPLE.replace(
        "- New feature", "- New feature, see [the docs][docs]"
    ) + "[docs]: https://docs.example.com/\n"

    changelog = parse(text)
    assert changelog.url == "https://github.com/owner/repo"

    rendered = changelog.render()
    assert "the docs" in rendered
    assert "https://docs.example.com/" in rendered


def test_wrong_heading_levels():
    """H1 versions and H2 change types are fixed up."""
    changelog = parse(
        "# Changelog\n\n# [1.0.0] - 2020-01-01\n\n## Fixed\n\n- Heading levels\n"
    )

    assert len(changelog.releases) == 1
    assert str(changelog.releases[0].version) == "1.0.0"
    assert list(changelog.releases[0].changes) == ["fixed"]


def test_unknown_sections_kept():
    """Sections outside the standard set are kept after the standard ones."""
    changelog = parse(
        "# Changelog\n\n## [1.0.0] - 2020-01-01\n\n"
        "### Breaking\n\n- Renamed things\n\n### Added\n\n- Stuff\n"
    )

    text = changelog.render()

    assert list(changelog.releases[0].changes) == ["breaking", "added"]
    assert text.index("### Added") < text.index("### Breaking")


def test_invalid_date():
    """A date that isn't ISO formatted is a parse error."""
    with pytest.raises(ChangelogError):
        parse("# Changelog\n\n## [1.0.0] - someday\n")


def test_empty_changelog():
    """A changelog with only a header has no releases."""
    changelog = parse("# Changelog\n\nNothing yet.\n")

    assert not changelog.releases
    assert changelog.url is None


def test_unlinked_render():
    """Without a URL, headings are rendered without links."""
    changelog = Changelog.new()
    changelog.add_release(
        Release("0.1.0", datetime.date(2026, 10, 18), markdown_blocks("First version"))
    )

    text = changelog.render()
    reparsed = parse(text)

    assert "https://" not in text.split("## ", 1)[1]
    assert str(reparsed.releases[0].version) == "0.1.0"
    assert reparsed.releases[0].date == datetime.date(2026, 10, 18)
    assert len(reparsed.releases[0].description) == 1


def test_semantic_versions():
    """Semantic versions are parsed, anything else is kept verbatim."""
    assert Release("1.2.3").version.major == 1
    assert Release("2024.10").version == "2024.10"
    assert Release("2024.10").label == "2024.10"


def test_compact_keeps_space_between_empty_releases():
    """An empty release heading stays separated from the next heading."""
    text = "## [Unreleased]\n\n## [1.0.0] - 2020-01-01\n\n- Change\n"

    assert compact(text) == "## [Unreleased]\n\n## [1.0.0] - 2020-01-01\n- Change\n"


def test_render_empty_release():
    """A freshly created release renders as its own heading."""
    changelog = parse(EXAMPLE)
    changelog.add_release(Release("2.0.0"))

    text = changelog.render()

    assert "## [2.0.0]\n\n## [Unreleased]\n### Added\n- New feature" in text
