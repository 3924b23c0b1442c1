"""Utility functions."""

import enum
from dataclasses import dataclass
from typing import Optional, Union

import semver


def version_to_tag_str(version: Union[str, semver.Version]) -> str:
    """Return the git tag associated with this version."""
    # _Do_ add leading `v`s. Versions numbers never have leading `v`s, tags
    # always have leading `v`s.
    version = str(version)
    return f"v{version.lstrip('v')}"


def parse_version(version: str) -> Union[str, semver.Version]:
    """
    Return a semantic version for `version` if possible, otherwise the string.

    Nothing is rejected here - non-semantic versions are kept verbatim.
    """
    try:
        return semver.Version.parse(version)
    except ValueError:
        return version


class OptionKind(enum.Enum):
    """The three states of a command line option with an optional value."""

    ABSENT = "absent"
    FLAG = "flag"
    VALUE = "value"


@dataclass(frozen=True)
class OptionValue:
    """
    An option that may be missing, given bare, or given with a value.

    `--release` is FLAG, `--release 1.2.3` is VALUE("1.2.3"), and not passing
    the option at all is ABSENT.
    """

    kind: OptionKind
    value: Optional[str] = None

    @classmethod
    def of(cls, value: str) -> "OptionValue":
        """Wrap an explicit command line value (argparse `type=` hook)."""
        return cls(OptionKind.VALUE, value)

    @property
    def given(self) -> bool:
        """True if the option was passed at all."""
        return self.kind is not OptionKind.ABSENT


ABSENT = OptionValue(OptionKind.ABSENT)
FLAG = OptionValue(OptionKind.FLAG)
