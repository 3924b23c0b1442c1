"""Local plugin to parametrize tests from a JSON file, plus shared fixtures."""

import datetime
import io
import json

from collections import namedtuple
from pathlib import Path

import pytest

from keepchanges.cli import RunContext


RemoteCase = namedtuple("RemoteCase", ("raw", "prefer_secure", "expected"))

# Named stash keys for storing the RemoteCase objects between hook calls
remote_cases_key = pytest.StashKey[list[RemoteCase]]()

TODAY = datetime.date(2026, 10, 18)


def pytest_configure(config: pytest.Config) -> None:
    """
    Configure plugin by loading the remote URL data.
    """
    resource_path = Path(__file__).resolve().parent.joinpath("resources")
    remotes_file = resource_path / "remotes.json"
    with remotes_file.open(mode="r", encoding="utf-8") as infile:
        remote_groups = json.load(infile)

    cases = []
    for group in remote_groups:
        cases.append(RemoteCase(group["raw"], True, group["secure"]))
        cases.append(RemoteCase(group["raw"], False, group["insecure"]))

    config.stash[remote_cases_key] = cases


def pytest_generate_tests(metafunc: pytest.Metafunc):
    """
    Inject parameters for the 'remote_case' fixture.
    """
    if "remote_case" in metafunc.fixturenames:
        metafunc.parametrize(
            "remote_case",
            metafunc.config.stash[remote_cases_key],
            ids=lambda case: f"{case.raw}-{'https' if case.prefer_secure else 'http'}",
        )


@pytest.fixture(name="git_repo")
def fixture_git_repo(tmp_path):
    """Return a function that writes a .git/config with an origin remote."""

    def write_config(origin_url=None):
        git_dir = tmp_path / ".git"
        git_dir.mkdir(exist_ok=True)

        lines = [
            "[core]",
            "\trepositoryformatversion = 0",
            "\tfilemode = true",
            "\tbare = false",
        ]
        if origin_url is not None:
            lines.extend([
                '[remote "origin"]',
                f"\turl = {origin_url}",
                "\tfetch = +refs/heads/*:refs/remotes/origin/*",
            ])
        lines.extend([
            '[branch "main"]',
            "\tremote = origin",
            "\tmerge = refs/heads/main",
        ])

        (git_dir / "config").write_text("\n".join(lines) + "\n", encoding="utf-8")
        return tmp_path

    return write_config


@pytest.fixture(name="context")
def fixture_context(tmp_path):
    """A run context rooted in a temporary directory."""
    return RunContext(cwd=tmp_path, today=TODAY, stdout=io.StringIO())
