"""Shared fixtures: a recording command runner and a fixed clock."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import pytest


NOW = datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)


class FakeRunner:
    """
    CommandRunner double.

    ``responses`` maps a substring of the joined command line to its
    stdout; unmatched commands produce no output. Every call is recorded.
    """

    def __init__(self, responses: Optional[Dict[str, str]] = None):
        self.responses = responses or {}
        self.calls: List[Tuple[str, Tuple[str, ...], Optional[str]]] = []

    async def run(self, executable: str, args: Sequence[str], cwd: Optional[str] = None) -> Optional[str]:
        self.calls.append((executable, tuple(args), cwd))
        command_line = " ".join([executable, *args])
        for needle, output in self.responses.items():
            if needle in command_line:
                return output if output.strip() else None
        return None

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def commands(self) -> List[str]:
        return [" ".join([exe, *args]) for exe, args, _ in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    return FakeRunner


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def node_project(tmp_path):
    """A directory that looks like a Node.js project."""
    project = tmp_path / "webapp"
    project.mkdir()
    (project / "package.json").write_text('{"name": "webapp"}')
    (project / "index.js").write_text("console.log('hi')")
    return project


@pytest.fixture
def git_project(tmp_path):
    """A directory with a .git subdirectory and a Python package."""
    project = tmp_path / "service"
    project.mkdir()
    (project / ".git").mkdir()
    (project / "pyproject.toml").write_text("[project]\nname = 'service'\n")
    (project / "main.py").write_text("print('hi')\n")
    return project
