"""Shared fixtures for sctl tests."""

from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from sctl.exceptions import RemoteCommandError


class FakeSession:
    """Records commands instead of running them over SSH."""

    def __init__(self, name: str, factory: "FakeSessionFactory"):
        self.name = name
        self.factory = factory

    async def run(self, command: str) -> None:
        self.factory.commands.append((self.name, command))
        status = self.factory.failures.get((self.name, command))
        if status:
            raise RemoteCommandError(command, status)


class FakeSessionFactory:
    """Session factory double tracking opened and closed sessions.

    ``failures`` maps (host name, command) to the exit status the command
    should fail with.
    """

    def __init__(self, failures: dict[tuple[str, str], int] | None = None):
        self.failures = failures or {}
        self.commands: list[tuple[str, str]] = []
        self.opened: list[str] = []
        self.closed: list[str] = []

    @asynccontextmanager
    async def __call__(self, host):
        self.opened.append(host.name)
        try:
            yield FakeSession(host.name, self)
        finally:
            self.closed.append(host.name)


@pytest.fixture
def session_factory():
    return FakeSessionFactory()


@pytest.fixture
def write_config(tmp_path):
    """Write a config document under tmp_path and return its path."""

    def _write(content: str, name: str = "sctl.toml") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def failing_factory():
    """Build a session factory whose given (host, command) pairs fail."""

    def _make(failures: dict[tuple[str, str], int]) -> FakeSessionFactory:
        return FakeSessionFactory(failures)

    return _make
