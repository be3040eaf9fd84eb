"""Pytest hooks and fixtures."""

from __future__ import annotations

import pytest


class FakeClock:
    """Monotonic clock stand-in; ``now`` is in seconds like ``time.monotonic``."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


class FakeWriter:
    """Collects bytes written by the transport."""

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.flushes = 0

    def write(self, data: bytes) -> None:
        self.chunks.append(data)

    def flush(self) -> None:
        self.flushes += 1

    @property
    def lines(self) -> list[bytes]:
        return b"".join(self.chunks).splitlines()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def writer() -> FakeWriter:
    return FakeWriter()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the developer's Intercom settings out of tests."""
    for name in ("INTERCOM_ACCESS_TOKEN", "INTERCOM_API_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
