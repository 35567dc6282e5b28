"""Shared fixtures for lineage tests."""

from datetime import datetime, timedelta, timezone

import pytest

from dnathreads.lineage import GenerationStore, ThreadSession


class FakeClock:
    """Deterministic clock that moves forward one second per reading."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    """A fresh fake clock."""
    return FakeClock()


@pytest.fixture
def store(clock):
    """An empty generation store."""
    return GenerationStore(clock=clock)


@pytest.fixture
def session(clock):
    """An in-memory thread session."""
    return ThreadSession(clock=clock)


@pytest.fixture
def chain(session):
    """A three-generation chain root -> middle -> leaf in app.py."""
    root = session.add_generation("A", "root", "hex", "app.py")
    middle = session.add_generation("B", "middle", "hex", "app.py")
    leaf = session.add_generation("C", "leaf", "kex", "app.py")
    return root, middle, leaf
