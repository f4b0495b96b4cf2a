"""Shared fixtures for datacache tests."""

import io
from datetime import datetime

import pytest
from rich.console import Console


class RecordingExecutor:
    """Background executor that keeps jobs until the test runs them."""

    def __init__(self):
        self.jobs = []

    @property
    def available(self) -> bool:
        return True

    def spawn(self, job):
        self.jobs.append(job)

    def run_all(self):
        while self.jobs:
            self.jobs.pop(0)()


@pytest.fixture
def console():
    """Console writing to an in-memory buffer."""
    return Console(file=io.StringIO(), width=200, color_system=None)


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def frozen_clock(monkeypatch):
    """Pin the refresh clock so back-to-back refreshes share one second."""
    frozen = datetime(2026, 3, 18, 10, 0, 0)

    class FrozenDatetime(datetime):
        @classmethod
        def now(cls, tz=None):
            return frozen

    monkeypatch.setattr("datacache.refresh.datetime", FrozenDatetime)
    return frozen
