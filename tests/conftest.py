"""
Central pytest configuration for this project.

This file is automatically discovered by pytest and is intended for:

- **Fixtures**: reusable objects or setup logic shared across multiple test files.
- **Pytest hooks**: project-wide customizations of pytest behavior.

Notes
-----
- Contributors should install the package in editable mode (`pip install -e .`)
  so that imports are resolved consistently in local dev and CI environments.
- Keep this file focused on test setup. Do not add application logic here.
"""

import itertools

import pytest

from psytimeline.data import ExperimentHandler
from psytimeline.scheduler import Event, ManualFrameDriver


class FlipCounter:
    """Stand-in window counting ``flip()`` calls."""

    def __init__(self):
        self.flips = 0

    def flip(self):
        self.flips += 1


class ScriptedTask:
    """Task returning a fixed sequence of events, then repeating the last one."""

    def __init__(self, *events):
        self._events = iter(events)
        self._last = Event.NEXT
        self.calls = 0

    def __call__(self, *args):
        self.calls += 1
        self._last = next(self._events, self._last)
        return self._last


@pytest.fixture
def driver():
    """Frame driver with a deterministic clock (16 ms per frame)."""
    ticks = itertools.count()
    return ManualFrameDriver(clock=lambda: next(ticks) * 0.016)


@pytest.fixture
def window():
    return FlipCounter()


@pytest.fixture
def scripted():
    """Factory of scripted tasks."""
    return ScriptedTask


@pytest.fixture
def experiment():
    """In-memory data recorder."""
    return ExperimentHandler(name="exp", extra_info={"participant": "p01"})
