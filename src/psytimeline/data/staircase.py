"""
staircase.py
------------

Protocol shared by adaptive procedures run inside a MultiStairHandler.

Design
------
StairHandler and QuestHandler estimate thresholds with different rules but
expose the same capabilities: take a response, report the intensity to
present next, report whether they are finished. MultiStairHandler only
relies on this protocol once the staircases are built.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np

from psytimeline.errors import InvalidResponse


@runtime_checkable
class Staircase(Protocol):
    """
    Protocol for adaptive staircases.

    Attributes
    ----------
    name : str
        Staircase name.
    finished : bool
        Whether the staircase has reached its stopping rule.
    intensity : float
        Intensity to present on the next trial.
    """

    name: str
    finished: bool

    @property
    def intensity(self) -> float: ...

    def add_response(
        self, response: int, value: float | None = None, do_add_data: bool = True
    ) -> None: ...


def validate_response(response: Any) -> None:
    """Raise InvalidResponse unless ``response`` is 0 or 1."""
    if isinstance(response, (bool, np.bool_, int, np.integer, float, np.floating)):
        if response in (0, 1):
            return
    raise InvalidResponse(f"the response must be either 0 or 1, got {response!r}")
