"""
stair_handler.py
----------------

Classical N-up / M-down adaptive staircase.

Rule
----
- ``n_down`` consecutive correct responses lower the intensity by one step.
- ``n_up`` consecutive incorrect responses raise it by one step.
- A change of direction is a reversal. The step size in use is
  ``step_sizes[min(n_reversals_so_far, len(step_sizes) - 1)]``.
- With ``apply_initial_rule``, a 1-up / 1-down rule is used until the first
  reversal, so the staircase moves quickly toward threshold.
- The staircase is finished once it has recorded at least ``n_reversals``
  reversals and at least ``n_trials`` responses.

Step types
----------
- LINEAR: value +/- step
- LOG: value * 10**(+/-step)
- DB: value * 10**(+/-step / 20)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import numpy as np

from psytimeline.data.staircase import validate_response
from psytimeline.data.trial_handler import TrialHandler, TrialMethod
from psytimeline.errors import ConfigurationError
from psytimeline.utils.sequences import to_list

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Direction of the last intensity change."""

    START = "start"
    UP = "up"
    DOWN = "down"


class StepType(Enum):
    """How a step is applied to the intensity."""

    LINEAR = "lin"
    LOG = "log"
    DB = "db"

    @classmethod
    def parse(cls, step_type: StepType | str) -> StepType:
        if isinstance(step_type, cls):
            return step_type
        if isinstance(step_type, str):
            key = step_type.lower()
            for member in cls:
                if key in (member.value, member.name.lower()):
                    return member
        raise ConfigurationError(
            f"unknown step type: {step_type!r}, expected one of {[m.name for m in cls]}"
        )


class StairHandler(TrialHandler):
    """
    Up-down adaptive staircase.

    Parameters
    ----------
    start_val : float
        Starting intensity.
    min_val, max_val : float, optional
        Bounds of the intensity (unbounded when None).
    n_trials : int, default=0
        Minimum number of responses before the staircase can finish.
    n_reversals : int, optional
        Minimum number of reversals before the staircase can finish.
        Defaults to ``len(step_sizes)``.
    n_up : int, default=1
        Consecutive incorrect responses needed to step up.
    n_down : int, default=3
        Consecutive correct responses needed to step down.
    apply_initial_rule : bool, default=True
        Use a 1-up / 1-down rule until the first reversal.
    step_sizes : float or list of float, default=4
        Step size(s), indexed by the number of reversals so far.
    step_type : StepType or str, default=StepType.DB
        How steps are applied.
    var_name : str, default="intensity"
        Key of the intensity in the trial records.
    name : str, optional
        Staircase name, prefix of logged responses.
    experiment : object, optional
        Data recorder exposing ``add_data(key, value)``.
    from_multi_stair : bool, default=False
        Whether the staircase is run by a MultiStairHandler, which then
        logs responses and trials itself.
    extra_args : dict, optional
        Extra condition keys carried with the staircase.

    Examples
    --------
    >>> stairs = StairHandler(start_val=0.5, step_sizes=[0.1], step_type="lin",
    ...                       n_down=1, n_trials=2, n_reversals=1)
    >>> stairs.add_response(1)
    >>> round(stairs.intensity, 2)
    0.4
    """

    Direction = Direction
    StepType = StepType

    def __init__(
        self,
        start_val: float,
        min_val: float | None = None,
        max_val: float | None = None,
        n_trials: int = 0,
        n_reversals: int | None = None,
        n_up: int = 1,
        n_down: int = 3,
        apply_initial_rule: bool = True,
        step_sizes: float | list[float] = 4,
        step_type: StepType | str = StepType.DB,
        var_name: str = "intensity",
        name: str | None = None,
        experiment: Any = None,
        auto_log: bool = True,
        from_multi_stair: bool = False,
        extra_args: dict | None = None,
    ):
        if start_val is None:
            raise ConfigurationError("start_val is required")
        step_sizes = [float(s) for s in to_list(step_sizes)]
        if not step_sizes or any(s <= 0 for s in step_sizes):
            raise ConfigurationError(f"step_sizes must be positive, got {step_sizes}")
        for label, n in (("n_up", n_up), ("n_down", n_down)):
            if not isinstance(n, int) or n < 1:
                raise ConfigurationError(f"{label} must be a positive integer, got {n!r}")
        if min_val is not None and max_val is not None and min_val > max_val:
            raise ConfigurationError(f"min_val ({min_val}) is larger than max_val ({max_val})")

        if n_reversals is None:
            n_reversals = len(step_sizes)
        elif n_reversals < len(step_sizes):
            logger.warning(
                "n_reversals (%d) is smaller than the number of step sizes (%d), "
                "using %d reversals",
                n_reversals,
                len(step_sizes),
                len(step_sizes),
            )
            n_reversals = len(step_sizes)

        super().__init__(
            trial_list=[None] * max(int(n_trials), 0),
            n_reps=1,
            method=TrialMethod.SEQUENTIAL,
            seed=0,
            name=name,
            experiment=experiment,
            auto_log=auto_log and not from_multi_stair,
        )
        # a staircase has exactly n_trials planned trials, possibly none
        self.n_stim = self.n_total = self.n_remaining = max(int(n_trials), 0)

        self._add_attribute("start_val", float(start_val))
        self._add_attribute("min_val", min_val)
        self._add_attribute("max_val", max_val)
        self._add_attribute("n_trials", int(n_trials))
        self._add_attribute("n_reversals", int(n_reversals))
        self._add_attribute("n_up", n_up)
        self._add_attribute("n_down", n_down)
        self._add_attribute("apply_initial_rule", bool(apply_initial_rule))
        self._add_attribute("step_sizes", step_sizes)
        self._add_attribute("step_type", StepType.parse(step_type))
        self._add_attribute("var_name", var_name)
        self._add_attribute("from_multi_stair", from_multi_stair)
        self._add_attribute("extra_args", extra_args, {})

        self._stair_value = float(start_val)
        self._current_direction = Direction.START
        self._correct_counter = 0
        self._initial_rule = False
        self._data: list[int] = []
        self._values: list[float] = []
        self._reversal_points: list[int] = []
        self._reversal_values: list[float] = []

    # ------------------------------------------------------------------
    # PUBLIC STATE
    # ------------------------------------------------------------------
    def get_stair_value(self) -> float:
        """Current intensity."""
        return self._stair_value

    @property
    def intensity(self) -> float:
        return self._stair_value

    @property
    def data(self) -> list[int]:
        """Responses so far."""
        return list(self._data)

    @property
    def values(self) -> list[float]:
        """Intensities tested so far, one per response."""
        return list(self._values)

    @property
    def reversal_values(self) -> list[float]:
        return list(self._reversal_values)

    @property
    def reversal_points(self) -> list[int]:
        """Response indices at which a reversal occurred."""
        return list(self._reversal_points)

    @property
    def step_size_current(self) -> float:
        index = min(len(self._reversal_values), len(self.step_sizes) - 1)
        return self.step_sizes[index]

    def mean_reversal_value(self, n_last: int | None = None) -> float:
        """
        Mean of the intensities at the last ``n_last`` reversals (all by default).

        Returns NaN before the first reversal.
        """
        reversals = self._reversal_values
        if n_last is not None:
            reversals = reversals[-n_last:]
        if not reversals:
            return float("nan")
        return float(np.mean(reversals))

    # ------------------------------------------------------------------
    # RESPONSES
    # ------------------------------------------------------------------
    def add_response(self, response: int, value: float | None = None, do_add_data: bool = True) -> None:
        """
        Record a response and compute the next intensity.

        Parameters
        ----------
        response : {0, 1}
            1 = correct (or "intended" direction), 0 = incorrect.
        value : float, optional
            Intensity actually presented, if it differs from the staircase's.
        do_add_data : bool, default=True
            Log ``<name>.response`` to the data recorder.

        Raises
        ------
        InvalidResponse
            If ``response`` is neither 0 nor 1.
        """
        validate_response(response)
        response = int(response)

        if do_add_data:
            self.add_data(f"{self.name}.response", response)

        self._data.append(response)
        self._values.append(self._stair_value if value is None else float(value))

        # consecutive same-answer counter: positive for correct, negative for incorrect
        repeated = len(self._data) > 1 and self._data[-2] == response
        if response == 1:
            self._correct_counter = self._correct_counter + 1 if repeated else 1
        else:
            self._correct_counter = self._correct_counter - 1 if repeated else -1

        self._calculate_next_value()

    def _calculate_next_value(self) -> None:
        last = self._data[-1]
        counter = self._correct_counter

        if not self._reversal_values and self.apply_initial_rule:
            # 1-up / 1-down bookkeeping until the first reversal
            new_direction = Direction.DOWN if last == 1 else Direction.UP
            reversal = self._current_direction not in (Direction.START, new_direction)
            self._current_direction = new_direction
        elif counter >= self.n_down:
            reversal = self._current_direction not in (Direction.START, Direction.DOWN)
            self._current_direction = Direction.DOWN
        elif counter <= -self.n_up:
            reversal = self._current_direction not in (Direction.START, Direction.UP)
            self._current_direction = Direction.UP
        else:
            reversal = False

        if reversal:
            self._reversal_points.append(len(self._data) - 1)
            if not self._reversal_values and self.apply_initial_rule:
                self._initial_rule = True
            self._reversal_values.append(self._values[-1])
            logger.debug(
                "%s: reversal %d at %s",
                self.name,
                len(self._reversal_values),
                self._values[-1],
            )

        if (
            len(self._reversal_values) >= self.n_reversals
            and len(self._values) >= self.n_trials
        ):
            self.finished = True
            logger.debug("%s: finished after %d trials", self.name, len(self._data))

        if (not self._reversal_values or self._initial_rule) and self.apply_initial_rule:
            self._initial_rule = False
            if last == 1:
                self._decrease_value()
            else:
                self._increase_value()
        elif counter >= self.n_down:
            self._decrease_value()
        elif counter <= -self.n_up:
            self._increase_value()

    def _step(self, value: float, sign: int) -> float:
        step = self.step_size_current
        if self.step_type is StepType.LINEAR:
            return value + sign * step
        if self.step_type is StepType.LOG:
            return value * 10.0 ** (sign * step)
        return value * 10.0 ** (sign * step / 20.0)

    def _clamp(self, value: float) -> float:
        if self.min_val is not None:
            value = max(value, self.min_val)
        if self.max_val is not None:
            value = min(value, self.max_val)
        return value

    def _increase_value(self) -> None:
        self._stair_value = self._clamp(self._step(self._stair_value, +1))
        self._correct_counter = 0

    def _decrease_value(self) -> None:
        self._stair_value = self._clamp(self._step(self._stair_value, -1))
        self._correct_counter = 0

    # ------------------------------------------------------------------
    # ITERATION
    # ------------------------------------------------------------------
    def _advance(self) -> tuple[bool, Any]:
        if self.finished:
            self.this_trial = None
            return False, None

        self.this_n += 1
        self.this_trial_n = self.this_n
        self.ran = True
        self.n_remaining = max(self.n_total - (self.this_n + 1), 0)
        self._update_trial_list()

        if self.auto_log:
            logger.info("%s: trial %d, %s=%s", self.name, self.this_n, self.var_name, self._stair_value)
        return True, self.this_trial

    def _update_trial_list(self) -> None:
        record = {self.var_name: self._stair_value}
        if self.this_n < len(self.trial_list):
            self.trial_list[self.this_n] = record
        else:
            self.trial_list.append(record)
        self.this_trial = record
