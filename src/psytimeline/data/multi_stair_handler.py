"""
multi_stair_handler.py
----------------------

Interleaved staircases within one loop.

Each condition gets its own staircase (StairHandler or QuestHandler). Every
trial presents the current staircase; its response is forwarded to it and
the handler moves on to another active staircase:

- SEQUENTIAL: active staircases in construction order, cycling.
- RANDOM: active staircases in a random order, reshuffled after every
  staircase has been visited once.
- FULL_RANDOM: an independent random active staircase each trial.

Finished staircases drop out of the rotation. The handler is finished once
no staircase is active.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from psytimeline.data.conditions import StaircaseCondition
from psytimeline.data.quest_handler import QuestHandler
from psytimeline.data.stair_handler import StairHandler
from psytimeline.data.staircase import Staircase, validate_response
from psytimeline.data.trial_handler import TrialHandler, TrialMethod
from psytimeline.errors import ConfigurationError
from psytimeline.utils import rng

logger = logging.getLogger(__name__)


class StaircaseType(Enum):
    """Adaptive procedure used for every staircase of a MultiStairHandler."""

    SIMPLE = "simple"
    QUEST = "quest"

    @classmethod
    def parse(cls, stair_type: StaircaseType | str) -> StaircaseType:
        if isinstance(stair_type, cls):
            return stair_type
        if isinstance(stair_type, str):
            for member in cls:
                if stair_type.lower() == member.value:
                    return member
        raise ConfigurationError(
            f"unknown staircase type: {stair_type!r}, expected one of {[m.name for m in cls]}"
        )


class MultiStairHandler(TrialHandler):
    """
    Interleaved staircases, one per condition.

    Parameters
    ----------
    conditions : list of dict
        One row per staircase; see StaircaseCondition for the columns.
    stair_type : StaircaseType or str, default=StaircaseType.SIMPLE
        SIMPLE (up-down staircases) or QUEST.
    method : TrialMethod or str, default=TrialMethod.RANDOM
        Order in which active staircases are visited.
    n_trials : int, default=50
        Number of trials per staircase, unless a condition overrides it.
    var_name : str, default="intensity"
        Key of the intensity in the trial records.
    seed : int, optional
        Seed of the random orders.
    name : str, optional
        Loop name, prefix of logged responses.
    experiment : object, optional
        Data recorder exposing ``add_data(key, value)``.

    Attributes
    ----------
    current_staircase : Staircase | None
        Staircase of the current trial; None once finished.
    """

    StaircaseType = StaircaseType

    def __init__(
        self,
        conditions: list[dict],
        stair_type: StaircaseType | str = StaircaseType.SIMPLE,
        method: TrialMethod | str = TrialMethod.RANDOM,
        n_trials: int = 50,
        var_name: str = "intensity",
        seed: int | None = None,
        name: str | None = None,
        experiment: Any = None,
        auto_log: bool = True,
    ):
        if not isinstance(conditions, (list, tuple)) or not conditions:
            raise ConfigurationError("MultiStairHandler needs a non-empty list of conditions")

        super().__init__(
            trial_list=list(conditions),
            n_reps=1,
            method=method,
            seed=seed,
            name=name,
            experiment=experiment,
            auto_log=auto_log,
        )
        self._add_attribute("stair_type", StaircaseType.parse(stair_type))
        self._add_attribute("n_trials", int(n_trials))
        self._add_attribute("var_name", var_name)

        self._staircases: list[Staircase] = [
            self._make_staircase(StaircaseCondition.from_mapping(condition, index))
            for index, condition in enumerate(conditions)
        ]
        self.n_total = sum(
            getattr(stair, "n_total", self.n_trials) for stair in self._staircases
        )
        self.n_remaining = self.n_total

        self._current_pass: list[Staircase] = []
        self._current_staircase: Staircase | None = None
        self._next_staircase()

    def _make_staircase(self, condition: StaircaseCondition) -> Staircase:
        n_trials = condition.n_trials if condition.n_trials is not None else self.n_trials
        common = dict(
            name=condition.label,
            min_val=condition.min_val,
            max_val=condition.max_val,
            var_name=self.var_name,
            experiment=self.experiment,
            from_multi_stair=True,
            extra_args=condition.extras,
        )

        if self.stair_type is StaircaseType.QUEST:
            if condition.start_val_sd is None:
                raise ConfigurationError(
                    f"condition {condition.label} is missing startValSd, "
                    "required by QUEST staircases"
                )
            return QuestHandler(
                start_val=condition.start_val,
                start_val_sd=condition.start_val_sd,
                p_threshold=condition.p_threshold,
                n_trials=n_trials,
                beta=condition.beta,
                delta=condition.delta,
                gamma=condition.gamma,
                grain=condition.grain,
                **common,
            )

        return StairHandler(
            start_val=condition.start_val,
            n_trials=n_trials,
            n_reversals=condition.n_reversals,
            n_up=condition.n_up,
            n_down=condition.n_down,
            apply_initial_rule=condition.apply_initial_rule,
            step_sizes=condition.step_sizes,
            step_type=condition.step_type,
            **common,
        )

    # ------------------------------------------------------------------
    # STAIRCASE SELECTION
    # ------------------------------------------------------------------
    @property
    def current_staircase(self) -> Staircase | None:
        return self._current_staircase

    @property
    def staircases(self) -> list[Staircase]:
        return list(self._staircases)

    @property
    def intensity(self) -> float | None:
        if self._current_staircase is None:
            return None
        return self._current_staircase.intensity

    def _next_staircase(self) -> None:
        active = [stair for stair in self._staircases if not stair.finished]
        if not active:
            self._current_pass = []
            self._current_staircase = None
            self.this_trial = None
            self.finished = True
            logger.debug("%s: all staircases finished", self.name)
            return

        if self.method is TrialMethod.FULL_RANDOM:
            self._current_staircase = active[rng.choice(self._next_key(), len(active))]
            return

        self._current_pass = [stair for stair in self._current_pass if not stair.finished]
        if not self._current_pass:
            if self.method is TrialMethod.RANDOM:
                active = rng.shuffled(self._next_key(), active)
            self._current_pass = active
        self._current_staircase = self._current_pass.pop(0)

    # ------------------------------------------------------------------
    # RESPONSES
    # ------------------------------------------------------------------
    def add_response(self, response: int, value: float | None = None) -> None:
        """
        Forward a response to the current staircase and move to the next one.

        Parameters
        ----------
        response : {0, 1}
            1 = correct, 0 = incorrect.
        value : float, optional
            Intensity actually presented, if it differs from the suggested one.

        Raises
        ------
        InvalidResponse
            If ``response`` is neither 0 nor 1.
        RuntimeError
            If every staircase is already finished.
        """
        validate_response(response)
        if self._current_staircase is None:
            raise RuntimeError(f"{self.name}: all staircases are finished")
        response = int(response)

        self.add_data(f"{self.name}.response", response)
        stair = self._current_staircase
        # the staircase must not log the response a second time
        stair.add_response(response, value, False)
        if stair.finished:
            logger.debug("%s: staircase %s finished", self.name, stair.name)

        self._next_staircase()

    # ------------------------------------------------------------------
    # ITERATION
    # ------------------------------------------------------------------
    def _advance(self) -> tuple[bool, Any]:
        stair = self._current_staircase
        if self.finished or stair is None:
            self.this_trial = None
            return False, None

        self.this_n += 1
        self.this_trial_n = self.this_n
        self.ran = True
        self.n_remaining = max(self.n_total - (self.this_n + 1), 0)
        self.this_index = self._staircases.index(stair)

        intensity = stair.intensity
        record = dict(getattr(stair, "extra_args", None) or {})
        record["label"] = stair.name
        record["intensity"] = intensity
        record[self.var_name] = intensity
        self.this_trial = record

        if self.auto_log:
            logger.info("%s: trial %d, staircase %s, %s=%s", self.name, self.this_n, stair.name, self.var_name, intensity)
        return True, record
