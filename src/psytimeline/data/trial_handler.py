"""
trial_handler.py
----------------

Trial sequencing from a list of conditions.

defines:
- TrialMethod: ordering of conditions across repetitions
- TrialHandler: pull-based cursor over a pre-computed trial sequence
- Snapshot: point-in-time view of a TrialHandler, for per-trial logging

Design
------
The full trial sequence is materialized once, at construction, as a matrix
with one row per repetition and one column per condition:

- SEQUENTIAL: every row is ``[0, 1, ..., n_stim - 1]``.
- RANDOM: every row is an independent permutation of the conditions.
- FULL_RANDOM: all ``n_stim * n_reps`` indices are shuffled together and
  split back into rows; only the flattened multiset is balanced.

``next()`` and iteration share one cursor. Snapshots keep a back-reference
to their loop, so marking the loop finished is seen by every snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from psytimeline.errors import ConfigurationError
from psytimeline.utils import rng
from psytimeline.utils.psych_object import PsychObject
from psytimeline.utils.sequences import is_empty, value_range

logger = logging.getLogger(__name__)


class TrialMethod(Enum):
    """Ordering of conditions across repetitions."""

    SEQUENTIAL = "sequential"
    RANDOM = "random"
    FULL_RANDOM = "fullRandom"

    @classmethod
    def parse(cls, method: TrialMethod | str) -> TrialMethod:
        """
        Resolve a TrialMethod from a member or a (case-insensitive) name.

        ``"fullRandom"``, ``"full_random"`` and ``"FULL_RANDOM"`` all resolve
        to FULL_RANDOM.
        """
        if isinstance(method, cls):
            return method
        if isinstance(method, str):
            key = method.replace("_", "").replace("-", "").lower()
            for member in cls:
                if member.name.replace("_", "").lower() == key:
                    return member
        raise ConfigurationError(
            f"unknown trial method: {method!r}, "
            f"expected one of {[m.name for m in cls]}"
        )


@dataclass(frozen=True)
class Snapshot:
    """
    Immutable view of a loop's cursor at the time it was taken.

    ``finished`` is read through to the owning loop.

    Attributes
    ----------
    name : str
        Name of the loop.
    n_stim, n_total, n_remaining : int
        Loop sizes at snapshot time.
    this_rep_n, this_trial_n, this_n, this_index : int
        Cursor at snapshot time.
    trial : Any
        The trial being presented when the snapshot was taken.
    trial_attributes : tuple of str
        Keys of ``trial`` when it is a mapping.
    """

    name: str
    n_stim: int
    n_total: int
    n_remaining: int
    this_rep_n: int
    this_trial_n: int
    this_n: int
    this_index: int
    trial: Any
    trial_attributes: tuple[str, ...]
    _loop: TrialHandler = field(repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self._loop.finished

    def get_current_trial(self) -> Any:
        """Return the trial being presented when the snapshot was taken."""
        return self.trial

    def get_trials(self) -> list:
        """Return the condition list of the owning loop."""
        return self._loop.trial_list

    def add_data(self, key: str, value: Any) -> None:
        """Forward ``(key, value)`` to the owning loop's data recorder."""
        self._loop.add_data(key, value)

    def get_entry_attributes(self) -> dict[str, Any]:
        """Cursor fields and trial at snapshot time, as a flat record."""
        entry = {
            f"{self.name}.this_rep_n": self.this_rep_n,
            f"{self.name}.this_trial_n": self.this_trial_n,
            f"{self.name}.this_n": self.this_n,
            f"{self.name}.this_index": self.this_index,
        }
        if isinstance(self.trial, dict):
            entry.update(self.trial)
        return entry


class TrialHandler(PsychObject):
    """
    Sequencer of trials over a list of conditions.

    Parameters
    ----------
    trial_list : list, optional
        Conditions (usually dicts of key -> value). None or an empty list
        stands for a single "no condition" trial (``[None]``).
    n_reps : int, default=1
        Number of repetitions of the condition list.
    method : TrialMethod or str, default=TrialMethod.RANDOM
        Ordering of conditions.
    seed : int, optional
        Seed of the random orderings. A fresh seed is drawn when None.
    name : str, optional
        Loop name, used as prefix of logged data.
    experiment : object, optional
        Data recorder exposing ``add_data(key, value)``.
    extra_info : dict, optional
        Free-form information attached to the loop.
    auto_log : bool, default=True
        Log every trial drawn at INFO level.

    Attributes
    ----------
    n_stim : int
        Number of conditions.
    n_total : int
        Number of trials, ``n_stim * n_reps``.
    n_remaining : int
        Trials not yet drawn.
    this_n : int
        Global trial counter, -1 before the first trial.
    this_rep_n : int
        Current repetition.
    this_trial_n : int
        Position within the current repetition, -1 before the first trial.
    this_index : int
        Condition index of the current trial.
    this_trial : Any
        Current condition; None once the loop is exhausted.

    Examples
    --------
    >>> trials = TrialHandler(["A", "B", "C"], n_reps=2, method="sequential")
    >>> [trials.next() for _ in range(3)]
    ['A', 'B', 'C']
    """

    Method = TrialMethod

    def __init__(
        self,
        trial_list: list | None = None,
        n_reps: int = 1,
        method: TrialMethod | str = TrialMethod.RANDOM,
        seed: int | None = None,
        name: str | None = None,
        experiment: Any = None,
        extra_info: dict | None = None,
        auto_log: bool = True,
    ):
        super().__init__(name)

        if is_empty(trial_list):
            trial_list = [None]
        if isinstance(n_reps, bool) or not isinstance(n_reps, int) or n_reps < 0:
            raise ConfigurationError(f"n_reps must be a non-negative integer, got {n_reps!r}")

        self._add_attribute("trial_list", trial_list)
        self._add_attribute("n_reps", n_reps)
        self._add_attribute("method", TrialMethod.parse(method))
        self._add_attribute("seed", seed)
        self._add_attribute("extra_info", extra_info, {})
        self._add_attribute("auto_log", auto_log)

        self.experiment = experiment
        self._finished = False
        self._snapshots: list[Snapshot] = []

        self.n_stim = len(trial_list)
        self.n_total = self.n_stim * n_reps
        self.n_remaining = self.n_total
        self.this_rep_n = 0
        self.this_trial_n = -1
        self.this_n = -1
        self.this_index = 0
        self.this_trial: Any = None
        self.ran = False

        self._rng_seed = rng.fresh_seed() if seed is None else int(seed)
        self._key = rng.seed(self._rng_seed)
        self._trial_sequence = self._prepare_sequence()

        logger.debug(
            "%s: %d conditions x %d repetitions, method=%s",
            self.name,
            self.n_stim,
            n_reps,
            self.method.name,
        )

    # ------------------------------------------------------------------
    # SEQUENCE
    # ------------------------------------------------------------------
    def _next_key(self):
        self._key, subkey = rng.split(self._key)
        return subkey

    def _prepare_sequence(self) -> list[list[int]]:
        """Materialize the trial sequence, one row of condition indices per repetition."""
        n_stim, n_reps = self.n_stim, self.n_reps
        identity = value_range(n_stim)

        if self.method is TrialMethod.SEQUENTIAL:
            return [list(identity) for _ in range(n_reps)]

        if self.method is TrialMethod.RANDOM:
            return [rng.permutation(self._next_key(), n_stim) for _ in range(n_reps)]

        # FULL_RANDOM: shuffle the flattened multiset, then re-split into rows
        flat = identity * n_reps
        flat = rng.shuffled(self._next_key(), flat)
        return [flat[r * n_stim : (r + 1) * n_stim] for r in range(n_reps)]

    # ------------------------------------------------------------------
    # ITERATION
    # ------------------------------------------------------------------
    @property
    def finished(self) -> bool:
        return self._finished

    @finished.setter
    def finished(self, is_finished: bool) -> None:
        # snapshots read this flag through their back-reference
        self._finished = bool(is_finished)

    def __iter__(self):
        return self

    def __next__(self):
        has_trial, trial = self._advance()
        if not has_trial:
            raise StopIteration
        return trial

    def next(self) -> Any:
        """
        Draw the next trial.

        Returns
        -------
        Any
            The next condition, or None when no trials remain (``this_trial``
            is then None as well).
        """
        _, trial = self._advance()
        return trial

    def _advance(self) -> tuple[bool, Any]:
        if self.this_n + 1 >= self.n_total:
            self.this_n = self.n_total
            self.this_trial = None
            self.finished = True
            return False, None

        self.this_n += 1
        self.ran = True
        self.this_rep_n, self.this_trial_n = divmod(self.this_n, self.n_stim)
        self.this_index = self._trial_sequence[self.this_rep_n][self.this_trial_n]
        self.this_trial = self.trial_list[self.this_index]
        self.n_remaining -= 1

        if self.auto_log:
            logger.info(
                "%s: trial %d (rep %d, index %d): %s",
                self.name,
                self.this_n,
                self.this_rep_n,
                self.this_index,
                self.this_trial,
            )
        return True, self.this_trial

    # ------------------------------------------------------------------
    # ACCESSORS
    # ------------------------------------------------------------------
    def get_trial_index(self) -> int:
        """Condition index of the current trial."""
        return self.this_index

    def set_trial_index(self, index: int) -> None:
        """Present condition ``index`` as the current trial."""
        if not 0 <= index < self.n_stim:
            raise IndexError(f"trial index {index} out of range [0, {self.n_stim})")
        self.this_index = index
        self.this_trial = self.trial_list[index]

    def get_trial(self, index: int = 0) -> Any:
        """Condition at ``index`` of the condition list, or None when out of range."""
        if 0 <= index < self.n_stim:
            return self.trial_list[index]
        return None

    def _trial_at(self, n: int) -> Any:
        if not 0 <= n < self.n_total:
            return None
        rep_n, trial_n = divmod(n, self.n_stim)
        return self.trial_list[self._trial_sequence[rep_n][trial_n]]

    def get_earlier_trial(self, n: int = -1) -> Any:
        """Condition presented ``abs(n)`` trials ago, or None."""
        return self._trial_at(self.this_n - abs(n))

    def get_future_trial(self, n: int = 1) -> Any:
        """Condition that will be presented ``n`` trials from now, or None."""
        return self._trial_at(self.this_n + n)

    def get_attributes(self) -> list[str]:
        """Union of the keys of every condition, in first-seen order."""
        keys: list[str] = []
        for trial in self.trial_list:
            if isinstance(trial, dict):
                for key in trial:
                    if key not in keys:
                        keys.append(key)
        return keys

    def get_entry_attributes(self) -> dict[str, Any]:
        """Cursor fields and current condition, as a flat record for the data recorder."""
        entry = {
            f"{self.name}.this_rep_n": self.this_rep_n,
            f"{self.name}.this_trial_n": self.this_trial_n,
            f"{self.name}.this_n": self.this_n,
            f"{self.name}.this_index": self.this_index,
        }
        if isinstance(self.this_trial, dict):
            entry.update(self.this_trial)
        return entry

    # ------------------------------------------------------------------
    # SNAPSHOTS & DATA
    # ------------------------------------------------------------------
    def get_snapshot(self) -> Snapshot:
        """
        Capture the current cursor.

        The snapshot is kept by the loop and returned.
        """
        trial = self.this_trial
        snapshot = Snapshot(
            name=self.name,
            n_stim=self.n_stim,
            n_total=self.n_total,
            n_remaining=self.n_remaining,
            this_rep_n=self.this_rep_n,
            this_trial_n=self.this_trial_n,
            this_n=self.this_n,
            this_index=self.this_index,
            trial=trial,
            trial_attributes=tuple(trial) if isinstance(trial, dict) else (),
            _loop=self,
        )
        self._snapshots.append(snapshot)
        return snapshot

    @property
    def snapshots(self) -> list[Snapshot]:
        return list(self._snapshots)

    def add_data(self, key: str, value: Any) -> None:
        """Forward ``(key, value)`` to the data recorder, if one is attached."""
        if self.experiment is not None:
            self.experiment.add_data(key, value)
