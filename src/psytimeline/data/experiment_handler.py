"""
experiment_handler.py
---------------------

In-memory data recorder for an experiment.

Collects key/value pairs into the current entry (one row per trial), and
adds the cursor of every running loop when the entry is closed. Loops
added here record their data through it. Nothing is written to disk.

Notes
-----
- ``experiment_ended`` is read by the Scheduler: once set, nested
  schedulers that quit end the whole run.
- Rows are plain dicts; ``to_numpy(key)`` extracts one column.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from psytimeline.utils.psych_object import PsychObject


class ExperimentHandler(PsychObject):
    """
    Data recorder.

    Parameters
    ----------
    name : str, optional
        Experiment name.
    extra_info : dict, optional
        Session information (``expName``, ``participant``, ``session``,
        ``date``, ...). Copied into every row.

    Attributes
    ----------
    experiment_ended : bool
        Set by ``end()``.
    """

    def __init__(self, name: str | None = None, extra_info: dict | None = None):
        super().__init__(name)
        self._add_attribute("extra_info", extra_info, {})

        self.experiment_ended = False
        self._trials_data: list[dict[str, Any]] = []
        self._current_trial_data: dict[str, Any] = {}
        self._trials_keys: list[str] = []
        self._loops: list = []
        self._unfinished_loops: list = []

    @property
    def experiment_name(self) -> str | None:
        return self.extra_info.get("expName")

    @property
    def participant(self) -> str | None:
        return self.extra_info.get("participant")

    @property
    def session(self) -> str | None:
        return self.extra_info.get("session")

    @property
    def datetime(self) -> str | None:
        return self.extra_info.get("date")

    @property
    def trials_data(self) -> list[dict[str, Any]]:
        """Completed rows."""
        return [dict(row) for row in self._trials_data]

    @property
    def trials_keys(self) -> list[str]:
        """Every key recorded so far, in first-seen order."""
        return list(self._trials_keys)

    # ------------------------------------------------------------------
    # LOOPS
    # ------------------------------------------------------------------
    def add_loop(self, loop) -> None:
        """Register a loop; its data is recorded here from now on."""
        self._loops.append(loop)
        self._unfinished_loops.append(loop)
        loop.experiment = self

    def remove_loop(self, loop) -> None:
        """Mark a loop as finished; its cursor is no longer added to rows."""
        if loop in self._unfinished_loops:
            self._unfinished_loops.remove(loop)

    # ------------------------------------------------------------------
    # ENTRIES
    # ------------------------------------------------------------------
    def add_data(self, key: str, value: Any) -> None:
        """Set ``key`` to ``value`` in the current row."""
        if key not in self._trials_keys:
            self._trials_keys.append(key)
        self._current_trial_data[key] = value

    def is_entry_empty(self) -> bool:
        """Whether nothing was recorded in the current row."""
        return len(self._current_trial_data) == 0

    def next_entry(self, snapshots: list | None = None) -> None:
        """
        Close the current row and start a new one.

        Parameters
        ----------
        snapshots : list of Snapshot, optional
            Loop snapshots whose cursors are added to the row. Defaults to
            the current cursor of every unfinished loop.
        """
        sources = snapshots if snapshots is not None else self._unfinished_loops
        for source in sources:
            for key, value in source.get_entry_attributes().items():
                self.add_data(key, value)
        for key, value in self.extra_info.items():
            self.add_data(key, value)

        self._trials_data.append(dict(self._current_trial_data))
        self._current_trial_data = {}

    def to_numpy(self, key: str) -> np.ndarray:
        """Column ``key`` of the completed rows (None where missing)."""
        return np.array([row.get(key) for row in self._trials_data], dtype=object)

    def end(self) -> None:
        """Mark the experiment as ended."""
        self.experiment_ended = True
