"""
conditions.py
-------------

Validated configuration of one staircase of a MultiStairHandler.

Conditions usually come from a conditions file, with camelCase column
names (``startVal``, ``startValSd``, ``nUp``, ...). ``StaircaseCondition``
accepts those or their snake_case forms; any other column is kept in
``extras`` and carried along with every trial of that staircase.

Examples
--------
>>> condition = StaircaseCondition.from_mapping({"label": "low", "startVal": 0.2, "side": "left"})
>>> condition.start_val, condition.extras
(0.2, {'side': 'left'})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from psytimeline.errors import ConfigurationError

# column name -> field name
_ALIASES = {
    "label": "label",
    "startVal": "start_val",
    "startValSd": "start_val_sd",
    "minVal": "min_val",
    "maxVal": "max_val",
    "nTrials": "n_trials",
    "nReversals": "n_reversals",
    "nUp": "n_up",
    "nDown": "n_down",
    "stepSizes": "step_sizes",
    "stepType": "step_type",
    "applyInitialRule": "apply_initial_rule",
    "pThreshold": "p_threshold",
    "beta": "beta",
    "delta": "delta",
    "gamma": "gamma",
    "grain": "grain",
}


@dataclass
class StaircaseCondition:
    """
    Parameters of one staircase.

    Attributes
    ----------
    label : str
        Staircase name.
    start_val : float
        Starting intensity (prior guess for QUEST).
    start_val_sd : float | None
        Prior SD; required for QUEST staircases.
    n_trials : int | None
        Overrides the handler-wide number of trials.
    extras : dict
        Condition columns not used by the staircase itself.

    Other attributes mirror the StairHandler / QuestHandler parameters of
    the same name.
    """

    label: str
    start_val: float
    start_val_sd: float | None = None
    min_val: float | None = None
    max_val: float | None = None
    n_trials: int | None = None
    n_reversals: int | None = None
    n_up: int = 1
    n_down: int = 3
    step_sizes: Any = 4
    step_type: str = "db"
    apply_initial_rule: bool = True
    p_threshold: float = 0.82
    beta: float = 3.5
    delta: float = 0.01
    gamma: float = 0.5
    grain: float = 0.01
    extras: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration."""
        if not isinstance(self.label, str) or not self.label:
            raise ConfigurationError(f"staircase label must be a non-empty string, got {self.label!r}")
        if not isinstance(self.start_val, (int, float)) or isinstance(self.start_val, bool):
            raise ConfigurationError(
                f"condition {self.label}: startVal must be a number, got {self.start_val!r}"
            )
        if self.start_val_sd is not None and self.start_val_sd <= 0:
            raise ConfigurationError(
                f"condition {self.label}: startValSd must be positive, got {self.start_val_sd}"
            )

    @classmethod
    def from_mapping(cls, condition: Mapping[str, Any], index: int = 0) -> StaircaseCondition:
        """
        Build a condition from a conditions-file row.

        Parameters
        ----------
        condition : Mapping
            Row of the conditions file.
        index : int, default=0
            Row index, used to name unlabelled staircases.

        Raises
        ------
        ConfigurationError
            If the row is not a mapping or has no start value.
        """
        if not isinstance(condition, Mapping):
            raise ConfigurationError(f"condition {index} must be a mapping, got {condition!r}")

        known = {f.name for f in fields(cls)} - {"extras"}
        kwargs: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        for key, value in condition.items():
            name = _ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
            else:
                extras[key] = value

        kwargs.setdefault("label", f"stair{index}")
        if kwargs.get("start_val") is None:
            raise ConfigurationError(f"condition {kwargs['label']} is missing startVal")
        # None cells fall back to the defaults
        kwargs = {k: v for k, v in kwargs.items() if v is not None or k == "start_val_sd"}
        return cls(extras=extras, **kwargs)
