"""
psytimeline.data
================

Trial loops, adaptive staircases and data recording.

Includes:
- trial_handler: TrialHandler, TrialMethod, Snapshot
- stair_handler: StairHandler (N-up / M-down)
- quest_handler: QuestHandler (Bayesian QUEST)
- multi_stair_handler: MultiStairHandler, interleaved staircases
- conditions: StaircaseCondition, one staircase's configuration
- experiment_handler: ExperimentHandler, in-memory data recorder
"""

from .conditions import StaircaseCondition
from .experiment_handler import ExperimentHandler
from .multi_stair_handler import MultiStairHandler, StaircaseType
from .quest_handler import QuestHandler, QuestMethod
from .stair_handler import Direction, StairHandler, StepType
from .staircase import Staircase, validate_response
from .trial_handler import Snapshot, TrialHandler, TrialMethod

__all__ = [
    # loops
    "TrialHandler",
    "TrialMethod",
    "Snapshot",
    # staircases
    "Staircase",
    "StairHandler",
    "StepType",
    "Direction",
    "QuestHandler",
    "QuestMethod",
    "MultiStairHandler",
    "StaircaseType",
    "StaircaseCondition",
    "validate_response",
    # recording
    "ExperimentHandler",
]
