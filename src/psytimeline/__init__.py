"""
psytimeline
===========

Timeline control and trial sequencing for psychophysics experiments.

An experiment is an ordered list of tasks (routines, loops, handlers)
advanced once per display frame. Each task returns a control Event telling
the scheduler whether to stay on it, move on, or end the run. Trial loops
produce the conditions to present, and adaptive staircases choose the next
stimulus intensity from the responses collected so far.

----------------------------------------------------------------------
Workflow
----------------------------------------------------------------------

Core design
-----------
1. Scheduler (scheduler/scheduler.py):
   - Ordered tasks, nested schedulers and conditional branches.
   - Advanced frame by frame through a FrameDriver.
   - FLIP_REPEAT keeps a task current, FLIP_NEXT moves on after the flip,
     NEXT moves on within the same frame, QUIT ends the (sub)scheduler.

2. TrialHandler (data/trial_handler.py):
   - Pre-computed trial sequence over a condition list.
   - SEQUENTIAL, RANDOM or FULL_RANDOM ordering; seeded for reproducibility.
   - Snapshots of the cursor for per-trial logging.

3. Staircases (data/stair_handler.py, data/quest_handler.py):
   - StairHandler: N-up / M-down rule with reversal-indexed step sizes.
   - QuestHandler: Bayesian threshold estimate on a discrete grid.

4. MultiStairHandler (data/multi_stair_handler.py):
   - Interleaves one staircase per condition until all are finished.

5. ExperimentHandler (data/experiment_handler.py):
   - In-memory rows of key/value data; loops record through it.

Unified import style
--------------------
Top-level:
  from psytimeline import Scheduler, Event, TrialHandler, StairHandler
  from psytimeline import QuestHandler, MultiStairHandler, ExperimentHandler

Subpackages:
  from psytimeline.scheduler import Scheduler, Event, Status, ManualFrameDriver
  from psytimeline.data import TrialHandler, TrialMethod, Snapshot, StaircaseCondition
  from psytimeline.utils import PsychObject, seed, split

Logging
-------
Every module logs to ``logging.getLogger(__name__)``; nothing is configured
here. Trials drawn are logged at INFO when ``auto_log`` is set, state
changes at DEBUG.

----------------------------------------------------------------------
"""

from . import data as data
from . import scheduler as scheduler
from . import utils as utils

# Data
from .data.experiment_handler import ExperimentHandler
from .data.multi_stair_handler import MultiStairHandler, StaircaseType
from .data.quest_handler import QuestHandler
from .data.stair_handler import StairHandler
from .data.trial_handler import Snapshot, TrialHandler, TrialMethod

# Errors
from .errors import (
    ConfigurationError,
    InvalidResponse,
    PsyTimelineError,
    SizeMismatch,
    UnsupportedOperation,
)

# Scheduling
from .scheduler.frame import FrameDriver, ManualFrameDriver
from .scheduler.scheduler import Event, Scheduler, Status

# Utilities
from .utils.psych_object import PsychObject

__version__ = "0.1.0"

__all__ = [
    # Scheduling
    "Scheduler",
    "Event",
    "Status",
    "FrameDriver",
    "ManualFrameDriver",
    # Loops and staircases
    "TrialHandler",
    "TrialMethod",
    "Snapshot",
    "StairHandler",
    "QuestHandler",
    "MultiStairHandler",
    "StaircaseType",
    # Data recording
    "ExperimentHandler",
    "PsychObject",
    # Errors
    "PsyTimelineError",
    "ConfigurationError",
    "InvalidResponse",
    "UnsupportedOperation",
    "SizeMismatch",
    # Subpackages
    "scheduler",
    "data",
    "utils",
]
