"""
scheduler
=========

Cooperative, frame-paced task scheduling.

This subpackage provides:
- Scheduler : ordered tasks and nested schedulers, advanced by control
  Events returned from each task, with conditional branching.
- Event, Status : the control-signal and run-status enums.
- FrameDriver : interface of the host's per-frame callback hook.
- ManualFrameDriver : a frame driver ticked explicitly by the host.
"""

from .frame import FrameDriver, ManualFrameDriver
from .scheduler import Event, Scheduler, Status

__all__ = [
    "Scheduler",
    "Event",
    "Status",
    "FrameDriver",
    "ManualFrameDriver",
]
