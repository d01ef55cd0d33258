"""
frame.py
--------

Per-frame callback drivers for the Scheduler.

A frame driver is the host's display-refresh hook: it accepts a callback
and invokes it once, on the next frame. The Scheduler re-registers itself
every frame while it is running.

- FrameDriver : abstract interface (one method, ``request_frame``).
- ManualFrameDriver : explicit ticking, for headless runs and tests, or
  for hosts whose render loop calls ``tick()`` after each flip.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable

FrameCallback = Callable[[float], None]


class FrameDriver(ABC):
    """
    Abstract interface for per-frame callback registration.

    Methods
    -------
    request_frame(callback)
        Invoke ``callback(timestamp_ms)`` once, on the next display frame.
    """

    @abstractmethod
    def request_frame(self, callback: FrameCallback) -> None:
        """
        Register ``callback`` for the next frame.

        Parameters
        ----------
        callback : callable
            Called with the frame timestamp, in milliseconds.
        """
        raise NotImplementedError


class ManualFrameDriver(FrameDriver):
    """
    Frame driver advanced explicitly by the host.

    Parameters
    ----------
    clock : callable, default=time.perf_counter
        Source of timestamps (seconds) when ``tick`` is called without one.

    Attributes
    ----------
    frame_count : int
        Number of ticks performed so far.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._callbacks: list[FrameCallback] = []
        self.frame_count = 0

    def request_frame(self, callback: FrameCallback) -> None:
        self._callbacks.append(callback)

    @property
    def pending(self) -> int:
        """Number of callbacks waiting for the next frame."""
        return len(self._callbacks)

    def tick(self, timestamp: float | None = None) -> int:
        """
        Run one frame: invoke every callback registered before this tick.

        Callbacks registered while the frame runs wait for the next tick.

        Returns
        -------
        int
            Number of callbacks invoked.
        """
        callbacks, self._callbacks = self._callbacks, []
        if timestamp is None:
            timestamp = self._clock() * 1000.0
        for callback in callbacks:
            callback(timestamp)
        self.frame_count += 1
        return len(callbacks)

    def run(self, max_frames: int | None = None) -> int:
        """
        Tick until no callback is pending, or ``max_frames`` ticks were run.

        Returns
        -------
        int
            Number of frames run.
        """
        n = 0
        while self._callbacks and (max_frames is None or n < max_frames):
            self.tick()
            n += 1
        return n
