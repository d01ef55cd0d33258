"""
scheduler.py
------------

Cooperative, frame-paced task scheduler.

A Scheduler owns an ordered list of tasks. A task is either a callable
returning an ``Event`` or a nested Scheduler. The host's frame driver calls
the scheduler once per display refresh; each call runs tasks until one asks
for a screen flip (or the run ends).

Control signals
---------------
- NEXT : advance to the following task.
- FLIP_NEXT : advance, and flip the screen before the following task.
- FLIP_REPEAT : flip, then run the same task again (polling loops).
- QUIT : end this scheduler's run; remaining tasks are skipped.

Nested schedulers are run from an explicit stack of frames rather than by
recursion. A nested scheduler that quits (or runs out of tasks) counts as
NEXT for its parent, unless the experiment has ended.

Examples
--------
>>> from psytimeline.scheduler import Event, ManualFrameDriver, Scheduler
>>> driver = ManualFrameDriver()
>>> sched = Scheduler(frame_driver=driver)
>>> sched.add(lambda: Event.NEXT)
>>> future = sched.start()
>>> driver.run()
1
>>> future.result()
<Event.QUIT: 4>
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable

from psytimeline.errors import ConfigurationError
from psytimeline.scheduler.frame import FrameDriver

logger = logging.getLogger(__name__)


class Event(Enum):
    """Control signal returned by every task."""

    NEXT = 1
    FLIP_NEXT = 2
    FLIP_REPEAT = 3
    QUIT = 4


class Status(Enum):
    """Run status of a Scheduler."""

    STOPPED = 1
    RUNNING = 2


_FLIPS = (Event.FLIP_NEXT, Event.FLIP_REPEAT)


class _Conditional:
    """Decision point: run one of two schedulers depending on ``condition()``."""

    def __init__(self, condition: Callable[[], Any], then_scheduler, else_scheduler):
        self.condition = condition
        self.then_scheduler = then_scheduler
        self.else_scheduler = else_scheduler

    def choose(self) -> Scheduler:
        return self.then_scheduler if self.condition() else self.else_scheduler


class Scheduler:
    """
    Cooperative task scheduler driven by a per-frame callback.

    Parameters
    ----------
    experiment : object, optional
        Experiment collaborator exposing a boolean ``experiment_ended``.
        Once it is true, nested schedulers that quit end the whole run.
    window : object, optional
        Render collaborator exposing ``flip()``; called whenever a task
        returns FLIP_NEXT or FLIP_REPEAT.
    frame_driver : FrameDriver, optional
        Per-frame callback primitive. Required by ``start()``.

    Attributes
    ----------
    status : Status
        STOPPED until started, RUNNING while tasks remain.
    """

    Event = Event
    Status = Status

    def __init__(
        self,
        experiment: Any = None,
        window: Any = None,
        frame_driver: FrameDriver | None = None,
    ):
        self._experiment = experiment
        self._window = window
        self._frame_driver = frame_driver

        self._task_list: list[tuple[Any, tuple]] = []
        self._cursor = 0
        self._repeating = False
        self._stop_at_next_task = False
        self._status = Status.STOPPED

        # stack of schedulers being run, this one at the bottom
        self._frames: list[Scheduler] = []
        self._future: Future | None = None

    @property
    def status(self) -> Status:
        return self._status

    @property
    def n_tasks(self) -> int:
        return len(self._task_list)

    # ------------------------------------------------------------------
    # CONFIGURATION
    # ------------------------------------------------------------------
    def add(self, task: Callable[..., Event] | Scheduler, *args: Any) -> None:
        """
        Append a task.

        Parameters
        ----------
        task : callable or Scheduler
            Function returning an Event, or a nested Scheduler.
        *args
            Positional arguments passed to ``task`` on every call.
        """
        if not (isinstance(task, Scheduler) or callable(task)):
            raise ConfigurationError(
                f"a task must be a callable or a Scheduler, got {task!r}"
            )
        if task is self:
            raise ConfigurationError("a Scheduler cannot be added to itself")
        self._task_list.append((task, args))

    def add_conditional(
        self,
        condition: Callable[[], Any],
        then_scheduler: Scheduler,
        else_scheduler: Scheduler,
    ) -> None:
        """
        Append a decision point.

        ``condition()`` is evaluated once, when the decision point is reached;
        the chosen scheduler then runs in place of a plain task.
        """
        if not callable(condition):
            raise ConfigurationError("condition must be callable")
        for branch in (then_scheduler, else_scheduler):
            if not isinstance(branch, Scheduler):
                raise ConfigurationError(
                    f"conditional branches must be Schedulers, got {branch!r}"
                )
        self._task_list.append((_Conditional(condition, then_scheduler, else_scheduler), ()))

    # ------------------------------------------------------------------
    # RUNNING
    # ------------------------------------------------------------------
    def start(self) -> Future:
        """
        Start the frame loop.

        Returns
        -------
        concurrent.futures.Future
            Resolved with ``Event.QUIT`` once the scheduler is STOPPED, or
            holding the exception raised by a task.
        """
        if self._frame_driver is None:
            raise ConfigurationError("a frame driver is required to start a Scheduler")
        self._future = Future()
        self._future.set_running_or_notify_cancel()
        self._set_status(Status.RUNNING)
        self._frame_driver.request_frame(self._update)
        return self._future

    def stop(self) -> None:
        """Stop before the next task starts. A running task is never interrupted."""
        self._stop_at_next_task = True

    def _update(self, timestamp: float | None = None) -> None:
        # one frame
        try:
            state = self._run_next_tasks(until_flip=True)
        except Exception as exc:
            self._halt()
            self._future.set_exception(exc)
            return

        if state is Event.QUIT:
            self._future.set_result(Event.QUIT)
            return
        self._flip()
        self._frame_driver.request_frame(self._update)

    def _run_next_tasks(self, until_flip: bool = False) -> Event:
        """
        Run tasks until the run ends.

        Parameters
        ----------
        until_flip : bool, default=False
            Return right after a task asks for a flip (FLIP_NEXT or
            FLIP_REPEAT) instead of flipping inline and carrying on. The
            frame loop uses this to spread tasks over frames.

        Returns
        -------
        Event
            QUIT once the run has ended and the scheduler is STOPPED;
            otherwise (``until_flip`` only) the flip event just returned.

        Raises
        ------
        Exception
            Whatever a task raises. The run is aborted and every scheduler
            on the stack is STOPPED before the exception propagates.
        """
        self._set_status(Status.RUNNING)
        if not self._frames:
            self._frames = [self]

        try:
            return self._run_frames(until_flip)
        except BaseException:
            self._halt()
            raise

    def _run_frames(self, until_flip: bool) -> Event:
        while True:
            if self._experiment_ended():
                self._halt()
                return Event.QUIT

            frame = self._frames[-1]

            if not frame._repeating:
                depth = self._pop_stop_request()
                if depth is not None:
                    if self._end_frame(depth):
                        return Event.QUIT
                    continue

            if frame._cursor >= len(frame._task_list):
                if self._end_frame():
                    return Event.QUIT
                continue

            task, args = frame._task_list[frame._cursor]

            if isinstance(task, (Scheduler, _Conditional)):
                child = task if isinstance(task, Scheduler) else task.choose()
                child._enter()
                self._frames.append(child)
                continue

            state = task(*args)
            if not isinstance(state, Event):
                raise TypeError(
                    f"task {task!r} returned {state!r}, expected a Scheduler.Event"
                )

            if state is Event.QUIT:
                if self._end_frame():
                    return Event.QUIT
                continue

            if state is Event.FLIP_REPEAT:
                frame._repeating = True
            else:
                frame._repeating = False
                frame._cursor += 1

            if state in _FLIPS:
                if until_flip:
                    return state
                self._flip()

    # ------------------------------------------------------------------
    # INTERNALS
    # ------------------------------------------------------------------
    def _end_frame(self, depth: int | None = None) -> bool:
        """
        Pop frames down to ``depth`` included (the top frame by default).

        Return True when the whole run has ended.
        """
        if depth is None:
            depth = len(self._frames) - 1
        while len(self._frames) > depth:
            ended = self._frames.pop()
            ended._set_status(Status.STOPPED)
            ended._repeating = False
        if not self._frames:
            return True
        if self._experiment_ended():
            self._halt()
            return True
        # the parent continues with its following task
        self._frames[-1]._cursor += 1
        return False

    def _pop_stop_request(self) -> int | None:
        """
        Depth of the outermost stacked scheduler asked to stop, or None.

        Its request is consumed; that scheduler and every scheduler nested
        inside it are about to end.
        """
        for depth, frame in enumerate(self._frames):
            if frame._stop_at_next_task:
                frame._stop_at_next_task = False
                logger.debug("scheduler %s stopped on request", id(frame))
                return depth
        return None

    def _enter(self) -> None:
        self._cursor = 0
        self._repeating = False
        self._set_status(Status.RUNNING)

    def _halt(self) -> None:
        for frame in self._frames:
            frame._set_status(Status.STOPPED)
            frame._repeating = False
        self._frames = []
        self._set_status(Status.STOPPED)

    def _set_status(self, status: Status) -> None:
        if status is not self._status:
            logger.debug("scheduler %s: %s -> %s", id(self), self._status.name, status.name)
            self._status = status

    def _experiment_ended(self) -> bool:
        return bool(getattr(self._experiment, "experiment_ended", False))

    def _flip(self) -> None:
        if self._window is not None:
            self._window.flip()
