"""
Delay scheduling for blockflow experiments.

The experiment never sleeps. It asks a Scheduler to call it back once a
step's start delay has elapsed:
- PygletScheduler: uses pyglet.clock (the default, for windowed runs)
- ManualScheduler: virtual clock driven by advance(), for scripted runs and tests
"""

import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, List, Tuple

import pyglet


class Scheduler(ABC):
    """Calls a function once after a delay."""

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[[], None]):
        """
        Schedule callback() to run once after delay seconds.

        Args:
            delay: Seconds to wait (0 = next tick, never synchronously)
            callback: Function taking no arguments
        """
        pass


class PygletScheduler(Scheduler):
    """
    Scheduler backed by pyglet.clock.

    Callbacks run inside the pyglet event loop (pyglet.app.run()).
    """

    def schedule(self, delay: float, callback: Callable[[], None]):
        pyglet.clock.schedule_once(lambda dt: callback(), delay)


class ManualScheduler(Scheduler):
    """
    Scheduler driven by an explicit virtual clock.

    Nothing runs until advance() or run_pending() is called, which makes the
    experiment's state machine testable without timers or a window.

    Example:
        scheduler = ManualScheduler()
        experiment = Experiment(sequence, scheduler=scheduler)
        experiment.start()
        scheduler.advance(0.5)  # shows the first step if its delay is <= 0.5s
    """

    def __init__(self):
        self.time: float = 0.0
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._counter = itertools.count()

    def schedule(self, delay: float, callback: Callable[[], None]):
        due = self.time + max(delay, 0.0)
        heapq.heappush(self._queue, (due, next(self._counter), callback))

    def advance(self, seconds: float) -> int:
        """
        Move the virtual clock forward, running every callback that falls due.

        Callbacks scheduled while advancing run too if they fall within the
        window. Callbacks with the same due time run in scheduling order.

        Args:
            seconds: Amount of virtual time to advance

        Returns:
            Number of callbacks run
        """
        target = self.time + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self.time = due
            callback()
            ran += 1
        self.time = target
        return ran

    def run_pending(self) -> int:
        """Run callbacks that are already due (delay 0)."""
        return self.advance(0.0)

    @property
    def pending(self) -> int:
        """Number of callbacks waiting to run."""
        return len(self._queue)

    def next_due(self):
        """Virtual time of the next callback, or None."""
        return self._queue[0][0] if self._queue else None
