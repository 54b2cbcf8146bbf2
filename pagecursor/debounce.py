"""
Trigger coalescing with a bounded maximum latency.

A RateLimiter wraps an action. Every call pushes execution back until
`wait` milliseconds pass without another call, but a burst can never hold
the action back for longer than `max_wait` milliseconds: once that budget
is spent, the action is forced onto the next scheduler tick.
"""

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

from ._logging import logger
from .exceptions import DebounceConfigError


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    """Anything with the timer half of the asyncio event loop API."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...

    def time(self) -> float: ...


class RateLimiter:
    """
    Debounces calls to `action`.

    Args:
        action: Callable to run. Receives the arguments of the most recent call.
        wait: Milliseconds of quiescence required before running.
        max_wait: Upper bound in milliseconds between the first trigger of a
            burst and the run. Defaults to max(wait * 10, 100).
        loop: Scheduler to use. Defaults to the running asyncio loop.

    Raises:
        DebounceConfigError: If `action` is not callable, `wait` is not a number,
            or no loop is given outside a running asyncio loop.
    """

    def __init__(
        self,
        action: Callable[..., Any],
        wait: float,
        max_wait: float | None = None,
        *,
        loop: Scheduler | None = None,
    ) -> None:
        if isinstance(wait, bool) or not isinstance(wait, (int, float)):
            raise DebounceConfigError(
                "Must provide a valid number for wait. Try 0 for a default"
            )
        if not callable(action):
            raise DebounceConfigError("Must provide a valid function to debounce")
        if not max_wait:
            max_wait = max(wait * 10, 100)
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise DebounceConfigError(
                    "No running event loop. Pass loop= to schedule outside asyncio",
                    original_error=e,
                ) from e

        self.action = action
        self.wait = wait
        self.max_wait = max_wait
        self._loop: Scheduler = loop

        self._started_at: float | None = None
        self._timer: TimerHandle | None = None
        self._forced: TimerHandle | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}

    @property
    def running(self) -> bool:
        """True while a burst is waiting to be flushed."""
        return self._started_at is not None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        self._args = args
        self._kwargs = kwargs
        self._reset_timer()

    def cancel(self) -> None:
        """Drops any pending execution."""
        for handle in (self._timer, self._forced):
            if handle is not None:
                handle.cancel()
        self._timer = None
        self._forced = None
        self._started_at = None

    def _now_ms(self) -> float:
        return self._loop.time() * 1000

    def _reset_timer(self) -> None:
        # Clears the current wait timer and creates a new one, unless the
        # burst already exceeded max_wait, in which case run on the next tick.
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        now = self._now_ms()
        if self._started_at is not None and now - self._started_at > self.max_wait:
            if self._forced is None:
                logger.debug(
                    "Max wait exceeded, forcing run",
                    extra={"operation": "debounce", "max_wait": self.max_wait},
                )
                self._forced = self._loop.call_later(0, self._run_now)
        else:
            if self._started_at is None:
                self._started_at = now
            self._timer = self._loop.call_later(self.wait / 1000, self._run_now)

    def _run_now(self) -> None:
        # Clears the queue and invokes the action with the most recent arguments
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._forced = None
        self._started_at = None
        self.action(*self._args, **self._kwargs)
