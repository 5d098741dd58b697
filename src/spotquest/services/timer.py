"""Cancellable countdown for a single round."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)


@dataclass
class RoundTimer:
    """One-second countdown that fires its expiry callback at most once per start.

    Every ``start`` opens a new generation; callbacks from a superseded or
    cancelled generation are never delivered.
    """

    tick_seconds: float = 1.0
    remaining_seconds: int = field(default=0, init=False)
    _generation: int = field(default=0, init=False, repr=False)
    _expired: bool = field(default=False, init=False, repr=False)
    _task: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def running(self) -> bool:
        """Return True while a countdown is scheduled and has not expired."""
        return self._task is not None and not self._task.done() and not self._expired

    def start(
        self,
        duration_seconds: int,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
    ) -> None:
        """Start a countdown, superseding any countdown already running."""
        self.cancel()
        self._expired = False
        self.remaining_seconds = max(0, int(duration_seconds))
        generation = self._generation
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(generation, on_tick, on_expire))

    def cancel(self) -> None:
        """Stop the countdown; safe to call repeatedly or after expiry."""
        self._generation += 1
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()

    async def _run(
        self,
        generation: int,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
    ) -> None:
        while self.remaining_seconds > 0:
            await asyncio.sleep(self.tick_seconds)
            if generation != self._generation:
                return
            self.remaining_seconds -= 1
            on_tick(self.remaining_seconds)
        if generation != self._generation or self._expired:
            return
        self._expired = True
        _logger.debug("Round timer expired")
        on_expire()
