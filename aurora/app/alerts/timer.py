"""
timer.py — Single-shot cancellable countdown for the SOS abort window.

The countdown is an asyncio task that sleeps for the clamped duration and
then awaits the callback.  The task marks itself *fired* the instant the
sleep returns, before the callback runs; ``cancel()`` refuses once fired.
On a single event loop that makes the guarantee exact: a cancel that
returns True means the callback will never run, and a callback that has
started (dispatch in flight) is never interrupted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

MIN_SECONDS = 5
MAX_SECONDS = 300

SleepFn = Callable[[float], Awaitable[None]]


def clamp_seconds(requested: int) -> int:
    """
    Clamp a requested countdown to [MIN_SECONDS, MAX_SECONDS].

    A request of 0 or less means "no countdown" and stays 0; the controller
    dispatches immediately in that case.
    """
    if requested <= 0:
        return 0
    return max(MIN_SECONDS, min(MAX_SECONDS, int(requested)))


class CountdownTimer:
    """
    One-shot delay that awaits ``callback`` on expiry unless cancelled.

    Parameters
    ----------
    seconds : int
        Requested duration, clamped with ``clamp_seconds`` (must resolve > 0).
    callback : async callable
        Awaited once on expiry.
    sleep : async callable
        Sleep primitive; injectable for tests.
    """

    def __init__(
        self,
        seconds: int,
        callback: Callable[[], Awaitable[None]],
        *,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.seconds = clamp_seconds(seconds)
        if self.seconds == 0:
            raise ValueError(f"Countdown of {seconds}s resolves to no delay")
        self._callback = callback
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._fired = False
        self._cancelled = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        """Started, not yet fired, not cancelled."""
        return self._task is not None and not self._fired and not self._cancelled

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("CountdownTimer already started")
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Countdown started: %ds", self.seconds)

    async def _run(self) -> None:
        try:
            await self._sleep(self.seconds)
        except asyncio.CancelledError:
            return
        if self._cancelled:
            return
        self._fired = True
        try:
            await self._callback()
        except Exception:
            logger.exception("Countdown callback raised")

    def cancel(self) -> bool:
        """Stop the countdown. False if it already fired or was cancelled."""
        if self._task is None or self._fired or self._cancelled:
            return False
        self._cancelled = True
        self._task.cancel()
        logger.info("Countdown cancelled before expiry")
        return True

    async def wait(self) -> None:
        """Wait until the task finishes (fired and callback done, or cancelled)."""
        if self._task is not None:
            await asyncio.wait([self._task])
