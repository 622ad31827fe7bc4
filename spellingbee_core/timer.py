"""Turn/timer controller.

One countdown per turn, driven by a single asyncio task that sleeps one tick
interval at a time. Starting, stopping or closing the controller cancels the
outstanding task, so a countdown from a previous turn can never keep ticking
into the next one.

States:
- idle: no turn has run since construction/close
- running: countdown active
- expired: countdown reached zero; waiting for the organizer
- stopped: turn ended early (spelling checked, refresh)
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .config import get_settings
from .errors import ValidationError
from .types import TimerPayload, TimerStateName

logger = logging.getLogger(__name__)

MAX_DURATION_SECONDS = 5999


def parse_timer_preset(preset: str | None) -> int | None:
    """Parse timer preset string (MM:SS format) to total seconds.

    Examples:
        - "01:30" → 90
        - "3:00" → 180
        - "" → None
        - "invalid" → None
    """
    if not preset:
        return None
    try:
        minutes, seconds = (preset or "").split(":")
        return int(minutes or 0) * 60 + int(seconds or 0)
    except ValueError:
        return None


def format_seconds(total_seconds: int) -> str:
    """Format a second count as zero-padded MM:SS."""
    total_seconds = max(int(total_seconds), 0)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def _check_duration(seconds: object) -> int:
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise ValidationError("turn duration must be a whole number of seconds", kind="invalid_duration")
    if seconds < 1 or seconds > MAX_DURATION_SECONDS:
        raise ValidationError(
            f"turn duration must be between 1 and {MAX_DURATION_SECONDS} seconds",
            kind="invalid_duration",
        )
    return seconds


class TurnTimer:
    def __init__(
        self,
        duration_seconds: int | None = None,
        *,
        on_tick: Optional[Callable[[int], None]] = None,
        on_expire: Optional[Callable[[], None]] = None,
        tick_interval: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = get_settings()
        if duration_seconds is None:
            duration_seconds = settings.default_turn_seconds
        self._duration = _check_duration(duration_seconds)
        self._remaining = self._duration
        self._state: TimerStateName = "idle"
        self._tick_interval = settings.tick_interval if tick_interval is None else tick_interval
        self._low_time_threshold = settings.low_time_threshold
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        # Bumped on every start/stop so a tick from a superseded task is ignored
        self._generation = 0
        self.on_tick = on_tick
        self.on_expire = on_expire

    @property
    def state(self) -> TimerStateName:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == "running"

    @property
    def duration_seconds(self) -> int:
        return self._duration

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def is_low_time(self) -> bool:
        return 0 < self._remaining <= self._low_time_threshold

    @property
    def has_pending_tick(self) -> bool:
        return self._task is not None and not self._task.done()

    def format_remaining(self) -> str:
        return format_seconds(self._remaining)

    def set_duration(self, seconds: int) -> None:
        """Change the countdown length used by the next start()."""
        if self.is_running:
            raise ValidationError(
                "cannot change the turn duration while the timer is running",
                kind="timer_running",
            )
        self._duration = _check_duration(seconds)
        self._remaining = self._duration

    def start(self) -> None:
        """Begin a fresh countdown; requires a running event loop."""
        loop = asyncio.get_running_loop()
        self._cancel_task()
        self._generation += 1
        self._remaining = self._duration
        self._state = "running"
        self._task = loop.create_task(self._run(self._generation))
        logger.debug("Timer started (%ss)", self._duration)

    def stop(self) -> bool:
        """End the countdown early. Returns True if a countdown was running."""
        was_running = self.is_running
        self._cancel_task()
        self._generation += 1
        if was_running:
            self._state = "stopped"
            logger.debug("Timer stopped with %ss left", self._remaining)
        return was_running

    def close(self) -> None:
        """Teardown: cancel any countdown and return to idle."""
        self._cancel_task()
        self._generation += 1
        self._state = "idle"
        self._remaining = self._duration

    async def join(self) -> None:
        """Wait for the current countdown task to finish or be cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def to_payload(self) -> TimerPayload:
        return {
            "durationSeconds": self._duration,
            "remainingSeconds": self._remaining,
            "isRunning": self.is_running,
            "state": self._state,
        }

    def _cancel_task(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, generation: int) -> None:
        while True:
            await self._sleep(self._tick_interval)
            if generation != self._generation or self._state != "running":
                return
            self._remaining -= 1
            logger.debug("Timer tick: %ss left", self._remaining)
            if self.on_tick is not None:
                self.on_tick(self._remaining)
            if generation != self._generation or self._state != "running":
                return
            if self._remaining <= 0:
                self._remaining = 0
                self._state = "expired"
                self._task = None
                logger.info("Timer expired")
                if self.on_expire is not None:
                    self.on_expire()
                return
