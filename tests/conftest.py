from __future__ import annotations

import asyncio

import pytest


class ManualClock:
    """Stand-in for asyncio.sleep whose sleeps only finish when advanced."""

    def __init__(self) -> None:
        self._waiters: list[asyncio.Future] = []

    async def sleep(self, _seconds: float) -> None:
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        await fut

    @property
    def pending(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def advance(self, ticks: int = 1) -> None:
        for _ in range(ticks):
            await _yield()
            waiters, self._waiters = self._waiters, []
            for fut in waiters:
                if not fut.done():
                    fut.set_result(None)
            await _yield()


async def _yield(times: int = 5) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def notify(self, level, message) -> None:
        self.messages.append((level, message))

    def levels(self) -> list[str]:
        return [level for level, _ in self.messages]


class RecordingCues:
    def __init__(self) -> None:
        self.kinds: list[str] = []

    def cue(self, kind) -> None:
        self.kinds.append(kind)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cues() -> RecordingCues:
    return RecordingCues()
