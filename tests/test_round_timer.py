"""Tests for the round countdown."""

import asyncio

from spotquest.services.timer import RoundTimer


def test_timer_ticks_then_expires_once() -> None:
    async def scenario() -> tuple[list[int], list[bool]]:
        timer = RoundTimer(tick_seconds=0.001)
        ticks: list[int] = []
        expired: list[bool] = []
        timer.start(3, ticks.append, lambda: expired.append(True))
        await asyncio.sleep(0.2)
        return ticks, expired

    ticks, expired = asyncio.run(scenario())

    assert ticks == [2, 1, 0]
    assert expired == [True]


def test_restart_supersedes_previous_countdown() -> None:
    async def scenario() -> tuple[list[str], list[str]]:
        timer = RoundTimer(tick_seconds=0.001)
        first: list[str] = []
        second: list[str] = []
        timer.start(3, lambda _: None, lambda: first.append("expired"))
        timer.start(2, lambda _: None, lambda: second.append("expired"))
        await asyncio.sleep(0.2)
        return first, second

    first, second = asyncio.run(scenario())

    assert first == []
    assert second == ["expired"]


def test_cancel_stops_callbacks_and_is_idempotent() -> None:
    async def scenario() -> tuple[list[int], list[bool], bool]:
        timer = RoundTimer(tick_seconds=0.001)
        ticks: list[int] = []
        expired: list[bool] = []
        timer.start(50, ticks.append, lambda: expired.append(True))
        await asyncio.sleep(0.005)
        timer.cancel()
        timer.cancel()
        seen = len(ticks)
        await asyncio.sleep(0.1)
        return ticks[seen:], expired, timer.running

    late_ticks, expired, running = asyncio.run(scenario())

    assert late_ticks == []
    assert expired == []
    assert running is False


def test_cancel_after_expiry_is_safe() -> None:
    async def scenario() -> list[bool]:
        timer = RoundTimer(tick_seconds=0.001)
        expired: list[bool] = []
        timer.start(1, lambda _: None, lambda: expired.append(True))
        await asyncio.sleep(0.05)
        timer.cancel()
        timer.cancel()
        return expired

    assert asyncio.run(scenario()) == [True]


def test_zero_duration_expires_without_ticks() -> None:
    async def scenario() -> tuple[list[int], list[bool], int]:
        timer = RoundTimer(tick_seconds=0.001)
        ticks: list[int] = []
        expired: list[bool] = []
        timer.start(0, ticks.append, lambda: expired.append(True))
        await asyncio.sleep(0.02)
        return ticks, expired, timer.remaining_seconds

    ticks, expired, remaining = asyncio.run(scenario())

    assert ticks == []
    assert expired == [True]
    assert remaining == 0
