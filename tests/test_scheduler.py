from __future__ import annotations

import asyncio

import pytest

from fleetview.scheduler import PollScheduler

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]

LONG_INTERVAL_MS = 60_000


class Recorder:
    def __init__(self, delay: float = 0.0, fail: bool = False) -> None:
        self.calls: list[bool] = []
        self.finished = 0
        self._delay = delay
        self._fail = fail

    async def __call__(self, manual: bool) -> None:
        self.calls.append(manual)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise RuntimeError("boom")
        self.finished += 1


async def settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


class TestStart:
    @pytest.mark.asyncio
    async def test_start_refreshes_immediately(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(LONG_INTERVAL_MS)
        await settle()

        assert refresh.calls == [False]
        assert scheduler.state == "running"
        assert scheduler.timer_active
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_ticks_on_interval(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(20)
        await asyncio.sleep(0.11)
        await scheduler.aclose()

        assert len(refresh.calls) >= 3

    @pytest.mark.asyncio
    async def test_non_positive_interval_rejected(self):
        scheduler = PollScheduler(Recorder())
        with pytest.raises(ValueError):
            scheduler.start(0)
        assert scheduler.state == "stopped"

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(20)
        scheduler.stop()
        await asyncio.sleep(0.06)

        assert scheduler.state == "stopped"
        assert not scheduler.timer_active
        assert refresh.calls == [False]


class TestVisibility:
    @pytest.mark.asyncio
    async def test_hidden_pauses_timer(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(20)
        await settle()
        scheduler.set_visible(False)
        calls = len(refresh.calls)
        await asyncio.sleep(0.08)

        assert scheduler.state == "paused"
        assert not scheduler.timer_active
        assert len(refresh.calls) == calls
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_resume_triggers_exactly_one_refresh(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(LONG_INTERVAL_MS)
        await settle()
        scheduler.set_visible(False)

        scheduler.set_visible(True)
        await settle()

        assert refresh.calls == [False, False]
        assert scheduler.state == "running"
        assert scheduler.timer_active
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_visible_while_running_is_noop(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(LONG_INTERVAL_MS)
        await settle()
        scheduler.set_visible(True)
        await settle()

        assert refresh.calls == [False]
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_visibility_ignored_when_stopped(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.set_visible(False)
        scheduler.set_visible(True)
        await settle()

        assert scheduler.state == "stopped"
        assert refresh.calls == []


class TestCycles:
    @pytest.mark.asyncio
    async def test_refresh_now_is_manual_and_keeps_timer(self):
        refresh = Recorder()
        scheduler = PollScheduler(refresh)
        scheduler.start(LONG_INTERVAL_MS)
        scheduler.refresh_now()
        await settle()

        assert refresh.calls == [False, True]
        assert scheduler.timer_active
        await scheduler.aclose()

    @pytest.mark.asyncio
    async def test_slow_cycle_does_not_block_ticks(self):
        refresh = Recorder(delay=0.2)
        scheduler = PollScheduler(refresh)
        scheduler.start(20)
        await asyncio.sleep(0.07)

        assert scheduler.inflight >= 2
        scheduler.stop()
        await scheduler.aclose()
        assert refresh.finished == len(refresh.calls)

    @pytest.mark.asyncio
    async def test_crashed_cycle_is_logged_and_polling_continues(self, log_records):
        refresh = Recorder(fail=True)
        scheduler = PollScheduler(refresh)
        scheduler.start(20)
        await asyncio.sleep(0.07)
        await scheduler.aclose()

        assert len(refresh.calls) >= 2
        assert any(r["level"] == "ERROR" and "crashed" in r["message"] for r in log_records)
