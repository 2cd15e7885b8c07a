"""
Tests for the APScheduler refresh ticker.
"""

from datetime import timedelta

import pytest

from slo_r.slo.infrastructure import PollScheduler


async def _job():
    return None


async def _other_job():
    return None


@pytest.mark.asyncio
async def test_arm_schedules_interval_job():
    scheduler = PollScheduler(interval_seconds=60)
    try:
        scheduler.arm(_job)

        assert scheduler.is_armed
        assert scheduler.job.trigger.interval == timedelta(seconds=60)
        assert scheduler.job.max_instances == 1
    finally:
        scheduler.shutdown()


@pytest.mark.asyncio
async def test_rearm_replaces_job():
    scheduler = PollScheduler(interval_seconds=30)
    try:
        scheduler.arm(_job)
        scheduler.arm(_other_job)

        assert scheduler.arm_count == 2
        assert scheduler.job.func is _other_job
        assert len(scheduler._scheduler.get_jobs()) == 1
    finally:
        scheduler.shutdown()


@pytest.mark.asyncio
async def test_cancel_and_shutdown():
    scheduler = PollScheduler()
    scheduler.cancel()

    scheduler.arm(_job)
    scheduler.cancel()
    assert not scheduler.is_armed
    scheduler.cancel()

    scheduler.shutdown()
    scheduler.arm(_job)
    assert not scheduler.is_armed
    assert scheduler.arm_count == 1
