"""Unit tests for SessionSweeper."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from simple_docker_manager.managers.session_sweeper import SessionSweeper


@pytest.fixture
def sessions():
    """Mock session store."""
    store = MagicMock()
    store.sweep_expired = AsyncMock(return_value=2)
    store.active_count = AsyncMock(return_value=3)
    return store


def test_interval_must_be_positive(sessions):
    """Test that a non-positive interval is rejected."""
    with pytest.raises(ValueError):
        SessionSweeper(sessions, 0)


@pytest.mark.asyncio
async def test_sweep_once_updates_gauge(sessions):
    """Test that a sweep refreshes the active session gauge."""
    sweeper = SessionSweeper(sessions, 60)

    with patch(
        "simple_docker_manager.managers.session_sweeper.get_metrics_collector"
    ) as get_collector:
        removed = await sweeper.sweep_once()

    assert removed == 2
    get_collector.return_value.set_active_sessions.assert_called_once_with(3)


@pytest.mark.asyncio
async def test_start_and_stop(sessions):
    """Test the loop lifecycle."""
    sweeper = SessionSweeper(sessions, 60)

    await sweeper.start()
    assert sweeper.running is True

    # Starting twice is a no-op
    await sweeper.start()

    await sweeper.stop()
    assert sweeper.running is False

    # Stopping twice is a no-op
    await sweeper.stop()


@pytest.mark.asyncio
async def test_loop_sweeps_and_survives_errors(sessions):
    """Test that the loop keeps running after a failed sweep."""
    sessions.sweep_expired = AsyncMock(side_effect=[RuntimeError("boom"), 0, 0, 0, 0, 0])
    sweeper = SessionSweeper(sessions, 60)

    real_sleep = asyncio.sleep

    async def fast_sleep(_seconds):
        await real_sleep(0)

    with patch("simple_docker_manager.managers.session_sweeper.asyncio.sleep", fast_sleep):
        await sweeper.start()
        for _ in range(20):
            if sessions.sweep_expired.await_count >= 3:
                break
            await real_sleep(0)
        await sweeper.stop()

    assert sessions.sweep_expired.await_count >= 3
