"""Background task that periodically sweeps expired sessions."""

import asyncio
from typing import Optional

from simple_docker_manager.managers.session_manager import SessionManager
from simple_docker_manager.utils import get_logger
from simple_docker_manager.utils.metrics_collector import get_metrics_collector

logger = get_logger(__name__)


class SessionSweeper:
    """Runs SessionManager.sweep_expired on a fixed interval."""

    def __init__(self, sessions: SessionManager, interval_seconds: int) -> None:
        """
        Initialize session sweeper.

        Args:
            sessions: Session store to sweep
            interval_seconds: Seconds between sweeps
        """
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive")

        self.sessions = sessions
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            logger.warning("Session sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Session sweeper started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                # Expected when the loop is cancelled mid-sleep
                pass
            self._task = None
        logger.info("Session sweeper stopped")

    async def sweep_once(self) -> int:
        """Sweep now and refresh the session gauge."""
        removed = await self.sessions.sweep_expired()
        get_metrics_collector().set_active_sessions(await self.sessions.active_count())
        return removed

    async def _run_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Session sweep failed", extra={"error": str(e)})
