"""Periodic eviction of expired rate-limit windows."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from loguru import logger

from foodhub_api.core.settings import settings
from foodhub_api.services.rate_limit import RateLimitStore


class RateLimitSweeper:
    """Keeps the in-memory rate-limit store from growing without bound."""

    def __init__(
        self,
        store: RateLimitStore,
        *,
        interval_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.interval_seconds = interval_seconds or settings.rate_limit_sweep_interval_seconds
        self._clock = clock
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.is_running: bool = False

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())
        self.is_running = True
        logger.info("Rate limit sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        self.is_running = False
        logger.info("Rate limit sweeper stopped")

    async def run_once(self) -> int:
        removed = await self._store.sweep(now=self._clock())
        if removed:
            logger.debug("Swept expired rate limit windows", removed=removed)
        return removed

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
            else:
                break
            try:
                await self.run_once()
            except Exception as exc:  # pragma: no cover - keep the loop alive
                logger.exception("Rate limit sweep failed", error=str(exc))
