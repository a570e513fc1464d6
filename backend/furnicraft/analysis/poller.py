"""Analysis status poller.

Waits for the analysis of a design to appear in the store. The first
attempt runs after `initial_delay`; each miss waits `interval` before the
next one, so attempts never overlap. Polling stops when:

- the result is found (payload returned, materials in priority order),
- the design is marked `failed` (AnalysisFailedError),
- the design does not exist (DesignNotFoundError),
- `max_attempts` misses have accumulated (PollTimeoutError),
- the caller sets the cancellation event (PollCancelledError).
"""

from __future__ import annotations

import asyncio
import contextlib

import structlog

from furnicraft.errors import (
    AnalysisFailedError,
    DesignNotFoundError,
    PollCancelledError,
    PollTimeoutError,
)
from furnicraft.models.contracts import AnalysisPayload
from furnicraft.store.base import DesignStore

logger = structlog.get_logger()


class AnalysisPoller:
    def __init__(
        self,
        store: DesignStore,
        *,
        initial_delay: float = 3.0,
        interval: float = 2.0,
        max_attempts: int = 60,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.initial_delay = initial_delay
        self.interval = interval
        self.max_attempts = max_attempts

    async def fetch_once(self, design_id: str) -> AnalysisPayload | None:
        """One attempt: the completed payload, or None if not there yet."""
        analysis = await self.store.get_analysis(design_id)
        if analysis is None:
            return None
        materials = await self.store.list_materials(analysis.id)
        return AnalysisPayload(analysis=analysis, materials=materials)

    async def _sleep(self, seconds: float, design_id: str, cancel: asyncio.Event | None) -> None:
        """Sleep, waking early (and raising) if the caller cancels."""
        if cancel is None:
            await asyncio.sleep(seconds)
            return
        if cancel.is_set():
            raise PollCancelledError(design_id)
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        if cancel.is_set():
            raise PollCancelledError(design_id)

    async def wait_for_result(
        self,
        design_id: str,
        cancel: asyncio.Event | None = None,
    ) -> AnalysisPayload:
        log = logger.bind(design_id=design_id)
        await self._sleep(self.initial_delay, design_id, cancel)

        for attempt in range(1, self.max_attempts + 1):
            payload = await self.fetch_once(design_id)
            if payload is not None:
                log.info("poll_result_found", attempt=attempt)
                return payload

            design = await self.store.get_design(design_id)
            if design is None:
                raise DesignNotFoundError(design_id)
            if design.status == "failed":
                log.info("poll_analysis_failed", attempt=attempt)
                raise AnalysisFailedError(design_id)

            log.debug("poll_attempt_miss", attempt=attempt, status=design.status)
            if attempt < self.max_attempts:
                await self._sleep(self.interval, design_id, cancel)

        log.warning("poll_timeout", attempts=self.max_attempts)
        raise PollTimeoutError(design_id, self.max_attempts)
