"""
monitor.py — Polls the model server until a model finishes loading.

One asyncio task per model id. Starting a monitor for a model that is
already ``loading`` is a no-op; every exit path (loaded, error, timeout,
stop, cleanup) cancels and forgets the task so no poller outlives its model.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from llm_preflight.config import settings
from llm_preflight.models import LoadingStatus, ModelLoadingState

logger = logging.getLogger(__name__)

GetModels = Callable[[str], Awaitable[List[str]]]


class ModelLoadingMonitor:
    """
    Usage::

        monitor = ModelLoadingMonitor(validator.get_loaded_models)
        monitor.start_monitoring("qwen3-30b", "http://127.0.0.1:1234")
        monitor.get_state("qwen3-30b").status   # LoadingStatus.LOADING …
        await monitor.cleanup()
    """

    def __init__(
        self,
        get_models: GetModels,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._get_models = get_models
        self.poll_interval = settings.monitor_interval if poll_interval is None else poll_interval
        self.timeout = settings.monitor_timeout if timeout is None else timeout
        self._clock = clock
        self._states: Dict[str, ModelLoadingState] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    # ── Public interface ───────────────────────────────────────────────────────

    def start_monitoring(self, model_id: str, base_url: str) -> bool:
        """Begin polling; returns False when the model is already being monitored."""
        current = self._states.get(model_id)
        if current is not None and current.status is LoadingStatus.LOADING:
            return False

        self.stop_monitoring(model_id)
        self._states[model_id] = ModelLoadingState(
            status=LoadingStatus.LOADING,
            start_time=self._clock(),
            progress=0.0,
            base_url=base_url,
        )
        logger.info("Started monitoring model loading for %s at %s", model_id, base_url)
        self._tasks[model_id] = asyncio.create_task(
            self._poll(model_id, base_url), name=f"monitor:{model_id}"
        )
        return True

    def stop_monitoring(self, model_id: str) -> None:
        task = self._tasks.pop(model_id, None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Stopped monitoring %s", model_id)
        state = self._states.get(model_id)
        if state is not None and state.status is LoadingStatus.LOADING:
            self._update(model_id, LoadingStatus.NOT_LOADED)

    def get_state(self, model_id: str) -> Optional[ModelLoadingState]:
        return self._states.get(model_id)

    def get_all_states(self) -> Dict[str, ModelLoadingState]:
        return dict(self._states)

    def is_monitoring(self, model_id: str) -> bool:
        task = self._tasks.get(model_id)
        return task is not None and not task.done()

    async def wait(self, model_id: str) -> Optional[ModelLoadingState]:
        """Block until the monitor for ``model_id`` finishes."""
        task = self._tasks.get(model_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._states.get(model_id)

    async def cleanup(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._states.clear()
        logger.debug("Cleaned up all model loading monitors")

    # ── Internal ───────────────────────────────────────────────────────────────

    async def _poll(self, model_id: str, base_url: str) -> None:
        try:
            while True:
                await asyncio.sleep(self.poll_interval)
                if self._check_once_done(model_id, await self._fetch(model_id, base_url)):
                    return
        except _PollFailed as exc:
            self._update(model_id, LoadingStatus.ERROR, error=str(exc))
        finally:
            if self._tasks.get(model_id) is asyncio.current_task():
                del self._tasks[model_id]

    async def _fetch(self, model_id: str, base_url: str) -> List[str]:
        try:
            return await self._get_models(base_url)
        except Exception as exc:
            raise _PollFailed(str(exc) or type(exc).__name__) from exc

    def _check_once_done(self, model_id: str, models: List[str]) -> bool:
        state = self._states.get(model_id)
        if state is None or state.status is not LoadingStatus.LOADING:
            return True

        elapsed = self._clock() - (state.start_time or self._clock())
        if model_id in models:
            self._update(model_id, LoadingStatus.LOADED, progress=100.0, eta=0.0)
            logger.info("Model %s finished loading after %.1fs", model_id, elapsed)
            return True
        if elapsed >= self.timeout:
            self._update(
                model_id,
                LoadingStatus.ERROR,
                error=f"Loading timeout after {self.timeout:g} seconds",
            )
            return True

        progress = min(90.0, elapsed / self.timeout * 100) if self.timeout > 0 else 90.0
        self._update(model_id, LoadingStatus.LOADING, progress=progress, eta=max(0.0, self.timeout - elapsed))
        return False

    def _update(
        self,
        model_id: str,
        status: LoadingStatus,
        progress: Optional[float] = None,
        eta: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        previous = self._states.get(model_id) or ModelLoadingState()
        self._states[model_id] = ModelLoadingState(
            status=status,
            start_time=previous.start_time,
            progress=progress,
            eta=eta,
            error=error,
            base_url=previous.base_url,
        )
        if previous.status is not status and status is LoadingStatus.ERROR:
            logger.warning("Model loading failed for %s: %s", model_id, error)


class _PollFailed(Exception):
    pass
