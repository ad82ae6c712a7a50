"""
notifier.py — Fire-and-forget toast delivery to the host UI.

The host hands us a ``show_toast(body)`` callable (sync or async). Delivery
never affects validation: a missing callable is a logged no-op and any error
raised by the host is logged and swallowed.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

ShowToast = Callable[[Dict[str, Any]], Any]

_DEFAULT_DURATIONS = {
    "success": 3.0,
    "error": 5.0,
    "warning": 4.0,
    "info": 3.0,
}


class Notifier:
    """Renders structured success / failure / progress events as toasts."""

    def __init__(self, show_toast: Optional[ShowToast] = None) -> None:
        self._show_toast = show_toast

    @property
    def available(self) -> bool:
        return self._show_toast is not None

    async def success(self, message: str, title: Optional[str] = None, duration: Optional[float] = None) -> None:
        await self._send("success", message, title, duration)

    async def error(self, message: str, title: Optional[str] = None, duration: Optional[float] = None) -> None:
        await self._send("error", message, title, duration)

    async def warning(self, message: str, title: Optional[str] = None, duration: Optional[float] = None) -> None:
        await self._send("warning", message, title, duration)

    async def info(self, message: str, title: Optional[str] = None, duration: Optional[float] = None) -> None:
        await self._send("info", message, title, duration)

    async def progress(self, message: str, title: Optional[str] = None, progress: Optional[int] = None) -> None:
        if progress is not None:
            # No auto-dismiss while progress is shown
            await self._send("info", f"{message} ({progress}%)", title, 0.0, event="progress")
        else:
            await self._send("info", message, title, 2.0, event="progress")

    async def detailed(
        self,
        message: str,
        title: Optional[str] = None,
        variant: str = "info",
        duration: Optional[float] = None,
    ) -> None:
        await self._send(variant, message, title, duration, event="detailed")

    async def _send(
        self,
        variant: str,
        message: str,
        title: Optional[str],
        duration: Optional[float],
        event: Optional[str] = None,
    ) -> None:
        event = event or variant
        if self._show_toast is None:
            logger.warning("Toast API not available; dropping %s notification: %s", event, message)
            return
        seconds = _DEFAULT_DURATIONS.get(variant, 3.0) if duration is None else duration
        body = {
            "title": title,
            "message": message,
            "variant": variant,
            "duration": int(seconds * 1000),
        }
        try:
            result = self._show_toast(body)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("Failed to show %s toast: %s", event, exc)
