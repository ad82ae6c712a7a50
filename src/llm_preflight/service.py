"""
service.py — Wires cache, client, validator, monitor and notifier together.

One PreflightService per process is the usual deployment, but nothing is
global: tests and embedders build as many as they like.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from llm_preflight.cache import ModelStatusCache
from llm_preflight.client import ModelSourceClient, normalize_base_url
from llm_preflight.hooks import ChatParamsHook, ConfigHook
from llm_preflight.models import CacheStats, ModelInfo, ValidationOutcome
from llm_preflight.monitor import ModelLoadingMonitor
from llm_preflight.notifier import Notifier, ShowToast
from llm_preflight.validation import ModelValidator

logger = logging.getLogger(__name__)


class PreflightService:
    """
    Usage::

        service = PreflightService(show_toast=host.tui.show_toast)
        hooks = service.hooks()
        await hooks["config"](host_config)
        await hooks["chat.params"](params, output)
        await service.aclose()
    """

    def __init__(
        self,
        cache: Optional[ModelStatusCache] = None,
        client: Optional[ModelSourceClient] = None,
        notifier: Optional[Notifier] = None,
        show_toast: Optional[ShowToast] = None,
        validator: Optional[ModelValidator] = None,
        monitor: Optional[ModelLoadingMonitor] = None,
    ) -> None:
        self.cache = cache or ModelStatusCache()
        self.client = client or ModelSourceClient()
        self.notifier = notifier or Notifier(show_toast)
        self.validator = validator or ModelValidator(self.cache, self.client, self.notifier)
        self.monitor = monitor or ModelLoadingMonitor(self.get_loaded_models)
        self.config_hook = ConfigHook(self)
        self.chat_params_hook = ChatParamsHook(self)
        logger.debug("Preflight service initialised")

    async def get_loaded_models(self, base_url: Optional[str] = None) -> List[str]:
        return await self.validator.get_loaded_models(base_url)

    async def refresh(self, base_url: Optional[str] = None) -> List[str]:
        return await self.validator.get_loaded_models(base_url, force=True)

    async def discover(self, base_url: Optional[str] = None) -> List[ModelInfo]:
        return await self.client.discover_models(normalize_base_url(base_url))

    async def validate(self, model_id: str, base_url: Optional[str] = None) -> ValidationOutcome:
        return await self.validator.validate(model_id, base_url)

    def cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def hooks(self) -> Dict[str, Any]:
        return {"config": self.config_hook, "chat.params": self.chat_params_hook}

    async def aclose(self) -> None:
        await self.monitor.cleanup()
        await self.config_hook.drain()
