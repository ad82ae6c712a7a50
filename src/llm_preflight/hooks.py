"""
hooks.py — Host-facing hooks.

  • ConfigHook      — validates the host config, finds the model server
                      (configured or auto-detected), merges discovered models
                      into the provider entry and warms the status cache.
                      The whole enhancement races a fixed time budget; when
                      the budget runs out the host continues and discovery
                      finishes in the background.
  • ChatParamsHook  — pre-flight validation before each chat request; the
                      outcome is written to ``output["options"]``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set

from llm_preflight.client import ModelSourceError, normalize_base_url
from llm_preflight.config import settings
from llm_preflight.models import ModelInfo, ModelType, ValidationOutcome
from llm_preflight.naming import (
    categorize_model,
    extract_model_owner,
    format_model_name,
    sanitize_model_key,
)
from llm_preflight.schema import validate_config, validate_hook_input

if TYPE_CHECKING:
    from llm_preflight.service import PreflightService

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[a-zA-Z0-9_-]+$")


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


# ══════════════════════════════════════════════════════════════════════════════
# Config enhancement
# ══════════════════════════════════════════════════════════════════════════════


def _model_entry(model: ModelInfo) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"id": model.id, "name": format_model_name(model.id)}
    owner = extract_model_owner(model.id)
    if owner:
        entry["organizationOwner"] = owner
    kind = categorize_model(model.id)
    if kind is ModelType.EMBEDDING:
        entry["modalities"] = {"input": ["text"], "output": ["embedding"]}
    elif kind is ModelType.CHAT:
        entry["modalities"] = {"input": ["text", "image"], "output": ["text"]}
    return entry


def merge_discovered_models(provider: Dict[str, Any], models: List[ModelInfo]) -> Dict[str, int]:
    """Add models not already configured; returns counts by category."""
    existing = provider.get("models") or {}
    discovered: Dict[str, Dict[str, Any]] = {}
    counts = {"chat": 0, "embedding": 0, "added": 0}

    for model in models:
        key = model.id if _SAFE_KEY.match(model.id) else sanitize_model_key(model.id)
        if key in existing or model.id in existing:
            continue
        entry = _model_entry(model)
        kind = categorize_model(model.id)
        if kind is ModelType.CHAT:
            counts["chat"] += 1
        elif kind is ModelType.EMBEDDING:
            counts["embedding"] += 1
        discovered[key] = entry

    if discovered:
        provider["models"] = {**existing, **discovered}
        counts["added"] = len(discovered)
    return counts


async def enhance_config(config: Dict[str, Any], service: "PreflightService") -> None:
    pid = settings.provider_id
    try:
        provider = (config.get("provider") or {}).get(pid)
        if provider is not None:
            base = normalize_base_url((provider.get("options") or {}).get("baseURL"))
        else:
            detected = await service.client.auto_detect()
            if detected is None:
                logger.debug("No local model server detected; leaving config untouched")
                return
            base = detected
            provider = {
                "npm": settings.provider_npm,
                "name": settings.provider_name,
                "options": {"baseURL": f"{base}/v1"},
                "models": {},
            }
            config.setdefault("provider", {})[pid] = provider
            logger.info("Auto-configured %s provider at %s/v1", pid, base)

        if not await service.client.check_health(base):
            logger.warning("Model server appears to be offline at %s", base)
            return

        try:
            models = await service.client.discover_models(base)
        except ModelSourceError as exc:
            logger.warning("Model discovery failed at %s: %s", base, exc)
            return

        if not models:
            logger.warning(
                "No models found at %s. Download and load a model, then start the server.",
                base,
            )
            return

        counts = merge_discovered_models(provider, models)
        if counts["added"]:
            logger.info("Added %d discovered models to %s provider", counts["added"], pid)
        if counts["added"] and counts["chat"] == 0 and counts["embedding"] > 0:
            logger.warning(
                "Only embedding models found at %s. Load a chat model (e.g. llama-3.2-3b-instruct) to chat.",
                base,
            )

        ids = [m.id for m in models]

        async def warm() -> List[str]:
            return ids

        try:
            await service.cache.get_models(base, warm)
        except Exception as exc:
            logger.debug("Cache warm-up failed for %s: %s", base, exc)
    except Exception:
        logger.exception("Unexpected error while enhancing config")
        await service.notifier.warning("Plugin configuration failed", "Configuration Error")


class ConfigHook:
    def __init__(self, service: "PreflightService", timeout: Optional[float] = None) -> None:
        self._service = service
        self.timeout = settings.config_timeout if timeout is None else timeout
        # Discovery that outlived the budget; held so the tasks are not collected
        self._background: Set[asyncio.Task] = set()

    async def __call__(self, config: Any) -> None:
        check = validate_config(config)
        if not check.is_valid:
            logger.error("Invalid config provided: %s", "; ".join(check.errors))
            await self._service.notifier.error("Plugin configuration is invalid", "Configuration Error")
            return
        if check.warnings:
            logger.warning("Config warnings: %s", "; ".join(check.warnings))

        task = asyncio.create_task(enhance_config(config, self._service))
        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if not done:
            logger.warning(
                "Model discovery still running after %.1fs; continuing in background",
                self.timeout,
            )
            self._background.add(task)
            task.add_done_callback(self._background.discard)
            return

        provider = (config.get("provider") or {}).get(settings.provider_id)
        if provider is None:
            return
        count = len(provider.get("models") or {})
        if count == 0:
            logger.warning("No models discovered - the model server might be offline")
        else:
            logger.info("Loaded %d models", count)

    async def drain(self) -> None:
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)


# ══════════════════════════════════════════════════════════════════════════════
# Chat pre-flight
# ══════════════════════════════════════════════════════════════════════════════


class ChatParamsHook:
    def __init__(self, service: "PreflightService") -> None:
        self._service = service

    async def __call__(self, data: Any, output: Dict[str, Any]) -> Optional[ValidationOutcome]:
        if not isinstance(data, Mapping):
            logger.error("Invalid chat.params input")
            return None

        check = validate_hook_input("chat.params", data)
        for problem in (*check.errors, *check.warnings):
            logger.debug("%s", problem)

        model = data.get("model")
        if not isinstance(model, Mapping) or not isinstance(model.get("id"), str) or not model["id"]:
            logger.error("Invalid model object in chat.params input")
            return None

        provider = _mapping(data.get("provider"))
        if _mapping(provider.get("info")).get("id") != settings.provider_id:
            return None

        base_url = _mapping(provider.get("options")).get("baseURL")
        base = normalize_base_url(base_url if isinstance(base_url, str) else None)
        outcome = await self._service.validator.validate(model["id"], base)
        output.setdefault("options", {})[f"{settings.provider_id}Validation"] = outcome.model_dump(
            by_alias=True, mode="json"
        )
        return outcome
