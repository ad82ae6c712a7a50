"""
validation.py — "Is this model ready?" pre-flight check.

Decision flow for every request:

  1.  NOT_STARTED → CHECKING: look the model up in the cached model list
  2.  Missing from the list counts as a failure so the retry controller
      gives a slow-loading model more chances (2 retries, 0.5 s base delay);
      retries after a "not loaded" answer bypass the cached list
  3.  Retries exhausted → FAILED: classify the last error, attach auto-fix
      suggestions, similar loaded models and cache diagnostics
  4.  Any attempt succeeds → SUCCEEDED: attach loaded models, cache age and
      a performance hint

A validator holds no per-request state; each call starts a new run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from llm_preflight.cache import ModelStatusCache
from llm_preflight.classifier import (
    classify_error,
    generate_auto_fix_suggestions,
    remediation_steps,
)
from llm_preflight.client import ModelSourceClient, normalize_base_url
from llm_preflight.config import settings
from llm_preflight.models import (
    CacheInfo,
    ValidationFailure,
    ValidationOutcome,
    ValidationRun,
    ValidationState,
    ValidationSuccess,
)
from llm_preflight.notifier import Notifier
from llm_preflight.retry import with_retry
from llm_preflight.similarity import rank_similar_models

logger = logging.getLogger(__name__)


class ModelNotLoadedError(Exception):
    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model '{model_id}' not loaded")
        self.model_id = model_id


class ModelValidator:
    """
    Validates model availability against a local model server.

    Usage::

        validator = ModelValidator(cache, client, notifier)
        outcome = await validator.validate("llama-3.2-3b-instruct", "http://127.0.0.1:1234/v1")
        if outcome.status == "error":
            ...
    """

    def __init__(
        self,
        cache: ModelStatusCache,
        client: ModelSourceClient,
        notifier: Optional[Notifier] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        freshness_threshold: Optional[float] = None,
        refresh_on_retry: bool = True,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.cache = cache
        self.client = client
        self.notifier = notifier or Notifier()
        self.max_retries = settings.validation_retries if max_retries is None else max_retries
        self.base_delay = settings.validation_base_delay if base_delay is None else base_delay
        self.freshness_threshold = (
            settings.freshness_threshold if freshness_threshold is None else freshness_threshold
        )
        self.refresh_on_retry = refresh_on_retry
        self._sleep = sleep

    # ── Public interface ───────────────────────────────────────────────────────

    async def get_loaded_models(self, base_url: Optional[str] = None, force: bool = False) -> List[str]:
        """Model ids at ``base_url``, served through the status cache."""
        base = normalize_base_url(base_url)

        async def fetch() -> List[str]:
            return await self.client.fetch_model_ids(base)

        if force:
            return await self.cache.force_refresh(base, fetch)
        return await self.cache.get_models(base, fetch)

    async def validate(self, model_id: str, base_url: Optional[str] = None) -> ValidationOutcome:
        run = ValidationRun(model_id=model_id, base_url=normalize_base_url(base_url))
        return await self.execute(run)

    async def execute(self, run: ValidationRun) -> ValidationOutcome:
        model_id, base = run.model_id, run.base_url
        run.advance(ValidationState.CHECKING)
        await self.notifier.progress(f"Checking model {model_id}...", "Model Validation", 10)

        last_error: List[BaseException] = []

        async def check() -> List[str]:
            force = self.refresh_on_retry and bool(last_error) and isinstance(
                last_error[-1], ModelNotLoadedError
            )
            try:
                loaded = await self.get_loaded_models(base, force=force)
                if model_id not in loaded:
                    raise ModelNotLoadedError(model_id)
            except Exception as exc:
                last_error.append(exc)
                raise
            return loaded

        def on_retry(_attempt: int, _exc: BaseException) -> None:
            run.advance(ValidationState.RETRYING)

        result = await with_retry(
            check,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self._sleep,
            on_retry=on_retry,
        )

        if result.success and result.result is not None:
            run.advance(ValidationState.SUCCEEDED)
            return await self._succeed(model_id, base, result.result, result.attempts)

        run.advance(ValidationState.FAILED)
        return await self._fail(model_id, base, result.error or "Validation operation failed", result.attempts)

    # ── Outcomes ───────────────────────────────────────────────────────────────

    async def _succeed(self, model_id: str, base: str, loaded: List[str], attempts: int) -> ValidationSuccess:
        stats = self.cache.get_stats()
        entry = stats.entry(base)
        age = entry.age if entry is not None else 0.0

        hint: Optional[str] = None
        if len(loaded) > 1:
            hint = (
                f"Note: {len(loaded)} models loaded. "
                "Consider unloading unused models for better performance."
            )
        elif age > self.freshness_threshold:
            hint = f"Cache is {round(age)}s old. Consider refreshing if model status seems outdated."

        await self.notifier.success(f"Model '{model_id}' is ready to use", "Model Validated")
        logger.debug("Model %s validated at %s after %d attempt(s)", model_id, base, attempts)
        return ValidationSuccess(
            model=model_id,
            loaded_models=loaded,
            message=f"Model '{model_id}' is loaded and ready.",
            cache_info=CacheInfo(age=age, valid=self.cache.is_valid(base), total_entries=stats.size),
            performance_hint=hint,
            attempts=attempts,
        )

    async def _fail(self, model_id: str, base: str, error: str, attempts: int) -> ValidationFailure:
        category = classify_error(error, base_url=base, model_id=model_id)
        logger.warning(
            "Model validation failed for %s at %s: %s (kind=%s, severity=%s)",
            model_id,
            base,
            error,
            category.kind.value,
            category.severity.value,
        )

        available: List[str] = []
        try:
            available = await self.get_loaded_models(base)
        except Exception as exc:
            logger.warning("Could not list models at %s for suggestions: %s", base, exc)

        await self.notifier.error(
            f"Model '{model_id}' not ready: {category.message}",
            "Model Validation Failed",
            8.0,
        )
        return ValidationFailure(
            model=model_id,
            error_kind=category.kind,
            severity=category.severity,
            message=category.message,
            can_retry=category.can_retry,
            auto_fix_available=category.auto_fix_available,
            suggestions=generate_auto_fix_suggestions(category),
            steps=remediation_steps(category),
            available_models=available,
            similar_models=rank_similar_models(model_id, available),
            cache=self.cache.get_stats(),
            attempts=attempts,
            raw_error=error,
        )
