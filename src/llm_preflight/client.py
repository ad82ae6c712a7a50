"""
client.py — Remote model source client for llm-preflight.

Responsibilities:
  • Normalise base URLs so ``http://host:1234``, ``http://host:1234/`` and
    ``http://host:1234/v1`` all address the same server
  • Fetch ``/v1/models`` with a fixed, short timeout
  • Surface timeouts, connection failures and HTTP errors as distinct
    exception types (the validation path classifies them later)
  • Cheap reachability probe and sequential auto-detection across the
    usual local inference ports

Dependencies: httpx (async HTTP), cachetools (TTL memo of the detected URL)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Optional

import httpx
from cachetools import TTLCache
from pydantic import ValidationError

from llm_preflight.config import MODELS_ENDPOINT, settings
from llm_preflight.models import ModelInfo, ModelsResponse
from llm_preflight.schema import validate_models_response

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════════
# Errors
# ══════════════════════════════════════════════════════════════════════════════


class ModelSourceError(Exception):
    """Base class for every failure talking to the model source.

    The message describes the failure only; the address lives in ``url``.
    """

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class ModelSourceTimeout(ModelSourceError):
    pass


class ModelSourceUnavailable(ModelSourceError):
    pass


class ModelSourceHTTPError(ModelSourceError):
    def __init__(self, status_code: int, reason: str, url: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {reason}", url)
        self.status_code = status_code


class ModelSourceResponseError(ModelSourceError):
    pass


# ══════════════════════════════════════════════════════════════════════════════
# URL helpers
# ══════════════════════════════════════════════════════════════════════════════


def normalize_base_url(base_url: Optional[str] = None) -> str:
    """Strip trailing slashes and a trailing ``/v1`` segment."""
    normalized = (base_url or settings.default_base_url).rstrip("/")
    if normalized.endswith("/v1"):
        normalized = normalized[: -len("/v1")]
    return normalized


def build_api_url(base_url: Optional[str], endpoint: str = MODELS_ENDPOINT) -> str:
    return f"{normalize_base_url(base_url)}{endpoint}"


# ══════════════════════════════════════════════════════════════════════════════
# ModelSourceClient
# ══════════════════════════════════════════════════════════════════════════════


class ModelSourceClient:
    """
    Talks to an OpenAI-compatible ``/v1/models`` endpoint.

    Usage::

        client = ModelSourceClient()
        ids = await client.fetch_model_ids("http://127.0.0.1:1234/v1")
        if await client.check_health(base):
            ...
        base = await client.auto_detect()   # None when nothing answers
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        candidate_ports: Optional[Iterable[int]] = None,
        detect_ttl: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = float(timeout if timeout is not None else settings.fetch_timeout)
        self.candidate_ports = tuple(candidate_ports or settings.candidate_ports)
        ttl = detect_ttl if detect_ttl is not None else settings.detect_ttl
        self._detected: TTLCache = TTLCache(maxsize=8, ttl=ttl, timer=time.monotonic)
        # Injected in tests (httpx.MockTransport); None means real network
        self._transport = transport

    # ── Public interface ───────────────────────────────────────────────────────

    async def fetch_model_ids(self, base_url: Optional[str] = None) -> List[str]:
        """Return the ids of the models the server currently exposes."""
        return [m.id for m in await self.discover_models(base_url)]

    async def discover_models(self, base_url: Optional[str] = None) -> List[ModelInfo]:
        """Return full model records; raises ModelSourceError on any failure."""
        url = build_api_url(base_url)
        payload = await self._fetch_json(url)
        check = validate_models_response(payload)
        if not check.is_valid:
            raise ModelSourceResponseError(
                f"Malformed model list: {'; '.join(check.errors)}", url
            )
        for warning in check.warnings:
            logger.debug("%s: %s", url, warning)
        try:
            parsed = ModelsResponse.model_validate(payload)
        except ValidationError as exc:
            raise ModelSourceResponseError(f"Malformed model list: {exc}", url) from exc
        logger.debug("Discovered %d models at %s", len(parsed.data), url)
        return parsed.data

    async def check_health(self, base_url: Optional[str] = None) -> bool:
        """Reachability only: True iff the models endpoint answers 2xx."""
        url = build_api_url(base_url)
        try:
            async with self._client() as client:
                r = await client.get(url)
            return r.is_success
        except httpx.HTTPError as exc:
            logger.debug("Health check failed for %s: %s", url, exc)
            return False

    async def auto_detect(self, ports: Optional[Iterable[int]] = None) -> Optional[str]:
        """Probe candidate ports in order; first reachable base URL wins."""
        candidates = tuple(ports or self.candidate_ports)
        cached = self._detected.get(candidates)
        if cached is not None:
            return cached

        for port in candidates:
            base_url = f"http://127.0.0.1:{port}"
            if await self.check_health(base_url):
                logger.info("Auto-detected local model server at %s", base_url)
                self._detected[candidates] = base_url
                return base_url
        logger.debug("No local model server on ports %s", ", ".join(map(str, candidates)))
        return None

    def forget_detected(self) -> None:
        self._detected.clear()

    # ── Internal ───────────────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Content-Type": "application/json"},
        )

    async def _fetch_json(self, url: str) -> Any:
        try:
            async with self._client() as client:
                r = await client.get(url)
        except httpx.TimeoutException as exc:
            raise ModelSourceTimeout(
                f"Request timeout after {self.timeout:g}s", url
            ) from exc
        except httpx.TransportError as exc:
            raise ModelSourceUnavailable(
                f"Network error: {str(exc) or type(exc).__name__}", url
            ) from exc

        if not r.is_success:
            raise ModelSourceHTTPError(r.status_code, r.reason_phrase, url)
        try:
            return r.json()
        except ValueError as exc:
            raise ModelSourceResponseError("Invalid JSON in model list response", url) from exc
