"""
server.py — FastAPI application exposing the pre-flight core over HTTP.

  GET  /                      — liveness
  GET  /health                — is the default model server reachable?
  GET  /models                — model ids (through the status cache)
  POST /validate              — full validation outcome for one model
  GET  /cache/stats           — cache diagnostics
  POST /admin/cache/clear     — drop one or all cache entries
  POST /admin/cache/refresh   — force a refetch for one base URL
  POST /monitor               — start polling until a model has loaded
  GET  /monitor               — loading states of monitored models
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from llm_preflight import __version__
from llm_preflight.classifier import classify_error
from llm_preflight.client import ModelSourceError, normalize_base_url
from llm_preflight.config import settings
from llm_preflight.models import ValidateRequest
from llm_preflight.service import PreflightService

logger = logging.getLogger(__name__)

# ── Singleton service instance ────────────────────────────────────────────────
_service: PreflightService | None = None  # pylint: disable=invalid-name


def get_service() -> PreflightService:
    """Return the process-wide PreflightService.

    Raises RuntimeError if the service has not been initialised via the
    FastAPI lifespan manager.
    """
    if _service is None:
        raise RuntimeError("Service not initialised — check lifespan startup")
    return _service


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # pylint: disable=global-statement
    global _service
    if _service is None:
        _service = PreflightService()
        logger.info("Preflight service started (default server %s)", settings.default_base_url)
    try:
        yield
    finally:
        try:
            if _service is not None:
                await _service.aclose()
                logger.info("Preflight service stopped")
        except Exception:
            logger.exception("Error while stopping preflight service during shutdown")


app = FastAPI(
    title="LLM Preflight",
    version=__version__,
    description=(
        "Discovery, caching and pre-flight validation for a local"
        " OpenAI-compatible model server."
    ),
    lifespan=lifespan,
)


def _source_error(exc: ModelSourceError, base_url: str) -> HTTPException:
    category = classify_error(exc, base_url=base_url)
    return HTTPException(
        status_code=502,
        detail=category.model_dump(by_alias=True, mode="json"),
    )


# ══════════════════════════════════════════════════════════════════════════════
# Routes
# ══════════════════════════════════════════════════════════════════════════════


@app.get("/")
async def root() -> dict[str, Any]:
    return {"status": "ok", "service": "llm-preflight", "version": __version__}


@app.get("/health")
async def health(base_url: str | None = Query(None)) -> dict[str, Any]:
    service = get_service()
    base = normalize_base_url(base_url)
    reachable = await service.client.check_health(base)
    return {
        "status": "healthy" if reachable else "degraded",
        "baseURL": base,
        "reachable": reachable,
        "cacheEntries": len(service.cache),
    }


@app.get("/models")
async def list_models(base_url: str | None = Query(None)) -> dict[str, Any]:
    service = get_service()
    base = normalize_base_url(base_url)
    try:
        models = await service.get_loaded_models(base)
    except ModelSourceError as exc:
        raise _source_error(exc, base) from exc
    return {
        "object": "list",
        "baseURL": base,
        "data": models,
        "cacheValid": service.cache.is_valid(base),
    }


@app.post("/validate")
async def validate(request: ValidateRequest) -> JSONResponse:
    outcome = await get_service().validate(request.model_id, request.base_url)
    return JSONResponse(outcome.model_dump(by_alias=True, mode="json"))


@app.get("/cache/stats")
async def cache_stats() -> dict[str, Any]:
    return get_service().cache_stats().model_dump(by_alias=True)


@app.post("/admin/cache/clear")
async def clear_cache(base_url: str | None = Query(None)) -> dict[str, Any]:
    service = get_service()
    if base_url:
        service.cache.invalidate(normalize_base_url(base_url))
    else:
        service.cache.invalidate_all()
    return {"status": "cleared", "size": len(service.cache)}


@app.post("/admin/cache/refresh")
async def refresh_cache(base_url: str | None = Query(None)) -> dict[str, Any]:
    service = get_service()
    base = normalize_base_url(base_url)
    try:
        models = await service.refresh(base)
    except ModelSourceError as exc:
        raise _source_error(exc, base) from exc
    return {"status": "refreshed", "baseURL": base, "data": models}


@app.post("/monitor")
async def start_monitor(request: ValidateRequest) -> dict[str, Any]:
    service = get_service()
    base = normalize_base_url(request.base_url)
    started = service.monitor.start_monitoring(request.model_id, base)
    state = service.monitor.get_state(request.model_id)
    return {"started": started, "state": state.as_dict() if state else None}


@app.get("/monitor")
async def monitor_states() -> dict[str, Any]:
    states = get_service().monitor.get_all_states()
    return {"states": {model_id: s.as_dict() for model_id, s in states.items()}}


# ══════════════════════════════════════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════════════════════════════════════


def main() -> None:
    import argparse

    import uvicorn
    from dotenv import load_dotenv

    # .env is loaded at process start only; importing this module has no side effects
    load_dotenv(override=False)

    parser = argparse.ArgumentParser(description="Start the LLM Preflight server.")
    parser.add_argument("--host", default=settings.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind to")
    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.debug,
        help="Enable reload/debug mode",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    uvicorn.run(
        "llm_preflight.server:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
