"""
config.py — Centralised configuration for llm-preflight

Every timeout, cache bound, retry knob and discovery default lives here.
Nothing is hard-coded deeper in the stack; components receive these values
through their constructors so tests can inject their own.
"""

from __future__ import annotations

import os


def _env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key, "").lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def _env_ports(key: str, default: str) -> tuple[int, ...]:
    raw = os.getenv(key, default)
    return tuple(int(p.strip()) for p in raw.split(",") if p.strip())


class Settings:
    """
    Simple settings object populated from environment variables.
    All durations are in seconds.
    """

    # Server
    host: str = os.getenv("PREFLIGHT_HOST", "127.0.0.1")
    port: int = int(os.getenv("PREFLIGHT_PORT", "7545"))
    log_level: str = os.getenv("PREFLIGHT_LOG_LEVEL", "INFO")
    debug: bool = _env_bool("PREFLIGHT_DEBUG", False)

    # Remote model source
    default_base_url: str = os.getenv("PREFLIGHT_BASE_URL", "http://127.0.0.1:1234")
    fetch_timeout: float = float(os.getenv("PREFLIGHT_FETCH_TIMEOUT", "3.0"))
    candidate_ports: tuple[int, ...] = _env_ports("PREFLIGHT_CANDIDATE_PORTS", "1234,8080,11434")
    detect_ttl: float = float(os.getenv("PREFLIGHT_DETECT_TTL", "30.0"))

    # Model status cache
    cache_ttl: float = float(os.getenv("PREFLIGHT_CACHE_TTL", "15.0"))
    cache_max_entries: int = int(os.getenv("PREFLIGHT_CACHE_MAX_ENTRIES", "50"))
    # Entries older than stale_factor * ttl are too unreliable to keep serving
    cache_stale_factor: float = float(os.getenv("PREFLIGHT_CACHE_STALE_FACTOR", "5"))
    single_flight: bool = _env_bool("PREFLIGHT_SINGLE_FLIGHT", True)

    # Validation
    validation_retries: int = int(os.getenv("PREFLIGHT_VALIDATION_RETRIES", "2"))
    validation_base_delay: float = float(os.getenv("PREFLIGHT_VALIDATION_BASE_DELAY", "0.5"))
    freshness_threshold: float = float(os.getenv("PREFLIGHT_FRESHNESS_THRESHOLD", "20.0"))

    # Host config hook
    config_timeout: float = float(os.getenv("PREFLIGHT_CONFIG_TIMEOUT", "5.0"))
    provider_id: str = os.getenv("PREFLIGHT_PROVIDER_ID", "lmstudio")
    provider_name: str = os.getenv("PREFLIGHT_PROVIDER_NAME", "LM Studio (local)")
    provider_npm: str = os.getenv("PREFLIGHT_PROVIDER_NPM", "@ai-sdk/openai-compatible")

    # Loading monitor
    monitor_interval: float = float(os.getenv("PREFLIGHT_MONITOR_INTERVAL", "2.0"))
    monitor_timeout: float = float(os.getenv("PREFLIGHT_MONITOR_TIMEOUT", "300.0"))


settings = Settings()


MODELS_ENDPOINT = "/v1/models"
