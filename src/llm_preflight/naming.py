"""Display names and categories for discovered model ids."""

from __future__ import annotations

import re
from typing import Optional

from llm_preflight.models import ModelType

_EMBEDDING_KEYWORDS = ("embedding", "embed")
_CHAT_KEYWORDS = ("gpt", "llama", "claude", "qwen", "mistral", "gemma", "phi", "falcon")
_ACRONYMS = frozenset(["gpt", "oss", "api", "gguf", "ggml", "nomic", "vl", "it", "mlx"])

_SIZE = re.compile(r"^\d+[bkmg]$", re.IGNORECASE)
_QUANT = re.compile(r"^q\d+$", re.IGNORECASE)
_VERSION = re.compile(r"^\d+\.\d+")
_TAGGED = re.compile(r"^[a-z]\d+[a-z]$|^\d+[a-z]$", re.IGNORECASE)
_UNSAFE_KEY = re.compile(r"[^a-zA-Z0-9_-]")


def categorize_model(model_id: str) -> ModelType:
    ml = model_id.lower()
    if any(k in ml for k in _EMBEDDING_KEYWORDS):
        return ModelType.EMBEDDING
    if any(k in ml for k in _CHAT_KEYWORDS):
        return ModelType.CHAT
    return ModelType.UNKNOWN


def extract_model_owner(model_id: str) -> Optional[str]:
    """``"qwen"`` from ``"qwen/qwen3-30b"``; None when there is no owner segment."""
    owner, sep, _ = model_id.partition("/")
    return owner if sep else None


def _format_token(token: str) -> str:
    if token.lower() in _ACRONYMS:
        return token.upper()
    if _SIZE.match(token) or _QUANT.match(token):
        return token.upper()
    if _VERSION.match(token):
        return token
    if _TAGGED.match(token):
        return token.upper()
    return token[:1].upper() + token[1:].lower()


def format_model_name(model_id: str) -> str:
    """``"qwen/qwen3-30b-a3b"`` → ``"Qwen3 30B A3B"``."""
    parts = model_id.split("/")
    name = parts[1] if len(parts) > 1 else parts[0]
    return " ".join(_format_token(t) for t in re.split(r"[-_]", name) if t)


def sanitize_model_key(model_id: str) -> str:
    return _UNSAFE_KEY.sub("_", model_id)
