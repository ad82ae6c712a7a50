"""
models.py — Pydantic schemas and runtime dataclasses for llm-preflight.

Three layers:
  1. Wire schemas for the remote ``/v1/models`` endpoint
  2. Outcome / report schemas surfaced to hooks and the HTTP API
  3. Runtime state objects (CacheEntry, RetryResult, ModelLoadingState)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")


# ══════════════════════════════════════════════════════════════════════════════
# Enumerations
# ══════════════════════════════════════════════════════════════════════════════


class ErrorKind(str, Enum):
    OFFLINE    = "offline"
    TIMEOUT    = "timeout"
    NOT_FOUND  = "not_found"
    PERMISSION = "permission"
    NETWORK    = "network"
    UNKNOWN    = "unknown"


class Severity(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"


class ModelType(str, Enum):
    CHAT      = "chat"
    EMBEDDING = "embedding"
    UNKNOWN   = "unknown"


class LoadingStatus(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING    = "loading"
    LOADED     = "loaded"
    ERROR      = "error"


class ValidationState(str, Enum):
    NOT_STARTED = "not_started"
    CHECKING    = "checking"
    RETRYING    = "retrying"
    SUCCEEDED   = "succeeded"
    FAILED      = "failed"


# ══════════════════════════════════════════════════════════════════════════════
# Remote /v1/models wire format
# ══════════════════════════════════════════════════════════════════════════════


class ModelInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    object: str = "model"
    created: Optional[int] = None
    owned_by: Optional[str] = None


class ModelsResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    object: str = "list"
    data: List[ModelInfo] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def missing_data_is_empty(cls, v: Any) -> Any:
        # A server with nothing loaded may send null instead of []
        return [] if v is None else v


# ══════════════════════════════════════════════════════════════════════════════
# Reports (camelCase on the wire, snake_case in Python)
# ══════════════════════════════════════════════════════════════════════════════


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class ErrorCategory(_CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=(), frozen=True
    )

    kind: ErrorKind
    severity: Severity
    message: str
    can_retry: bool
    auto_fix_available: bool


class AutoFixSuggestion(_CamelModel):
    action: str
    command: Optional[str] = None
    steps: List[str] = Field(default_factory=list)
    automated: bool = False


class SimilarityCandidate(_CamelModel):
    model_id: str
    score: float = Field(gt=0.0, le=1.0)
    matched_reasons: List[str] = Field(default_factory=list)

    @property
    def reason(self) -> str:
        return ", ".join(self.matched_reasons)


class CacheEntryStats(_CamelModel):
    key: str
    age: float
    model_count: int
    ttl: float


class CacheStats(_CamelModel):
    size: int
    entries: List[CacheEntryStats] = Field(default_factory=list)

    def entry(self, key: str) -> Optional[CacheEntryStats]:
        return next((e for e in self.entries if e.key == key), None)


class CacheInfo(_CamelModel):
    age: float
    valid: bool
    total_entries: int


class ValidationSuccess(_CamelModel):
    status: Literal["success"] = "success"
    model: str
    loaded_models: List[str] = Field(default_factory=list)
    message: str
    cache_info: Optional[CacheInfo] = None
    performance_hint: Optional[str] = None
    attempts: int = 1


class ValidationFailure(_CamelModel):
    status: Literal["error"] = "error"
    model: str
    error_kind: ErrorKind
    severity: Severity
    message: str
    can_retry: bool
    auto_fix_available: bool
    suggestions: List[AutoFixSuggestion] = Field(default_factory=list)
    steps: List[str] = Field(default_factory=list)
    available_models: List[str] = Field(default_factory=list)
    similar_models: List[SimilarityCandidate] = Field(default_factory=list)
    cache: Optional[CacheStats] = None
    attempts: int = 0
    raw_error: Optional[str] = None


ValidationOutcome = Annotated[
    Union[ValidationSuccess, ValidationFailure],
    Field(discriminator="status"),
]


class ValidateRequest(_CamelModel):
    model_id: str = Field(min_length=1)
    base_url: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════════
# Runtime state
# ══════════════════════════════════════════════════════════════════════════════


@dataclass
class CacheEntry:
    """A model-id snapshot for one base URL. ``models`` never leaves the cache."""
    key: str
    models: List[str]
    fetched_at: float
    ttl: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)

    def is_fresh(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl

    def snapshot(self) -> List[str]:
        return list(self.models)


@dataclass
class RetryResult(Generic[T]):
    success: bool
    result: Optional[T] = None
    error: Optional[str] = None
    exception: Optional[BaseException] = None
    attempts: int = 0


@dataclass
class ModelLoadingState:
    status: LoadingStatus = LoadingStatus.NOT_LOADED
    start_time: Optional[float] = None
    progress: Optional[float] = None
    eta: Optional[float] = None
    error: Optional[str] = None
    base_url: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "startTime": self.start_time,
            "progress": self.progress,
            "eta": self.eta,
            "error": self.error,
            "baseURL": self.base_url,
        }


@dataclass
class ValidationRun:
    """State trail of a single validation request."""
    model_id: str
    base_url: str
    state: ValidationState = ValidationState.NOT_STARTED
    history: List[ValidationState] = field(default_factory=lambda: [ValidationState.NOT_STARTED])

    def advance(self, state: ValidationState) -> None:
        if self.state in (ValidationState.SUCCEEDED, ValidationState.FAILED):
            raise RuntimeError(f"validation run already terminal ({self.state.value})")
        self.state = state
        self.history.append(state)
