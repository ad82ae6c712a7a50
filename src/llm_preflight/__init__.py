"""Public package surface for llm_preflight.

Expose the primary entry points used by consumers of the package.
"""

__version__ = "0.1.0"

from llm_preflight.cache import ModelStatusCache
from llm_preflight.classifier import classify_error, generate_auto_fix_suggestions
from llm_preflight.client import ModelSourceClient, ModelSourceError, normalize_base_url
from llm_preflight.config import settings
from llm_preflight.models import (
    ErrorCategory,
    ErrorKind,
    Severity,
    SimilarityCandidate,
    ValidationFailure,
    ValidationOutcome,
    ValidationSuccess,
)
from llm_preflight.monitor import ModelLoadingMonitor
from llm_preflight.notifier import Notifier
from llm_preflight.retry import with_retry
from llm_preflight.service import PreflightService
from llm_preflight.similarity import rank_similar_models
from llm_preflight.validation import ModelValidator

__all__ = [
    "ErrorCategory",
    "ErrorKind",
    "ModelLoadingMonitor",
    "ModelSourceClient",
    "ModelSourceError",
    "ModelStatusCache",
    "ModelValidator",
    "Notifier",
    "PreflightService",
    "Severity",
    "SimilarityCandidate",
    "ValidationFailure",
    "ValidationOutcome",
    "ValidationSuccess",
    "__version__",
    "classify_error",
    "generate_auto_fix_suggestions",
    "normalize_base_url",
    "rank_similar_models",
    "settings",
    "with_retry",
]
