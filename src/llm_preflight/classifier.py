"""
classifier.py — Maps raw validation failures to an error taxonomy.

Classification is case-insensitive substring matching on the stringified
error, first match wins:

  econnrefused / fetch failed / network  → offline     (critical)
  timeout / aborted                      → timeout     (medium)
  404 / not found                        → not_found   (high)
  401 / 403 / unauthorized               → permission  (high)
  anything else                          → unknown     (medium)

Message formats depend on the transport, so keep every caller behind
``classify_error``; typed causes can replace the patterns here without
touching them. Pure functions, no I/O.
"""

from __future__ import annotations

from typing import List, Tuple

from llm_preflight.models import AutoFixSuggestion, ErrorCategory, ErrorKind, Severity

_PATTERNS: Tuple[Tuple[ErrorKind, Tuple[str, ...]], ...] = (
    (ErrorKind.OFFLINE, ("econnrefused", "fetch failed", "network")),
    (ErrorKind.TIMEOUT, ("timeout", "aborted")),
    (ErrorKind.NOT_FOUND, ("404", "not found")),
    (ErrorKind.PERMISSION, ("401", "403", "unauthorized")),
)

# kind → (severity, can_retry, auto_fix_available)
_POLICY = {
    ErrorKind.OFFLINE:    (Severity.CRITICAL, True, True),
    ErrorKind.TIMEOUT:    (Severity.MEDIUM, True, False),
    ErrorKind.NOT_FOUND:  (Severity.HIGH, False, False),
    ErrorKind.PERMISSION: (Severity.HIGH, False, False),
    ErrorKind.NETWORK:    (Severity.CRITICAL, True, True),
    ErrorKind.UNKNOWN:    (Severity.MEDIUM, True, False),
}

_MESSAGES = {
    ErrorKind.OFFLINE: (
        "Cannot connect to the model server at {base_url}. "
        "Ensure it is running and its server is active."
    ),
    ErrorKind.NETWORK: "Network problem while contacting the model server at {base_url}.",
    ErrorKind.TIMEOUT: (
        "Request to the model server at {base_url} timed out. "
        "This might happen with large models or slow systems."
    ),
    ErrorKind.NOT_FOUND: "Model '{model_id}' not found. Check if the model is installed.",
    ErrorKind.PERMISSION: (
        "Authentication or permission issue with the model server at {base_url}. "
        "Check your configuration."
    ),
    ErrorKind.UNKNOWN: "Unexpected error: {error}",
}


def detect_kind(error: object) -> ErrorKind:
    text = str(error).lower()
    for kind, needles in _PATTERNS:
        if any(n in text for n in needles):
            return kind
    return ErrorKind.UNKNOWN


def category_for(kind: ErrorKind, base_url: str = "", model_id: str = "", error: object = "") -> ErrorCategory:
    severity, can_retry, auto_fix = _POLICY[kind]
    message = _MESSAGES[kind].format(
        base_url=base_url, model_id=model_id, error=str(error).lower()
    )
    return ErrorCategory(
        kind=kind,
        severity=severity,
        message=message,
        can_retry=can_retry,
        auto_fix_available=auto_fix,
    )


def classify_error(error: object, base_url: str = "", model_id: str = "") -> ErrorCategory:
    """Classify ``error`` (exception or message) in the context of a request."""
    return category_for(detect_kind(error), base_url=base_url, model_id=model_id, error=error)


def generate_auto_fix_suggestions(category: ErrorCategory) -> List[AutoFixSuggestion]:
    if category.kind in (ErrorKind.OFFLINE, ErrorKind.NETWORK):
        return [
            AutoFixSuggestion(
                action="Check if the model server is running",
                steps=[
                    "1. Open the model server application",
                    "2. Verify the server is started (green indicator)",
                    "3. Check the server URL and port",
                    "4. Ensure the server is not blocked by a firewall",
                ],
            ),
            AutoFixSuggestion(
                action="Try alternative ports",
                steps=[
                    "1. Check if the server is running on a different port",
                    "2. Common ports: 1234, 8080, 11434",
                    "3. Update your configuration with the correct port",
                ],
            ),
        ]
    if category.kind is ErrorKind.NOT_FOUND:
        return [
            AutoFixSuggestion(
                action="Browse and install model",
                steps=[
                    "1. Open the model server application",
                    "2. Search for your desired model",
                    "3. Download it and wait for completion",
                    "4. Load the model after download",
                ],
            )
        ]
    if category.kind is ErrorKind.TIMEOUT:
        return [
            AutoFixSuggestion(
                action="Increase timeout or use smaller model",
                steps=[
                    "1. Try a smaller model version",
                    "2. Increase the request timeout in your settings",
                    "3. Close other applications to free up system resources",
                ],
            )
        ]
    return []


def remediation_steps(category: ErrorCategory) -> List[str]:
    if category.kind is ErrorKind.NOT_FOUND:
        return [
            "1. Open the model server application",
            "2. Search for your desired model",
            "3. Download it and wait for completion",
            "4. Load the model after download",
            "5. Ensure the server is running",
            "6. Try your request again",
        ]
    return [
        "1. Open the model server application",
        "2. Verify the server is active (green indicator)",
        "3. Check the server URL and port",
        "4. Try loading the model manually",
        "5. Retry your request",
    ]
