"""Error taxonomy & redaction.

Expected hosting-platform statuses (not found, conflict) are recognised with
the ``is_*`` helpers at the call site that can act on them. Workflow-fatal
conditions have their own exception types. Everything else is classified for
logging / error-issue reporting by ``classify_error``.

Public API:
- WishError and subclasses (DocumentFormatError, MissingFieldError,
  InconsistentStateError)
- is_not_found(exc) / is_conflict(exc) / is_already_exists(exc)
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .github_rest import GitHubAPIError

HTTP_NOT_FOUND = 404
HTTP_CONFLICT_STATUSES = (409, 422)

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gh[sou]_[A-Za-z0-9]{20,40}"),  # app / oauth tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]*?-----END [A-Z ]*PRIVATE KEY-----"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class WishError(RuntimeError):
    """Base class for failures that are fatal for a single wish."""


class DocumentFormatError(WishError):
    """Existing funding file content cannot be parsed as a funding mapping."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path


class MissingFieldError(WishError):
    """A wish record lacks a required field (maintainer / repository)."""

    def __init__(self, field_name: str, *, issue_number: int | None = None):
        where = f" in issue #{issue_number}" if issue_number else ""
        super().__init__(f"Could not find {field_name}{where}")
        self.field_name = field_name
        self.issue_number = issue_number


class InconsistentStateError(WishError):
    """The platform reported a conflict but the conflicting object cannot be found."""


def _status(exc: BaseException) -> int | None:
    if isinstance(exc, GitHubAPIError):
        return exc.status
    return None


def is_not_found(exc: BaseException) -> bool:
    return _status(exc) == HTTP_NOT_FOUND


def is_conflict(exc: BaseException) -> bool:
    return _status(exc) in HTTP_CONFLICT_STATUSES


def is_already_exists(exc: BaseException) -> bool:
    """True for 409/422 responses whose payload says the object already exists."""
    if not is_conflict(exc):
        return False
    text = (getattr(exc, "response_text", None) or "").lower()
    return "already exists" in text


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Redact sensitive tokens in arbitrary text."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - DocumentFormatError -> 'funding.format'
    - MissingFieldError -> 'wish.missing_field'
    - InconsistentStateError -> 'github.inconsistent'
    - rate limit / abuse wording -> 'github.rate_limit' / 'github.abuse', transient
    - GitHubAPIError 404 / 409,422 -> 'github.not_found' / 'github.conflict'
    - other GitHubAPIError -> 'github.api'
    - network-y keywords -> 'network', transient
    - fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__
    details: dict[str, Any] | None = None
    if isinstance(exc, GitHubAPIError):
        details = {"status": exc.status}
        low = f"{low} {(exc.response_text or '').lower()}"

    if isinstance(exc, DocumentFormatError):
        return ErrorInfo("funding.format", redact(msg), name, details={"path": exc.path})
    if isinstance(exc, MissingFieldError):
        return ErrorInfo("wish.missing_field", redact(msg), name, details={"field": exc.field_name})
    if isinstance(exc, InconsistentStateError):
        return ErrorInfo("github.inconsistent", redact(msg), name)
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True, details=details)
    if "abuse" in low:
        return ErrorInfo("github.abuse", redact(msg), name, transient=True, details=details)
    if is_not_found(exc):
        return ErrorInfo("github.not_found", redact(msg), name, details=details)
    if is_conflict(exc):
        return ErrorInfo("github.conflict", redact(msg), name, details=details)
    if isinstance(exc, GitHubAPIError):
        return ErrorInfo("github.api", redact(msg), name, details=details)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "WishError",
    "DocumentFormatError",
    "MissingFieldError",
    "InconsistentStateError",
    "ErrorInfo",
    "is_not_found",
    "is_conflict",
    "is_already_exists",
    "classify_error",
    "redact",
]
