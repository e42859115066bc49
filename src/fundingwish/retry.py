"""Centralized retry / backoff helpers.

Provides a single small function ``run_with_retries`` that encapsulates
exponential backoff with jitter and simple classification of transient
GitHub REST failure modes (rate limit / abuse / secondary rate limits).

Environment overrides:
  FUNDINGWISH_RETRY_ATTEMPTS (default 3)
  FUNDINGWISH_RETRY_BASE (seconds base, default 0.5)
  FUNDINGWISH_RETRY_MAX_SLEEP (optional cap in seconds)

The caller supplies a thunk returning a ``requests.Response``. Only
responses classified as transient are retried; anything else (including
ordinary 4xx/5xx failures) is handed back to the caller unchanged so the
usual error taxonomy applies. This never retries a fatal workflow error.
A 429 is always transient; a 403 only with ``Retry-After`` or rate-limit
wording.
"""

from __future__ import annotations

import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import requests

from .logging import get_logger

TRANSIENT_TOKENS = (
    "rate limit",
    "abuse detection",
    "secondary rate",
)
TRANSIENT_STATUSES = (403, 429)
HTTP_TOO_MANY_REQUESTS = 429

_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from error output.

    Supports patterns like:
      Retry-After: 12
      retry after 12
      wait 30 seconds
    Returns None if no valid positive value found.
    """
    if not text:
        return None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


@dataclass
class RetryConfig:
    attempts: int = field(
        default_factory=lambda: int(os.environ.get("FUNDINGWISH_RETRY_ATTEMPTS", "3"))
    )
    base_sleep: float = field(
        default_factory=lambda: float(os.environ.get("FUNDINGWISH_RETRY_BASE", "0.5"))
    )


def is_transient(output: str) -> bool:
    out_lower = output.lower()
    return any(tok in out_lower for tok in TRANSIENT_TOKENS)


def _response_hint(response: requests.Response) -> str:
    retry_after = response.headers.get("Retry-After") if response.headers else None
    text = response.text or ""
    if retry_after:
        return f"Retry-After: {retry_after}\n{text}"
    return text


def is_transient_response(response: requests.Response) -> bool:
    if response.status_code not in TRANSIENT_STATUSES:
        return False
    if response.status_code == HTTP_TOO_MANY_REQUESTS:
        return True
    if response.headers and response.headers.get("Retry-After"):
        return True
    return is_transient(response.text or "")


def _compute_sleep(attempt: int, cfg: RetryConfig, out: str) -> float:
    explicit = _extract_explicit_backoff(out)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("FUNDINGWISH_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:  # pragma: no cover
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(
    fn: Callable[[], requests.Response],
    *,
    cfg: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    response = fn()
    attempt = 1
    while attempt < attempts and is_transient_response(response):
        sleep_for = _compute_sleep(attempt, cfg, _response_hint(response))
        get_logger().warning(
            f"[retry] transient error, attempt {attempt}/{attempts}, sleeping {sleep_for:.2f}s",
            status=response.status_code,
        )
        sleep(sleep_for)
        attempt += 1
        response = fn()
    return response


__all__ = ["RetryConfig", "run_with_retries", "is_transient", "is_transient_response"]
