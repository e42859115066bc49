"""Best-effort side channels: operator error issues and the cache refresh ping.

Neither function raises. A failure here is logged and dropped so it can never
mask the error (or success) being reported.
"""

from __future__ import annotations

from typing import Any

import requests

from .errors import classify_error, redact
from .github_rest import GitHubAPIError, GitHubRestClient
from .logging import get_logger
from .models import WishRequest

ERROR_LABEL = "automation-error"


def format_error_issue(
    home_repo: str,
    issue_number: int,
    exc: BaseException,
    wish: WishRequest | None = None,
) -> tuple[str, str]:
    info = classify_error(exc)
    target = wish.target_slug if wish is not None else "unknown repository"
    title = f"Funding PR automation failed for {target} (#{issue_number})"
    lines = [
        f"Processing wish {home_repo}#{issue_number} failed.",
        "",
        f"- Target: `{target}`",
        f"- Category: `{info.category}`",
        f"- Error type: `{info.original_type}`",
    ]
    if wish is not None:
        lines.append(f"- Wishlist: {wish.wishlist_url}")
    if info.details:
        details = ", ".join(f"{k}={v}" for k, v in sorted(info.details.items()))
        lines.append(f"- Details: {redact(details)}")
    lines.extend(["", "```", info.message or "(no message)", "```", ""])
    lines.append("Re-run the workflow once the cause is fixed; processing is idempotent.")
    return title, "\n".join(lines)


def report_failure(
    client: GitHubRestClient,
    error_repo: str,
    home_repo: str,
    issue_number: int,
    exc: BaseException,
    wish: WishRequest | None = None,
) -> str | None:
    """Open an issue in ``error_repo`` describing ``exc``; return its URL."""
    logger = get_logger()
    title, body = format_error_issue(home_repo, issue_number, exc, wish)
    try:
        created = client.create_issue(error_repo, title=title, body=body, labels=[ERROR_LABEL])
    except (GitHubAPIError, requests.RequestException) as report_exc:
        logger.log_error(
            f"could not report failure of #{issue_number} to {error_repo}",
            error=redact(str(report_exc)),
            issue_number=issue_number,
        )
        return None
    url = created.get("html_url")
    logger.log_operation("failure_reported", issue_number=issue_number, report_url=url)
    return url if isinstance(url, str) else None


def ping_cache_refresh(
    refresh_url: str | None,
    payload: dict[str, Any],
    *,
    session: requests.Session | None = None,
) -> bool:
    """POST ``payload`` to the cache refresh endpoint, if one is configured."""
    if not refresh_url:
        return False
    logger = get_logger()
    post = session.post if session is not None else requests.post
    try:
        response = post(refresh_url, json=payload, timeout=10)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning(f"cache refresh ping failed: {exc}", error=str(exc))
        return False
    logger.debug("cache refresh ping sent")
    return True


__all__ = ["format_error_issue", "report_failure", "ping_cache_refresh", "ERROR_LABEL"]
