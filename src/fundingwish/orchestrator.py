"""Per-wish workflow and the labelled-issue batch runner.

``process_wish`` is the top-level error boundary for one wish: expected
platform statuses are handled deeper down, anything that reaches this level
is logged, reported to the operator repository (best-effort) and turned into
a ``failed`` result. Wishes never share mutable state, so one failing wish
does not affect the others in a batch.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypedDict

from .config import WishConfig
from .errors import classify_error, redact
from .forks import ForkAndBranchManager
from .github_rest import GitHubRestClient
from .logging import get_logger
from .models import WishRequest
from .parser import parse_wish
from .probe import RepositoryStateProbe
from .reconciler import PullRequestReconciler
from .reporting import ping_cache_refresh, report_failure
from .tracker import ProcessedStateTracker

STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


@dataclass
class WorkflowContext:
    client: GitHubRestClient
    config: WishConfig
    home_repo: str
    bot_login: str
    dry_run: bool = False
    sleep: Callable[[float], None] = time.sleep
    reconciler: PullRequestReconciler = field(init=False)
    tracker: ProcessedStateTracker = field(init=False)

    def __post_init__(self) -> None:
        probe = RepositoryStateProbe(
            self.client,
            funding_paths=self.config.funding_paths,
            per_page=self.config.pr_scan_per_page,
            max_pages=self.config.pr_scan_pages,
        )
        forks = ForkAndBranchManager(
            self.client, settle_seconds=self.config.fork_settle_seconds, sleep=self.sleep
        )
        self.reconciler = PullRequestReconciler(self.client, probe=probe, forks=forks)
        self.tracker = ProcessedStateTracker(self.client, label=self.config.processed_label)


@dataclass
class WishResult:
    issue_number: int
    status: str  # ReconcileStatus value, skipped or failed
    pr_url: str | None = None
    target: str | None = None
    error: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)


class BatchSummary(TypedDict):
    total: int
    counts: dict[str, int]
    failed: list[int]


def build_context(
    cfg: WishConfig,
    token: str,
    *,
    home_repo: str | None = None,
    dry_run: bool | None = None,
    client: GitHubRestClient | None = None,
) -> WorkflowContext:
    client = client or GitHubRestClient(token=token, base_url=cfg.api_url)
    bot_login = cfg.bot_login or client.get_authenticated_login()
    return WorkflowContext(
        client=client,
        config=cfg,
        home_repo=home_repo or cfg.wishlists_repo,
        bot_login=bot_login,
        dry_run=cfg.dry_run_default if dry_run is None else dry_run,
    )


def process_wish(ctx: WorkflowContext, issue: dict[str, Any]) -> WishResult:
    logger = get_logger()
    number = int(issue.get("number") or 0)
    wish: WishRequest | None = None
    try:
        comments = ctx.client.list_issue_comments(ctx.home_repo, number)
        check = ctx.tracker.check(ctx.home_repo, number, issue=issue, comments=comments)
        if check.processed:
            logger.log_wish_action("skipped", ctx.home_repo, number, pr_url=check.pr_url)
            return WishResult(number, STATUS_SKIPPED, pr_url=check.pr_url)

        wish = parse_wish(issue, updates=[str(c.get("body") or "") for c in comments])
        outcome = ctx.reconciler.reconcile(wish, ctx.bot_login, dry_run=ctx.dry_run)
        if not ctx.dry_run:
            ctx.tracker.mark(ctx.home_repo, number, outcome)
            ping_cache_refresh(
                ctx.config.cache_refresh_url,
                {"issue": number, "pr_url": outcome.pr_url, "status": outcome.status.value},
            )
        return WishResult(
            number,
            outcome.status.value,
            pr_url=outcome.pr_url,
            target=wish.target_slug,
            detail=dict(outcome.detail),
        )
    except Exception as exc:  # top-level boundary for this wish
        info = classify_error(exc)
        logger.log_error(
            f"wish #{number} failed: {info.message}",
            error=info.category,
            issue_number=number,
        )
        if not ctx.dry_run:
            report_failure(ctx.client, ctx.config.error_sink_repo, ctx.home_repo, number, exc, wish)
        return WishResult(
            number,
            STATUS_FAILED,
            target=wish.target_slug if wish is not None else None,
            error=redact(str(exc)),
        )


def process_issue_number(ctx: WorkflowContext, issue_number: int) -> WishResult:
    issue = ctx.client.get_issue(ctx.home_repo, issue_number)
    return process_wish(ctx, issue)


def summarize(results: list[WishResult]) -> BatchSummary:
    counts: dict[str, int] = {}
    for result in results:
        counts[result.status] = counts.get(result.status, 0) + 1
    return {
        "total": len(results),
        "counts": counts,
        "failed": [r.issue_number for r in results if r.status == STATUS_FAILED],
    }


def run_batch(ctx: WorkflowContext) -> list[WishResult]:
    logger = get_logger()
    results: list[WishResult] = []
    with logger.timed_operation("batch", target=ctx.home_repo, dry_run=ctx.dry_run):
        issues = ctx.client.list_issues(
            ctx.home_repo, labels=[ctx.config.trigger_label], state="open"
        )
        logger.info(
            f"Found {len(issues)} issues with label: {ctx.config.trigger_label}",
            target=ctx.home_repo,
        )
        for issue in issues:
            results.append(process_wish(ctx, issue))
        summary = summarize(results)
        logger.log_operation("batch_summary", **summary)
    return results


__all__ = [
    "WorkflowContext",
    "WishResult",
    "BatchSummary",
    "build_context",
    "process_wish",
    "process_issue_number",
    "run_batch",
    "summarize",
    "STATUS_SKIPPED",
    "STATUS_FAILED",
]
