"""Processed-wish marker on the origin issue (label + sentinel comment)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .github_rest import GitHubRestClient
from .logging import get_logger
from .models import ReconcileOutcome, ReconcileStatus

PROCESSED_LABEL = "funding-yml-processed"
_SENTINEL_PREFIX = "<!-- fundingwish:processed"
_SENTINEL_RE = re.compile(r"<!-- fundingwish:processed(?: pr=(\S*))? -->")


def sentinel_for(pr_url: str | None) -> str:
    return f"{_SENTINEL_PREFIX} pr={pr_url or ''} -->"


@dataclass
class ProcessedCheck:
    processed: bool
    pr_url: str | None = None


def _label_names(issue: dict[str, Any]) -> set[str]:
    names: set[str] = set()
    for label in issue.get("labels") or []:
        if isinstance(label, dict) and isinstance(label.get("name"), str):
            names.add(label["name"])
        elif isinstance(label, str):
            names.add(label)
    return names


class ProcessedStateTracker:
    def __init__(self, client: GitHubRestClient, *, label: str = PROCESSED_LABEL):
        self.client = client
        self.label = label
        self.logger = get_logger()

    def check(
        self,
        home_repo: str,
        issue_number: int,
        *,
        issue: dict[str, Any] | None = None,
        comments: list[dict[str, Any]] | None = None,
    ) -> ProcessedCheck:
        if issue is None:
            issue = self.client.get_issue(home_repo, issue_number)
        if comments is None:
            comments = self.client.list_issue_comments(home_repo, issue_number)
        labelled = self.label in _label_names(issue)
        for comment in comments:
            m = _SENTINEL_RE.search(str(comment.get("body") or ""))
            if m:
                return ProcessedCheck(True, m.group(1) or None)
        return ProcessedCheck(labelled)

    def mark(self, home_repo: str, issue_number: int, outcome: ReconcileOutcome) -> None:
        if outcome.status is ReconcileStatus.ALREADY_LINKED:
            line = "FUNDING.yml already links this wishlist; no pull request needed."
        elif outcome.status is ReconcileStatus.EXISTING:
            line = f"Pull request already exists: {outcome.pr_url}"
        else:
            line = f"Pull request created: {outcome.pr_url}"
        self.client.create_issue_comment(
            home_repo, issue_number, f"{line}\n\n{sentinel_for(outcome.pr_url)}"
        )
        self.client.add_labels(home_repo, issue_number, [self.label])
        self.logger.log_wish_action(
            "marked", home_repo, issue_number, pr_url=outcome.pr_url
        )


__all__ = ["ProcessedStateTracker", "ProcessedCheck", "PROCESSED_LABEL", "sentinel_for"]
