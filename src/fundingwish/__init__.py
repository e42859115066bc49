"""fundingwish - open one FUNDING.yml pull request per wishlist request.

High-level public API:

from fundingwish import GitHubRestClient, PullRequestReconciler, parse_wish

client = GitHubRestClient(token=token)
wish = parse_wish(issue_payload)
outcome = PullRequestReconciler(client).reconcile(wish, bot_login="wishlist-bot")
print(outcome.status, outcome.pr_url)

The ``fundingwish`` CLI (``run`` / ``process`` / ``preview``) wraps the same
objects with configuration, the processed-marker bookkeeping and error
reporting.
"""

from __future__ import annotations

from .config import WishConfig, load_config
from .errors import DocumentFormatError, InconsistentStateError, MissingFieldError, WishError
from .funding import funding_contains, merge_funding
from .github_rest import GitHubAPIError, GitHubRestClient
from .models import (
    Fork,
    FundingFile,
    PullRequestRecord,
    ReconcileOutcome,
    ReconcileStatus,
    WishRequest,
)
from .parser import parse_wish
from .reconciler import PullRequestReconciler

__version__ = "0.3.0"

__all__ = [
    "WishConfig",
    "load_config",
    "WishError",
    "DocumentFormatError",
    "MissingFieldError",
    "InconsistentStateError",
    "GitHubAPIError",
    "GitHubRestClient",
    "merge_funding",
    "funding_contains",
    "Fork",
    "FundingFile",
    "PullRequestRecord",
    "ReconcileOutcome",
    "ReconcileStatus",
    "WishRequest",
    "parse_wish",
    "PullRequestReconciler",
    "__version__",
]
