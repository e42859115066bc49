"""Pull request reconciliation for a single wish.

The reconciler moves a :class:`WishRequest` through a fixed sequence of
states::

    CHECK_DEDUPE -> PROBE_FUNDING -> ENSURE_FORK -> ENSURE_BRANCH
                 -> WRITE_FILE -> OPEN_PR -> DONE

with two early exits (an existing matching PR, or a funding file that
already carries the wishlist link) and one recovery path (PR creation
rejected because a PR already exists for the head branch).

The duplicate check runs before any write, and every write is keyed on
platform state (fork name, branch derived from the issue number, PR content)
so that repeated or overlapping runs for the same wish converge on a single
pull request. The only window this does not close is two first-ever runs
racing through fork creation at the same time.
"""

from __future__ import annotations

from enum import Enum

from .errors import InconsistentStateError, is_already_exists
from .forks import ForkAndBranchManager, branch_name_for
from .funding import funding_contains, merge_funding
from .github_rest import GitHubAPIError, GitHubRestClient
from .logging import get_logger
from .models import (
    Fork,
    FundingFile,
    PullRequestRecord,
    ReconcileOutcome,
    ReconcileStatus,
    WishRequest,
)
from .probe import FUNDING_PATHS, RepositoryStateProbe

PR_TITLE = "Add wishlist link to FUNDING.yml"
CREATE_COMMIT_MESSAGE = "Add FUNDING.yml with wishlist link"
UPDATE_COMMIT_MESSAGE = "Add wishlist link to FUNDING.yml"


class ReconcileState(str, Enum):
    CHECK_DEDUPE = "check_dedupe"
    PROBE_FUNDING = "probe_funding"
    ENSURE_FORK = "ensure_fork"
    ENSURE_BRANCH = "ensure_branch"
    WRITE_FILE = "write_file"
    OPEN_PR = "open_pr"
    DONE = "done"


def render_pr_body(wish: WishRequest) -> str:
    return (
        "This pull request adds a wishlist link to your FUNDING.yml so it shows up "
        "on your repository's sponsor button.\n\n"
        f"Wishlist: {wish.wishlist_url}\n"
        f"Requested by: @{wish.maintainer_handle}\n\n"
        "The link is appended to the `custom` field; no other funding entries are changed."
    )


class PullRequestReconciler:
    def __init__(
        self,
        client: GitHubRestClient,
        *,
        probe: RepositoryStateProbe | None = None,
        forks: ForkAndBranchManager | None = None,
    ):
        self.client = client
        self.probe = probe or RepositoryStateProbe(client)
        self.forks = forks or ForkAndBranchManager(client)
        self.logger = get_logger()
        self.state = ReconcileState.CHECK_DEDUPE

    def _enter(self, state: ReconcileState, wish: WishRequest) -> None:
        self.state = state
        self.logger.debug(
            f"reconcile {wish.target_slug} -> {state.value}",
            target=wish.target_slug,
            issue_number=wish.origin_issue_number,
        )

    def reconcile(
        self, wish: WishRequest, bot_login: str, *, dry_run: bool = False
    ) -> ReconcileOutcome:
        target = wish.target_slug
        branch = branch_name_for(wish.origin_issue_number)

        self._enter(ReconcileState.CHECK_DEDUPE, wish)
        existing = self.probe.find_existing_pr(target, bot_login, wish.wishlist_url)
        if existing is not None:
            self.logger.log_wish_action(
                "pr_exists", target, wish.origin_issue_number, pr_url=existing.url, dry_run=dry_run
            )
            self._enter(ReconcileState.DONE, wish)
            return ReconcileOutcome(
                ReconcileStatus.EXISTING,
                pr_url=existing.url,
                branch=existing.head_ref or branch,
                detail={"state": existing.state, "number": existing.number},
            )

        self._enter(ReconcileState.PROBE_FUNDING, wish)
        funding = self.probe.locate_funding_file(target)
        if funding is not None and funding_contains(
            funding.content, wish.wishlist_url, path=funding.path
        ):
            self.logger.log_wish_action(
                "already_linked", target, wish.origin_issue_number, dry_run=dry_run
            )
            self._enter(ReconcileState.DONE, wish)
            return ReconcileOutcome(ReconcileStatus.ALREADY_LINKED, funding_path=funding.path)

        path = funding.path if funding is not None else FUNDING_PATHS[0]
        merged = merge_funding(
            funding.content if funding is not None else None, wish.wishlist_url, path=path
        )
        if dry_run:
            self.logger.log_wish_action("planned", target, wish.origin_issue_number, dry_run=True)
            self._enter(ReconcileState.DONE, wish)
            return ReconcileOutcome(
                ReconcileStatus.PLANNED,
                branch=branch,
                funding_path=path,
                detail={"content": merged.decode("utf-8"), "create": funding is None},
            )

        self._enter(ReconcileState.ENSURE_FORK, wish)
        fork = self.forks.ensure_fork(target, bot_login)

        self._enter(ReconcileState.ENSURE_BRANCH, wish)
        default_branch, base_sha = self.forks.resolve_base_sha(target)
        self.forks.ensure_branch(fork, branch, base_sha)

        self._enter(ReconcileState.WRITE_FILE, wish)
        self._write_funding(wish, fork, branch, path, merged, funding)

        self._enter(ReconcileState.OPEN_PR, wish)
        pr_url = self._open_pr(wish, bot_login, fork, branch, default_branch)

        self._enter(ReconcileState.DONE, wish)
        self.logger.log_wish_action("pr_created", target, wish.origin_issue_number, pr_url=pr_url)
        return ReconcileOutcome(
            ReconcileStatus.CREATED, pr_url=pr_url, branch=branch, funding_path=path
        )

    def _write_funding(
        self,
        wish: WishRequest,
        fork: Fork,
        branch: str,
        path: str,
        merged: bytes,
        funding: FundingFile | None,
    ) -> None:
        # A reused branch may already hold this commit from an interrupted run.
        current = self.probe.funding_at(fork.slug, path, ref=branch)
        if current is not None:
            if funding_contains(current.content, wish.wishlist_url, path=path):
                self.logger.info(f"{fork.slug}@{branch} already carries the link; skipping commit")
                return
            sha = current.sha
        else:
            sha = funding.sha if funding is not None else None
        message = UPDATE_COMMIT_MESSAGE if sha else CREATE_COMMIT_MESSAGE
        self.client.put_file(
            fork.slug,
            path,
            content=merged,
            message=f"{message} ({wish.wishlist_url})",
            branch=branch,
            sha=sha,
        )
        self.logger.log_operation(
            "funding_committed", fork=fork.slug, branch=branch, path=path, new_file=sha is None
        )

    def _open_pr(
        self, wish: WishRequest, bot_login: str, fork: Fork, branch: str, base: str
    ) -> str:
        head = f"{fork.owner}:{branch}"
        try:
            created = self.client.create_pull(
                wish.target_slug,
                title=PR_TITLE,
                head=head,
                base=base,
                body=render_pr_body(wish),
            )
        except GitHubAPIError as exc:
            if not is_already_exists(exc):
                raise
            self.logger.info(f"pull request already exists for {head}; resolving it")
            found = self._resolve_conflict(wish, bot_login, head)
            return found.url
        url = created.get("html_url")
        if not isinstance(url, str) or not url:
            raise InconsistentStateError(f"PR creation on {wish.target_slug} returned no URL")
        return url

    def _resolve_conflict(
        self, wish: WishRequest, bot_login: str, head: str
    ) -> PullRequestRecord:
        found = self.probe.find_open_pr_for_head(wish.target_slug, head)
        if found is None:
            found = self.probe.find_existing_pr(wish.target_slug, bot_login, wish.wishlist_url)
        if found is None or not found.url:
            raise InconsistentStateError(
                f"GitHub reports a pull request for {head} on {wish.target_slug} "
                "but none could be found"
            )
        return found


__all__ = [
    "PullRequestReconciler",
    "ReconcileState",
    "PR_TITLE",
    "render_pr_body",
]
