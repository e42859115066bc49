"""Read-only repository queries.

``locate_funding_file`` walks an ordered list of well-known paths; each probe
returns a tagged :class:`ProbeResult` and a small decision table picks the
outcome (found wins, not-found moves on, error is fatal).

``find_existing_pr`` recognises pull requests this automation opened earlier
by content rather than by number: authored by the bot, title containing the
funding-file marker, body containing the exact wishlist URL. Open pull
requests are scanned before closed ones. A failing scan is logged and
reported as "no match" so the workflow leans toward opening a PR rather than
blocking.
"""

from __future__ import annotations

from collections.abc import Sequence

import requests

from .errors import is_not_found
from .github_rest import GitHubAPIError, GitHubRestClient, decode_content
from .logging import get_logger
from .models import FundingFile, ProbeResult, ProbeStatus, PullRequestRecord

FUNDING_PATHS: tuple[str, ...] = (".github/FUNDING.yml", "FUNDING.yml")
PR_TITLE_MARKER = "FUNDING.yml"
PR_SCAN_STATES: tuple[str, ...] = ("open", "closed")


class RepositoryStateProbe:
    def __init__(
        self,
        client: GitHubRestClient,
        *,
        funding_paths: Sequence[str] = FUNDING_PATHS,
        title_marker: str = PR_TITLE_MARKER,
        per_page: int = 100,
        max_pages: int = 1,
    ):
        self.client = client
        self.funding_paths = tuple(funding_paths)
        self.title_marker = title_marker
        self.per_page = per_page
        self.max_pages = max_pages
        self.logger = get_logger()

    # ---- funding file ---------------------------------------------------
    def _probe_path(self, repo: str, path: str, ref: str | None) -> ProbeResult[FundingFile]:
        try:
            data = self.client.get_file(repo, path, ref=ref)
        except GitHubAPIError as exc:
            if is_not_found(exc):
                return ProbeResult.not_found()
            return ProbeResult.failed(exc)
        sha = data.get("sha")
        return ProbeResult.found(
            FundingFile(
                path=str(data.get("path") or path),
                content=decode_content(data),
                sha=sha if isinstance(sha, str) and sha else None,
            )
        )

    def locate_funding_file(self, repo: str, *, ref: str | None = None) -> FundingFile | None:
        for path in self.funding_paths:
            result = self._probe_path(repo, path, ref)
            if result.status is ProbeStatus.FOUND:
                self.logger.debug(f"funding file found at {repo}:{path}", target=repo)
                return result.value
            if result.status is ProbeStatus.ERROR and result.error is not None:
                raise result.error
        self.logger.debug(f"no funding file in {repo}", target=repo)
        return None

    def funding_at(self, repo: str, path: str, *, ref: str | None = None) -> FundingFile | None:
        """Read one specific funding path; None when it does not exist."""
        result = self._probe_path(repo, path, ref)
        if result.status is ProbeStatus.ERROR and result.error is not None:
            raise result.error
        return result.value

    # ---- pull requests --------------------------------------------------
    def _matches(self, pr: PullRequestRecord, bot_login: str, wishlist_url: str) -> bool:
        return (
            pr.author == bot_login
            and self.title_marker in pr.title
            and wishlist_url in pr.body
        )

    def _scan(
        self, repo: str, state: str, bot_login: str, wishlist_url: str
    ) -> ProbeResult[PullRequestRecord]:
        try:
            pulls = self.client.list_pulls(
                repo, state=state, per_page=self.per_page, max_pages=self.max_pages
            )
        except (GitHubAPIError, requests.RequestException) as exc:
            return ProbeResult.failed(exc)
        for data in pulls:
            pr = PullRequestRecord.from_api(data)
            if self._matches(pr, bot_login, wishlist_url):
                return ProbeResult.found(pr)
        return ProbeResult.not_found()

    def find_existing_pr(
        self, repo: str, bot_login: str, wishlist_url: str
    ) -> PullRequestRecord | None:
        for state in PR_SCAN_STATES:
            result = self._scan(repo, state, bot_login, wishlist_url)
            if result.status is ProbeStatus.FOUND:
                return result.value
            if result.status is ProbeStatus.ERROR:
                self.logger.warning(
                    f"PR scan of {repo} ({state}) failed; treating as no match",
                    target=repo,
                    error=str(result.error),
                )
        return None

    def find_open_pr_for_head(self, repo: str, head: str) -> PullRequestRecord | None:
        pulls = self.client.list_pulls(repo, state="open", head=head, per_page=self.per_page)
        return PullRequestRecord.from_api(pulls[0]) if pulls else None


__all__ = ["RepositoryStateProbe", "FUNDING_PATHS", "PR_TITLE_MARKER"]
