"""Fork and branch lifecycle.

The automation identity never pushes to the target repository. It works in
its own fork, on a branch whose name is derived from the origin issue
number so that every retry of the same wish lands on the same branch.

Fork creation on GitHub is asynchronous: the API answers 202 before the
fork's refs can be read. ``ensure_fork`` waits a fixed settling delay after
requesting a new fork. An existing fork of the same target is returned
immediately.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from .errors import is_already_exists, is_not_found
from .github_rest import GitHubAPIError, GitHubRestClient
from .logging import get_logger
from .models import Fork

BRANCH_PREFIX = "add-wishlist-funding"
DEFAULT_SETTLE_SECONDS = 5.0


def branch_name_for(issue_number: int) -> str:
    return f"{BRANCH_PREFIX}-{issue_number}"


def is_fork_of(repo: dict[str, Any], target_repo: str) -> bool:
    """True when the repository payload is a fork whose parent is ``target_repo``."""
    if not repo.get("fork"):
        return False
    parent = repo.get("parent") if isinstance(repo.get("parent"), dict) else {}
    full_name = parent.get("full_name")
    return isinstance(full_name, str) and full_name.lower() == target_repo.lower()


class ForkAndBranchManager:
    def __init__(
        self,
        client: GitHubRestClient,
        *,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.settle_seconds = settle_seconds
        self._sleep = sleep
        self.logger = get_logger()

    def ensure_fork(self, target_repo: str, bot_login: str) -> Fork:
        repo_name = target_repo.split("/", 1)[1]
        try:
            data = self.client.get_repository(f"{bot_login}/{repo_name}")
        except GitHubAPIError as exc:
            if not is_not_found(exc):
                raise
        else:
            owner = (data.get("owner") or {}).get("login") or bot_login
            if is_fork_of(data, target_repo):
                self.logger.debug(f"reusing fork {owner}/{repo_name}", target=target_repo)
                return Fork(owner=str(owner), name=str(data.get("name") or repo_name), ready=True)
            # Same name, different upstream; GitHub picks a suffixed name for the new fork.
            self.logger.info(
                f"{owner}/{repo_name} is not a fork of {target_repo}; requesting a fork",
                target=target_repo,
            )

        created = self.client.create_fork(target_repo)
        owner = (created.get("owner") or {}).get("login") or bot_login
        fork = Fork(owner=str(owner), name=str(created.get("name") or repo_name), ready=False)
        self.logger.log_operation(
            "fork_created", target=target_repo, fork=fork.slug, settle_seconds=self.settle_seconds
        )
        # No readiness poll: refs become readable some time after the 202.
        self._sleep(self.settle_seconds)
        fork.ready = True
        return fork

    def resolve_base_sha(self, target_repo: str) -> tuple[str, str]:
        """Return ``(default_branch, tip_sha)`` of the target repository."""
        repo = self.client.get_repository(target_repo)
        default_branch = repo.get("default_branch")
        if not isinstance(default_branch, str) or not default_branch:
            raise GitHubAPIError(f"{target_repo} has no default branch")
        ref = self.client.get_ref(target_repo, f"heads/{default_branch}")
        sha = (ref.get("object") or {}).get("sha")
        if not isinstance(sha, str) or not sha:
            raise GitHubAPIError(f"{target_repo} heads/{default_branch} has no tip sha")
        return default_branch, sha

    def ensure_branch(self, fork: Fork, branch: str, base_sha: str) -> bool:
        """Create ``branch`` at ``base_sha`` in the fork.

        Returns True when the ref was created and False when it already
        existed; an existing ref is left exactly where it is.
        """
        try:
            self.client.create_ref(fork.slug, f"refs/heads/{branch}", base_sha)
        except GitHubAPIError as exc:
            if is_already_exists(exc):
                self.logger.info(f"branch {branch} already exists in {fork.slug}; reusing it")
                return False
            raise
        self.logger.log_operation("branch_created", fork=fork.slug, branch=branch)
        return True


__all__ = ["ForkAndBranchManager", "branch_name_for", "is_fork_of", "BRANCH_PREFIX", "DEFAULT_SETTLE_SECONDS"]
