"""Pytest configuration for fundingwish tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides an in-memory stand-in for
the GitHub REST client that mimics the statuses the real API returns
(404 for missing objects, 422 for existing refs / pull requests, 409 for
stale file revisions).
"""

from __future__ import annotations

import base64
import copy
import hashlib
import sys
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from fundingwish.config import WishConfig  # noqa: E402
from fundingwish.github_rest import GitHubAPIError  # noqa: E402

BOT = "wishlist-bot"
HOME = "oss-wishlist/wishlists"


def _sha(content: bytes) -> str:
    return hashlib.sha1(content).hexdigest()


def _missing(what: str) -> GitHubAPIError:
    return GitHubAPIError(f"{what} not found", status=404, response_text='{"message": "Not Found"}')


class FakeGitHub:
    """In-memory GitHub with just enough behaviour for the workflow."""

    def __init__(self, login: str = BOT):
        self.login = login
        self.repos: dict[str, dict[str, Any]] = {}
        self.pulls: dict[str, list[dict[str, Any]]] = {}
        self.issues: dict[str, dict[int, dict[str, Any]]] = {}
        self.comments: dict[tuple[str, int], list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.failures: dict[str, GitHubAPIError] = {}
        self._commit = 0

    # ---- setup helpers --------------------------------------------------
    def add_repo(
        self,
        slug: str,
        *,
        files: dict[str, bytes] | None = None,
        default_branch: str = "main",
        parent: str | None = None,
    ) -> None:
        owner, name = slug.split("/", 1)
        self.repos[slug] = {
            "owner": owner,
            "name": name,
            "default_branch": default_branch,
            "refs": {default_branch: self._next_sha()},
            "files": {default_branch: {p: (c, _sha(c)) for p, c in (files or {}).items()}},
            "fork": parent is not None,
            "parent": parent,
        }

    def add_pull(
        self,
        slug: str,
        *,
        title: str,
        body: str,
        state: str = "open",
        author: str | None = None,
        head_ref: str = "some-branch",
        head_owner: str | None = None,
    ) -> dict[str, Any]:
        pulls = self.pulls.setdefault(slug, [])
        number = len(pulls) + 1
        pr = {
            "number": number,
            "title": title,
            "body": body,
            "state": state,
            "user": {"login": author or self.login},
            "head": {"ref": head_ref, "label": f"{head_owner or author or self.login}:{head_ref}"},
            "html_url": f"https://github.com/{slug}/pull/{number}",
        }
        pulls.append(pr)
        return pr

    def add_issue(
        self, slug: str, number: int, body: str, *, labels: list[str] | None = None
    ) -> dict[str, Any]:
        issue = {
            "number": number,
            "title": f"Wishlist #{number}",
            "body": body,
            "html_url": f"https://github.com/{slug}/issues/{number}",
            "labels": [{"name": label} for label in labels or []],
            "state": "open",
        }
        self.issues.setdefault(slug, {})[number] = issue
        return issue

    def fail(self, method: str, status: int = 500, text: str = "boom") -> None:
        self.failures[method] = GitHubAPIError(
            f"{method} failed with {status}", status=status, response_text=text
        )

    def count(self, method: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == method)

    def file_text(self, slug: str, path: str, branch: str) -> str:
        return self.repos[slug]["files"][branch][path][0].decode("utf-8")

    # ---- internals ------------------------------------------------------
    def _next_sha(self) -> str:
        self._commit += 1
        return hashlib.sha1(f"commit-{self._commit}".encode()).hexdigest()

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))
        if method in self.failures:
            raise self.failures[method]

    def _repo(self, slug: str) -> dict[str, Any]:
        if slug not in self.repos:
            raise _missing(slug)
        return self.repos[slug]

    # ---- client surface -------------------------------------------------
    def get_authenticated_login(self) -> str:
        self._record("get_authenticated_login")
        return self.login

    def get_repository(self, repo: str) -> dict[str, Any]:
        self._record("get_repository", repo)
        data = self._repo(repo)
        out = {
            "name": data["name"],
            "owner": {"login": data["owner"]},
            "default_branch": data["default_branch"],
            "fork": data.get("fork", False),
        }
        if data.get("parent"):
            out["parent"] = {"full_name": data["parent"]}
        return out

    def create_fork(self, repo: str) -> dict[str, Any]:
        # Like GitHub: an existing fork is handed back, a taken name gets a suffix.
        self._record("create_fork", repo)
        source = self._repo(repo)
        for data in self.repos.values():
            if data["owner"] == self.login and data.get("parent") == repo:
                return {"name": data["name"], "owner": {"login": self.login}, "fork": True}
        name = source["name"]
        suffix = 0
        while f"{self.login}/{name}" in self.repos:
            suffix += 1
            name = f"{source['name']}-{suffix}"
        self.repos[f"{self.login}/{name}"] = {
            "owner": self.login,
            "name": name,
            "default_branch": source["default_branch"],
            "refs": dict(source["refs"]),
            "files": copy.deepcopy(source["files"]),
            "fork": True,
            "parent": repo,
        }
        return {"name": name, "owner": {"login": self.login}, "fork": True}

    def get_file(self, repo: str, path: str, *, ref: str | None = None) -> dict[str, Any]:
        self._record("get_file", repo, path, ref=ref)
        data = self._repo(repo)
        branch = ref or data["default_branch"]
        entry = data["files"].get(branch, {}).get(path)
        if entry is None:
            raise _missing(path)
        content, sha = entry
        return {
            "path": path,
            "sha": sha,
            "encoding": "base64",
            "content": base64.encodebytes(content).decode("ascii"),
        }

    def put_file(
        self,
        repo: str,
        path: str,
        *,
        content: bytes,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> dict[str, Any]:
        self._record("put_file", repo, path, content=content, message=message, branch=branch, sha=sha)
        data = self._repo(repo)
        if branch not in data["refs"]:
            raise _missing(branch)
        files = data["files"].setdefault(branch, {})
        current = files.get(path)
        if current is not None and sha != current[1]:
            raise GitHubAPIError("sha mismatch", status=409, response_text="does not match")
        if current is None and sha:
            raise GitHubAPIError("no such file", status=422, response_text="sha supplied")
        files[path] = (content, _sha(content))
        data["refs"][branch] = self._next_sha()
        return {"content": {"path": path, "sha": files[path][1]}}

    def get_ref(self, repo: str, ref: str) -> dict[str, Any]:
        self._record("get_ref", repo, ref)
        data = self._repo(repo)
        branch = ref.removeprefix("heads/")
        if branch not in data["refs"]:
            raise _missing(ref)
        return {"ref": f"refs/{ref}", "object": {"sha": data["refs"][branch]}}

    def create_ref(self, repo: str, ref: str, sha: str) -> dict[str, Any]:
        self._record("create_ref", repo, ref, sha)
        data = self._repo(repo)
        branch = ref.removeprefix("refs/heads/")
        if branch in data["refs"]:
            raise GitHubAPIError(
                "create ref failed", status=422, response_text='{"message": "Reference already exists"}'
            )
        data["refs"][branch] = sha
        data["files"][branch] = copy.deepcopy(data["files"][data["default_branch"]])
        return {"ref": ref, "object": {"sha": sha}}

    def list_pulls(
        self,
        repo: str,
        *,
        state: str = "open",
        head: str | None = None,
        per_page: int = 100,
        max_pages: int | None = 1,
    ) -> list[dict[str, Any]]:
        self._record("list_pulls", repo, state=state, head=head)
        out = [
            copy.deepcopy(pr)
            for pr in self.pulls.get(repo, [])
            if (state == "all" or pr["state"] == state)
            and (head is None or pr["head"]["label"] == head)
        ]
        return out[: per_page * (max_pages or 1)]

    def create_pull(
        self, repo: str, *, title: str, head: str, base: str, body: str
    ) -> dict[str, Any]:
        self._record("create_pull", repo, title=title, head=head, base=base, body=body)
        for pr in self.pulls.get(repo, []):
            if pr["state"] == "open" and pr["head"]["label"] == head:
                raise GitHubAPIError(
                    "create pull failed",
                    status=422,
                    response_text=f'{{"message": "A pull request already exists for {head}."}}',
                )
        owner, branch = head.split(":", 1)
        return copy.deepcopy(
            self.add_pull(repo, title=title, body=body, head_ref=branch, head_owner=owner)
        )

    def get_issue(self, repo: str, number: int) -> dict[str, Any]:
        self._record("get_issue", repo, number)
        try:
            return copy.deepcopy(self.issues[repo][number])
        except KeyError:
            raise _missing(f"issue {number}") from None

    def list_issues(self, repo: str, *, labels: Any = None, state: str = "open") -> list[dict[str, Any]]:
        self._record("list_issues", repo, labels=labels, state=state)
        wanted = set(labels or [])
        out = []
        for issue in self.issues.get(repo, {}).values():
            names = {label["name"] for label in issue["labels"]}
            if issue["state"] == state and wanted <= names:
                out.append(copy.deepcopy(issue))
        return out

    def create_issue(self, repo: str, *, title: str, body: str, labels: Any = None) -> dict[str, Any]:
        self._record("create_issue", repo, title=title, body=body, labels=labels)
        number = 1000 + self.count("create_issue")
        issue = self.add_issue(repo, number, body, labels=list(labels or []))
        issue["title"] = title
        return copy.deepcopy(issue)

    def list_issue_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        self._record("list_issue_comments", repo, number)
        return copy.deepcopy(self.comments.get((repo, number), []))

    def create_issue_comment(self, repo: str, number: int, body: str) -> dict[str, Any]:
        self._record("create_issue_comment", repo, number, body)
        comment = {"id": len(self.calls), "body": body}
        self.comments.setdefault((repo, number), []).append(comment)
        return comment

    def add_labels(self, repo: str, number: int, labels: Any) -> None:
        self._record("add_labels", repo, number, list(labels))
        issue = self.issues.get(repo, {}).get(number)
        if issue is not None:
            for label in labels:
                issue["labels"].append({"name": label})


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def fake_gh() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def wish_config() -> WishConfig:
    return WishConfig(wishlists_repo=HOME, bot_login=BOT, fork_settle_seconds=5.0)
