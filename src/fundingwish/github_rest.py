from __future__ import annotations

import base64
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .retry import run_with_retries

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "fundingwish-rest/0.3.0"
HTTP_ERROR_STATUS = 400


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Lightweight REST client for the repository, fork and PR operations.

    Every method takes an explicit ``owner/name`` slug; the client itself is
    not bound to any repository.
    """

    token: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> requests.Response:
            return self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._session.headers,
                timeout=30,
            )

        response = run_with_retries(_run)
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError:  # pragma: no cover - non-JSON success body
                return response.text
        return None

    def _paginate(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        max_pages: int | None = None,
    ) -> list[Any]:
        params = dict(params or {})
        per_page = params.setdefault("per_page", 100)
        params.setdefault("page", 1)
        results: list[Any] = []
        pages = 0
        while True:
            data = self._request("GET", path, params=params)
            pages += 1
            if not isinstance(data, list):
                break
            results.extend(data)
            if len(data) < per_page:
                break
            if max_pages is not None and pages >= max_pages:
                break
            params["page"] = params.get("page", 1) + 1
        return results

    @staticmethod
    def _dicts(data: Iterable[Any]) -> list[dict[str, Any]]:
        return [entry for entry in data if isinstance(entry, dict)]

    # ---- Identity / repositories ---------------------------------------
    def get_authenticated_login(self) -> str:
        data = self._request("GET", "/user")
        login = data.get("login") if isinstance(data, dict) else None
        if not isinstance(login, str) or not login:
            raise GitHubAPIError("GitHub API /user response is missing 'login'")
        return login

    def get_repository(self, repo: str) -> dict[str, Any]:
        data = self._request("GET", f"/repos/{repo}")
        return data if isinstance(data, dict) else {}

    def create_fork(self, repo: str) -> dict[str, Any]:
        data = self._request("POST", f"/repos/{repo}/forks", json_body={})
        return data if isinstance(data, dict) else {}

    # ---- Contents -------------------------------------------------------
    def get_file(self, repo: str, path: str, *, ref: str | None = None) -> dict[str, Any]:
        params = {"ref": ref} if ref else None
        data = self._request(
            "GET", f"/repos/{repo}/contents/{quote(path.lstrip('/'))}", params=params
        )
        if not isinstance(data, dict):
            # A directory listing comes back as a list; it is not a file.
            raise GitHubAPIError(f"{repo}:{path} is not a file", status=404)
        return data

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
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha
        data = self._request(
            "PUT", f"/repos/{repo}/contents/{quote(path.lstrip('/'))}", json_body=payload
        )
        return data if isinstance(data, dict) else {}

    # ---- Git refs -------------------------------------------------------
    def get_ref(self, repo: str, ref: str) -> dict[str, Any]:
        data = self._request("GET", f"/repos/{repo}/git/ref/{ref}")
        return data if isinstance(data, dict) else {}

    def create_ref(self, repo: str, ref: str, sha: str) -> dict[str, Any]:
        data = self._request(
            "POST", f"/repos/{repo}/git/refs", json_body={"ref": ref, "sha": sha}
        )
        return data if isinstance(data, dict) else {}

    # ---- Pull requests --------------------------------------------------
    def list_pulls(
        self,
        repo: str,
        *,
        state: str = "open",
        head: str | None = None,
        per_page: int = 100,
        max_pages: int | None = 1,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"state": state, "per_page": per_page, "page": 1}
        if head:
            params["head"] = head
        data = self._paginate(f"/repos/{repo}/pulls", params=params, max_pages=max_pages)
        return self._dicts(data)

    def create_pull(
        self, repo: str, *, title: str, head: str, base: str, body: str
    ) -> dict[str, Any]:
        payload = {"title": title, "head": head, "base": base, "body": body}
        data = self._request("POST", f"/repos/{repo}/pulls", json_body=payload)
        return data if isinstance(data, dict) else {}

    # ---- Issue operations --------------------------------------------
    def get_issue(self, repo: str, number: int) -> dict[str, Any]:
        data = self._request("GET", f"/repos/{repo}/issues/{number}")
        return data if isinstance(data, dict) else {}

    def list_issues(
        self, repo: str, *, labels: Iterable[str] | None = None, state: str = "open"
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"state": state, "per_page": 100, "page": 1}
        label_list = list(labels or [])
        if label_list:
            params["labels"] = ",".join(label_list)
        data = self._paginate(f"/repos/{repo}/issues", params=params)
        # The issues endpoint also returns pull requests.
        return [entry for entry in self._dicts(data) if "pull_request" not in entry]

    def create_issue(
        self,
        repo: str,
        *,
        title: str,
        body: str,
        labels: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = list(labels)
        data = self._request("POST", f"/repos/{repo}/issues", json_body=payload)
        return data if isinstance(data, dict) else {}

    def list_issue_comments(self, repo: str, number: int) -> list[dict[str, Any]]:
        data = self._paginate(f"/repos/{repo}/issues/{number}/comments")
        return self._dicts(data)

    def create_issue_comment(self, repo: str, number: int, body: str) -> dict[str, Any]:
        data = self._request(
            "POST", f"/repos/{repo}/issues/{number}/comments", json_body={"body": body}
        )
        return data if isinstance(data, dict) else {}

    def add_labels(self, repo: str, number: int, labels: Iterable[str]) -> None:
        self._request(
            "POST",
            f"/repos/{repo}/issues/{number}/labels",
            json_body={"labels": list(labels)},
        )


def decode_content(payload: dict[str, Any]) -> bytes:
    """Decode the base64 ``content`` field of a contents API response."""
    raw = payload.get("content") or ""
    if not isinstance(raw, str):
        return b""
    return base64.b64decode(raw.encode("ascii"))


__all__ = [
    "GitHubAPIError",
    "GitHubRestClient",
    "decode_content",
]
