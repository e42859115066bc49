"""Extract a :class:`WishRequest` from a wishlist issue.

Two body layouts are understood:

* issue-form sections (``### Project Repository`` followed by the value)
* inline fields (``Repository: owner/repo``)

Repository values may be a bare ``owner/repo`` slug, a GitHub URL or a
markdown link wrapping either; all normalise to the bare slug. Update
records (text blocks headed ``## Wishlist Update``, found in the body or in
comments) override earlier values field by field, the most recent winning.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from .errors import MissingFieldError
from .models import WishRequest

UPDATE_HEADING = "## Wishlist Update"
_NO_RESPONSE = {"", "_no response_", "n/a", "none"}

MAINTAINER_KEYS = ("maintainer github username", "maintainer username", "maintainer")
REPOSITORY_KEYS = ("project repository", "repository url", "repository", "repo")

_SECTION_RE = re.compile(r"^#{3,6}\s+(.+?)\s*$")
_FIELD_RE = re.compile(r"^\s*\**([A-Za-z][A-Za-z \-]*?)\**\s*:\s*(.+?)\s*$")
_MD_LINK_RE = re.compile(r"\[([^\]]*)\]\(([^)\s]+)\)")
_GITHUB_URL_RE = re.compile(
    r"(?:https?://)?(?:www\.)?github\.com/([A-Za-z0-9-]+)/([A-Za-z0-9_.-]+)", re.IGNORECASE
)
_SLUG_RE = re.compile(r"^([A-Za-z0-9-]+)/([A-Za-z0-9_.-]+)$")
_HANDLE_RE = re.compile(r"@?([A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)")


def _fields(text: str) -> dict[str, str]:
    """Collect ``key -> value`` pairs from issue-form sections and inline fields."""
    found: dict[str, str] = {}
    lines = text.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        section = _SECTION_RE.match(line)
        if section:
            key = section.group(1).strip().lower()
            i += 1
            value_lines: list[str] = []
            while i < len(lines) and not lines[i].lstrip().startswith("#"):
                if lines[i].strip():
                    value_lines.append(lines[i].strip())
                i += 1
            value = value_lines[0] if value_lines else ""
            if value.lower() not in _NO_RESPONSE:
                found[key] = value
            continue
        field_match = _FIELD_RE.match(line)
        if field_match:
            value = field_match.group(2)
            if value.lower() not in _NO_RESPONSE:
                found.setdefault(field_match.group(1).strip().lower(), value)
        i += 1
    return found


def _lookup(fields: dict[str, str], keys: Iterable[str]) -> str | None:
    for key in keys:
        if key in fields:
            return fields[key]
    return None


def normalize_repository(value: str) -> str | None:
    """Normalise a repository reference to ``owner/repo``."""
    text = value.strip().strip("`")
    link = _MD_LINK_RE.search(text)
    candidates = [link.group(2), link.group(1)] if link else [text]
    for candidate in candidates:
        candidate = candidate.strip().strip("`<>").rstrip("/")
        m = _GITHUB_URL_RE.search(candidate) or _SLUG_RE.match(candidate)
        if m:
            owner, repo = m.group(1), m.group(2)
            if repo.endswith(".git"):
                repo = repo[: -len(".git")]
            repo = repo.rstrip(".")
            if owner and repo:
                return f"{owner}/{repo}"
    return None


def normalize_handle(value: str) -> str | None:
    text = value.strip()
    link = _MD_LINK_RE.search(text)
    if link:
        text = link.group(1)
    m = _HANDLE_RE.match(text.strip())
    return m.group(1) if m else None


def split_updates(body: str) -> tuple[str, list[str]]:
    """Split an issue body into the original text and its update blocks."""
    parts = body.split(UPDATE_HEADING)
    return parts[0], [UPDATE_HEADING + part for part in parts[1:]]


def _resolve(texts: list[str]) -> dict[str, str | None]:
    maintainer: str | None = None
    repository: str | None = None
    for text in texts:
        fields = _fields(text)
        raw_maintainer = _lookup(fields, MAINTAINER_KEYS)
        if raw_maintainer:
            maintainer = normalize_handle(raw_maintainer) or maintainer
        raw_repo = _lookup(fields, REPOSITORY_KEYS)
        if raw_repo:
            repository = normalize_repository(raw_repo) or repository
    return {"maintainer": maintainer, "repository": repository}


def parse_wish(issue: dict[str, Any], updates: Iterable[str] | None = None) -> WishRequest:
    """Build a :class:`WishRequest` from a GitHub issue payload.

    ``updates`` are extra update records (typically comment bodies) in
    chronological order; only those containing the update heading are used.
    """
    number = issue.get("number")
    if not isinstance(number, int):
        raise MissingFieldError("issue number")
    body = str(issue.get("body") or "")
    original, body_updates = split_updates(body)
    comment_updates = [u for u in (updates or []) if UPDATE_HEADING in u]
    resolved = _resolve([original, *body_updates, *comment_updates])

    maintainer = resolved["maintainer"]
    if not maintainer:
        raise MissingFieldError("maintainer", issue_number=number)
    repository = resolved["repository"]
    if not repository:
        raise MissingFieldError("repository", issue_number=number)
    url = issue.get("html_url")
    if not isinstance(url, str) or not url:
        raise MissingFieldError("wishlist url", issue_number=number)
    owner, repo = repository.split("/", 1)
    return WishRequest(
        maintainer_handle=maintainer,
        target_owner=owner,
        target_repo=repo,
        wishlist_url=url,
        origin_issue_number=number,
    )


__all__ = ["parse_wish", "normalize_repository", "normalize_handle", "split_updates", "UPDATE_HEADING"]
