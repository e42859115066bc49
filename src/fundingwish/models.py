from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class WishRequest:
    """A parsed request to add a wishlist link to a repository's funding file."""

    maintainer_handle: str
    target_owner: str
    target_repo: str
    wishlist_url: str  # dedup identity
    origin_issue_number: int

    @property
    def target_slug(self) -> str:
        return f"{self.target_owner}/{self.target_repo}"


@dataclass(frozen=True)
class FundingFile:
    path: str
    content: bytes
    sha: str | None = None  # revision token; None means the file must be created


@dataclass
class Fork:
    owner: str
    name: str
    ready: bool = True

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class PullRequestRecord:
    number: int | None
    author: str
    title: str
    body: str
    state: str  # open | closed
    head_ref: str
    url: str

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> PullRequestRecord:
        user = data.get("user") if isinstance(data.get("user"), dict) else {}
        head = data.get("head") if isinstance(data.get("head"), dict) else {}
        number = data.get("number")
        return cls(
            number=number if isinstance(number, int) else None,
            author=str(user.get("login") or ""),
            title=str(data.get("title") or ""),
            body=str(data.get("body") or ""),
            state=str(data.get("state") or ""),
            head_ref=str(head.get("ref") or ""),
            url=str(data.get("html_url") or ""),
        )


class ProbeStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class ProbeResult(Generic[T]):
    """Tagged outcome of a single read-only probe."""

    status: ProbeStatus
    value: T | None = None
    error: BaseException | None = None

    @classmethod
    def found(cls, value: T) -> ProbeResult[T]:
        return cls(ProbeStatus.FOUND, value=value)

    @classmethod
    def not_found(cls) -> ProbeResult[T]:
        return cls(ProbeStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: BaseException) -> ProbeResult[T]:
        return cls(ProbeStatus.ERROR, error=error)


class ReconcileStatus(str, Enum):
    EXISTING = "existing"  # a matching PR was already present
    ALREADY_LINKED = "already_linked"  # funding file already carries the link
    CREATED = "created"  # a new PR was opened (or recovered after a conflict)
    PLANNED = "planned"  # dry run; nothing written


@dataclass
class ReconcileOutcome:
    status: ReconcileStatus
    pr_url: str | None = None
    branch: str | None = None
    funding_path: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "WishRequest",
    "FundingFile",
    "Fork",
    "PullRequestRecord",
    "ProbeStatus",
    "ProbeResult",
    "ReconcileStatus",
    "ReconcileOutcome",
]
