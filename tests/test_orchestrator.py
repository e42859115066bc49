from __future__ import annotations

from typing import Any

import pytest

from fundingwish import orchestrator
from fundingwish.orchestrator import (
    STATUS_FAILED,
    STATUS_SKIPPED,
    WishResult,
    WorkflowContext,
    build_context,
    process_issue_number,
    process_wish,
    run_batch,
    summarize,
)
from fundingwish.reporting import ERROR_LABEL
from fundingwish.tracker import PROCESSED_LABEL

HOME = "oss-wishlist/wishlists"
TRIGGER = "funding-yml-requested"


def _wish_body(repo: str) -> str:
    return f"### Maintainer GitHub Username\n\nalice\n\n### Project Repository\n\n{repo}\n"


@pytest.fixture
def ctx(fake_gh, sleeper, wish_config) -> WorkflowContext:
    return WorkflowContext(
        client=fake_gh,
        config=wish_config,
        home_repo=HOME,
        bot_login=fake_gh.login,
        sleep=sleeper,
    )


def test_process_wish_creates_pr_and_marks_issue(fake_gh, ctx):
    fake_gh.add_repo("bob/proj")
    issue = fake_gh.add_issue(HOME, 42, _wish_body("bob/proj"), labels=[TRIGGER])

    result = process_wish(ctx, issue)

    assert result.status == "created"
    assert result.target == "bob/proj"
    assert result.pr_url == fake_gh.pulls["bob/proj"][0]["html_url"]
    assert {"name": PROCESSED_LABEL} in fake_gh.issues[HOME][42]["labels"]
    assert result.pr_url in fake_gh.comments[(HOME, 42)][0]["body"]


def test_batch_rerun_skips_processed(fake_gh, ctx):
    fake_gh.add_repo("bob/proj")
    fake_gh.add_issue(HOME, 42, _wish_body("bob/proj"), labels=[TRIGGER])

    first = run_batch(ctx)
    second = run_batch(ctx)

    assert [r.status for r in first] == ["created"]
    assert [r.status for r in second] == [STATUS_SKIPPED]
    assert second[0].pr_url == first[0].pr_url
    assert len(fake_gh.pulls["bob/proj"]) == 1


def test_batch_only_picks_trigger_label(fake_gh, ctx):
    fake_gh.add_repo("bob/proj")
    fake_gh.add_issue(HOME, 1, _wish_body("bob/proj"))
    assert run_batch(ctx) == []


def test_failure_is_reported_and_isolated(fake_gh, ctx):
    fake_gh.add_repo("bob/proj")
    fake_gh.add_issue(HOME, 1, "no fields here", labels=[TRIGGER])
    fake_gh.add_issue(HOME, 2, _wish_body("bob/proj"), labels=[TRIGGER])

    results = run_batch(ctx)

    by_number = {r.issue_number: r for r in results}
    assert by_number[1].status == STATUS_FAILED
    assert "maintainer" in (by_number[1].error or "")
    assert by_number[2].status == "created"
    reports = [kw for name, _, kw in fake_gh.calls if name == "create_issue"]
    assert len(reports) == 1
    assert reports[0]["labels"] == [ERROR_LABEL]
    assert "#1" in reports[0]["title"]
    assert "wish.missing_field" in reports[0]["body"]
    assert summarize(results)["failed"] == [1]


def test_failure_report_errors_are_swallowed(fake_gh, ctx):
    fake_gh.add_repo("bob/proj", files={"FUNDING.yml": b"- broken\n"})
    issue = fake_gh.add_issue(HOME, 5, _wish_body("bob/proj"), labels=[TRIGGER])
    fake_gh.fail("create_issue", status=403, text="forbidden")

    result = process_wish(ctx, issue)

    assert result.status == STATUS_FAILED
    assert result.target == "bob/proj"
    assert PROCESSED_LABEL not in {lbl["name"] for lbl in fake_gh.issues[HOME][5]["labels"]}


def test_dry_run_writes_nothing(fake_gh, ctx):
    ctx.dry_run = True
    fake_gh.add_repo("bob/proj")
    issue = fake_gh.add_issue(HOME, 42, _wish_body("bob/proj"), labels=[TRIGGER])

    result = process_wish(ctx, issue)

    assert result.status == "planned"
    assert result.detail["create"] is True
    assert fake_gh.count("create_issue_comment") == 0
    assert fake_gh.count("add_labels") == 0
    assert fake_gh.count("create_fork") == 0


def test_dry_run_failure_is_not_reported(fake_gh, ctx):
    ctx.dry_run = True
    issue = fake_gh.add_issue(HOME, 3, "nothing", labels=[TRIGGER])
    assert process_wish(ctx, issue).status == STATUS_FAILED
    assert fake_gh.count("create_issue") == 0


def test_cache_refresh_ping_after_success(fake_gh, ctx, monkeypatch):
    pings: list[tuple[Any, dict[str, Any]]] = []
    monkeypatch.setattr(
        orchestrator, "ping_cache_refresh", lambda url, payload: pings.append((url, payload))
    )
    ctx.config.cache_refresh_url = "https://cache.example/refresh"
    fake_gh.add_repo("bob/proj")
    issue = fake_gh.add_issue(HOME, 42, _wish_body("bob/proj"), labels=[TRIGGER])

    result = process_wish(ctx, issue)

    assert pings == [
        (
            "https://cache.example/refresh",
            {"issue": 42, "pr_url": result.pr_url, "status": "created"},
        )
    ]


def test_process_issue_number_fetches_issue(fake_gh, ctx):
    issue = fake_gh.add_issue(HOME, 8, _wish_body("https://github.com/bob/proj"))
    funding = f"custom: ['{issue['html_url']}']\n".encode()
    fake_gh.add_repo("bob/proj", files={".github/FUNDING.yml": funding})

    result = process_issue_number(ctx, 8)

    assert result.status == "already_linked"
    assert "already links" in fake_gh.comments[(HOME, 8)][0]["body"]


def test_build_context_resolves_login_and_defaults(fake_gh, wish_config):
    wish_config.bot_login = None
    wish_config.dry_run_default = True
    ctx = build_context(wish_config, "tkn", client=fake_gh)
    assert ctx.bot_login == fake_gh.login
    assert ctx.home_repo == HOME
    assert ctx.dry_run is True
    assert build_context(wish_config, "tkn", client=fake_gh, dry_run=False).dry_run is False


def test_summarize_counts_statuses():
    results = [
        WishResult(1, "created"),
        WishResult(2, "created"),
        WishResult(3, STATUS_SKIPPED),
        WishResult(4, STATUS_FAILED),
    ]
    summary = summarize(results)
    assert summary["total"] == 4
    assert summary["counts"] == {"created": 2, STATUS_SKIPPED: 1, STATUS_FAILED: 1}
    assert summary["failed"] == [4]
