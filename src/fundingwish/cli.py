"""fundingwish CLI.

Subcommands:
  run      -> process every open wish issue carrying the trigger label
  process  -> process a single wish issue by number
  preview  -> print the FUNDING.yml a wish would produce (read-only)

Exit codes: 0 success, 1 one or more wishes failed, 2 usage / setup error.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import asdict
from typing import Any

from fundingwish.config import CONFIG_DEFAULT, ConfigError, WishConfig, load_config
from fundingwish.env_auth import EnvAuthConfig, create_env_auth_manager
from fundingwish.errors import WishError, redact
from fundingwish.funding import merge_funding
from fundingwish.github_rest import GitHubAPIError, GitHubRestClient
from fundingwish.logging import configure_logging
from fundingwish.orchestrator import (
    STATUS_FAILED,
    WishResult,
    build_context,
    process_issue_number,
    run_batch,
    summarize,
)
from fundingwish.parser import normalize_repository
from fundingwish.probe import FUNDING_PATHS, RepositoryStateProbe

REPO_HELP = "Override the wishlists repository (owner/repo)"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="fundingwish", description="Open wishlist FUNDING.yml pull requests"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors (env: FUNDINGWISH_QUIET=1)",
    )
    p.add_argument("--config", default=None, help=f"Config file (default: {CONFIG_DEFAULT})")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pr = sub.add_parser("run", help="Process all labelled wish issues")
    pr.add_argument("--repo", help=REPO_HELP)
    pr.add_argument("--label", help="Override the trigger label")
    pr.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Plan without writing (default: behavior.dry_run_default)",
    )
    pr.add_argument("--summary-json", help="Write per-wish results to this JSON file")

    pp = sub.add_parser("process", help="Process one wish issue")
    pp.add_argument("--issue", type=int, required=True)
    pp.add_argument("--repo", help=REPO_HELP)
    pp.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Plan without writing (default: behavior.dry_run_default)",
    )

    pv = sub.add_parser("preview", help="Show the merged FUNDING.yml for a repository")
    pv.add_argument("--repo", required=True, help="Target repository (owner/repo or URL)")
    pv.add_argument("--link", required=True, help="Wishlist link to add")
    return p


def _resolve_token(cfg: WishConfig) -> str | None:
    manager = create_env_auth_manager(
        EnvAuthConfig(
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
        )
    )
    return manager.get_github_token()


def _print_result(result: WishResult) -> None:
    line = f"#{result.issue_number} {result.status}"
    if result.target:
        line += f" {result.target}"
    if result.pr_url:
        line += f" {result.pr_url}"
    if result.error:
        line += f" ({result.error})"
    print(line)


def _cmd_run(cfg: WishConfig, args: argparse.Namespace, token: str) -> int:
    if args.label:
        cfg.trigger_label = args.label
    ctx = build_context(cfg, token, home_repo=args.repo, dry_run=args.dry_run)
    results = run_batch(ctx)
    for result in results:
        _print_result(result)
    summary = summarize(results)
    if args.summary_json:
        with open(args.summary_json, "w", encoding="utf-8") as fh:
            json.dump(
                {"summary": summary, "results": [asdict(r) for r in results]}, fh, indent=2
            )
    return 1 if summary["failed"] else 0


def _cmd_process(cfg: WishConfig, args: argparse.Namespace, token: str) -> int:
    ctx = build_context(cfg, token, home_repo=args.repo, dry_run=args.dry_run)
    result = process_issue_number(ctx, args.issue)
    _print_result(result)
    if result.detail.get("content"):
        print(result.detail["content"], end="")
    return 1 if result.status == STATUS_FAILED else 0


def _cmd_preview(cfg: WishConfig, args: argparse.Namespace, token: str) -> int:
    repo = normalize_repository(args.repo)
    if not repo:
        print(f"[preview] not a repository reference: {args.repo}", file=sys.stderr)
        return 2
    probe = RepositoryStateProbe(
        GitHubRestClient(token=token, base_url=cfg.api_url), funding_paths=cfg.funding_paths
    )
    funding = probe.locate_funding_file(repo)
    path = funding.path if funding is not None else (cfg.funding_paths or list(FUNDING_PATHS))[0]
    merged = merge_funding(funding.content if funding else None, args.link, path=path)
    print(f"# {repo}:{path} ({'update' if funding else 'create'})")
    print(merged.decode("utf-8"), end="")
    return 0


_HANDLERS = {
    "run": _cmd_run,
    "process": _cmd_process,
    "preview": _cmd_preview,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("FUNDINGWISH_QUIET") == "1":
        args.quiet = True
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"[config] {exc}", file=sys.stderr)
        return 2
    configure_logging(
        json_logging=cfg.logging_json_enabled,
        level="WARNING" if args.quiet else cfg.logging_level,
    )
    token = _resolve_token(cfg)
    if not token:
        print("[auth] no GitHub token found (set GITHUB_TOKEN or GH_TOKEN)", file=sys.stderr)
        return 2
    handler = _HANDLERS[args.cmd]
    try:
        return handler(cfg, args, token)
    except (GitHubAPIError, WishError) as exc:
        print(f"[{args.cmd}] {redact(str(exc))}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
