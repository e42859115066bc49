from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .forks import DEFAULT_SETTLE_SECONDS
from .probe import FUNDING_PATHS
from .tracker import PROCESSED_LABEL

CONFIG_DEFAULT = "fundingwish.config.yaml"
DEFAULT_WISHLISTS_REPO = "oss-wishlist/wishlists"
DEFAULT_TRIGGER_LABEL = "funding-yml-requested"
DEFAULT_API_URL = "https://api.github.com"


class ConfigError(RuntimeError):
    pass


@dataclass
class WishConfig:
    wishlists_repo: str = DEFAULT_WISHLISTS_REPO
    error_repo: str | None = None
    bot_login: str | None = None
    api_url: str = DEFAULT_API_URL
    trigger_label: str = DEFAULT_TRIGGER_LABEL
    processed_label: str = PROCESSED_LABEL
    fork_settle_seconds: float = DEFAULT_SETTLE_SECONDS
    pr_scan_per_page: int = 100
    pr_scan_pages: int = 1
    dry_run_default: bool = False
    funding_paths: list[str] = field(default_factory=lambda: list(FUNDING_PATHS))
    cache_refresh_url: str | None = None
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None

    @property
    def error_sink_repo(self) -> str:
        return self.error_repo or self.wishlists_repo


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        resolved = os.getenv(env_name)
        return resolved if resolved else None
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def config_from_mapping(raw: dict[str, Any]) -> WishConfig:
    gh = _section(raw, 'github')
    behavior = _section(raw, 'behavior')
    funding = _section(raw, 'funding')
    cache = _section(raw, 'cache')
    logging_config = _section(raw, 'logging')
    env_auth = _section(raw, 'environment')

    paths = funding.get('paths') or list(FUNDING_PATHS)
    if not isinstance(paths, list) or not all(isinstance(p, str) and p for p in paths):
        raise ConfigError("funding.paths must be a non-empty list of paths")

    try:
        return WishConfig(
            wishlists_repo=str(
                _resolve_env_var(gh.get('wishlists_repo')) or DEFAULT_WISHLISTS_REPO
            ),
            error_repo=_resolve_env_var(gh.get('error_repo')),
            bot_login=_resolve_env_var(gh.get('bot_login')),
            api_url=str(gh.get('api_url') or DEFAULT_API_URL),
            trigger_label=str(behavior.get('trigger_label', DEFAULT_TRIGGER_LABEL)),
            processed_label=str(behavior.get('processed_label', PROCESSED_LABEL)),
            fork_settle_seconds=float(
                behavior.get('fork_settle_seconds', DEFAULT_SETTLE_SECONDS)
            ),
            pr_scan_per_page=int(behavior.get('pr_scan_per_page', 100)),
            pr_scan_pages=int(behavior.get('pr_scan_pages', 1)),
            dry_run_default=bool(behavior.get('dry_run_default', False)),
            funding_paths=list(paths),
            cache_refresh_url=_resolve_env_var(cache.get('refresh_url')),
            logging_json_enabled=bool(logging_config.get('json_enabled', False)),
            logging_level=str(logging_config.get('level', 'INFO')),
            env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
            env_auth_dotenv_path=env_auth.get('dotenv_path'),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc


def load_config(path: str | Path | None = None) -> WishConfig:
    """Load configuration from YAML.

    With no explicit path the default file is used when present and built-in
    defaults otherwise. An explicit path that does not exist is an error.
    """
    if path is None:
        p = Path(CONFIG_DEFAULT)
        if not p.exists():
            return WishConfig()
    else:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw_any = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f'Configuration root in {p} must be a mapping')
    return config_from_mapping(cast(dict[str, Any], raw_any))


__all__ = ["WishConfig", "ConfigError", "load_config", "config_from_mapping", "CONFIG_DEFAULT"]
