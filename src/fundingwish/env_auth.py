"""Environment-based authentication for fundingwish.

Resolves the GitHub token from environment variables (including the
``INPUT_GITHUB-TOKEN`` variable GitHub Actions exposes for action inputs)
after optionally loading a ``.env`` file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

TOKEN_ALTERNATIVES = ("GH_TOKEN", "GITHUB_PAT", "INPUT_GITHUB-TOKEN", "INPUT_GITHUB_TOKEN")


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"


class EnvironmentAuthManager:
    """Manages authentication through environment variables and .env files."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        """Load .env file if available."""
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else ['.env', '.env.local']
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path))
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                break

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def get_github_token(self) -> str | None:
        """Get GitHub token from environment variables."""
        token = os.getenv(self.config.github_token_var)
        if token:
            self.logger.debug("Found GitHub token in environment variables")
            return token

        for alt_var in TOKEN_ALTERNATIVES:
            token = os.getenv(alt_var)
            if token:
                self.logger.debug(f"Found GitHub token in {alt_var}")
                return token

        if not self._dotenv_loaded:
            self.logger.debug("No GitHub token in the environment and no .env file was loaded")
        return None


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager", "TOKEN_ALTERNATIVES"]
