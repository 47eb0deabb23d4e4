"""
config.py — Runtime configuration from the environment, overridable by CLI flags.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Mapping, Optional

from agents import DEFAULT_MODEL
from errors import ConfigError
from retry import RetryPolicy
from scanner import DEFAULT_CACHE_DIRNAME


@dataclass
class Config:
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    cache_dir_name: str = DEFAULT_CACHE_DIRNAME
    document_name: str = "README.md"
    max_concurrent: int = 8
    max_retries: int = 3
    retry_delay: float = 2.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Config":
        env = os.environ if env is None else env
        try:
            return cls(
                api_key=env.get("ANTHROPIC_API_KEY") or None,
                model=env.get("DOCTREE_MODEL", DEFAULT_MODEL),
                cache_dir_name=env.get("DOCTREE_CACHE_DIR", DEFAULT_CACHE_DIRNAME),
                document_name=env.get("DOCTREE_DOCUMENT", "README.md"),
                max_concurrent=int(env.get("DOCTREE_MAX_CONCURRENT", "8")),
                max_retries=int(env.get("DOCTREE_MAX_RETRIES", "3")),
                retry_delay=float(env.get("DOCTREE_RETRY_DELAY", "2.0")),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting in environment: {e}") from e

    def with_overrides(self, **overrides) -> "Config":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self, *, require_api_key: bool = True) -> None:
        if require_api_key and not self.api_key:
            raise ConfigError("ANTHROPIC_API_KEY environment variable not set (or pass --api-key).")
        if not self.model:
            raise ConfigError("Model name cannot be empty")
        if not self.cache_dir_name or Path(self.cache_dir_name).name != self.cache_dir_name:
            raise ConfigError(f"Cache directory must be a plain directory name, got {self.cache_dir_name!r}")
        if not self.document_name:
            raise ConfigError("Document name cannot be empty")
        if self.max_concurrent < 1:
            raise ConfigError("max_concurrent must be at least 1")
        if self.max_retries < 0:
            raise ConfigError("max_retries cannot be negative")
        if self.retry_delay < 0:
            raise ConfigError("retry_delay cannot be negative")

    def cache_dir(self, project_root: Path) -> Path:
        return project_root / self.cache_dir_name

    def document_path(self, project_root: Path) -> Path:
        return project_root / self.document_name

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_retries + 1, base_delay=self.retry_delay)
