"""
Configuration loading and validation.

Loads watcher configuration from a YAML file. The bearer token is read from
the environment variable named in the config, never from the file itself.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator


class ServerConfig(BaseModel):
    url: str = "http://localhost:8000"
    token_env: str = "PT_WATCHER_TOKEN"
    verify_tls: bool = True
    request_timeout_seconds: int = 30
    heartbeat_timeout_seconds: int = 90

    @property
    def token(self) -> str | None:
        return os.environ.get(self.token_env)


class PollingConfig(BaseModel):
    interval_seconds: float = Field(30.0, gt=0)
    jitter_seconds: float = Field(5.0, ge=0)
    backoff_base_seconds: float = Field(1.0, gt=0)
    backoff_max_seconds: float = Field(300.0, gt=0)
    # Consecutive SSE failures before switching to polling
    sse_failures_before_polling: int = Field(3, ge=1)
    # Successful polls between attempts to get back onto SSE
    polls_between_sse_retries: int = Field(10, ge=1)
    page_size: int = Field(50, ge=1, le=200)

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "PollingConfig":
        if self.backoff_max_seconds < self.backoff_base_seconds:
            raise ValueError("backoff_max_seconds must be >= backoff_base_seconds")
        return self


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class WatcherConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> WatcherConfig:
    """Load and validate watcher configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return WatcherConfig.model_validate(raw)
