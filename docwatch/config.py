"""
Configuration from environment variables (.env file or system env).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from docwatch.models import SUPPORTED_DOC_TYPES, is_valid_doc_token, is_valid_doc_type
from docwatch.poller import PollingConfig


class ConfigError(ValueError):
    """Required configuration is missing or invalid."""


def _require(key: str) -> str:
    val = os.getenv(key, "").strip()
    if not val:
        raise ConfigError(f"{key} is not set. Copy .env.example to .env and fill in values.")
    return val


def _int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def _bool(key: str, default: bool) -> bool:
    raw = os.getenv(key, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def parse_doc_spec(spec: str, default_type: str = "docx") -> tuple[str, str]:
    """Split ``token[:type]`` into (token, type)."""
    token, _, doc_type = spec.strip().partition(":")
    if not token:
        raise ConfigError(f"Empty document token in {spec!r}")
    if not is_valid_doc_token(token):
        raise ConfigError(f"Invalid document token {token!r} (expected 10+ letters or digits)")
    doc_type = doc_type or default_type
    if not is_valid_doc_type(doc_type):
        raise ConfigError(
            f"Unsupported document type {doc_type!r} (one of: {', '.join(SUPPORTED_DOC_TYPES)})"
        )
    return token, doc_type


def parse_watch_docs(raw: str, default_type: str = "docx") -> list[tuple[str, str]]:
    """Parse a comma separated ``token[:type]`` list."""
    return [parse_doc_spec(part, default_type) for part in raw.split(",") if part.strip()]


@dataclass
class WatchConfig:
    """docwatch configuration."""

    feishu_app_id: str
    feishu_app_secret: str

    # Polling
    interval_ms: int = 30_000
    debounce_window_ms: int = 5000
    max_concurrent_polls: int = 100
    retry_attempts: int = 3
    allow_duplicate_notifications: bool = False
    enable_logging: bool = True

    # State
    state_dir: str = "~/.docwatch"

    # Logging
    log_level: str = "INFO"

    # What to watch (run.py)
    watch_docs: list[tuple[str, str]] = field(default_factory=list)
    notify_chat_id: str = ""

    @classmethod
    def from_env(cls, *, load_dotenv_file: bool = True) -> "WatchConfig":
        if load_dotenv_file:
            load_dotenv()

        return cls(
            feishu_app_id=_require("FEISHU_APP_ID"),
            feishu_app_secret=_require("FEISHU_APP_SECRET"),
            interval_ms=_int("POLL_INTERVAL_MS", 30_000),
            debounce_window_ms=_int("DEBOUNCE_WINDOW_MS", 5000),
            max_concurrent_polls=_int("MAX_CONCURRENT_POLLS", 100),
            retry_attempts=_int("RETRY_ATTEMPTS", 3),
            allow_duplicate_notifications=_bool("ALLOW_DUPLICATE_NOTIFICATIONS", False),
            enable_logging=_bool("DOCWATCH_ENABLE_LOGGING", True),
            state_dir=os.getenv("DOCWATCH_STATE_DIR", "~/.docwatch"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            watch_docs=parse_watch_docs(os.getenv("WATCH_DOCS", "")),
            notify_chat_id=os.getenv("NOTIFY_CHAT_ID", "").strip(),
        )

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser() / "tracked_docs.json"

    @property
    def change_log_path(self) -> Path:
        return Path(self.state_dir).expanduser() / "changes.jsonl"

    def polling_config(self) -> PollingConfig:
        return PollingConfig(
            interval_ms=self.interval_ms,
            max_concurrent_polls=self.max_concurrent_polls,
            debounce_window_ms=self.debounce_window_ms,
            allow_duplicate_notifications=self.allow_duplicate_notifications,
            enable_logging=self.enable_logging,
        )
