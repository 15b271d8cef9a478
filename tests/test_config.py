"""Tests for environment configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from docwatch.config import ConfigError, WatchConfig, parse_doc_spec, parse_watch_docs

ENV_KEYS = (
    "FEISHU_APP_ID",
    "FEISHU_APP_SECRET",
    "POLL_INTERVAL_MS",
    "DEBOUNCE_WINDOW_MS",
    "MAX_CONCURRENT_POLLS",
    "RETRY_ATTEMPTS",
    "ALLOW_DUPLICATE_NOTIFICATIONS",
    "DOCWATCH_ENABLE_LOGGING",
    "DOCWATCH_STATE_DIR",
    "LOG_LEVEL",
    "WATCH_DOCS",
    "NOTIFY_CHAT_ID",
)


@pytest.fixture
def env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FEISHU_APP_ID", "cli_a1b2c3")
    monkeypatch.setenv("FEISHU_APP_SECRET", "s3cret")
    return monkeypatch


class TestWatchConfig:

    def test_defaults(self, env) -> None:
        cfg = WatchConfig.from_env(load_dotenv_file=False)

        assert cfg.feishu_app_id == "cli_a1b2c3"
        assert cfg.interval_ms == 30_000
        assert cfg.debounce_window_ms == 5000
        assert cfg.max_concurrent_polls == 100
        assert cfg.allow_duplicate_notifications is False
        assert cfg.enable_logging is True
        assert cfg.watch_docs == []

    def test_missing_app_id(self, env) -> None:
        env.delenv("FEISHU_APP_ID")
        with pytest.raises(ConfigError, match="FEISHU_APP_ID"):
            WatchConfig.from_env(load_dotenv_file=False)

    def test_blank_secret_counts_as_missing(self, env) -> None:
        env.setenv("FEISHU_APP_SECRET", "   ")
        with pytest.raises(ConfigError, match="FEISHU_APP_SECRET"):
            WatchConfig.from_env(load_dotenv_file=False)

    def test_invalid_int(self, env) -> None:
        env.setenv("POLL_INTERVAL_MS", "soon")
        with pytest.raises(ConfigError, match="POLL_INTERVAL_MS"):
            WatchConfig.from_env(load_dotenv_file=False)

    @pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("YES", True), ("off", False), ("0", False)])
    def test_bool_parsing(self, env, raw, expected) -> None:
        env.setenv("ALLOW_DUPLICATE_NOTIFICATIONS", raw)
        cfg = WatchConfig.from_env(load_dotenv_file=False)
        assert cfg.allow_duplicate_notifications is expected

    def test_overrides_and_polling_config(self, env) -> None:
        env.setenv("POLL_INTERVAL_MS", "60000")
        env.setenv("DEBOUNCE_WINDOW_MS", "10000")
        env.setenv("MAX_CONCURRENT_POLLS", "4")
        env.setenv("DOCWATCH_ENABLE_LOGGING", "false")

        polling = WatchConfig.from_env(load_dotenv_file=False).polling_config()

        assert polling.interval_ms == 60_000
        assert polling.max_concurrent_polls == 4
        detection = polling.detection_config()
        assert detection.debounce_window_ms == 10_000
        assert detection.enable_logging is False

    def test_watch_docs_and_paths(self, env, tmp_path) -> None:
        env.setenv("WATCH_DOCS", "doccnAAAAAAAAAA:doc, shtcnBBBBBBBBBB:sheet,,doxcnCCCCCCCCCC")
        env.setenv("NOTIFY_CHAT_ID", " oc_123 ")
        env.setenv("DOCWATCH_STATE_DIR", str(tmp_path))

        cfg = WatchConfig.from_env(load_dotenv_file=False)

        assert cfg.watch_docs == [
            ("doccnAAAAAAAAAA", "doc"),
            ("shtcnBBBBBBBBBB", "sheet"),
            ("doxcnCCCCCCCCCC", "docx"),
        ]
        assert cfg.notify_chat_id == "oc_123"
        assert cfg.state_path == Path(tmp_path) / "tracked_docs.json"
        assert cfg.change_log_path == Path(tmp_path) / "changes.jsonl"


class TestDocSpec:

    def test_token_only_uses_default_type(self) -> None:
        assert parse_doc_spec("doccnAAAAAAAAAA") == ("doccnAAAAAAAAAA", "docx")
        assert parse_doc_spec("doccnAAAAAAAAAA", default_type="doc") == ("doccnAAAAAAAAAA", "doc")

    def test_explicit_type(self) -> None:
        assert parse_doc_spec(" bascnAAAAAAAAAA:bitable ") == ("bascnAAAAAAAAAA", "bitable")

    def test_empty_token(self) -> None:
        with pytest.raises(ConfigError):
            parse_doc_spec(":sheet")

    @pytest.mark.parametrize("spec", ["bad token!", "short:doc", "doccnAAAAAAAAAA:pdf"])
    def test_rejects_invalid_documents(self, spec) -> None:
        with pytest.raises(ConfigError):
            parse_doc_spec(spec)

    def test_invalid_watch_docs_entry(self, env) -> None:
        env.setenv("WATCH_DOCS", "doccnAAAAAAAAAA,oops")
        with pytest.raises(ConfigError, match="oops"):
            WatchConfig.from_env(load_dotenv_file=False)

    def test_empty_list(self) -> None:
        assert parse_watch_docs("") == []
