"""Tests for the docwatch command line."""

from __future__ import annotations

import argparse

import pytest

from docwatch.cli import _list, build_parser
from docwatch.models import Subscription
from docwatch.store import TrackedDocStore

from tests.helpers import DOC_TOKEN, make_tracked


class TestParser:

    def test_watch(self) -> None:
        args = build_parser().parse_args(
            ["watch", "doccnAAAAAAAAAA:doc", "shtcnBBBBBBBBBB:sheet", "--chat-id", "oc_1", "--debounce-ms", "2000"]
        )

        assert args.command == "watch"
        assert args.docs == ["doccnAAAAAAAAAA:doc", "shtcnBBBBBBBBBB:sheet"]
        assert args.chat_id == "oc_1"
        assert args.debounce_ms == 2000
        assert args.interval_ms is None

    def test_watch_requires_chat_id(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["watch", "doccnAAAAAAAAAA"])

    def test_check_and_list(self) -> None:
        parser = build_parser()

        assert parser.parse_args(["check", "doccnAAAAAAAAAA"]).doc == "doccnAAAAAAAAAA"
        args = parser.parse_args(["--state-dir", "/tmp/dw", "list"])
        assert args.command == "list"
        assert args.state_dir == "/tmp/dw"

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestList:

    @pytest.mark.asyncio
    async def test_list_prints_state(self, tmp_path, capsys) -> None:
        store = TrackedDocStore(tmp_path / "tracked_docs.json")
        store.add_subscription(Subscription(DOC_TOKEN, "doc", "oc_abc123"))
        store.add_subscription(Subscription("shtcnBBBBBBBBBB", "sheet", "oc_other"))
        store.put(make_tracked("alice", 100))
        await store.save()

        code = await _list(argparse.Namespace(state_dir=str(tmp_path)))

        out = capsys.readouterr().out
        assert code == 0
        assert f"{DOC_TOKEN} (doc) -> oc_abc123: last edit 100 by alice" in out
        assert "shtcnBBBBBBBBBB (sheet) -> oc_other: not yet seen" in out

    @pytest.mark.asyncio
    async def test_list_empty(self, tmp_path, capsys) -> None:
        code = await _list(argparse.Namespace(state_dir=str(tmp_path)))

        assert code == 0
        assert "No documents tracked." in capsys.readouterr().out
