"""
docwatch CLI entry point.

Usage:
    docwatch watch doccnXXXXXXXX:docx shtcnYYYYYYYY:sheet --chat-id oc_xxx
    docwatch check doccnXXXXXXXX:docx
    docwatch list
    docwatch --help
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from loguru import logger

from docwatch import __version__

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """stderr sink at ``level`` plus an optional rotating DEBUG file sink."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())
    if log_file:
        logger.add(
            Path(log_file).expanduser(),
            rotation="10 MB",
            retention="7 days",
            level="DEBUG",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docwatch",
        description="docwatch - notify a Feishu chat when a document changes",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--state-dir",
        default=None,
        help="Directory for tracked state (default: $DOCWATCH_STATE_DIR or ~/.docwatch)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"docwatch {__version__}",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="Poll documents and notify a chat on change")
    watch.add_argument("docs", nargs="+", metavar="DOC", help="Document as token[:type]")
    watch.add_argument("--chat-id", required=True, help="Chat ID to notify")
    watch.add_argument("--interval-ms", type=int, default=None, help="Poll interval")
    watch.add_argument("--debounce-ms", type=int, default=None, help="Debounce window")

    check = sub.add_parser("check", help="Fetch metadata once and print the detection result")
    check.add_argument("doc", metavar="DOC", help="Document as token[:type]")

    sub.add_parser("list", help="List tracked documents")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    sys.exit(asyncio.run(_dispatch(args)))


async def _dispatch(args: argparse.Namespace) -> int:
    from docwatch.config import ConfigError

    try:
        if args.command == "list":
            return await _list(args)
        if args.command == "check":
            return await _check(args)
        if args.command == "watch":
            return await _watch(args)
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    return 2


def _state_dir(args: argparse.Namespace) -> Path:
    raw = args.state_dir or os.getenv("DOCWATCH_STATE_DIR", "~/.docwatch")
    return Path(raw).expanduser()


async def _list(args: argparse.Namespace) -> int:
    from docwatch.store import TrackedDocStore

    store = TrackedDocStore(_state_dir(args) / "tracked_docs.json")
    await store.load()

    subs = store.list_subscriptions()
    if not subs:
        print("No documents tracked.")
        return 0

    for s in subs:
        tracked = store.get(s.doc_token)
        if tracked:
            state = f"last edit {tracked.last_known_time} by {tracked.last_known_user}"
        else:
            state = "not yet seen"
        print(f"{s.doc_token} ({s.doc_type}) -> {s.chat_id_to_notify}: {state}")
    return 0


async def _check(args: argparse.Namespace) -> int:
    from docwatch.channels.feishu import FeishuChannel
    from docwatch.config import WatchConfig, parse_doc_spec
    from docwatch.detector import detect_change, format_detection_result
    from docwatch.store import TrackedDocStore

    cfg = WatchConfig.from_env()
    doc_token, doc_type = parse_doc_spec(args.doc)

    store = TrackedDocStore(_state_dir(args) / "tracked_docs.json")
    await store.load()

    channel = FeishuChannel(
        cfg.feishu_app_id,
        cfg.feishu_app_secret,
        retry_attempts=cfg.retry_attempts,
    )
    metadata = await channel.fetch_metadata(doc_token, doc_type, use_cache=False)
    if metadata is None:
        print(f"Could not fetch metadata for {doc_token}", file=sys.stderr)
        return 1

    result = detect_change(
        metadata,
        store.get(doc_token),
        cfg.polling_config().detection_config(),
    )
    print(f"{metadata.title} ({doc_token})")
    print(f"  last modified by {metadata.last_modified_user} at {metadata.last_modified_time}")
    print(f"  {format_detection_result(result)}")
    return 0


async def _watch(args: argparse.Namespace) -> int:
    from docwatch.channels.feishu import FeishuChannel
    from docwatch.config import WatchConfig, parse_doc_spec
    from docwatch.poller import DocumentPoller
    from docwatch.store import ChangeLog, TrackedDocStore

    cfg = WatchConfig.from_env()
    if args.state_dir:
        cfg.state_dir = args.state_dir
    if args.interval_ms is not None:
        cfg.interval_ms = args.interval_ms
    if args.debounce_ms is not None:
        cfg.debounce_window_ms = args.debounce_ms

    channel = FeishuChannel(
        cfg.feishu_app_id,
        cfg.feishu_app_secret,
        retry_attempts=cfg.retry_attempts,
    )
    poller = DocumentPoller(
        channel,
        store=TrackedDocStore(cfg.state_path),
        config=cfg.polling_config(),
        change_log=ChangeLog(cfg.change_log_path),
    )
    await poller.load()

    for spec in args.docs:
        doc_token, doc_type = parse_doc_spec(spec)
        await poller.start_tracking(doc_token, doc_type, args.chat_id)

    logger.info("docwatch starting...")
    try:
        await poller.run()
    finally:
        await channel.stop()
    return 0


if __name__ == "__main__":
    main()
