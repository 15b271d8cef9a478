"""
docwatch — production entry point.

Reads config from environment variables (.env file or system env):
    FEISHU_APP_ID, FEISHU_APP_SECRET   — required
    WATCH_DOCS                         — "token[:type],token[:type]"
    NOTIFY_CHAT_ID                     — chat to notify
"""

import asyncio
import sys
from pathlib import Path

from loguru import logger

from docwatch.cli import configure_logging
from docwatch.config import ConfigError, WatchConfig


async def main(cfg: WatchConfig) -> None:
    from docwatch.channels.feishu import FeishuChannel
    from docwatch.poller import DocumentPoller
    from docwatch.store import ChangeLog, TrackedDocStore

    channel = FeishuChannel(
        app_id=cfg.feishu_app_id,
        app_secret=cfg.feishu_app_secret,
        retry_attempts=cfg.retry_attempts,
    )

    poller = DocumentPoller(
        channel,
        store=TrackedDocStore(cfg.state_path),
        config=cfg.polling_config(),
        change_log=ChangeLog(cfg.change_log_path),
    )
    await poller.load()

    for doc_token, doc_type in cfg.watch_docs:
        await poller.start_tracking(doc_token, doc_type, cfg.notify_chat_id)

    if not poller.get_subscriptions():
        logger.warning("No documents to watch. Set WATCH_DOCS and NOTIFY_CHAT_ID.")
        return

    logger.info("docwatch starting...")
    await poller.run()


if __name__ == "__main__":
    try:
        config = WatchConfig.from_env()
    except ConfigError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)

    if config.watch_docs and not config.notify_chat_id:
        print("ERROR: NOTIFY_CHAT_ID is not set.")
        sys.exit(1)

    configure_logging(config.log_level, Path(config.state_dir) / "docwatch.log")
    asyncio.run(main(config))
