"""
Feishu document watcher example.

Setup:
1. Create a Feishu app at https://open.feishu.cn/app
2. Enable "Bot" capability and add the bot to the group to notify
3. Grant drive:drive:readonly, contact:user.base:readonly, im:message:send_as_bot
4. Set environment variables and run this script

Run:
    export FEISHU_APP_ID=cli_xxx
    export FEISHU_APP_SECRET=xxx
    export NOTIFY_CHAT_ID=oc_xxx
    python examples/feishu_bot.py doccnULnB44EMMPSYa3rIb4eJCf:doc
"""

import asyncio
import os
import sys

from docwatch import ChangeLog, DocumentPoller, PollingConfig, TTLCache, TrackedDocStore
from docwatch.channels.feishu import FeishuChannel
from docwatch.config import parse_doc_spec


async def main(doc_specs: list[str]) -> None:
    # 1. Channel with explicit caches
    feishu = FeishuChannel(
        app_id=os.environ["FEISHU_APP_ID"],
        app_secret=os.environ["FEISHU_APP_SECRET"],
        metadata_cache=TTLCache(30_000, name="metadata"),
        user_cache=TTLCache(60 * 60 * 1000, name="users"),
    )

    # 2. Poller with on-disk state
    poller = DocumentPoller(
        feishu,
        store=TrackedDocStore("~/.docwatch/tracked_docs.json"),
        config=PollingConfig(interval_ms=30_000, debounce_window_ms=5000),
        change_log=ChangeLog("~/.docwatch/changes.jsonl"),
    )
    await poller.load()

    # 3. Documents
    for spec in doc_specs:
        token, doc_type = parse_doc_spec(spec)
        await poller.start_tracking(token, doc_type, os.environ["NOTIFY_CHAT_ID"])

    print("Document watcher starting...")
    await poller.run()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python examples/feishu_bot.py TOKEN[:TYPE] [...]")
        sys.exit(1)
    asyncio.run(main(sys.argv[1:]))
