"""
Hello World — the simplest docwatch example. No Feishu account needed.

Simulates a few edits on one document and shows what gets notified and
what gets debounced.

Run:
    python examples/hello_world.py
"""

import asyncio

from docwatch import (
    ConsoleChannel,
    DocMetadata,
    DocumentPoller,
    ManualClock,
    PollingConfig,
    analyze_change_pattern,
)

DOC = "doccnHelloWorld123"


async def main() -> None:
    # 1. Clock we can move by hand
    clock = ManualClock(start_ms=1_700_000_000_000)

    # 2. Offline channel: metadata from memory, notifications to stdout
    channel = ConsoleChannel()

    # 3. Poller
    poller = DocumentPoller(
        channel,
        config=PollingConfig(debounce_window_ms=5000, enable_logging=False),
        clock=clock,
    )
    await poller.start_tracking(DOC, "docx", "oc_demo")

    # 4. Edits: (user, modified_at seconds, ms to wait before polling)
    edits = [
        ("ou_alice", 100, 0),       # first sighting
        ("ou_alice", 101, 2000),    # 2s later → debounced
        ("ou_alice", 101, 4000),    # window passed → notified
        ("ou_bob", 101, 1000),      # same time, new editor → notified
    ]

    results = []
    for user, modified, wait_ms in edits:
        clock.advance(wait_ms)
        channel.set_metadata(DocMetadata(DOC, user, modified, title="Hello"))
        result = await poller.poll_document(poller.get_subscriptions()[0])
        results.append(result)
        print(f"{user} @ {modified}: {result.reason}")

    pattern = analyze_change_pattern(results)
    print(
        f"\n{pattern.total_changes} polls, {pattern.total_debounced} debounced, "
        f"editors notified: {sorted(pattern.unique_users)}"
    )


if __name__ == "__main__":
    asyncio.run(main())
