"""
Persistence for watched documents.

- TrackedDocStore: subscriptions + last known state, one JSON snapshot file
  rewritten on save. path=None keeps everything in memory.
- ChangeLog: append-only JSONL audit trail of detected changes
  (never rewritten).

I/O failures are logged and swallowed so a broken disk never stops polling.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiofiles
from loguru import logger

from docwatch.models import ChangeEvent, Subscription, TrackedDoc


class TrackedDocStore:
    """Subscriptions and tracked state keyed by doc token."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self._subscriptions: dict[str, Subscription] = {}
        self._tracked: dict[str, TrackedDoc] = {}

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load the snapshot file, if any. Malformed entries are skipped."""
        if self.path is None or not self.path.exists():
            return

        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            data = json.loads(raw) if raw.strip() else {}
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(f"[store] Failed to load {self.path}: {exc}")
            return

        subscriptions: dict[str, Subscription] = {}
        for item in data.get("subscriptions", []):
            try:
                sub = Subscription.from_dict(item)
                subscriptions[sub.doc_token] = sub
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"[store] Skipping malformed subscription: {exc}")

        tracked: dict[str, TrackedDoc] = {}
        for item in data.get("tracked", []):
            try:
                doc = TrackedDoc.from_dict(item)
                tracked[doc.doc_token] = doc
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"[store] Skipping malformed tracked doc: {exc}")

        self._subscriptions = subscriptions
        self._tracked = tracked
        logger.debug(
            f"[store] Loaded {len(subscriptions)} subscription(s), "
            f"{len(tracked)} tracked state(s) from {self.path}"
        )

    async def save(self) -> None:
        if self.path is None:
            return

        data: dict[str, Any] = {
            "subscriptions": [s.to_dict() for s in self._subscriptions.values()],
            "tracked": [t.to_dict() for t in self._tracked.values()],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, ensure_ascii=False, indent=2))
        except OSError as exc:
            logger.error(f"[store] Failed to save {self.path}: {exc}")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def add_subscription(self, sub: Subscription) -> bool:
        """Returns False if the document is already subscribed."""
        if sub.doc_token in self._subscriptions:
            return False
        self._subscriptions[sub.doc_token] = sub
        return True

    def remove_subscription(self, doc_token: str) -> bool:
        """Remove a subscription and its tracked state."""
        if doc_token not in self._subscriptions:
            return False
        del self._subscriptions[doc_token]
        self._tracked.pop(doc_token, None)
        return True

    def get_subscription(self, doc_token: str) -> Subscription | None:
        return self._subscriptions.get(doc_token)

    def list_subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    # ------------------------------------------------------------------
    # Tracked state
    # ------------------------------------------------------------------

    def get(self, doc_token: str) -> TrackedDoc | None:
        return self._tracked.get(doc_token)

    def put(self, tracked: TrackedDoc) -> None:
        self._tracked[tracked.doc_token] = tracked

    def delete(self, doc_token: str) -> bool:
        return self._tracked.pop(doc_token, None) is not None

    def list_tracked(self) -> list[TrackedDoc]:
        return list(self._tracked.values())

    def clear(self) -> None:
        self._subscriptions.clear()
        self._tracked.clear()

    def __len__(self) -> int:
        return len(self._subscriptions)


class ChangeLog:
    """Append-only change audit trail."""

    def __init__(self, path: str | Path | None = None, keep_recent: int = 200) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self.keep_recent = keep_recent
        self._recent: list[ChangeEvent] = []

    async def append(self, event: ChangeEvent) -> None:
        self._recent.append(event)
        if len(self._recent) > self.keep_recent:
            del self._recent[: len(self._recent) - self.keep_recent]

        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.error(f"[store] Failed to append to change log {self.path}: {exc}")

    def recent(self, limit: int = 20) -> list[ChangeEvent]:
        return self._recent[-limit:] if limit > 0 else []

    async def read_all(self) -> list[ChangeEvent]:
        """Read every event from disk (falls back to the in-memory tail)."""
        if self.path is None or not self.path.exists():
            return list(self._recent)

        events: list[ChangeEvent] = []
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                async for raw_line in f:
                    line = raw_line.strip()
                    if not line:
                        continue
                    try:
                        events.append(ChangeEvent.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, ValueError) as exc:
                        logger.warning(f"[store] Skipping malformed line in {self.path}: {exc}")
        except OSError as exc:
            logger.error(f"[store] Failed to read change log {self.path}: {exc}")
        return events
