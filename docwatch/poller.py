"""
Document poller — connects a channel to the change detector.

Each cycle, for every subscription:
    fetch metadata → detect_change() → notify → persist new TrackedDoc

- At most one evaluation per document at a time (per-doc lock), so two
  cycles can never race on last_notification_time
- A semaphore bounds how many documents are polled concurrently
- Debounced changes leave stored state untouched: the edit is seen again on
  the next cycle and delivered once the window has passed
- Resend guard: a (doc, chat, user, time) change that was already delivered
  is not sent twice, unless allow_duplicate_notifications is set. Stopping
  tracking forgets the document's delivered keys
- One document failing never aborts the cycle; failures feed the metrics

Usage::

    poller = DocumentPoller(channel=FeishuChannel(...), store=TrackedDocStore(path))
    await poller.load()
    await poller.start_tracking("doccnXXXXXXXX", "docx", "oc_xxx")
    await poller.run()
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from docwatch.cache import TTLCache
from docwatch.channels.base import Channel, Notification
from docwatch.clock import Clock, system_clock
from docwatch.detector import (
    ChangeDetectionConfig,
    create_updated_tracked_state,
    detect_change,
    format_detection_result,
)
from docwatch.models import (
    ChangeDetectionResult,
    ChangeEvent,
    ChangeType,
    DocMetadata,
    Subscription,
    TrackedDoc,
    format_doc_change,
    is_valid_doc_token,
    is_valid_doc_type,
)
from docwatch.store import ChangeLog, TrackedDocStore

_HOUR_MS = 60 * 60 * 1000
_RECENT_CYCLES = 100


# ---------------------------------------------------------------------------
# Config / metrics
# ---------------------------------------------------------------------------

@dataclass
class PollingConfig:
    """Poller configuration."""

    interval_ms: int = 30_000
    max_concurrent_polls: int = 100
    debounce_window_ms: int = 5000
    allow_duplicate_notifications: bool = False
    enable_logging: bool = True

    # How long a delivered change key is remembered by the resend guard
    idempotency_ttl_ms: int = 24 * _HOUR_MS

    def detection_config(self) -> ChangeDetectionConfig:
        return ChangeDetectionConfig(
            debounce_window_ms=self.debounce_window_ms,
            allow_duplicate_notifications=self.allow_duplicate_notifications,
            enable_logging=self.enable_logging,
        )


@dataclass
class PollingMetrics:
    docs_tracked: int
    last_poll_time: int               # ms, 0 if never polled
    average_poll_duration_ms: int     # over the last 100 cycles
    success_rate: float               # 0-1, over the last 100 cycles
    errors_in_last_hour: int
    total_polls: int
    changes_detected: int
    debounced_changes: int
    notifications_sent: int
    notifications_failed: int


@dataclass
class HealthStatus:
    status: Literal["healthy", "degraded"]
    reason: str


def change_key(doc_token: str, chat_id: str, metadata: DocMetadata) -> str:
    return f"{doc_token}:{chat_id}:{metadata.last_modified_user}:{metadata.last_modified_time}"


# ---------------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------------

class DocumentPoller:
    """Polls watched documents and sends change notifications."""

    def __init__(
        self,
        channel: Channel,
        store: TrackedDocStore | None = None,
        config: PollingConfig | None = None,
        *,
        clock: Clock = system_clock,
        sent_cache: TTLCache | None = None,
        change_log: ChangeLog | None = None,
    ) -> None:
        self.channel = channel
        self.store = store if store is not None else TrackedDocStore()
        self.config = config if config is not None else PollingConfig()
        self.change_log = change_log if change_log is not None else ChangeLog()
        self._clock = clock
        self._sent = sent_cache if sent_cache is not None else TTLCache(
            self.config.idempotency_ttl_ms, clock=clock, name="sent-notifications"
        )

        self._doc_locks: dict[str, asyncio.Lock] = {}
        self._poll_slots = asyncio.Semaphore(max(1, self.config.max_concurrent_polls))
        self._stop_event = asyncio.Event()
        self._running = False

        self._init_metrics()

    def _init_metrics(self) -> None:
        self._total_polls = 0
        self._last_poll_time = 0
        self._cycle_ok: deque[bool] = deque(maxlen=_RECENT_CYCLES)
        self._poll_durations: deque[int] = deque(maxlen=_RECENT_CYCLES)
        self._error_times: deque[int] = deque()
        self._changes_detected = 0
        self._debounced = 0
        self._notifications_sent = 0
        self._notifications_failed = 0

    def _log(self, message: str) -> None:
        if self.config.enable_logging:
            logger.info(f"[poller] {message}")

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Load persisted subscriptions and state."""
        await self.store.load()
        self._log(f"Loaded {len(self.store)} subscription(s)")

    async def start_tracking(self, doc_token: str, doc_type: str, chat_id_to_notify: str) -> bool:
        """Watch a document. Returns False if it is already watched.

        Raises:
            ValueError: malformed doc token or unsupported doc type.
        """
        if not is_valid_doc_token(doc_token):
            raise ValueError(f"Invalid doc token: {doc_token!r}")
        if not is_valid_doc_type(doc_type):
            raise ValueError(f"Unsupported doc type: {doc_type!r}")

        sub = Subscription(doc_token, doc_type, chat_id_to_notify)
        if not self.store.add_subscription(sub):
            logger.warning(f"[poller] Already tracking {doc_token}")
            return False
        await self.store.save()
        self._log(f"Started tracking {doc_token} -> {chat_id_to_notify}")
        return True

    async def stop_tracking(self, doc_token: str) -> bool:
        """Stop watching a document and drop its state."""
        if not self.store.remove_subscription(doc_token):
            logger.warning(f"[poller] Not tracking {doc_token}")
            return False
        self._doc_locks.pop(doc_token, None)
        self._sent.delete_prefix(f"{doc_token}:")
        await self.store.save()
        self._log(f"Stopped tracking {doc_token}")
        return True

    def get_subscriptions(self) -> list[Subscription]:
        return self.store.list_subscriptions()

    def get_tracked_docs(self) -> list[TrackedDoc]:
        return self.store.list_tracked()

    def get_tracked_doc(self, doc_token: str) -> TrackedDoc | None:
        return self.store.get(doc_token)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Poll every interval until stop() is called."""
        self._running = True
        self._stop_event.clear()
        self._log(f"Polling started every {self.config.interval_ms}ms")
        try:
            while self._running:
                await self.poll_all()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(),
                        timeout=self.config.interval_ms / 1000,
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            self._log("Polling stopped")

    async def run_once(self) -> None:
        await self.poll_all()

    def stop(self) -> None:
        self._running = False
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_all(self) -> None:
        """Run one polling cycle over every subscription."""
        subs = self.store.list_subscriptions()
        if not subs:
            return

        start = self._clock()
        self._total_polls += 1
        self._last_poll_time = start
        self._log(f"Polling {len(subs)} document(s)...")

        results = await asyncio.gather(
            *(self.poll_document(sub) for sub in subs),
            return_exceptions=True,
        )

        failures = 0
        for sub, result in zip(subs, results):
            if isinstance(result, BaseException):
                failures += 1
                self._record_error()
                logger.error(f"[poller] Error polling {sub.doc_token}: {result}")

        self._cycle_ok.append(failures == 0)
        duration = self._clock() - start
        self._poll_durations.append(duration)
        self._log(
            f"Poll completed in {duration}ms "
            f"({len(subs) - failures} success, {failures} failures)"
        )

    async def poll_document(self, sub: Subscription) -> ChangeDetectionResult | None:
        """Evaluate one document. Returns the detection result, or None if
        metadata could not be fetched."""
        lock = self._get_doc_lock(sub.doc_token)
        async with lock, self._poll_slots:
            metadata = await self.channel.fetch_metadata(sub.doc_token, sub.doc_type)
            if metadata is None:
                logger.warning(f"[poller] Failed to fetch metadata for {sub.doc_token}")
                return None

            previous = self.store.get(sub.doc_token)
            result = detect_change(
                metadata,
                previous,
                self.config.detection_config(),
                clock=self._clock,
            )

            if not result.has_changed:
                return result

            self._changes_detected += 1

            if result.debounced:
                self._debounced += 1
                self._log(f"Change debounced for {sub.doc_token}: {result.reason}")
                await self.change_log.append(
                    ChangeEvent.from_result(sub.doc_token, result, notification_sent=False)
                )
                return result

            await self._deliver(sub, metadata, previous, result)
            return result

    async def _deliver(
        self,
        sub: Subscription,
        metadata: DocMetadata,
        previous: TrackedDoc | None,
        result: ChangeDetectionResult,
    ) -> None:
        key = change_key(sub.doc_token, sub.chat_id_to_notify, metadata)

        if not self.config.allow_duplicate_notifications and key in self._sent:
            logger.info(f"[poller] Change {key} already notified, not resending")
            self.store.put(
                TrackedDoc(
                    doc_token=sub.doc_token,
                    doc_type=sub.doc_type,
                    chat_id_to_notify=sub.chat_id_to_notify,
                    last_known_user=metadata.last_modified_user,
                    last_known_time=metadata.last_modified_time,
                    last_notification_time=previous.last_notification_time if previous else 0,
                )
            )
            await self.store.save()
            return

        notification = await self._build_notification(sub, metadata, result)
        sent = await self.channel.send(notification)

        if not sent:
            # Stored state untouched: the change is re-detected next cycle
            self._notifications_failed += 1
            self._record_error()
            logger.error(
                f"[poller] Failed to send notification for {sub.doc_token} "
                f"to {sub.chat_id_to_notify}"
            )
            await self.change_log.append(
                ChangeEvent.from_result(
                    sub.doc_token, result, notification_sent=False, error="send failed"
                )
            )
            return

        self._notifications_sent += 1
        self._sent.set(key, True)
        self.store.put(
            create_updated_tracked_state(
                sub.doc_token,
                sub.doc_type,
                sub.chat_id_to_notify,
                metadata,
                clock=self._clock,
            )
        )
        await self.store.save()
        await self.change_log.append(
            ChangeEvent.from_result(sub.doc_token, result, notification_sent=True)
        )
        self._log(
            f"Notification sent for {sub.doc_token} to {sub.chat_id_to_notify}: "
            f"{format_detection_result(result)}"
        )

    async def _build_notification(
        self,
        sub: Subscription,
        metadata: DocMetadata,
        result: ChangeDetectionResult,
    ) -> Notification:
        user_name = await self.channel.resolve_user_name(metadata.last_modified_user)
        if result.change_type is ChangeType.NEW_DOCUMENT:
            title = "Now tracking document"
        else:
            title = "Document changed"
        return Notification(
            chat_id=sub.chat_id_to_notify,
            title=title,
            text=format_doc_change(metadata, user_name),
            doc_token=sub.doc_token,
            metadata={
                "change_type": result.change_type.value if result.change_type else None,
                "reason": result.reason,
            },
        )

    # ------------------------------------------------------------------
    # Metrics / health
    # ------------------------------------------------------------------

    def _record_error(self) -> None:
        now = self._clock()
        self._error_times.append(now)
        while self._error_times and self._error_times[0] <= now - _HOUR_MS:
            self._error_times.popleft()

    def get_metrics(self) -> PollingMetrics:
        now = self._clock()
        hour_ago = now - _HOUR_MS
        recent_errors = sum(1 for t in self._error_times if t > hour_ago)

        if self._cycle_ok:
            success_rate = sum(self._cycle_ok) / len(self._cycle_ok)
        else:
            success_rate = 1.0

        if self._poll_durations:
            avg_duration = round(sum(self._poll_durations) / len(self._poll_durations))
        else:
            avg_duration = 0

        return PollingMetrics(
            docs_tracked=len(self.store),
            last_poll_time=self._last_poll_time,
            average_poll_duration_ms=avg_duration,
            success_rate=round(success_rate, 2),
            errors_in_last_hour=recent_errors,
            total_polls=self._total_polls,
            changes_detected=self._changes_detected,
            debounced_changes=self._debounced,
            notifications_sent=self._notifications_sent,
            notifications_failed=self._notifications_failed,
        )

    def get_health_status(self) -> HealthStatus:
        metrics = self.get_metrics()

        if metrics.success_rate < 0.9 and metrics.docs_tracked > 0:
            return HealthStatus("degraded", f"Success rate {metrics.success_rate} < 90%")
        if metrics.errors_in_last_hour > 5:
            return HealthStatus("degraded", f"{metrics.errors_in_last_hour} errors in last hour")
        if metrics.docs_tracked == 0:
            return HealthStatus("healthy", "No documents tracked")
        return HealthStatus("healthy", "All systems operational")

    def clear_metrics(self) -> None:
        self._init_metrics()

    async def reset(self) -> None:
        """Stop polling and forget every subscription, state and metric."""
        self.stop()
        self.store.clear()
        await self.store.save()
        self._doc_locks.clear()
        self._sent.clear()
        self.clear_metrics()
        self._log("Service reset")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_doc_lock(self, doc_token: str) -> asyncio.Lock:
        if doc_token not in self._doc_locks:
            self._doc_locks[doc_token] = asyncio.Lock()
        return self._doc_locks[doc_token]
