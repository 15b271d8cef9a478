"""
Change detection with debouncing.

detect_change() is a pure decision over (current metadata, previous tracked
state, config). Cases are evaluated in order, first match wins:

  1. no previous record          → new_document   (always notify)
  2. same user, same time        → no change
  3. time moved forward          → time_updated   (debounced inside window)
  4. same time, different user   → user_changed   (never debounced)
  5. anything else               → no change ("Unknown state")

A timestamp that moves backwards has no case of its own: it lands in 4 when
the editor differs and in 5 otherwise.

The clock is read once per call so the debounce check and the result
timestamp share one time basis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from loguru import logger

from docwatch.clock import Clock, system_clock
from docwatch.models import (
    ChangeDetectionResult,
    ChangePattern,
    ChangeType,
    DocMetadata,
    TrackedDoc,
)


@dataclass
class ChangeDetectionConfig:
    """Change detection configuration."""

    # Minimum time since the last sent notification before another one
    debounce_window_ms: int = 5000

    # Not read here; the poller uses it to allow re-sending an identical change
    allow_duplicate_notifications: bool = False

    # Diagnostic trace only, never changes the result
    enable_logging: bool = True


_DEFAULT_CONFIG = ChangeDetectionConfig()


def detect_change(
    current: DocMetadata,
    previous: TrackedDoc | None,
    config: ChangeDetectionConfig | None = None,
    *,
    clock: Clock = system_clock,
) -> ChangeDetectionResult:
    """Decide whether ``current`` is a change worth notifying about.

    Args:
        current: Metadata just fetched from the platform.
        previous: Tracked state for the document, or None if never seen.
        config: Detection configuration (defaults apply when omitted).
        clock: Time source in epoch milliseconds.

    Returns:
        A ChangeDetectionResult. ``has_changed and not debounced`` means the
        caller should notify and then store ``create_updated_tracked_state()``.
    """
    cfg = config if config is not None else _DEFAULT_CONFIG
    now = clock()

    def trace(message: str) -> None:
        if cfg.enable_logging:
            logger.debug(f"[detector] {message}")

    if previous is None:
        trace(f"New document tracking started: {current.doc_token}")
        return ChangeDetectionResult(
            has_changed=True,
            change_type=ChangeType.NEW_DOCUMENT,
            current_user=current.last_modified_user,
            current_time=current.last_modified_time,
            changed_at=now,
            debounced=False,
            reason="First time tracking document",
        )

    if (
        current.last_modified_time == previous.last_known_time
        and current.last_modified_user == previous.last_known_user
    ):
        trace(f"No change detected for {current.doc_token}")
        return ChangeDetectionResult(
            has_changed=False,
            current_user=current.last_modified_user,
            current_time=current.last_modified_time,
            changed_at=now,
            debounced=False,
            reason="No metadata change (same user, same time)",
        )

    if current.last_modified_time > previous.last_known_time:
        elapsed = now - previous.last_notification_time
        debounced = elapsed < cfg.debounce_window_ms
        if debounced:
            trace(
                f"Change detected but DEBOUNCED for {current.doc_token} "
                f"({elapsed}ms < {cfg.debounce_window_ms}ms)"
            )
            reason = (
                f"Debounced: change within {cfg.debounce_window_ms}ms of last "
                f"notification ({elapsed}ms elapsed)"
            )
        else:
            trace(
                f"Change detected for {current.doc_token}: "
                f"time updated by {current.last_modified_user}"
            )
            reason = f"Document updated by {current.last_modified_user}"

        return ChangeDetectionResult(
            has_changed=True,
            change_type=ChangeType.TIME_UPDATED,
            previous_user=previous.last_known_user,
            previous_time=previous.last_known_time,
            current_user=current.last_modified_user,
            current_time=current.last_modified_time,
            changed_at=now,
            debounced=debounced,
            reason=reason,
        )

    if current.last_modified_user != previous.last_known_user:
        # Unusual: editor changed without the modification time moving
        trace(
            f"Different user detected for {current.doc_token}: "
            f"{previous.last_known_user} -> {current.last_modified_user}"
        )
        return ChangeDetectionResult(
            has_changed=True,
            change_type=ChangeType.USER_CHANGED,
            previous_user=previous.last_known_user,
            previous_time=previous.last_known_time,
            current_user=current.last_modified_user,
            current_time=current.last_modified_time,
            changed_at=now,
            debounced=False,
            reason=(
                f"Different user detected "
                f"({previous.last_known_user} -> {current.last_modified_user})"
            ),
        )

    trace(f"Unknown state for {current.doc_token}")
    return ChangeDetectionResult(
        has_changed=False,
        current_user=current.last_modified_user,
        current_time=current.last_modified_time,
        changed_at=now,
        debounced=False,
        reason="Unknown state",
    )


# ---------------------------------------------------------------------------
# Companions
# ---------------------------------------------------------------------------

def should_notify_again(
    last_notification_time: int,
    min_interval_ms: int = 5000,
    *,
    clock: Clock = system_clock,
) -> bool:
    """True if at least ``min_interval_ms`` passed since the last notification."""
    return clock() - last_notification_time >= min_interval_ms


def _round_half_up(value: float) -> int:
    # .5 rounds up (round() would round half to even)
    return math.floor(value + 0.5)


def time_since_last_notification(
    last_notification_time: int,
    *,
    clock: Clock = system_clock,
) -> int:
    """Seconds since the last notification, rounded."""
    return _round_half_up((clock() - last_notification_time) / 1000)


def format_detection_result(result: ChangeDetectionResult) -> str:
    if not result.has_changed:
        status = "NO CHANGE"
    elif result.debounced:
        status = "DEBOUNCED"
    else:
        status = "DETECTED"
    details = f" ({result.reason})" if result.reason else ""
    return f"{status}{details}"


def create_updated_tracked_state(
    doc_token: str,
    doc_type: str,
    chat_id_to_notify: str,
    metadata: DocMetadata,
    *,
    clock: Clock = system_clock,
) -> TrackedDoc:
    """Build the record to persist after a notification was actually sent."""
    return TrackedDoc(
        doc_token=doc_token,
        doc_type=doc_type,
        chat_id_to_notify=chat_id_to_notify,
        last_known_user=metadata.last_modified_user,
        last_known_time=metadata.last_modified_time,
        last_notification_time=clock(),
    )


def analyze_change_pattern(results: Iterable[ChangeDetectionResult]) -> ChangePattern:
    """Summarise a series of detection results (diagnostics only)."""
    results = list(results)
    unique_users: set[str] = set()
    total_debounced = 0

    for result in results:
        if result.has_changed and not result.debounced:
            unique_users.add(result.current_user)
        if result.debounced:
            total_debounced += 1

    average = 0
    if len(results) > 1:
        intervals = [
            results[i].changed_at - results[i - 1].changed_at
            for i in range(1, len(results))
        ]
        average = _round_half_up(sum(intervals) / len(intervals))

    return ChangePattern(
        total_changes=len(results),
        total_debounced=total_debounced,
        unique_users=unique_users,
        average_change_interval=average,
    )
