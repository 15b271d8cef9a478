"""
Data model for document watching.

- DocMetadata      — what the platform reports right now (read-only)
- TrackedDoc       — what we last knew and last acted on (persisted)
- ChangeDetectionResult — one decision per poll (ephemeral)
- Subscription     — "watch this doc, notify that chat"
- ChangeEvent      — audit-trail row written by the poller
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ChangeType(str, Enum):
    NEW_DOCUMENT = "new_document"
    TIME_UPDATED = "time_updated"
    USER_CHANGED = "user_changed"


SUPPORTED_DOC_TYPES = ("doc", "sheet", "bitable", "docx")

_DOC_TOKEN_RE = re.compile(r"^[a-zA-Z0-9]{10,}$")


# ---------------------------------------------------------------------------
# Platform snapshot
# ---------------------------------------------------------------------------

@dataclass
class DocMetadata:
    """A document's current state as reported by the platform."""

    doc_token: str
    last_modified_user: str           # User ID who last modified
    last_modified_time: int           # Feishu: Unix seconds
    title: str = "Unknown"
    owner_id: str = "unknown"
    created_time: int = 0
    doc_type: str = "doc"


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------

@dataclass
class TrackedDoc:
    """Last known state of a watched document.

    ``last_notification_time`` is wall-clock milliseconds of the last
    notification actually sent, not of the change itself.
    """

    doc_token: str
    doc_type: str
    chat_id_to_notify: str
    last_known_user: str
    last_known_time: int
    last_notification_time: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackedDoc":
        return cls(
            doc_token=data["doc_token"],
            doc_type=data.get("doc_type", "doc"),
            chat_id_to_notify=data["chat_id_to_notify"],
            last_known_user=data.get("last_known_user", ""),
            last_known_time=int(data.get("last_known_time", 0)),
            last_notification_time=int(data.get("last_notification_time", 0)),
        )


@dataclass
class Subscription:
    """A request to watch a document and notify a chat."""

    doc_token: str
    doc_type: str
    chat_id_to_notify: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Subscription":
        return cls(
            doc_token=data["doc_token"],
            doc_type=data.get("doc_type", "doc"),
            chat_id_to_notify=data["chat_id_to_notify"],
        )


# ---------------------------------------------------------------------------
# Detection output
# ---------------------------------------------------------------------------

@dataclass
class ChangeDetectionResult:
    has_changed: bool
    current_user: str
    current_time: int
    changed_at: int                   # ms, decision timestamp
    debounced: bool = False           # change seen, notification suppressed
    reason: str = ""
    change_type: ChangeType | None = None
    previous_user: str | None = None
    previous_time: int | None = None

    @property
    def should_notify(self) -> bool:
        return self.has_changed and not self.debounced


@dataclass
class ChangePattern:
    total_changes: int
    total_debounced: int
    unique_users: set[str] = field(default_factory=set)
    average_change_interval: int = 0  # ms


@dataclass
class ChangeEvent:
    """One row of the change audit trail."""

    doc_token: str
    new_modified_user: str
    new_modified_time: int
    change_type: str | None
    detected_at: int
    debounced: bool
    notification_sent: bool
    previous_modified_user: str | None = None
    previous_modified_time: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChangeEvent":
        return cls(
            doc_token=data["doc_token"],
            new_modified_user=data.get("new_modified_user", ""),
            new_modified_time=int(data.get("new_modified_time", 0)),
            change_type=data.get("change_type"),
            detected_at=int(data.get("detected_at", 0)),
            debounced=bool(data.get("debounced", False)),
            notification_sent=bool(data.get("notification_sent", False)),
            previous_modified_user=data.get("previous_modified_user"),
            previous_modified_time=data.get("previous_modified_time"),
            error=data.get("error"),
        )

    @classmethod
    def from_result(
        cls,
        doc_token: str,
        result: ChangeDetectionResult,
        *,
        notification_sent: bool,
        error: str | None = None,
    ) -> "ChangeEvent":
        return cls(
            doc_token=doc_token,
            new_modified_user=result.current_user,
            new_modified_time=result.current_time,
            change_type=result.change_type.value if result.change_type else None,
            detected_at=result.changed_at,
            debounced=result.debounced,
            notification_sent=notification_sent,
            previous_modified_user=result.previous_user,
            previous_modified_time=result.previous_time,
            error=error,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def is_valid_doc_token(doc_token: str) -> bool:
    """Feishu doc tokens are alphanumeric, 10+ characters."""
    return bool(_DOC_TOKEN_RE.match(doc_token or ""))


def is_valid_doc_type(doc_type: str) -> bool:
    return doc_type in SUPPORTED_DOC_TYPES


def format_doc_change(metadata: DocMetadata, user_name: str | None = None) -> str:
    """Render a change notification body."""
    mod_time = datetime.fromtimestamp(metadata.last_modified_time, tz=timezone.utc)
    modifier = user_name or metadata.last_modified_user
    return (
        f"**{metadata.title}**\n"
        f"Modified by: {modifier}\n"
        f"Modified at: {mod_time.strftime('%Y-%m-%d %H:%M:%S')} UTC\n"
        f"Document type: {metadata.doc_type}"
    )
