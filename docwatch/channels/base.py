"""
Abstract base class for channels.

A channel is both where document metadata comes from and where change
notifications go.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from docwatch.models import DocMetadata


@dataclass
class Notification:
    """A change notification to be posted to a chat."""

    chat_id: str
    title: str
    text: str
    doc_token: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class Channel(ABC):
    """Abstract base class for document channels."""

    name: str = "base"

    @abstractmethod
    async def fetch_metadata(self, doc_token: str, doc_type: str = "doc") -> DocMetadata | None:
        """Return current metadata, or None if it could not be fetched."""
        ...

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Deliver a notification. Returns True on success."""
        ...

    async def resolve_user_name(self, user_id: str) -> str | None:
        """Display name for a user ID (optional, None by default)."""
        return None

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass
