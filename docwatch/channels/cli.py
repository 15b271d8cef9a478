"""
Console channel for local testing.

Metadata is served from an in-memory map (set_metadata), notifications are
printed to stdout and kept in ``sent``.
"""

from __future__ import annotations

from loguru import logger

from docwatch.channels.base import Channel, Notification
from docwatch.models import DocMetadata


class ConsoleChannel(Channel):
    """
    Offline channel.

    Usage::

        channel = ConsoleChannel()
        channel.set_metadata(DocMetadata("doccnABC123456", "ou_alice", 100))
        poller = DocumentPoller(channel)
    """

    name = "console"

    def __init__(self, *, echo: bool = True, fail_sends: bool = False) -> None:
        self.echo = echo
        self.fail_sends = fail_sends
        self.sent: list[Notification] = []
        self.fetch_count = 0
        self._metadata: dict[str, DocMetadata] = {}
        self._user_names: dict[str, str] = {}

    def set_metadata(self, metadata: DocMetadata) -> None:
        self._metadata[metadata.doc_token] = metadata

    def remove_metadata(self, doc_token: str) -> None:
        self._metadata.pop(doc_token, None)

    def set_user_name(self, user_id: str, name: str) -> None:
        self._user_names[user_id] = name

    async def fetch_metadata(self, doc_token: str, doc_type: str = "doc") -> DocMetadata | None:
        self.fetch_count += 1
        return self._metadata.get(doc_token)

    async def send(self, notification: Notification) -> bool:
        if self.fail_sends:
            logger.warning(f"[console] Send to {notification.chat_id} failed (fail_sends=True)")
            return False
        self.sent.append(notification)
        if self.echo:
            print(f"\n[{notification.chat_id}] {notification.title}\n{notification.text}\n")
        return True

    async def resolve_user_name(self, user_id: str) -> str | None:
        return self._user_names.get(user_id)
