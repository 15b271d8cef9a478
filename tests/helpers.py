"""Builders shared by the test modules."""

from __future__ import annotations

from docwatch.models import DocMetadata, TrackedDoc

T0 = 1_700_000_000_000
DOC_TOKEN = "doccnULnB44EMMPSYa3rIb4eJCf"


def make_metadata(user: str = "alice", time: int = 100, **kwargs) -> DocMetadata:
    return DocMetadata(
        doc_token=kwargs.pop("doc_token", DOC_TOKEN),
        last_modified_user=user,
        last_modified_time=time,
        **kwargs,
    )


def make_tracked(
    user: str = "alice",
    time: int = 100,
    last_notification_time: int = T0,
    **kwargs,
) -> TrackedDoc:
    return TrackedDoc(
        doc_token=kwargs.pop("doc_token", DOC_TOKEN),
        doc_type=kwargs.pop("doc_type", "doc"),
        chat_id_to_notify=kwargs.pop("chat_id_to_notify", "oc_abc123"),
        last_known_user=user,
        last_known_time=time,
        last_notification_time=last_notification_time,
    )
