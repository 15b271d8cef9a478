"""Tests for data models and helpers."""

from __future__ import annotations

import pytest

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

from tests.helpers import DOC_TOKEN, T0, make_tracked


class TestTrackedDoc:

    def test_to_dict_from_dict(self) -> None:
        doc = make_tracked("alice", 100, last_notification_time=T0)
        assert TrackedDoc.from_dict(doc.to_dict()) == doc

    def test_from_dict_defaults(self) -> None:
        doc = TrackedDoc.from_dict({"doc_token": DOC_TOKEN, "chat_id_to_notify": "oc_1"})

        assert doc.doc_type == "doc"
        assert doc.last_known_user == ""
        assert doc.last_known_time == 0
        assert doc.last_notification_time == 0

    def test_from_dict_requires_token(self) -> None:
        with pytest.raises(KeyError):
            TrackedDoc.from_dict({"chat_id_to_notify": "oc_1"})


class TestSubscription:

    def test_round_trip(self) -> None:
        sub = Subscription(DOC_TOKEN, "sheet", "oc_1")
        assert Subscription.from_dict(sub.to_dict()) == sub


class TestChangeEvent:

    def test_from_result_copies_fields(self) -> None:
        result = ChangeDetectionResult(
            has_changed=True,
            current_user="bob",
            current_time=200,
            changed_at=T0,
            debounced=True,
            reason="Debounced",
            change_type=ChangeType.TIME_UPDATED,
            previous_user="alice",
            previous_time=100,
        )

        event = ChangeEvent.from_result(DOC_TOKEN, result, notification_sent=False)

        assert event.change_type == "time_updated"
        assert event.new_modified_user == "bob"
        assert event.previous_modified_user == "alice"
        assert event.debounced is True
        assert event.notification_sent is False
        assert event.detected_at == T0

    def test_to_dict_omits_none(self) -> None:
        event = ChangeEvent(DOC_TOKEN, "bob", 200, "new_document", T0, False, True)
        data = event.to_dict()

        assert "error" not in data
        assert "previous_modified_user" not in data
        assert ChangeEvent.from_dict(data) == event


class TestHelpers:

    @pytest.mark.parametrize(
        "token, expected",
        [
            ("doccnULnB44EMMPSYa3rIb4eJCf", True),
            ("abcdefghij", True),
            ("short", False),
            ("has-dash-1234567", False),
            ("", False),
        ],
    )
    def test_is_valid_doc_token(self, token, expected) -> None:
        assert is_valid_doc_token(token) is expected

    def test_is_valid_doc_type(self) -> None:
        for doc_type in ("doc", "sheet", "bitable", "docx"):
            assert is_valid_doc_type(doc_type)
        assert not is_valid_doc_type("wiki")

    def test_format_doc_change(self) -> None:
        metadata = DocMetadata(
            doc_token=DOC_TOKEN,
            last_modified_user="ou_alice",
            last_modified_time=1_700_000_000,
            title="Roadmap",
            doc_type="docx",
        )

        text = format_doc_change(metadata)

        assert "**Roadmap**" in text
        assert "Modified by: ou_alice" in text
        assert "2023-11-14 22:13:20 UTC" in text
        assert "Document type: docx" in text

    def test_format_doc_change_prefers_display_name(self) -> None:
        metadata = DocMetadata(DOC_TOKEN, "ou_alice", 0)
        assert "Modified by: Alice" in format_doc_change(metadata, "Alice")
