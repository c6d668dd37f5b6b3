"""Unit tests for data models."""

from datetime import datetime, timezone

import pytest

from mailsorter.models import (
    Decision,
    MailMessage,
    SenderType,
    SuggestedAction,
    Suggestion,
    SuggestionStatus,
)


class TestSuggestedAction:
    """Test suite for action normalization."""

    @pytest.mark.parametrize("raw", ["archive", "ARCHIVE", " Archive "])
    def test_known_values_are_case_insensitive(self, raw: str) -> None:
        assert SuggestedAction.normalize(raw) is SuggestedAction.ARCHIVE

    @pytest.mark.parametrize("raw", ["move", "trash", "", None, 42, "label me"])
    def test_unknown_values_collapse_to_keep(self, raw) -> None:
        assert SuggestedAction.normalize(raw) is SuggestedAction.KEEP

    def test_enum_member_passes_through(self) -> None:
        assert SuggestedAction.normalize(SuggestedAction.DELETE) is SuggestedAction.DELETE


class TestSenderType:
    def test_known_value(self) -> None:
        assert SenderType.normalize("Newsletter") is SenderType.NEWSLETTER

    def test_unknown_value_is_none(self) -> None:
        assert SenderType.normalize("robot") is None


class TestMailMessage:
    def test_sender_helpers(self) -> None:
        message = MailMessage(id="m1", sender="Shop Team <Promo@Shop.Example>")

        assert message.sender_email == "promo@shop.example"
        assert message.sender_domain == "shop.example"


class TestSuggestion:
    def test_serializes_with_camel_case_keys(self) -> None:
        suggestion = Suggestion(
            id="s1",
            user_id="user@example.com",
            email_id="m1",
            action=SuggestedAction.LABEL,
            label_name="Invoices",
            confidence=0.9,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        data = suggestion.model_dump(mode="json", by_alias=True)

        assert data["emailId"] == "m1"
        assert data["labelName"] == "Invoices"
        assert data["status"] == "pending"
        assert data["appliedAt"] is None

    def test_decision_from_suggestion(self) -> None:
        suggestion = Suggestion(
            id="s1",
            user_id="u",
            email_id="m1",
            action=SuggestedAction.ARCHIVE,
            confidence=0.5,
            status=SuggestionStatus.PENDING,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

        decision = Decision.from_suggestion(suggestion)

        assert decision == Decision(message_id="m1", action=SuggestedAction.ARCHIVE, suggestion_id="s1")
