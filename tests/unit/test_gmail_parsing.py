"""Unit tests for Gmail message parsing helpers."""

from datetime import datetime, timezone

from mailsorter.gmail.parsing import message_to_mail_message


def test_message_to_mail_message_parses_basic_fields(sample_email_data) -> None:
    message = message_to_mail_message(sample_email_data)

    assert message.id == "msg123456"
    assert message.thread_id == "thread789"
    assert message.subject == "Weekly Newsletter - Python Tips"
    assert message.sender == "Python Weekly <newsletter@python.org>"
    assert message.sender_email == "newsletter@python.org"
    assert message.recipients == ["user@example.com", "other@example.com"]
    assert message.label_ids == ["INBOX", "UNREAD"]
    assert message.is_read is False
    assert message.received_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_body_uses_plain_text_parts_only(sample_email_data) -> None:
    message = message_to_mail_message(sample_email_data)

    assert message.body == "Hello from Python"


def test_metadata_message_has_no_body() -> None:
    message = message_to_mail_message(
        {
            "id": "m1",
            "labelIds": ["INBOX"],
            "snippet": "Your parcel is on its way",
            "payload": {"headers": [{"name": "From", "value": "track@post.example"}]},
        }
    )

    assert message.body is None
    assert message.snippet == "Your parcel is on its way"
    assert message.is_read is True
    assert message.thread_id is None
    assert message.received_at is None
    assert message.recipients == []


def test_duplicate_headers_keep_the_first() -> None:
    message = message_to_mail_message(
        {
            "id": "m1",
            "payload": {
                "headers": [
                    {"name": "Subject", "value": "first"},
                    {"name": "subject", "value": "second"},
                ]
            },
        }
    )

    assert message.subject == "first"
