"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mailsorter.config import Settings
from mailsorter.db import create_db_engine, ensure_schema
from mailsorter.exceptions import ClassifierError, GmailAPIError
from mailsorter.mailbox import INBOX_LABEL, MailboxLabel, UNREAD_LABEL
from mailsorter.models import MailMessage
from mailsorter.repository import (
    LabelRepository,
    RuleRepository,
    SenderPreferenceRepository,
    SuggestionRepository,
)
from mailsorter.utils import normalize_label_name


class FakeMailbox:
    """In-memory mailbox with Gmail's idempotent label semantics."""

    def __init__(self, messages: list[MailMessage] | None = None) -> None:
        self.messages: dict[str, MailMessage] = {m.id: m for m in messages or []}
        self.labels: dict[str, str] = {}
        self.modify_calls: list[tuple[str, list[str], list[str]]] = []
        self.create_label_calls: list[str] = []
        self.fail_modify: set[str] = set()
        self.fail_get: set[str] = set()
        self.fail_create_label = False
        self.on_create_label = None

    def add(self, message: MailMessage) -> MailMessage:
        self.messages[message.id] = message
        return message

    async def list_messages(self, max_results: int | None = None, query: str | None = None) -> list[dict]:
        found = list(self.messages.values())
        if query and query.startswith("from:"):
            sender = query[len("from:") :].strip().lower()
            found = [m for m in found if m.sender_email.lower() == sender]
        refs = [{"id": m.id, "threadId": m.thread_id} for m in found]
        return refs if max_results is None else refs[:max_results]

    async def get_message(self, message_id: str) -> MailMessage:
        if message_id in self.fail_get or message_id not in self.messages:
            raise GmailAPIError(f"message not found: {message_id}")
        return self.messages[message_id]

    async def modify_message(
        self,
        message_id: str,
        *,
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
    ) -> None:
        if message_id in self.fail_modify:
            raise GmailAPIError(f"simulated transport failure for {message_id}")
        add = list(add_label_ids or [])
        remove = list(remove_label_ids or [])
        self.modify_calls.append((message_id, add, remove))

        message = self.messages.get(message_id)
        if message is None:
            return
        current = [label for label in message.label_ids if label not in remove]
        current.extend(label for label in add if label not in current)
        message.label_ids = current

    async def list_labels(self) -> list[MailboxLabel]:
        return [MailboxLabel(id=label_id, name=name) for label_id, name in self.labels.items()]

    async def create_label(self, name: str) -> str:
        self.create_label_calls.append(name)
        if self.fail_create_label:
            raise GmailAPIError("simulated label creation failure")
        if self.on_create_label is not None:
            self.on_create_label(name)
        for label_id, existing in self.labels.items():
            if normalize_label_name(existing) == normalize_label_name(name):
                return label_id
        label_id = f"Label_{len(self.labels) + 1}"
        self.labels[label_id] = name
        return label_id


class FakeChatClient:
    """Classification client answering from a script.

    Each entry is either the raw text to return or an exception to raise.
    """

    def __init__(self, *responses: str | Exception) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise ClassifierError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_message(
    message_id: str,
    *,
    sender: str = "Shop <promo@shop.example>",
    subject: str = "50% off",
    snippet: str = "Our biggest sale of the year",
    body: str | None = None,
    recipients: list[str] | None = None,
    unread: bool = True,
) -> MailMessage:
    labels = [INBOX_LABEL]
    if unread:
        labels.append(UNREAD_LABEL)
    return MailMessage(
        id=message_id,
        thread_id=f"thread-{message_id}",
        sender=sender,
        recipients=recipients or ["user@example.com"],
        subject=subject,
        snippet=snippet,
        body=body,
        label_ids=labels,
        received_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        is_read=not unread,
    )


@pytest.fixture
def mock_settings(tmp_path) -> Settings:
    """Provide mock settings for testing."""
    return Settings(
        classifier_api_key="test-key",
        classifier_model="test-model",
        database_url=f"sqlite:///{tmp_path / 'mailsorter-test.sqlite3'}",
        gmail_credentials_path=tmp_path / "credentials.json",
        gmail_token_path=tmp_path / "token.json",
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def engine(mock_settings):
    """SQLite database with the schema in place."""
    eng = create_db_engine(mock_settings)
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def suggestion_repo(engine) -> SuggestionRepository:
    return SuggestionRepository(engine)


@pytest.fixture
def label_repo(engine) -> LabelRepository:
    return LabelRepository(engine)


@pytest.fixture
def sender_repo(engine) -> SenderPreferenceRepository:
    return SenderPreferenceRepository(engine)


@pytest.fixture
def rule_repo(engine) -> RuleRepository:
    return RuleRepository(engine)


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture
def message_factory():
    """Build MailMessage instances with sensible defaults."""
    return make_message


@pytest.fixture
def chat_factory():
    """Build scripted classification clients."""
    return FakeChatClient


@pytest.fixture
def promo_message() -> MailMessage:
    return make_message("msg-promo-1")


@pytest.fixture
def sample_email_data() -> dict:
    """Provide sample Gmail API message data."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Weekly Newsletter - Python Tips",
        "internalDate": "1714564800000",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                {"name": "From", "value": "Python Weekly <newsletter@python.org>"},
                {"name": "To", "value": "user@example.com, other@example.com"},
            ],
            "parts": [
                # "Hello from Python" base64url encoded
                {"mimeType": "text/plain", "body": {"data": "SGVsbG8gZnJvbSBQeXRob24="}},
                {"mimeType": "text/html", "body": {"data": "PGI-aGk8L2I-"}},
            ],
        },
    }
