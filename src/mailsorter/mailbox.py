"""The narrow mailbox capability the sorting code depends on.

Everything that reads or mutates a remote mailbox goes through this protocol,
so the Gmail client can be swapped for another provider or an in-memory fake.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from mailsorter.models import MailMessage

# System label IDs shared by Gmail and the fakes used in tests.
INBOX_LABEL = "INBOX"
TRASH_LABEL = "TRASH"
UNREAD_LABEL = "UNREAD"


@dataclass(frozen=True)
class MailboxLabel:
    id: str
    name: str


class Mailbox(Protocol):
    """Remote mailbox primitives. Modify and create_label are idempotent."""

    async def list_messages(
        self,
        max_results: int | None = None,
        query: str | None = None,
    ) -> list[dict[str, Any]]: ...

    async def get_message(self, message_id: str) -> MailMessage: ...

    async def modify_message(
        self,
        message_id: str,
        *,
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
    ) -> None: ...

    async def list_labels(self) -> list[MailboxLabel]: ...

    async def create_label(self, name: str) -> str: ...
