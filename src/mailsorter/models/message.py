"""Inbox message model.

Messages are owned by the mailbox provider; this package only reads them. The
body is optional because most classification only needs headers and the
provider snippet.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from mailsorter.utils import extract_address, extract_domain


class MailMessage(BaseModel):
    """A message as seen by the classification and rule engines."""

    id: str = Field(description="Provider message ID")
    thread_id: str | None = Field(default=None, description="Provider thread ID")

    # Raw From header ("Name <addr>") kept for display and name extraction.
    sender: str = Field(default="", description="Raw From header")
    recipients: list[str] = Field(default_factory=list, description="Parsed To addresses")

    subject: str = Field(default="", description="Subject header")
    snippet: str = Field(default="", description="Short provider snippet")
    body: str | None = Field(default=None, description="Plain text body, fetched lazily")

    label_ids: list[str] = Field(default_factory=list, description="Applied label IDs")
    received_at: datetime | None = Field(default=None, description="Receive timestamp")
    is_read: bool = Field(default=True, description="Whether the message has been read")

    @property
    def sender_email(self) -> str:
        return extract_address(self.sender)

    @property
    def sender_domain(self) -> str:
        return extract_domain(self.sender)
