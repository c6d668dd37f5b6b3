"""Helpers for parsing Gmail API messages into internal models."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from email.utils import getaddresses
from typing import Any

from mailsorter.mailbox import UNREAD_LABEL
from mailsorter.models import MailMessage


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first for now.
            result.setdefault(name.lower(), value)
    return result


def _parse_address_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [addr for _, addr in getaddresses([value]) if addr]


def _parse_internal_date(value: Any) -> datetime | None:
    try:
        ms = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


def _decode_b64(data: str) -> str:
    raw = base64.urlsafe_b64decode(data.encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


def _plain_text_parts(part: dict[str, Any]) -> list[str]:
    mime = (part.get("mimeType") or "").lower()
    data = (part.get("body") or {}).get("data")
    if data and mime.startswith("text/plain"):
        return [_decode_b64(data)]

    texts: list[str] = []
    for child in part.get("parts") or []:
        texts.extend(_plain_text_parts(child))
    return texts


def message_to_mail_message(message: dict[str, Any]) -> MailMessage:
    """Convert a Gmail API message (format=metadata or full) to MailMessage.

    Args:
        message: Gmail API message dict.

    Returns:
        MailMessage: Parsed message. ``body`` is only set for format=full.
    """

    hm = _header_map(message)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []
    label_ids = [str(x) for x in label_ids if isinstance(x, str)]

    texts = _plain_text_parts(message.get("payload") or {})
    body = "\n\n".join(texts).strip() if texts else None

    return MailMessage(
        id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or "") or None,
        sender=hm.get("from") or "",
        recipients=_parse_address_list(hm.get("to")),
        subject=hm.get("subject") or "",
        snippet=message.get("snippet") or "",
        body=body,
        label_ids=label_ids,
        received_at=_parse_internal_date(message.get("internalDate")),
        is_read=UNREAD_LABEL not in label_ids,
    )
