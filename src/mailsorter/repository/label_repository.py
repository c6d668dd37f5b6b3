"""Storage for the user's label taxonomy (smart labels).

Each row maps a local label name to the remote Gmail label ID. Both
(user_id, name) and (user_id, gmail_label_id) are unique; ``insert`` lets the
resulting IntegrityError propagate so callers can re-read the winning row.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from mailsorter.models import LabelEntry
from mailsorter.repository.common import from_iso, new_id, to_iso, utc_now

_COLUMNS = """
    id, user_id, name, gmail_label_id, description, keywords_json,
    email_count, created_at, updated_at
"""


def _row_to_label(r: Any) -> LabelEntry:
    try:
        keywords = json.loads(r["keywords_json"] or "[]")
    except ValueError:
        keywords = []
    return LabelEntry(
        id=str(r["id"]),
        user_id=str(r["user_id"]),
        name=str(r["name"]),
        gmail_label_id=str(r["gmail_label_id"]),
        description=str(r["description"] or ""),
        keywords=[str(k) for k in keywords if isinstance(k, str)],
        email_count=int(r["email_count"] or 0),
        created_at=from_iso(r["created_at"]),
        updated_at=from_iso(r["updated_at"]),
    )


class LabelRepository:
    """Repository for the smart_label table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_labels(self, user_id: str) -> list[LabelEntry]:
        q = text(f"SELECT {_COLUMNS} FROM smart_label WHERE user_id = :user_id ORDER BY name ASC")
        with self._engine.begin() as conn:
            rows = conn.execute(q, {"user_id": user_id}).mappings().all()
        return [_row_to_label(r) for r in rows]

    def label_names(self, user_id: str) -> list[str]:
        return [label.name for label in self.list_labels(user_id)]

    def get_by_name(self, user_id: str, name: str) -> LabelEntry | None:
        q = text(f"SELECT {_COLUMNS} FROM smart_label WHERE user_id = :user_id AND name = :name")
        with self._engine.begin() as conn:
            r = conn.execute(q, {"user_id": user_id, "name": name}).mappings().first()
        return _row_to_label(r) if r else None

    def get_by_gmail_id(self, user_id: str, gmail_label_id: str) -> LabelEntry | None:
        q = text(
            f"SELECT {_COLUMNS} FROM smart_label "
            "WHERE user_id = :user_id AND gmail_label_id = :gmail_label_id"
        )
        with self._engine.begin() as conn:
            r = conn.execute(
                q, {"user_id": user_id, "gmail_label_id": gmail_label_id}
            ).mappings().first()
        return _row_to_label(r) if r else None

    def insert(
        self,
        *,
        user_id: str,
        name: str,
        gmail_label_id: str,
        description: str = "",
        keywords: list[str] | None = None,
    ) -> LabelEntry:
        """Insert a label row.

        Raises:
            sqlalchemy.exc.IntegrityError: If the name or remote ID is already mapped.
        """

        now = utc_now()
        entry = LabelEntry(
            id=new_id(),
            user_id=user_id,
            name=name,
            gmail_label_id=gmail_label_id,
            description=description,
            keywords=list(keywords or []),
            email_count=0,
            created_at=now,
            updated_at=now,
        )

        with self._engine.begin() as conn:
            conn.execute(
                text(
                    f"""
                    INSERT INTO smart_label ({_COLUMNS})
                    VALUES (
                        :id, :user_id, :name, :gmail_label_id, :description, :keywords_json,
                        0, :created_at, :updated_at
                    )
                    """
                ),
                {
                    "id": entry.id,
                    "user_id": user_id,
                    "name": name,
                    "gmail_label_id": gmail_label_id,
                    "description": description,
                    "keywords_json": json.dumps(entry.keywords),
                    "created_at": to_iso(now),
                    "updated_at": to_iso(now),
                },
            )

        return entry

    def increment_usage(self, user_id: str, gmail_label_id: str, *, by: int = 1) -> None:
        q = text(
            """
            UPDATE smart_label
            SET email_count = email_count + :by, updated_at = :updated_at
            WHERE user_id = :user_id AND gmail_label_id = :gmail_label_id
            """
        )
        with self._engine.begin() as conn:
            conn.execute(
                q,
                {
                    "by": int(by),
                    "updated_at": to_iso(utc_now()),
                    "user_id": user_id,
                    "gmail_label_id": gmail_label_id,
                },
            )
