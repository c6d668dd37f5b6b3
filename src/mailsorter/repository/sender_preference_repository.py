"""Learned per-sender defaults.

Two write paths exist and they never overlap:
- ``record_sender_analysis`` refreshes suggestions (action, label, count, ...)
  after every sender analysis, as an upsert that leaves ``auto_apply`` alone;
- ``update_preference`` is the explicit user operation and the only writer of
  ``auto_apply``.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Engine

from mailsorter.exceptions import NotFoundError
from mailsorter.models import SenderClassification, SenderPreference, SuggestedAction
from mailsorter.repository.common import from_iso, new_id, to_iso, utc_now

logger = structlog.get_logger()

_COLUMNS = """
    id, user_id, sender_email, sender_domain, sender_name, auto_apply,
    default_action, default_label, email_count, created_at, updated_at
"""


def _row_to_preference(r: Any) -> SenderPreference:
    return SenderPreference(
        id=str(r["id"]),
        user_id=str(r["user_id"]),
        sender_email=str(r["sender_email"]),
        sender_domain=str(r["sender_domain"] or ""),
        sender_name=str(r["sender_name"] or ""),
        auto_apply=bool(r["auto_apply"]),
        default_action=SuggestedAction.normalize(r["default_action"]),
        default_label=str(r["default_label"] or ""),
        email_count=int(r["email_count"] or 0),
        created_at=from_iso(r["created_at"]),
        updated_at=from_iso(r["updated_at"]),
    )


class SenderPreferenceRepository:
    """Repository for the sender_preference table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def record_sender_analysis(
        self,
        *,
        user_id: str,
        sender_email: str,
        sender_domain: str,
        sender_name: str,
        analysis: SenderClassification,
        email_count: int,
    ) -> SenderPreference:
        """Upsert the analysis result for (user_id, sender_email).

        On first write every field is set and ``auto_apply`` starts False. On
        later writes the suggestion fields and ``updated_at`` are refreshed while
        ``auto_apply`` and ``created_at`` keep their stored values.
        """

        now = to_iso(utc_now())
        q = text(
            """
            INSERT INTO sender_preference (
                id, user_id, sender_email, sender_domain, sender_name, auto_apply,
                default_action, default_label, email_count, created_at, updated_at
            )
            VALUES (
                :id, :user_id, :sender_email, :sender_domain, :sender_name, :auto_apply,
                :default_action, :default_label, :email_count, :now, :now
            )
            ON CONFLICT (user_id, sender_email) DO UPDATE SET
                sender_domain = excluded.sender_domain,
                sender_name = excluded.sender_name,
                default_action = excluded.default_action,
                default_label = excluded.default_label,
                email_count = excluded.email_count,
                updated_at = excluded.updated_at
            """
        )

        with self._engine.begin() as conn:
            conn.execute(
                q,
                {
                    "id": new_id(),
                    "user_id": user_id,
                    "sender_email": sender_email,
                    "sender_domain": sender_domain,
                    "sender_name": sender_name,
                    "auto_apply": False,
                    "default_action": analysis.suggested_action.value,
                    "default_label": analysis.suggested_label,
                    "email_count": int(email_count),
                    "now": now,
                },
            )

        pref = self.get_by_sender(user_id, sender_email)
        if pref is None:
            # The upsert above guarantees a row; reaching this means the row was
            # deleted concurrently.
            raise NotFoundError(f"Sender preference vanished: {sender_email}")

        logger.info(
            "sender_preference_recorded",
            user_id=user_id,
            sender_email=sender_email,
            default_action=pref.default_action.value,
            auto_apply=pref.auto_apply,
        )
        return pref

    def update_preference(
        self,
        *,
        user_id: str,
        preference_id: str,
        auto_apply: bool,
        default_action: SuggestedAction,
        default_label: str,
    ) -> SenderPreference:
        """Explicitly set the automation behaviour for a sender.

        Raises:
            NotFoundError: If the preference does not exist for this user.
        """

        q = text(
            """
            UPDATE sender_preference
            SET auto_apply = :auto_apply,
                default_action = :default_action,
                default_label = :default_label,
                updated_at = :updated_at
            WHERE id = :id AND user_id = :user_id
            """
        )
        with self._engine.begin() as conn:
            result = conn.execute(
                q,
                {
                    "auto_apply": bool(auto_apply),
                    "default_action": SuggestedAction.normalize(default_action).value,
                    "default_label": default_label,
                    "updated_at": to_iso(utc_now()),
                    "id": preference_id,
                    "user_id": user_id,
                },
            )
        if result.rowcount == 0:
            raise NotFoundError(f"Preference not found: {preference_id}")

        pref = self.get(user_id, preference_id)
        if pref is None:
            raise NotFoundError(f"Preference not found: {preference_id}")
        logger.info("sender_preference_updated", preference_id=preference_id, auto_apply=pref.auto_apply)
        return pref

    def get(self, user_id: str, preference_id: str) -> SenderPreference | None:
        q = text(f"SELECT {_COLUMNS} FROM sender_preference WHERE id = :id AND user_id = :user_id")
        with self._engine.begin() as conn:
            r = conn.execute(q, {"id": preference_id, "user_id": user_id}).mappings().first()
        return _row_to_preference(r) if r else None

    def get_by_sender(self, user_id: str, sender_email: str) -> SenderPreference | None:
        q = text(
            f"SELECT {_COLUMNS} FROM sender_preference "
            "WHERE user_id = :user_id AND sender_email = :sender_email"
        )
        with self._engine.begin() as conn:
            r = conn.execute(q, {"user_id": user_id, "sender_email": sender_email}).mappings().first()
        return _row_to_preference(r) if r else None

    def list_preferences(self, user_id: str) -> list[SenderPreference]:
        q = text(
            f"SELECT {_COLUMNS} FROM sender_preference "
            "WHERE user_id = :user_id ORDER BY email_count DESC, sender_email ASC"
        )
        with self._engine.begin() as conn:
            rows = conn.execute(q, {"user_id": user_id}).mappings().all()
        return [_row_to_preference(r) for r in rows]
