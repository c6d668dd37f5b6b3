"""Storage for classification suggestions.

Status changes are conditional updates on ``status = 'pending'`` so that a
terminal state (applied, rejected) is never re-opened, even by concurrent
requests.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Engine

from mailsorter.exceptions import InvalidTransitionError, NotFoundError
from mailsorter.models import Classification, Suggestion, SuggestionStatus
from mailsorter.repository.common import from_iso, new_id, to_iso, utc_now

logger = structlog.get_logger()

_COLUMNS = """
    id, user_id, email_id, action, label_name, label_id,
    confidence, reasoning, status, created_at, applied_at
"""


def _row_to_suggestion(r: Any) -> Suggestion:
    return Suggestion(
        id=str(r["id"]),
        user_id=str(r["user_id"]),
        email_id=str(r["email_id"]),
        action=r["action"],
        label_name=str(r["label_name"] or ""),
        label_id=str(r["label_id"] or ""),
        confidence=float(r["confidence"] or 0.0),
        reasoning=str(r["reasoning"] or ""),
        status=r["status"],
        created_at=from_iso(r["created_at"]),
        applied_at=from_iso(r["applied_at"]),
    )


class SuggestionRepository:
    """Repository for the ai_suggestion table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def create(
        self,
        *,
        user_id: str,
        email_id: str,
        classification: Classification,
        label_id: str = "",
    ) -> Suggestion:
        """Store a new pending suggestion."""

        suggestion = Suggestion(
            id=new_id(),
            user_id=user_id,
            email_id=email_id,
            action=classification.action,
            label_name=classification.label_name,
            label_id=label_id,
            confidence=classification.confidence,
            reasoning=classification.reasoning,
            status=SuggestionStatus.PENDING,
            created_at=utc_now(),
        )

        with self._engine.begin() as conn:
            conn.execute(
                text(
                    f"""
                    INSERT INTO ai_suggestion ({_COLUMNS})
                    VALUES (
                        :id, :user_id, :email_id, :action, :label_name, :label_id,
                        :confidence, :reasoning, :status, :created_at, NULL
                    )
                    """
                ),
                {
                    "id": suggestion.id,
                    "user_id": user_id,
                    "email_id": email_id,
                    "action": suggestion.action.value,
                    "label_name": suggestion.label_name,
                    "label_id": label_id,
                    "confidence": suggestion.confidence,
                    "reasoning": suggestion.reasoning,
                    "status": suggestion.status.value,
                    "created_at": to_iso(suggestion.created_at),
                },
            )

        return suggestion

    def get(self, user_id: str, suggestion_id: str) -> Suggestion | None:
        q = text(f"SELECT {_COLUMNS} FROM ai_suggestion WHERE id = :id AND user_id = :user_id")
        with self._engine.begin() as conn:
            r = conn.execute(q, {"id": suggestion_id, "user_id": user_id}).mappings().first()
        return _row_to_suggestion(r) if r else None

    def list_by_status(
        self,
        user_id: str,
        *,
        status: SuggestionStatus = SuggestionStatus.PENDING,
        limit: int = 100,
    ) -> list[Suggestion]:
        """List a user's suggestions in one status, newest first."""

        q = text(
            f"""
            SELECT {_COLUMNS}
            FROM ai_suggestion
            WHERE user_id = :user_id AND status = :status
            ORDER BY created_at DESC
            LIMIT :limit
            """
        )
        with self._engine.begin() as conn:
            rows = conn.execute(
                q, {"user_id": user_id, "status": status.value, "limit": int(limit)}
            ).mappings().all()
        return [_row_to_suggestion(r) for r in rows]

    def mark_applied(self, suggestion_id: str, *, label_id: str = "") -> bool:
        """Move a pending suggestion to applied.

        Returns:
            True if the row transitioned, False if it was not pending.
        """

        q = text(
            """
            UPDATE ai_suggestion
            SET status = :applied, applied_at = :applied_at, label_id = :label_id
            WHERE id = :id AND status = :pending
            """
        )
        with self._engine.begin() as conn:
            result = conn.execute(
                q,
                {
                    "applied": SuggestionStatus.APPLIED.value,
                    "pending": SuggestionStatus.PENDING.value,
                    "applied_at": to_iso(utc_now()),
                    "label_id": label_id,
                    "id": suggestion_id,
                },
            )
        return result.rowcount > 0

    def reject(self, user_id: str, suggestion_id: str) -> Suggestion:
        """Move a pending suggestion to rejected.

        Rejecting an already rejected suggestion is a no-op.

        Raises:
            NotFoundError: If the suggestion does not exist for this user.
            InvalidTransitionError: If the suggestion was already applied.
        """

        q = text(
            """
            UPDATE ai_suggestion
            SET status = :rejected
            WHERE id = :id AND user_id = :user_id AND status = :pending
            """
        )
        with self._engine.begin() as conn:
            conn.execute(
                q,
                {
                    "rejected": SuggestionStatus.REJECTED.value,
                    "pending": SuggestionStatus.PENDING.value,
                    "id": suggestion_id,
                    "user_id": user_id,
                },
            )

        current = self.get(user_id, suggestion_id)
        if current is None:
            raise NotFoundError(f"Suggestion not found: {suggestion_id}")
        if current.status is SuggestionStatus.APPLIED:
            raise InvalidTransitionError(f"Suggestion {suggestion_id} is already applied")

        logger.info("suggestion_rejected", suggestion_id=suggestion_id, user_id=user_id)
        return current
