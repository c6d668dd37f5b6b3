"""Storage for user-authored sorting rules.

Conditions and actions are stored as JSON so the rule shape can evolve
without migrations.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine

from mailsorter.exceptions import NotFoundError
from mailsorter.models import RuleAction, RuleCondition, SortingRule
from mailsorter.repository.common import from_iso, new_id, to_iso, utc_now

_COLUMNS = """
    id, user_id, name, conditions_json, actions_json, priority, enabled,
    created_at, updated_at
"""


def _row_to_rule(r: Any) -> SortingRule:
    return SortingRule(
        id=str(r["id"]),
        user_id=str(r["user_id"]),
        name=str(r["name"] or ""),
        conditions=[RuleCondition.model_validate(c) for c in json.loads(r["conditions_json"] or "[]")],
        actions=[RuleAction.model_validate(a) for a in json.loads(r["actions_json"] or "[]")],
        priority=int(r["priority"] or 0),
        enabled=bool(r["enabled"]),
        created_at=from_iso(r["created_at"]),
        updated_at=from_iso(r["updated_at"]),
    )


def _dump(items: list[RuleCondition] | list[RuleAction]) -> str:
    return json.dumps([i.model_dump(mode="json", by_alias=True) for i in items])


class RuleRepository:
    """Repository for the sorting_rule table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def list_rules(self, user_id: str) -> list[SortingRule]:
        q = text(
            f"SELECT {_COLUMNS} FROM sorting_rule "
            "WHERE user_id = :user_id ORDER BY priority ASC, created_at ASC"
        )
        with self._engine.begin() as conn:
            rows = conn.execute(q, {"user_id": user_id}).mappings().all()
        return [_row_to_rule(r) for r in rows]

    def get(self, user_id: str, rule_id: str) -> SortingRule | None:
        q = text(f"SELECT {_COLUMNS} FROM sorting_rule WHERE id = :id AND user_id = :user_id")
        with self._engine.begin() as conn:
            r = conn.execute(q, {"id": rule_id, "user_id": user_id}).mappings().first()
        return _row_to_rule(r) if r else None

    def create(
        self,
        *,
        user_id: str,
        name: str,
        conditions: list[RuleCondition],
        actions: list[RuleAction],
        priority: int = 0,
        enabled: bool = True,
    ) -> SortingRule:
        now = utc_now()
        rule = SortingRule(
            id=new_id(),
            user_id=user_id,
            name=name,
            conditions=conditions,
            actions=actions,
            priority=priority,
            enabled=enabled,
            created_at=now,
            updated_at=now,
        )
        with self._engine.begin() as conn:
            conn.execute(
                text(
                    f"""
                    INSERT INTO sorting_rule ({_COLUMNS})
                    VALUES (
                        :id, :user_id, :name, :conditions_json, :actions_json, :priority,
                        :enabled, :created_at, :updated_at
                    )
                    """
                ),
                {
                    "id": rule.id,
                    "user_id": user_id,
                    "name": name,
                    "conditions_json": _dump(conditions),
                    "actions_json": _dump(actions),
                    "priority": int(priority),
                    "enabled": bool(enabled),
                    "created_at": to_iso(now),
                    "updated_at": to_iso(now),
                },
            )
        return rule

    def update(
        self,
        *,
        user_id: str,
        rule_id: str,
        name: str,
        conditions: list[RuleCondition],
        actions: list[RuleAction],
        priority: int,
        enabled: bool,
    ) -> SortingRule:
        """Replace a rule's definition.

        Raises:
            NotFoundError: If the rule does not exist for this user.
        """
        q = text(
            """
            UPDATE sorting_rule
            SET name = :name,
                conditions_json = :conditions_json,
                actions_json = :actions_json,
                priority = :priority,
                enabled = :enabled,
                updated_at = :updated_at
            WHERE id = :id AND user_id = :user_id
            """
        )
        with self._engine.begin() as conn:
            result = conn.execute(
                q,
                {
                    "name": name,
                    "conditions_json": _dump(conditions),
                    "actions_json": _dump(actions),
                    "priority": int(priority),
                    "enabled": bool(enabled),
                    "updated_at": to_iso(utc_now()),
                    "id": rule_id,
                    "user_id": user_id,
                },
            )
        if result.rowcount == 0:
            raise NotFoundError(f"Rule not found: {rule_id}")

        rule = self.get(user_id, rule_id)
        if rule is None:
            raise NotFoundError(f"Rule not found: {rule_id}")
        return rule

    def delete(self, user_id: str, rule_id: str) -> None:
        """Delete a rule.

        Raises:
            NotFoundError: If the rule does not exist for this user.
        """
        q = text("DELETE FROM sorting_rule WHERE id = :id AND user_id = :user_id")
        with self._engine.begin() as conn:
            result = conn.execute(q, {"id": rule_id, "user_id": user_id})
        if result.rowcount == 0:
            raise NotFoundError(f"Rule not found: {rule_id}")
