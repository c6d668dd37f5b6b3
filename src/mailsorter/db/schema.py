"""Idempotent schema bootstrap.

The DDL sticks to the subset shared by SQLite and PostgreSQL. Timestamps are
stored as ISO-8601 UTC text and list fields as JSON text.

Uniqueness constraints carry the correctness guarantees that the
"find existing, else create" code paths only approximate:
- smart_label: one row per (user_id, name) and per (user_id, gmail_label_id)
- sender_preference: one row per (user_id, sender_email)
"""

from __future__ import annotations

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = structlog.get_logger()

_DDL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS ai_suggestion (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        email_id TEXT NOT NULL,
        action TEXT NOT NULL,
        label_name TEXT NOT NULL DEFAULT '',
        label_id TEXT NOT NULL DEFAULT '',
        confidence REAL NOT NULL DEFAULT 0,
        reasoning TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TEXT NOT NULL,
        applied_at TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_ai_suggestion_user_status
        ON ai_suggestion(user_id, status, created_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS smart_label (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        gmail_label_id TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        keywords_json TEXT NOT NULL DEFAULT '[]',
        email_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        CONSTRAINT uq_smart_label_user_name UNIQUE (user_id, name),
        CONSTRAINT uq_smart_label_user_gmail_id UNIQUE (user_id, gmail_label_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sender_preference (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        sender_email TEXT NOT NULL,
        sender_domain TEXT NOT NULL DEFAULT '',
        sender_name TEXT NOT NULL DEFAULT '',
        auto_apply BOOLEAN NOT NULL,
        default_action TEXT NOT NULL DEFAULT 'keep',
        default_label TEXT NOT NULL DEFAULT '',
        email_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        CONSTRAINT uq_sender_preference_user_sender UNIQUE (user_id, sender_email)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sorting_rule (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        conditions_json TEXT NOT NULL DEFAULT '[]',
        actions_json TEXT NOT NULL DEFAULT '[]',
        priority INTEGER NOT NULL DEFAULT 0,
        enabled BOOLEAN NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_sorting_rule_user_priority
        ON sorting_rule(user_id, priority)
    """,
)


def ensure_schema(engine: Engine) -> None:
    """Ensure required tables and indexes exist (idempotent).

    Args:
        engine: SQLAlchemy engine bound to SQLite or PostgreSQL.
    """

    with engine.begin() as conn:
        for statement in _DDL:
            conn.execute(text(statement))

    logger.info("schema_ensured", tables=["ai_suggestion", "smart_label", "sender_preference", "sorting_rule"])
