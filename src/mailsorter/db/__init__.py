"""Database engine and schema helpers."""

from .engine import create_db_engine, check_connection
from .schema import ensure_schema

__all__ = ["create_db_engine", "ensure_schema", "check_connection"]
