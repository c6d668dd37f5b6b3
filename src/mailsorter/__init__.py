"""Mailsorter - AI-assisted inbox sorting.

This package classifies inbox messages into actions (archive, delete, label,
keep) using deterministic sorting rules or a chat-completions model, reconciles
suggested labels against the user's label taxonomy, learns per-sender defaults
and applies the resulting actions to Gmail.
"""

__version__ = "0.1.0"

from mailsorter.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
