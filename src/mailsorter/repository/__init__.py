"""Repositories over the SQL store.

Every query is scoped by ``user_id``; a record owned by another user is
indistinguishable from a missing one.
"""

from .label_repository import LabelRepository
from .rule_repository import RuleRepository
from .sender_preference_repository import SenderPreferenceRepository
from .suggestion_repository import SuggestionRepository

__all__ = [
    "LabelRepository",
    "RuleRepository",
    "SenderPreferenceRepository",
    "SuggestionRepository",
]
