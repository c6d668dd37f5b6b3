"""Data models for Mailsorter.

This module contains Pydantic models for data validation and serialization.
Records exposed over HTTP use camelCase aliases; classifier answers keep the
snake_case keys the classification service returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mailsorter.models.message import MailMessage


class SuggestedAction(str, Enum):
    """Action kinds a classification or sender default can carry."""

    ARCHIVE = "archive"
    DELETE = "delete"
    LABEL = "label"
    KEEP = "keep"

    @classmethod
    def normalize(cls, value: Any) -> "SuggestedAction":
        """Map free-form text onto an action.

        Unrecognized values collapse to KEEP: leaving a message in the inbox is
        the only action that is safe without knowing what was meant.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.KEEP


class SuggestionStatus(str, Enum):
    """Suggestion lifecycle. APPLIED and REJECTED are terminal."""

    PENDING = "pending"
    APPLIED = "applied"
    REJECTED = "rejected"


class SenderType(str, Enum):
    """Coarse sender classification returned by sender-level analysis."""

    COMMERCIAL = "commercial"
    PERSONAL = "personal"
    WORK = "work"
    NEWSLETTER = "newsletter"
    TRANSACTIONAL = "transactional"

    @classmethod
    def normalize(cls, value: Any) -> Optional["SenderType"]:
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None


class Classification(BaseModel):
    """Normalized answer for a single message."""

    action: SuggestedAction = Field(description="Suggested action")
    label_name: str = Field(default="", description="Label to apply when action is label")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score")
    reasoning: str = Field(default="", description="Short justification")


class SenderClassification(BaseModel):
    """Normalized answer for a sender-level analysis."""

    suggested_action: SuggestedAction = Field(description="Default action for the sender")
    suggested_label: str = Field(default="", description="Default label for the sender")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score")
    reasoning: str = Field(default="", description="Short justification")
    sender_type: SenderType | None = Field(default=None, description="Kind of sender")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Suggestion(CamelModel):
    """A stored classification decision awaiting (or past) application."""

    id: str
    user_id: str
    email_id: str = Field(description="Provider message ID")
    action: SuggestedAction
    label_name: str = ""
    label_id: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    status: SuggestionStatus = SuggestionStatus.PENDING
    created_at: datetime
    applied_at: datetime | None = None


class LabelEntry(CamelModel):
    """A user label known locally, mapped to its remote label ID."""

    id: str
    user_id: str
    name: str
    gmail_label_id: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    email_count: int = 0
    created_at: datetime
    updated_at: datetime


class SenderPreference(CamelModel):
    """Learned default behaviour for one sender."""

    id: str
    user_id: str
    sender_email: str
    sender_domain: str = ""
    sender_name: str = ""
    auto_apply: bool = False
    default_action: SuggestedAction = SuggestedAction.KEEP
    default_label: str = ""
    email_count: int = 0
    created_at: datetime
    updated_at: datetime


class ConditionField(str, Enum):
    FROM = "from"
    TO = "to"
    SUBJECT = "subject"
    BODY = "body"


class ConditionOperator(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"


class RuleActionType(str, Enum):
    ADD_LABEL = "addLabel"
    REMOVE_LABEL = "removeLabel"
    MARK_AS_READ = "markAsRead"
    ARCHIVE = "archive"


class RuleCondition(CamelModel):
    field: ConditionField
    operator: ConditionOperator
    value: str


class RuleAction(CamelModel):
    type: RuleActionType
    value: str = ""


class SortingRule(CamelModel):
    """A user-authored deterministic rule. Conditions are AND-combined."""

    id: str
    user_id: str
    name: str = ""
    conditions: list[RuleCondition] = Field(default_factory=list)
    actions: list[RuleAction] = Field(default_factory=list)
    priority: int = 0
    enabled: bool = True
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Decision:
    """A single action to apply to one message."""

    message_id: str
    action: SuggestedAction
    label_name: str = ""
    suggestion_id: str | None = None

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion) -> "Decision":
        return cls(
            message_id=suggestion.email_id,
            action=suggestion.action,
            label_name=suggestion.label_name,
            suggestion_id=suggestion.id,
        )


@dataclass(frozen=True)
class RuleOutcome:
    """The actions of the first matching rule, in the rule's listed order."""

    rule_id: str
    rule_name: str
    actions: tuple[RuleAction, ...]


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying one decision or rule action to one message."""

    message_id: str
    action: str
    applied: bool
    label_id: str | None = None
    error: str | None = None


class BulkResult(BaseModel):
    """Count of successful applications out of those attempted."""

    applied: int = 0
    total: int = 0


class SenderAnalysis(CamelModel):
    """Result of analyzing one sender: the answer, the volume and the stored defaults."""

    analysis: SenderClassification
    email_count: int
    preference: SenderPreference


class RuleApplication(CamelModel):
    """What rule evaluation did to one message."""

    email_id: str
    rule_id: str | None = None
    rule_name: str = ""
    applied: int = 0
    total: int = 0
    error: str | None = None


__all__ = [
    "ApplyResult",
    "BulkResult",
    "Classification",
    "ConditionField",
    "ConditionOperator",
    "Decision",
    "LabelEntry",
    "MailMessage",
    "RuleAction",
    "RuleActionType",
    "RuleCondition",
    "RuleApplication",
    "RuleOutcome",
    "SenderAnalysis",
    "SenderClassification",
    "SenderPreference",
    "SenderType",
    "SortingRule",
    "SuggestedAction",
    "Suggestion",
    "SuggestionStatus",
]
