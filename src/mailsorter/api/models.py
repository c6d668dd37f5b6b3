"""Request and response bodies for the HTTP API (camelCase JSON)."""

from __future__ import annotations

from pydantic import Field

from mailsorter.models import CamelModel, RuleAction, RuleCondition, SuggestedAction


class AnalyzeRequest(CamelModel):
    email_ids: list[str] = Field(default_factory=list)


class AnalyzeSenderRequest(CamelModel):
    sender_email: str


class ApplySuggestionRequest(CamelModel):
    suggestion_id: str


class ApplyStatusResponse(CamelModel):
    status: str


class ApplyBulkRequest(CamelModel):
    sender_email: str
    action: str
    label_name: str = ""


class UpdateSenderPreferenceRequest(CamelModel):
    auto_apply: bool
    default_action: SuggestedAction = SuggestedAction.KEEP
    default_label: str = ""


class CreateSmartLabelRequest(CamelModel):
    name: str
    description: str = ""
    keywords: list[str] = Field(default_factory=list)


class SortingRuleRequest(CamelModel):
    name: str
    conditions: list[RuleCondition] = Field(default_factory=list)
    actions: list[RuleAction] = Field(default_factory=list)
    priority: int = 0
    enabled: bool = True


class ApplyRulesRequest(CamelModel):
    email_ids: list[str] = Field(default_factory=list)


class HealthResponse(CamelModel):
    status: str
    database: bool
    classifier_configured: bool
