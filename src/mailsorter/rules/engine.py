"""Deterministic rule evaluation.

Rules are evaluated in memory against a single message. Semantics:
- only enabled rules take part;
- rules are tried in ascending priority (ties keep their listed order);
- conditions are AND-only, and a rule without conditions never matches;
- the first rule whose conditions all match wins.

String comparisons are case-insensitive (Unicode casefold on both sides).
Evaluation is pure: it never touches the mailbox or storage.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from mailsorter.models import (
    ConditionField,
    ConditionOperator,
    MailMessage,
    RuleCondition,
    RuleOutcome,
    SortingRule,
)

_OPERATORS: dict[ConditionOperator, Callable[[str, str], bool]] = {
    ConditionOperator.CONTAINS: lambda haystack, needle: needle in haystack,
    ConditionOperator.EQUALS: lambda haystack, needle: haystack == needle,
    ConditionOperator.STARTS_WITH: lambda haystack, needle: haystack.startswith(needle),
    ConditionOperator.ENDS_WITH: lambda haystack, needle: haystack.endswith(needle),
}


def _field_value(message: MailMessage, field: ConditionField) -> str:
    if field is ConditionField.FROM:
        return message.sender
    if field is ConditionField.TO:
        return ", ".join(message.recipients)
    if field is ConditionField.SUBJECT:
        return message.subject
    if field is ConditionField.BODY:
        # Fall back to the snippet when the body was not fetched.
        return message.body if message.body is not None else message.snippet
    raise ValueError(f"Unsupported condition field: {field}")


def condition_matches(message: MailMessage, condition: RuleCondition) -> bool:
    value = _field_value(message, condition.field).casefold()
    return _OPERATORS[condition.operator](value, condition.value.casefold())


def rule_matches(message: MailMessage, rule: SortingRule) -> bool:
    if not rule.conditions:
        return False
    return all(condition_matches(message, c) for c in rule.conditions)


def evaluate(message: MailMessage, rules: Iterable[SortingRule]) -> RuleOutcome | None:
    """Return the actions of the first matching enabled rule, or None."""

    candidates = sorted((r for r in rules if r.enabled), key=lambda r: r.priority)
    for rule in candidates:
        if rule_matches(message, rule):
            return RuleOutcome(rule_id=rule.id, rule_name=rule.name, actions=tuple(rule.actions))
    return None
