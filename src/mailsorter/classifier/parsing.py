"""Parsing and normalization of classification answers.

The service is asked for a single JSON object but models often wrap it in
prose or code fences. Parsing is tolerant; validation is strict but never
fails: unknown actions become "keep" and confidence is clamped to [0, 1].
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from mailsorter.exceptions import ParseError
from mailsorter.models import Classification, SenderClassification, SenderType, SuggestedAction

logger = structlog.get_logger()


def extract_json_object(raw: str) -> dict[str, Any]:
    """Extract the JSON object from a raw model response.

    Tries the whole text first, then the substring between the first "{" and
    the last "}".

    Raises:
        ParseError: If neither attempt yields a JSON object.
    """

    raw = (raw or "").strip()
    if not raw:
        raise ParseError("empty model response")

    try:
        obj = json.loads(raw)
        if isinstance(obj, dict):
            return obj
    except ValueError:
        pass

    start = raw.find("{")
    end = raw.rfind("}")
    if start < 0 or end <= start:
        raise ParseError("model response did not contain a JSON object")

    try:
        obj = json.loads(raw[start : end + 1])
    except ValueError as exc:
        raise ParseError(f"failed to parse model response: {exc}") from exc
    if not isinstance(obj, dict):
        raise ParseError("extracted JSON was not an object")
    return obj


def clamp_confidence(value: Any) -> float:
    """Coerce a confidence value into [0.0, 1.0]; unparseable values become 0.0."""
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return 0.0
    if conf != conf:  # NaN
        return 0.0
    return min(1.0, max(0.0, conf))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_classification(raw: str) -> Classification:
    """Parse a single-message answer into a normalized Classification."""

    obj = extract_json_object(raw)
    action = SuggestedAction.normalize(obj.get("action"))
    if action.value != _text(obj.get("action")).lower():
        logger.debug("classification_action_normalized", raw_action=obj.get("action"), action=action.value)

    label_name = _text(obj.get("label_name"))
    if action is SuggestedAction.LABEL and not label_name:
        # A label decision without a label cannot be applied.
        action = SuggestedAction.KEEP

    return Classification(
        action=action,
        label_name=label_name if action is SuggestedAction.LABEL else "",
        confidence=clamp_confidence(obj.get("confidence")),
        reasoning=_text(obj.get("reasoning")),
    )


def parse_sender_classification(raw: str) -> SenderClassification:
    """Parse a sender-level answer into a normalized SenderClassification."""

    obj = extract_json_object(raw)
    action = SuggestedAction.normalize(obj.get("suggested_action"))
    label = _text(obj.get("suggested_label"))
    if action is SuggestedAction.LABEL and not label:
        action = SuggestedAction.KEEP

    return SenderClassification(
        suggested_action=action,
        suggested_label=label if action is SuggestedAction.LABEL else "",
        confidence=clamp_confidence(obj.get("confidence")),
        reasoning=_text(obj.get("reasoning")),
        sender_type=SenderType.normalize(obj.get("sender_type")),
    )


def parse_label_match(raw: str) -> tuple[bool, str]:
    """Parse a label-equivalence answer into (matches_existing, matched_label)."""

    obj = extract_json_object(raw)
    matches = obj.get("matches_existing")
    if isinstance(matches, str):
        matches = matches.strip().lower() == "true"
    return bool(matches), _text(obj.get("matched_label"))
