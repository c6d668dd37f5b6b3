"""LLM prompt contracts for message, sender and label-equivalence queries.

Every prompt asks for a single JSON object; see
:mod:`mailsorter.classifier.parsing` for how answers are read back.
"""

from __future__ import annotations

from mailsorter.models import MailMessage
from mailsorter.utils import truncate

_ACTIONS_BLOCK = (
    "Possible actions:\n"
    '- "archive": informational mail that needs no attention (read newsletters, confirmations, notifications)\n'
    '- "delete": unwanted mail, spam or promotions the user does not want\n'
    '- "label": mail that should be filed under a category\n'
    '- "keep": important mail that needs action or attention\n'
)


def _render_labels(known_labels: list[str], heading: str) -> str:
    if not known_labels:
        return ""
    return f"\n{heading}: {', '.join(known_labels)}\n"


def build_message_prompt(
    message: MailMessage,
    known_labels: list[str],
    *,
    snippet_max_chars: int = 200,
) -> str:
    """Build the single-message classification prompt.

    Response contract: one JSON object with action, label_name, confidence
    and reasoning.
    """

    return (
        "You are an email sorting assistant. Analyze this email and suggest one action.\n\n"
        "Email:\n"
        f"- From: {message.sender}\n"
        f"- Subject: {message.subject}\n"
        f"- Snippet: {truncate(message.snippet, snippet_max_chars)}\n"
        f"{_render_labels(known_labels, 'Existing user labels')}\n"
        f"{_ACTIONS_BLOCK}\n"
        "Respond ONLY with valid JSON in exactly this format:\n"
        "{\n"
        '  "action": "archive|delete|label|keep",\n'
        '  "label_name": "label name if action=label, otherwise an empty string",\n'
        '  "confidence": 0.0 to 1.0,\n'
        '  "reasoning": "short explanation (max 100 characters)"\n'
        "}\n\n"
        "Label guidance - be PRECISE and SPECIFIC:\n"
        "- Reuse an existing label whenever one fits\n"
        "- Otherwise propose a label describing the TYPE of email, for example:\n"
        '  * Deliveries/parcels: "Deliveries"\n'
        '  * Invoices/payments: "Invoices"\n'
        '  * Purchase confirmations: "Purchases"\n'
        '  * Newsletters: "Newsletters"\n'
        '  * Social networks: "Social"\n'
        '  * Travel bookings: "Travel"\n'
        '  * Banking: "Bank"\n'
        '  * Work: "Work"\n'
        '  * Administration: "Administrative"\n'
        "- Prefer labels about the kind of email over labels about its source\n"
    )


def build_sender_prompt(
    sender: str,
    messages: list[MailMessage],
    known_labels: list[str],
    *,
    email_count: int | None = None,
    max_examples: int = 5,
) -> str:
    """Build the sender-level prompt from up to ``max_examples`` subjects."""

    subjects = "\n".join(f"- Subject: {m.subject}" for m in messages[:max_examples])
    count = email_count if email_count is not None else len(messages)

    return (
        "You are an email sorting assistant. Analyze this sender and their emails "
        "to suggest a default action for everything they send.\n\n"
        f"Sender: {sender}\n"
        f"Number of emails: {count}\n\n"
        "Example subjects:\n"
        f"{subjects if subjects else '- (none)'}\n"
        f"{_render_labels(known_labels, 'Existing labels')}\n"
        "Possible actions:\n"
        '- "archive": archive automatically (notifications, confirmations)\n'
        '- "delete": delete (spam, unwanted promotions)\n'
        '- "label": file under a label\n'
        '- "keep": keep in the inbox (important mail)\n\n'
        "Respond ONLY with valid JSON:\n"
        "{\n"
        '  "suggested_action": "archive|delete|label|keep",\n'
        '  "suggested_label": "label name if action=label",\n'
        '  "confidence": 0.0 to 1.0,\n'
        '  "reasoning": "short explanation",\n'
        '  "sender_type": "commercial|personal|work|newsletter|transactional"\n'
        "}\n"
    )


def build_label_match_prompt(candidate: str, known_labels: list[str]) -> str:
    """Build the label-equivalence prompt."""

    return (
        "Decide whether a suggested label matches one of the existing labels.\n\n"
        f'Suggested label: "{candidate}"\n'
        f"Existing labels: {', '.join(known_labels)}\n\n"
        "Respond ONLY with valid JSON:\n"
        "{\n"
        '  "matches_existing": true or false,\n'
        '  "matched_label": "the matching existing label, or the suggested label if none matches"\n'
        "}\n\n"
        "Rules:\n"
        '- "E-commerce" and "Shopping" are equivalent\n'
        '- "Newsletters" and "Newsletter" are equivalent\n'
        "- Ignore differences in letter case\n"
        "- If no existing label matches, return the suggested label\n"
    )
