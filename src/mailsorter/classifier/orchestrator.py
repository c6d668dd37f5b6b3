"""Classification orchestration.

Builds prompts, calls the classification service once per request and turns
the answer into normalized, mailbox-safe decisions. Nothing here persists
anything.
"""

from __future__ import annotations

import structlog

from mailsorter.classifier.client import ChatClient
from mailsorter.classifier.parsing import parse_classification, parse_sender_classification
from mailsorter.classifier.prompt import build_message_prompt, build_sender_prompt
from mailsorter.config import Settings
from mailsorter.models import Classification, MailMessage, SenderClassification

logger = structlog.get_logger()


class ClassificationOrchestrator:
    """Classify single messages and whole senders."""

    def __init__(self, client: ChatClient, settings: Settings | None = None) -> None:
        from mailsorter.config import get_settings

        self.client = client
        self.settings = settings or get_settings()

    async def classify_message(self, message: MailMessage, known_labels: list[str]) -> Classification:
        """Classify one message.

        Raises:
            ClassifierError: If the service call fails.
            ParseError: If the answer holds no JSON object.
        """
        prompt = build_message_prompt(
            message,
            known_labels,
            snippet_max_chars=self.settings.snippet_max_chars,
        )
        raw = await self.client.complete(prompt)
        result = parse_classification(raw)
        logger.info(
            "message_classified",
            message_id=message.id,
            action=result.action.value,
            label_name=result.label_name,
            confidence=result.confidence,
        )
        return result

    async def classify_sender(
        self,
        sender: str,
        recent_messages: list[MailMessage],
        known_labels: list[str],
        *,
        email_count: int | None = None,
    ) -> SenderClassification:
        """Classify a sender from a handful of its recent messages.

        Only the first ``sender_prompt_examples`` messages are embedded in the prompt.
        """
        prompt = build_sender_prompt(
            sender,
            recent_messages,
            known_labels,
            email_count=email_count,
            max_examples=self.settings.sender_prompt_examples,
        )
        raw = await self.client.complete(prompt)
        result = parse_sender_classification(raw)
        logger.info(
            "sender_classified",
            sender=sender,
            action=result.suggested_action.value,
            label_name=result.suggested_label,
            sender_type=result.sender_type.value if result.sender_type else None,
        )
        return result
