"""Mail sorting agent implementation.

This module provides the per-user agent that coordinates classification,
label reconciliation, rule evaluation and action application:

    classify / evaluate rules -> reconcile label -> apply -> record sender defaults

An agent is cheap to build and is meant to live for one request.
"""

from __future__ import annotations

import asyncio
import time

import structlog
from sqlalchemy.engine import Engine

from mailsorter.actions import ActionApplier
from mailsorter.classifier.client import ChatClient
from mailsorter.classifier.orchestrator import ClassificationOrchestrator
from mailsorter.config import Settings
from mailsorter.exceptions import (
    ClassifierTimeoutError,
    ConfigurationError,
    InvalidTransitionError,
    NotFoundError,
    UpstreamError,
)
from mailsorter.labels import LabelReconciler
from mailsorter.mailbox import Mailbox
from mailsorter.models import (
    BulkResult,
    Classification,
    Decision,
    LabelEntry,
    MailMessage,
    RuleAction,
    RuleApplication,
    RuleCondition,
    SenderAnalysis,
    SenderPreference,
    SortingRule,
    SuggestedAction,
    Suggestion,
    SuggestionStatus,
)
from mailsorter.repository import (
    LabelRepository,
    RuleRepository,
    SenderPreferenceRepository,
    SuggestionRepository,
)
from mailsorter.rules import evaluate
from mailsorter.utils import extract_address, extract_domain, extract_sender_name

logger = structlog.get_logger()


class SortingAgent:
    """Per-user mail sorting agent.

    The agent depends only on the :class:`~mailsorter.mailbox.Mailbox` protocol
    and the :class:`~mailsorter.classifier.client.ChatClient` protocol, so both
    remote collaborators can be replaced by fakes.
    """

    def __init__(
        self,
        *,
        user_id: str,
        mailbox: Mailbox,
        engine: Engine,
        client: ChatClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the sorting agent.

        Args:
            user_id: Tenant key; every stored record is scoped by it.
            mailbox: Remote mailbox for this user.
            engine: SQLAlchemy engine holding the local records.
            client: Classification service. Operations that classify raise
                ConfigurationError when it is missing.
            settings: Application settings. If None, uses default settings.
        """
        from mailsorter.config import get_settings

        self.settings = settings or get_settings()
        self.user_id = user_id
        self.mailbox = mailbox

        self.suggestions = SuggestionRepository(engine)
        self.labels = LabelRepository(engine)
        self.senders = SenderPreferenceRepository(engine)
        self.rules = RuleRepository(engine)

        self.orchestrator = ClassificationOrchestrator(client, self.settings) if client is not None else None
        self.reconciler = LabelReconciler(user_id=user_id, labels=self.labels, mailbox=mailbox, client=client)
        self.applier = ActionApplier(
            mailbox=mailbox,
            reconciler=self.reconciler,
            labels=self.labels,
            suggestions=self.suggestions,
        )

    def _require_orchestrator(self) -> ClassificationOrchestrator:
        if self.orchestrator is None:
            raise ConfigurationError("Classification service not configured")
        return self.orchestrator

    # Classification

    async def analyze_messages(self, email_ids: list[str]) -> list[Suggestion]:
        """Classify messages and store one pending suggestion per message.

        Messages that cannot be fetched or classified are skipped. The whole
        batch runs under ``analyze_timeout_seconds``; suggestions stored before
        the timeout stay stored.

        Raises:
            ValueError: If no IDs are given.
            NotFoundError: If none of the messages could be fetched.
            ClassifierTimeoutError: If the batch exceeds its time budget.
        """
        if not email_ids:
            raise ValueError("No email IDs provided")
        orchestrator = self._require_orchestrator()

        try:
            fetched, created = await asyncio.wait_for(
                self._analyze_batch(orchestrator, email_ids),
                timeout=self.settings.analyze_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.warning("analyze_timed_out", user_id=self.user_id, requested=len(email_ids))
            raise ClassifierTimeoutError(
                f"Analysis exceeded {self.settings.analyze_timeout_seconds}s"
            ) from exc

        if not fetched:
            raise NotFoundError("No emails found")

        logger.info("analyze_completed", user_id=self.user_id, requested=len(email_ids), created=len(created))
        return created

    async def _analyze_batch(
        self, orchestrator: ClassificationOrchestrator, email_ids: list[str]
    ) -> tuple[int, list[Suggestion]]:
        known = self.labels.label_names(self.user_id)
        fetched = 0
        created: list[Suggestion] = []

        for email_id in email_ids:
            try:
                message = await self.mailbox.get_message(email_id)
            except UpstreamError as exc:
                logger.warning("analyze_fetch_failed", email_id=email_id, error=str(exc))
                continue
            fetched += 1

            try:
                classification = await orchestrator.classify_message(message, known)
                classification, label_id = await self._reconcile(classification, known)
            except UpstreamError as exc:
                logger.warning("analyze_item_failed", email_id=email_id, error=str(exc))
                continue

            created.append(
                self.suggestions.create(
                    user_id=self.user_id,
                    email_id=email_id,
                    classification=classification,
                    label_id=label_id,
                )
            )

        return fetched, created

    async def _reconcile(self, classification: Classification, known: list[str]) -> tuple[Classification, str]:
        if classification.action is not SuggestedAction.LABEL:
            return classification, ""

        resolved, existed = await self.reconciler.resolve(classification.label_name, known)
        label_id = ""
        if existed:
            entry = self.labels.get_by_name(self.user_id, resolved)
            label_id = entry.gmail_label_id if entry else ""
        return classification.model_copy(update={"label_name": resolved}), label_id

    async def analyze_sender(self, sender_email: str) -> SenderAnalysis:
        """Classify a sender from its recent messages and record the defaults.

        Raises:
            ValueError: If no sender is given.
            NotFoundError: If no messages from the sender are found.
        """
        sender_email = extract_address(sender_email or "")
        if not sender_email:
            raise ValueError("senderEmail is required")
        orchestrator = self._require_orchestrator()

        messages = await self._fetch_sender_messages(sender_email, self.settings.sender_analysis_max_messages)
        if not messages:
            raise NotFoundError("No emails found from this sender")

        known = self.labels.label_names(self.user_id)
        analysis = await orchestrator.classify_sender(
            sender_email, messages, known, email_count=len(messages)
        )
        if analysis.suggested_action is SuggestedAction.LABEL:
            resolved, _ = await self.reconciler.resolve(analysis.suggested_label, known)
            analysis = analysis.model_copy(update={"suggested_label": resolved})

        preference = self.senders.record_sender_analysis(
            user_id=self.user_id,
            sender_email=sender_email,
            sender_domain=extract_domain(sender_email),
            sender_name=extract_sender_name(messages[0].sender),
            analysis=analysis,
            email_count=len(messages),
        )
        return SenderAnalysis(analysis=analysis, email_count=len(messages), preference=preference)

    async def _fetch_sender_messages(self, sender_email: str, limit: int) -> list[MailMessage]:
        refs = await self.mailbox.list_messages(max_results=limit, query=f"from:{sender_email}")
        messages: list[MailMessage] = []
        for ref in refs[:limit]:
            try:
                messages.append(await self.mailbox.get_message(str(ref["id"])))
            except UpstreamError as exc:
                logger.warning("sender_message_fetch_failed", message_id=ref.get("id"), error=str(exc))
        return messages

    # Suggestions

    def list_suggestions(self, status: SuggestionStatus = SuggestionStatus.PENDING) -> list[Suggestion]:
        return self.suggestions.list_by_status(
            self.user_id, status=status, limit=self.settings.suggestions_page_size
        )

    async def apply_suggestion(self, suggestion_id: str) -> Suggestion:
        """Apply a stored suggestion to its message.

        Applying an already applied suggestion re-issues the idempotent mutation.

        Raises:
            NotFoundError: If the suggestion does not exist for this user.
            InvalidTransitionError: If the suggestion was rejected.
        """
        suggestion = self.suggestions.get(self.user_id, suggestion_id)
        if suggestion is None:
            raise NotFoundError(f"Suggestion not found: {suggestion_id}")
        if suggestion.status is SuggestionStatus.REJECTED:
            raise InvalidTransitionError(f"Suggestion {suggestion_id} was rejected")

        await self.applier.apply_one(Decision.from_suggestion(suggestion))
        return self.suggestions.get(self.user_id, suggestion_id) or suggestion

    def reject_suggestion(self, suggestion_id: str) -> Suggestion:
        return self.suggestions.reject(self.user_id, suggestion_id)

    async def apply_bulk(
        self,
        sender_email: str,
        action: SuggestedAction | str,
        label_name: str = "",
    ) -> BulkResult:
        """Apply one action to every recent message from a sender.

        The label (if any) is reconciled with the existing taxonomy and ensured
        once up front; a failure there aborts the request. After that,
        per-message failures only lower the applied count.

        Raises:
            ValueError: If the sender is missing, or a label action has no label.
        """
        sender_email = extract_address(sender_email or "")
        if not sender_email:
            raise ValueError("senderEmail is required")
        action = SuggestedAction.normalize(action)
        label_name = (label_name or "").strip()
        if action is SuggestedAction.LABEL:
            if not label_name:
                raise ValueError("labelName is required for the label action")
            label_name, _ = await self.reconciler.resolve(label_name, self.labels.label_names(self.user_id))
            await self.applier.label_id_for(label_name)

        deadline = time.monotonic() + self.settings.bulk_apply_timeout_seconds
        refs = await self.mailbox.list_messages(
            max_results=self.settings.bulk_apply_max_messages,
            query=f"from:{sender_email}",
        )
        decisions = [
            Decision(message_id=str(ref["id"]), action=action, label_name=label_name)
            for ref in refs
            if ref.get("id")
        ]

        result = await self.applier.apply_bulk(decisions, deadline=deadline)
        logger.info(
            "sender_bulk_applied",
            user_id=self.user_id,
            sender_email=sender_email,
            action=action.value,
            applied=result.applied,
            total=result.total,
        )
        return result

    # Sender preferences

    def list_senders(self) -> list[SenderPreference]:
        return self.senders.list_preferences(self.user_id)

    def update_sender_preference(
        self,
        preference_id: str,
        *,
        auto_apply: bool,
        default_action: SuggestedAction | str,
        default_label: str = "",
    ) -> SenderPreference:
        return self.senders.update_preference(
            user_id=self.user_id,
            preference_id=preference_id,
            auto_apply=auto_apply,
            default_action=SuggestedAction.normalize(default_action),
            default_label=default_label,
        )

    # Smart labels

    def list_labels(self) -> list[LabelEntry]:
        return self.labels.list_labels(self.user_id)

    async def create_label(
        self, name: str, *, description: str = "", keywords: list[str] | None = None
    ) -> LabelEntry:
        """Create (or link) a label remotely and locally.

        Raises:
            ValueError: If the name is blank.
        """
        label_id = await self.reconciler.ensure_label_id(name, description=description, keywords=keywords)
        entry = self.labels.get_by_gmail_id(self.user_id, label_id)
        if entry is None:
            raise NotFoundError(f"Label vanished after creation: {name}")
        return entry

    # Sorting rules

    def list_rules(self) -> list[SortingRule]:
        return self.rules.list_rules(self.user_id)

    def create_rule(
        self,
        *,
        name: str,
        conditions: list[RuleCondition],
        actions: list[RuleAction],
        priority: int = 0,
        enabled: bool = True,
    ) -> SortingRule:
        _require_conditions(conditions)
        return self.rules.create(
            user_id=self.user_id,
            name=name,
            conditions=conditions,
            actions=actions,
            priority=priority,
            enabled=enabled,
        )

    def update_rule(
        self,
        rule_id: str,
        *,
        name: str,
        conditions: list[RuleCondition],
        actions: list[RuleAction],
        priority: int = 0,
        enabled: bool = True,
    ) -> SortingRule:
        _require_conditions(conditions)
        return self.rules.update(
            user_id=self.user_id,
            rule_id=rule_id,
            name=name,
            conditions=conditions,
            actions=actions,
            priority=priority,
            enabled=enabled,
        )

    def delete_rule(self, rule_id: str) -> None:
        self.rules.delete(self.user_id, rule_id)

    async def apply_rules(self, email_ids: list[str]) -> list[RuleApplication]:
        """Evaluate the user's rules against each message and apply the winner.

        Raises:
            ValueError: If no IDs are given.
        """
        if not email_ids:
            raise ValueError("No email IDs provided")

        rules = self.rules.list_rules(self.user_id)
        results: list[RuleApplication] = []
        for email_id in email_ids:
            try:
                message = await self.mailbox.get_message(email_id)
            except UpstreamError as exc:
                logger.warning("rule_message_fetch_failed", email_id=email_id, error=str(exc))
                results.append(RuleApplication(email_id=email_id, error=str(exc)))
                continue

            outcome = evaluate(message, rules)
            if outcome is None:
                results.append(RuleApplication(email_id=email_id))
                continue

            applied = await self.applier.apply_rule_outcome(email_id, outcome)
            results.append(
                RuleApplication(
                    email_id=email_id,
                    rule_id=outcome.rule_id,
                    rule_name=outcome.rule_name,
                    applied=sum(1 for r in applied if r.applied),
                    total=len(applied),
                )
            )
        return results


def _require_conditions(conditions: list[RuleCondition]) -> None:
    # A rule without conditions never matches; refuse to store one.
    if not conditions:
        raise ValueError("A rule needs at least one condition")
