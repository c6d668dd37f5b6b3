"""Translate decisions into mailbox mutations.

Action mapping:
    archive -> remove INBOX
    delete  -> add TRASH (reversible soft delete)
    label   -> ensure the label exists, then add its ID
    keep    -> nothing; always a successful no-op

Every mutation is an idempotent add/remove of label IDs, so re-applying a
decision to a message already in the target state succeeds.
"""

from __future__ import annotations

import time

import structlog

from mailsorter.labels import LabelReconciler
from mailsorter.mailbox import INBOX_LABEL, TRASH_LABEL, UNREAD_LABEL, Mailbox
from mailsorter.models import (
    ApplyResult,
    BulkResult,
    Decision,
    RuleActionType,
    RuleOutcome,
    SuggestedAction,
)
from mailsorter.repository import LabelRepository, SuggestionRepository

logger = structlog.get_logger()


class ActionApplier:
    """Apply decisions to a mailbox on behalf of one user."""

    def __init__(
        self,
        *,
        mailbox: Mailbox,
        reconciler: LabelReconciler,
        labels: LabelRepository,
        suggestions: SuggestionRepository | None = None,
    ) -> None:
        self.mailbox = mailbox
        self.reconciler = reconciler
        self.labels = labels
        self.suggestions = suggestions
        # name -> remote ID, valid for the lifetime of this applier (one request)
        self._label_ids: dict[str, str] = {}

    @property
    def user_id(self) -> str:
        return self.reconciler.user_id

    async def label_id_for(self, name: str) -> str:
        """Resolve a label name to its remote ID once per applier."""
        cached = self._label_ids.get(name)
        if cached:
            return cached
        label_id = await self.reconciler.ensure_label_id(name)
        self._label_ids[name] = label_id
        return label_id

    async def apply_one(self, decision: Decision) -> ApplyResult:
        """Apply one decision and mark its suggestion applied on success.

        Raises:
            GmailAPIError: If the mailbox mutation or label creation fails.
        """

        label_id = await self._mutate(decision)

        if decision.suggestion_id and self.suggestions is not None:
            transitioned = self.suggestions.mark_applied(decision.suggestion_id, label_id=label_id or "")
            if not transitioned:
                logger.debug("suggestion_already_terminal", suggestion_id=decision.suggestion_id)

        logger.info(
            "decision_applied",
            message_id=decision.message_id,
            action=decision.action.value,
            label_id=label_id,
            suggestion_id=decision.suggestion_id,
        )
        return ApplyResult(
            message_id=decision.message_id,
            action=decision.action.value,
            applied=True,
            label_id=label_id,
        )

    async def apply_bulk(self, decisions: list[Decision], *, deadline: float | None = None) -> BulkResult:
        """Apply decisions in the given order; never raises.

        Args:
            decisions: Decisions to apply, processed strictly in order.
            deadline: Optional ``time.monotonic()`` value after which remaining
                decisions are not attempted. They stay pending and still count
                toward ``total``.

        Returns:
            BulkResult with the number of successes out of all supplied decisions.
        """

        applied = 0
        skipped = 0
        for index, decision in enumerate(decisions):
            if deadline is not None and time.monotonic() >= deadline:
                skipped = len(decisions) - index
                logger.warning("bulk_apply_deadline_reached", remaining=skipped)
                break
            try:
                await self.apply_one(decision)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "bulk_apply_item_failed",
                    message_id=decision.message_id,
                    action=decision.action.value,
                    error=str(exc),
                )
                continue
            applied += 1

        result = BulkResult(applied=applied, total=len(decisions))
        logger.info("bulk_apply_completed", applied=result.applied, total=result.total, skipped=skipped)
        return result

    async def apply_rule_outcome(self, message_id: str, outcome: RuleOutcome) -> list[ApplyResult]:
        """Apply a matching rule's actions in their listed order.

        A failing action is recorded and the remaining actions still run.
        """

        results: list[ApplyResult] = []
        for action in outcome.actions:
            add: list[str] = []
            remove: list[str] = []
            label_id: str | None = None
            try:
                if action.type is RuleActionType.ADD_LABEL:
                    label_id = await self.label_id_for(action.value)
                    add.append(label_id)
                elif action.type is RuleActionType.REMOVE_LABEL:
                    entry = self.labels.get_by_name(self.user_id, action.value)
                    # Fall back to the raw value so system label IDs work too.
                    label_id = entry.gmail_label_id if entry else action.value
                    remove.append(label_id)
                elif action.type is RuleActionType.MARK_AS_READ:
                    remove.append(UNREAD_LABEL)
                elif action.type is RuleActionType.ARCHIVE:
                    remove.append(INBOX_LABEL)

                await self.mailbox.modify_message(message_id, add_label_ids=add, remove_label_ids=remove)
                if action.type is RuleActionType.ADD_LABEL and label_id:
                    self.labels.increment_usage(self.user_id, label_id)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "rule_action_failed",
                    message_id=message_id,
                    rule_id=outcome.rule_id,
                    action=action.type.value,
                    error=str(exc),
                )
                results.append(
                    ApplyResult(message_id=message_id, action=action.type.value, applied=False, error=str(exc))
                )
                continue

            results.append(
                ApplyResult(message_id=message_id, action=action.type.value, applied=True, label_id=label_id)
            )

        logger.info(
            "rule_applied",
            message_id=message_id,
            rule_id=outcome.rule_id,
            applied=sum(1 for r in results if r.applied),
            total=len(results),
        )
        return results

    async def _mutate(self, decision: Decision) -> str | None:
        action = decision.action
        if action is SuggestedAction.KEEP:
            return None

        if action is SuggestedAction.ARCHIVE:
            await self.mailbox.modify_message(decision.message_id, remove_label_ids=[INBOX_LABEL])
            return None

        if action is SuggestedAction.DELETE:
            await self.mailbox.modify_message(decision.message_id, add_label_ids=[TRASH_LABEL])
            return None

        if action is SuggestedAction.LABEL:
            if not decision.label_name:
                raise ValueError(f"label decision for {decision.message_id} has no label name")
            label_id = await self.label_id_for(decision.label_name)
            await self.mailbox.modify_message(decision.message_id, add_label_ids=[label_id])
            self.labels.increment_usage(self.user_id, label_id)
            return label_id

        raise ValueError(f"Unsupported action: {action}")
