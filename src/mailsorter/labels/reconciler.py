"""Label reconciliation against the user's taxonomy.

Two steps keep the taxonomy free of near-duplicates:

1. ``resolve`` maps a suggested label name onto an existing one when they
   mean the same thing (letter case, a few known synonyms, or a semantic
   equivalence answer from the classification service).
2. ``ensure_label_id`` turns a resolved name into a remote label ID, creating
   the remote label first and recording it locally only once it exists.

Matching is an optional enrichment step: any failure of the equivalence call
falls back to the suggested name as a new label.
"""

from __future__ import annotations

import structlog
from sqlalchemy.exc import IntegrityError

from mailsorter.classifier.client import ChatClient
from mailsorter.classifier.parsing import parse_label_match
from mailsorter.classifier.prompt import build_label_match_prompt
from mailsorter.exceptions import GmailAPIError
from mailsorter.mailbox import Mailbox
from mailsorter.repository import LabelRepository
from mailsorter.utils import normalize_label_name

logger = structlog.get_logger()

# Names in the same group describe the same category.
_SYNONYM_GROUPS: tuple[frozenset[str], ...] = (
    frozenset({"e-commerce", "ecommerce", "shopping", "purchases", "orders"}),
    frozenset({"newsletter", "newsletters"}),
    frozenset({"invoice", "invoices", "bills"}),
    frozenset({"delivery", "deliveries", "shipping"}),
    frozenset({"promotion", "promotions", "promo", "promos"}),
)


def _synonym_key(name: str) -> frozenset[str] | None:
    folded = normalize_label_name(name)
    for group in _SYNONYM_GROUPS:
        if folded in group:
            return group
    return None


def find_local_match(candidate: str, known_labels: list[str]) -> str | None:
    """Match by folded equality, then by synonym group, without any remote call."""

    folded = normalize_label_name(candidate)
    for label in known_labels:
        if normalize_label_name(label) == folded:
            return label

    group = _synonym_key(candidate)
    if group is None:
        return None
    for label in known_labels:
        if normalize_label_name(label) in group:
            return label
    return None


class LabelReconciler:
    """Resolve and materialize labels for one user."""

    def __init__(
        self,
        *,
        user_id: str,
        labels: LabelRepository,
        mailbox: Mailbox,
        client: ChatClient | None = None,
    ) -> None:
        self.user_id = user_id
        self.labels = labels
        self.mailbox = mailbox
        self.client = client

    async def resolve(self, candidate: str, known_labels: list[str]) -> tuple[str, bool]:
        """Map ``candidate`` onto an existing label name when one is equivalent.

        Returns:
            (resolved_name, already_existed). With no known labels the candidate
            is returned unchanged and no remote call is made.
        """

        candidate = (candidate or "").strip()
        if not candidate or not known_labels:
            return candidate, False

        local = find_local_match(candidate, known_labels)
        if local is not None:
            logger.debug("label_resolved_locally", candidate=candidate, matched=local)
            return local, True

        if self.client is None:
            return candidate, False

        try:
            raw = await self.client.complete(build_label_match_prompt(candidate, known_labels))
            matches, matched = parse_label_match(raw)
        except Exception as exc:  # noqa: BLE001
            logger.warning("label_reconcile_failed", candidate=candidate, error=str(exc))
            return candidate, False

        if not matches:
            return candidate, False

        # Only accept an answer that names a label the user actually has.
        existing = next(
            (label for label in known_labels if normalize_label_name(label) == normalize_label_name(matched)),
            None,
        )
        if existing is None:
            logger.warning("label_reconcile_unknown_match", candidate=candidate, matched=matched)
            return candidate, False

        logger.info("label_resolved", candidate=candidate, matched=existing)
        return existing, True

    async def ensure_label_id(
        self,
        name: str,
        *,
        description: str = "",
        keywords: list[str] | None = None,
    ) -> str:
        """Return the remote label ID for ``name``, creating the label if needed.

        The remote label is created before the local row, so a failed remote call
        leaves no local-only label behind. Concurrent creators converge on the
        same row through the storage uniqueness constraints.

        Raises:
            GmailAPIError: If the remote label cannot be created.
            ValueError: If ``name`` is blank.
        """

        name = (name or "").strip()
        if not name:
            raise ValueError("label name must not be empty")

        entry = self.labels.get_by_name(self.user_id, name)
        if entry is not None:
            return entry.gmail_label_id

        label_id = await self.mailbox.create_label(name)
        if not label_id:
            raise GmailAPIError(f"mailbox returned no id for label {name!r}")

        # A remote ID keeps the name it was first recorded with.
        linked = self.labels.get_by_gmail_id(self.user_id, label_id)
        if linked is not None:
            return linked.gmail_label_id

        try:
            entry = self.labels.insert(
                user_id=self.user_id,
                name=name,
                gmail_label_id=label_id,
                description=description,
                keywords=keywords,
            )
        except IntegrityError:
            winner = self.labels.get_by_name(self.user_id, name) or self.labels.get_by_gmail_id(
                self.user_id, label_id
            )
            if winner is None:
                raise
            logger.info("label_insert_conflict_resolved", name=name, label_id=winner.gmail_label_id)
            return winner.gmail_label_id

        logger.info("label_created", user_id=self.user_id, name=entry.name, label_id=label_id)
        return label_id
