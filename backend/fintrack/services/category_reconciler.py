"""
Category reconciliation for freshly imported transactions.

Imported rows carry whatever category label the bank export used. This pass
maps every distinct label onto a stored category, creating categories only when
nothing matches, then rewrites the affected transactions in one bulk write per
label. Labels are handled one at a time so the in-memory category list stays
consistent while categories are being created.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from fintrack.config import settings
from fintrack.database.db_service import DatabaseService
from fintrack.services.categories import UNCATEGORIZED, create_category
from fintrack.services.llm_classifier import ClassificationError, LLMClassificationService

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    transactions_updated: int = 0
    categories_created: int = 0
    decisions: List[str] = field(default_factory=list)
    # original label -> canonical category name
    label_map: Dict[str, str] = field(default_factory=dict)


class CategoryReconciler:
    """Resolves imported category labels to canonical category names."""

    def __init__(
        self,
        db: DatabaseService,
        classifier: Optional[LLMClassificationService],
        confidence_threshold: Optional[float] = None,
    ):
        self.db = db
        self.classifier = classifier
        if confidence_threshold is None:
            confidence_threshold = settings.CLASSIFIER_CONFIDENCE_THRESHOLD
        self.confidence_threshold = confidence_threshold
        # lower-cased name -> canonical name, in list order
        self._known: Dict[str, str] = {}

    def _load_categories(self):
        self._known = {c["name"].lower(): c["name"] for c in self.db.find("categories")}

    def _match(self, name: str) -> Optional[str]:
        return self._known.get(name.strip().lower())

    def _suggest(self, label: str, result: ReconciliationResult) -> str:
        """Return the name this label should map to; may be a category that doesn't exist yet."""
        if self.classifier is None:
            result.decisions.append(f'"{label}": no classifier available, keeping label')
            return label

        try:
            suggestion = self.classifier.categorize(label, list(self._known.values()))
        except ClassificationError as e:
            logger.warning(f"AI categorization failed for '{label}': {e}")
            result.decisions.append(f'"{label}": AI suggestion failed ({e}), keeping label')
            return label

        suggested = suggestion.suggested_category.strip()
        existing = self._match(suggested) if suggested else None

        if existing and suggestion.confidence >= self.confidence_threshold:
            result.decisions.append(
                f'"{label}": AI matched existing category "{existing}" '
                f"(confidence {suggestion.confidence:.2f})"
            )
            return existing

        if existing:
            # Low-confidence match on an existing category: the label becomes its own category
            result.decisions.append(
                f'"{label}": AI suggested "{existing}" below threshold '
                f"(confidence {suggestion.confidence:.2f}), new category \"{label}\""
            )
            return label

        target = suggested or label
        result.decisions.append(
            f'"{label}": AI proposed new category "{target}" '
            f"(confidence {suggestion.confidence:.2f})"
        )
        return target

    def _create_pending(self, pending: List[str], result: ReconciliationResult) -> Dict[str, str]:
        """
        Create the pending categories in order.

        Returns:
            pending name -> canonical name for every name that now exists
        """
        resolved = {}
        for name in pending:
            existing = self._match(name)
            if existing:
                resolved[name] = existing
                result.decisions.append(f'Category "{name}" already exists as "{existing}", not created')
                continue
            try:
                category = create_category(self.db, name)
                self.db.session.commit()
            except (ValueError, SQLAlchemyError) as e:
                self.db.session.rollback()
                logger.error(f"Failed to create category '{name}': {e}")
                result.decisions.append(f'Failed to create category "{name}": {e}')
                continue
            self._known[category["name"].lower()] = category["name"]
            resolved[name] = category["name"]
            result.categories_created += 1
            result.decisions.append(f'Created category "{category["name"]}"')
        return resolved

    def reconcile(self, pairs: Iterable[Tuple[str, str]]) -> ReconciliationResult:
        """
        Normalize the category of each imported transaction.

        Args:
            pairs: (transaction id, original category label) for the imported batch

        Returns:
            ReconciliationResult with counts, the decision log and the label map
        """
        result = ReconciliationResult()
        self._load_categories()

        ids_by_label: Dict[str, List[str]] = {}
        for transaction_id, label in pairs:
            label = (label or "").strip()
            if not label or label == UNCATEGORIZED:
                continue
            ids_by_label.setdefault(label, []).append(transaction_id)

        tentative: Dict[str, str] = {}
        pending: List[str] = []

        for label in ids_by_label:
            existing = self._match(label)
            if existing:
                tentative[label] = existing
                result.decisions.append(f'"{label}": matches existing category "{existing}"')
                continue

            target = self._suggest(label, result)
            tentative[label] = target
            if not self._match(target) and target not in pending:
                pending.append(target)

        created = self._create_pending(pending, result)

        for label, target in tentative.items():
            if target in pending:
                if target not in created:
                    # Creation failed: leave these transactions on their original label
                    continue
                target = created[target]
            result.label_map[label] = target

            if target == label:
                continue
            try:
                updated = self.db.bulk_update("transactions", ids_by_label[label], {"category": target})
                self.db.session.commit()
            except SQLAlchemyError as e:
                self.db.session.rollback()
                logger.error(f"Failed to recategorize '{label}' transactions: {e}")
                result.decisions.append(f'Failed to move "{label}" transactions to "{target}": {e}')
                continue
            result.transactions_updated += updated
            result.decisions.append(f'Moved {updated} transaction(s) from "{label}" to "{target}"')

        logger.info(
            f"Category reconciliation: {len(ids_by_label)} label(s), "
            f"{result.categories_created} created, {result.transactions_updated} transaction(s) updated"
        )
        return result
