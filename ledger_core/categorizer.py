"""
Transaction Categorizer

Suggests a ledger category for each transaction by matching its
description and amount against user-defined patterns. Advisory only: it
never fails a batch and never touches balances.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .config import get_config
from .decimal_value import DecimalValue
from .errors import FinancialError
from .events import DomainEvent, EventPublisherMixin
from .logging_config import get_logger, log_action


@dataclass(frozen=True)
class CategorizationPattern:
    """
    Substring pattern with an optional inclusive amount range.
    A missing bound is unbounded on that side.
    """
    text: str
    category: str
    min_amount: Optional[DecimalValue] = None
    max_amount: Optional[DecimalValue] = None

    def __post_init__(self):
        for name in ('min_amount', 'max_amount'):
            value = getattr(self, name)
            if value is not None and not isinstance(value, DecimalValue):
                object.__setattr__(self, name, DecimalValue(value))

    def amount_in_range(self, amount: DecimalValue) -> bool:
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True

    def confidence(self, description: str, amount: DecimalValue) -> Optional[float]:
        """
        Confidence of this pattern for a transaction, or None if it does not
        match. Longer patterns relative to the description score higher.
        """
        if not self.text or not description:
            return None
        if self.text.lower() not in description.lower():
            return None
        if not self.amount_in_range(amount):
            return None
        return len(self.text) / len(description)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CategorizationPattern":
        min_amount = data.get('min_amount', data.get('minAmount'))
        max_amount = data.get('max_amount', data.get('maxAmount'))
        return cls(
            text=str(data.get('text') or ""),
            category=str(data.get('category') or ""),
            min_amount=None if min_amount is None else DecimalValue(min_amount),
            max_amount=None if max_amount is None else DecimalValue(max_amount)
        )


def _existing_confidence(transaction: Mapping[str, Any]) -> float:
    value = transaction.get('category_confidence', transaction.get('categoryConfidence'))
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class TransactionCategorizer(EventPublisherMixin):
    """Pattern-based category suggestions"""

    def __init__(self, confidence_threshold: Optional[float] = None, event_dispatcher=None):
        if confidence_threshold is None:
            confidence_threshold = get_config().categorization_confidence_threshold
        self.confidence_threshold = confidence_threshold
        self._event_dispatcher = event_dispatcher
        self.logger = get_logger("ledger_core.categorizer")

    def best_match(self, description: str, amount: DecimalValue,
                   patterns: Iterable[CategorizationPattern]) -> Optional[Tuple[CategorizationPattern, float]]:
        """Highest-confidence matching pattern; the first one wins ties"""
        if amount is None:
            return None
        best = None
        for pattern in patterns:
            confidence = pattern.confidence(description, amount)
            if confidence is not None and (best is None or confidence > best[1]):
                best = (pattern, confidence)
        return best

    def categorize(self, transactions: Iterable[Mapping[str, Any]],
                   patterns: Iterable[CategorizationPattern]) -> List[Dict[str, Any]]:
        """
        Annotate each transaction with category, category_confidence and
        category_is_auto. Transactions already categorized above the
        confidence threshold are left as they are.
        """
        patterns = list(patterns)
        results = []
        changed = 0

        for transaction in transactions:
            annotated = dict(transaction)
            original_category = transaction.get('category')
            existing_confidence = _existing_confidence(transaction)

            if original_category and existing_confidence > self.confidence_threshold:
                annotated['category_confidence'] = existing_confidence
                annotated['category_is_auto'] = False
                results.append(annotated)
                continue

            description = transaction.get('description') or ""
            match = self.best_match(description, self._amount(transaction), patterns)

            if match is None:
                annotated['category'] = original_category
                annotated['category_confidence'] = 0.0
                annotated['category_is_auto'] = False
            else:
                pattern, confidence = match
                annotated['category'] = pattern.category
                annotated['category_confidence'] = confidence
                annotated['category_is_auto'] = pattern.category != original_category
                if annotated['category_is_auto']:
                    changed += 1

            results.append(annotated)

        log_action(
            self.logger, "info",
            f"Categorized {len(results)} transactions, {changed} auto-assigned",
            operation="categorize"
        )
        self.publish_event(
            DomainEvent.TRANSACTIONS_CATEGORIZED, "batch", "categorization",
            {"transactions": len(results), "auto_assigned": changed}
        )
        return results

    def _amount(self, transaction: Mapping[str, Any]) -> Optional[DecimalValue]:
        value = transaction.get('amount')
        if value is None:
            return DecimalValue.zero()
        try:
            return value if isinstance(value, DecimalValue) else DecimalValue(value)
        except FinancialError as e:
            log_action(
                self.logger, "warning", f"Unreadable amount {value!r}: {e}",
                operation="categorize", extra={"transaction_id": transaction.get('id')}
            )
            return None


def categorize(transactions: Iterable[Mapping[str, Any]],
               patterns: Iterable[CategorizationPattern]) -> List[Dict[str, Any]]:
    """Categorize with a default categorizer"""
    return TransactionCategorizer().categorize(transactions, patterns)
