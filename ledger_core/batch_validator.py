"""
Transaction Batch Validator

Checks the structural and double-entry invariants of a batch of proposed
transactions against a set of known account ids. Problems are returned as
data so that callers can present every error at once; nothing here raises
for an invalid transaction.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum
from typing import Any, Dict, Iterable, List, Optional, Set

from .decimal_value import DecimalValue
from .events import DomainEvent, EventPublisherMixin
from .ledger import Account, Transaction
from .logging_config import get_logger, log_action


class BatchErrorCode(IntEnum):
    """Validation error codes; serialized by name"""
    NONE = 0
    UNBALANCED = 1
    MISSING_REQUIRED = 2
    INVALID_ACCOUNT = 3
    INVALID_DATE = 4
    DUPLICATE = 5


@dataclass(frozen=True)
class BatchValidationError:
    """One validation problem; line is the zero-based line index when relevant"""
    transaction_id: str
    code: BatchErrorCode
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'transaction_id': self.transaction_id,
            'code': self.code.name,
            'message': self.message
        }
        if self.line is not None:
            result['line'] = self.line
        return result


@dataclass(frozen=True)
class BatchWarning:
    """Non-blocking observation about a transaction"""
    transaction_id: str
    message: str
    line: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'transaction_id': self.transaction_id, 'message': self.message}
        if self.line is not None:
            result['line'] = self.line
        return result


@dataclass
class ValidationResult:
    """
    Outcome of validating (and possibly processing) a batch.
    updated_accounts stays None unless the whole batch was applied.
    """
    valid: bool
    errors: List[BatchValidationError] = field(default_factory=list)
    warnings: List[BatchWarning] = field(default_factory=list)
    processed_transactions: Optional[List[Transaction]] = None
    updated_accounts: Optional[Dict[str, Account]] = None

    def errors_with_code(self, code: BatchErrorCode) -> List[BatchValidationError]:
        return [error for error in self.errors if error.code == code]

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'valid': self.valid,
            'errors': [error.to_dict() for error in self.errors],
            'warnings': [warning.to_dict() for warning in self.warnings]
        }
        if self.processed_transactions is not None:
            result['processed_transactions'] = [t.to_dict() for t in self.processed_transactions]
        if self.updated_accounts is not None:
            result['updated_accounts'] = {
                account_id: account.to_dict()
                for account_id, account in self.updated_accounts.items()
            }
        return result


ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$', re.ASCII)


def is_valid_date(value: Any) -> bool:
    """True for YYYY-MM-DD strings naming a real calendar date"""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


class TransactionBatchValidator(EventPublisherMixin):
    """
    Validates batches of transactions.

    Checks per transaction, in order, accumulating errors:
    duplicate id, date, presence of lines, account ids, balance.
    A transaction without lines skips the line-level checks.
    """

    def __init__(self, event_dispatcher=None):
        self._event_dispatcher = event_dispatcher
        self.logger = get_logger("ledger_core.batch_validator")

    def validate(self, transactions: Iterable[Transaction],
                 valid_account_ids: Iterable[str]) -> ValidationResult:
        known_accounts: Set[str] = set(valid_account_ids)
        errors: List[BatchValidationError] = []
        warnings: List[BatchWarning] = []
        seen_ids: Set[str] = set()
        count = 0

        for index, transaction in enumerate(transactions):
            count += 1
            transaction_id = transaction.id or str(index)

            if transaction_id in seen_ids:
                errors.append(BatchValidationError(
                    transaction_id, BatchErrorCode.DUPLICATE,
                    f"Duplicate transaction ID: {transaction_id}"
                ))
            seen_ids.add(transaction_id)

            if not transaction.date:
                errors.append(BatchValidationError(
                    transaction_id, BatchErrorCode.MISSING_REQUIRED,
                    "Transaction date is required"
                ))
            elif not is_valid_date(transaction.date):
                errors.append(BatchValidationError(
                    transaction_id, BatchErrorCode.INVALID_DATE,
                    f"Invalid transaction date: {transaction.date}"
                ))

            if not transaction.lines:
                errors.append(BatchValidationError(
                    transaction_id, BatchErrorCode.MISSING_REQUIRED,
                    "Transaction must have at least one line"
                ))
                continue

            debits = DecimalValue.zero()
            credits = DecimalValue.zero()
            for line_index, line in enumerate(transaction.lines):
                if line.account_id not in known_accounts:
                    errors.append(BatchValidationError(
                        transaction_id, BatchErrorCode.INVALID_ACCOUNT,
                        f"Invalid account ID: {line.account_id}", line=line_index
                    ))
                if line.amount.is_zero():
                    warnings.append(BatchWarning(
                        transaction_id, "Line amount is zero", line=line_index
                    ))

                if line.is_debit:
                    debits = debits.plus(line.amount)
                else:
                    credits = credits.plus(line.amount)

            if not debits.equals(credits):
                errors.append(BatchValidationError(
                    transaction_id, BatchErrorCode.UNBALANCED,
                    f"Transaction is not balanced. Debits: {debits}, Credits: {credits}"
                ))

        result = ValidationResult(valid=not errors, errors=errors, warnings=warnings)

        log_action(
            self.logger, "info" if result.valid else "warning",
            f"Validated {count} transactions: {len(errors)} errors, {len(warnings)} warnings",
            operation="validate"
        )
        self.publish_event(
            DomainEvent.BATCH_VALIDATED, "batch", "validation",
            {"transactions": count, "valid": result.valid, "errors": len(errors)}
        )
        return result


def validate_batch(transactions: Iterable[Transaction],
                   valid_account_ids: Iterable[str]) -> ValidationResult:
    """Validate a batch with a default validator"""
    return TransactionBatchValidator().validate(transactions, valid_account_ids)
