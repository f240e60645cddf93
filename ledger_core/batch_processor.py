"""
Transaction Batch Processor

Applies a validated batch to account balances. All-or-nothing: if any
transaction in the batch is invalid, no balance changes are produced.
The caller's account map is never mutated; a new map is returned.
"""

import uuid
from typing import Iterable, Mapping, Optional

from .batch_validator import TransactionBatchValidator, ValidationResult
from .events import DomainEvent, EventPublisherMixin
from .ledger import Account, Transaction
from .logging_config import get_logger, log_action


class TransactionBatchProcessor(EventPublisherMixin):
    """Validates, then folds every line of a batch into account balances"""

    def __init__(self, validator: Optional[TransactionBatchValidator] = None,
                 event_dispatcher=None):
        self._event_dispatcher = event_dispatcher
        self.validator = validator or TransactionBatchValidator(event_dispatcher=event_dispatcher)
        self.logger = get_logger("ledger_core.batch_processor")

    def process(self, transactions: Iterable[Transaction],
                accounts: Mapping[str, Account]) -> ValidationResult:
        """
        Process a batch of transactions

        Args:
            transactions: Proposed transactions
            accounts: Current account snapshots keyed by id

        Returns:
            The validator's result unchanged if the batch is invalid, otherwise
            a valid result carrying processed_transactions and updated_accounts
        """
        batch_id = str(uuid.uuid4())
        transactions = list(transactions)

        validation = self.validator.validate(transactions, accounts.keys())
        if not validation.valid:
            log_action(
                self.logger, "warning",
                f"Batch rejected with {len(validation.errors)} validation errors",
                operation="process", batch_id=batch_id,
                extra={"transactions": len(transactions)}
            )
            self.publish_event(
                DomainEvent.BATCH_REJECTED, "batch", batch_id,
                {"errors": [error.to_dict() for error in validation.errors]}
            )
            return validation

        updated = dict(accounts)
        processed = []
        for transaction in transactions:
            for line in transaction.lines:
                updated[line.account_id] = updated[line.account_id].apply(line.amount, line.is_debit)
            processed.append(Transaction(
                id=transaction.id,
                date=transaction.date,
                description=transaction.description.strip(),
                lines=transaction.lines
            ))

        log_action(
            self.logger, "info",
            f"Processed batch of {len(processed)} transactions",
            operation="process", batch_id=batch_id,
            extra={"accounts_touched": len({
                line.account_id for transaction in processed for line in transaction.lines
            })}
        )
        self.publish_event(
            DomainEvent.BATCH_PROCESSED, "batch", batch_id,
            {
                "transactions": len(processed),
                "balances": {account_id: str(account.balance) for account_id, account in updated.items()}
            }
        )

        return ValidationResult(
            valid=True,
            errors=[],
            warnings=validation.warnings,
            processed_transactions=processed,
            updated_accounts=updated
        )


def process_batch(transactions: Iterable[Transaction],
                  accounts: Mapping[str, Account]) -> ValidationResult:
    """Process a batch with a default processor"""
    return TransactionBatchProcessor().process(transactions, accounts)
