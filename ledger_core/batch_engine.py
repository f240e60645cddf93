"""
Batch Engine

JSON-in/JSON-out boundary for whole-batch operations. Each call crosses
the boundary with a single serialized payload and returns a single
serialized result, never one call per transaction.
"""

import json
import time
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .batch_processor import TransactionBatchProcessor
from .batch_validator import TransactionBatchValidator
from .categorizer import TransactionCategorizer
from .decimal_value import DecimalValue
from .errors import FinancialError, OperationFailed
from .feature_flags import get_feature_flags
from .loader import get_backend
from .logging_config import get_logger, log_action
from .schemas import CategorizePayload, ProcessPayload, ValidatePayload


def _json_default(value: Any) -> Any:
    """JSON encoder hook for the engine's value types"""
    if isinstance(value, (DecimalValue, Decimal)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(document: Any) -> str:
    return json.dumps(document, default=_json_default)


class BatchEngine:
    """Dispatches serialized batch operations to the validator, processor and categorizer"""

    def __init__(self, validator: Optional[TransactionBatchValidator] = None,
                 processor: Optional[TransactionBatchProcessor] = None,
                 categorizer: Optional[TransactionCategorizer] = None):
        self.validator = validator or TransactionBatchValidator()
        self.processor = processor or TransactionBatchProcessor(validator=self.validator)
        self.categorizer = categorizer or TransactionCategorizer()
        self.logger = get_logger("ledger_core.batch_engine")

        self._operations: Dict[str, Callable[[str], Any]] = {
            "validate": self._validate,
            "process": self._process,
            "categorize": self._categorize,
        }

    @property
    def operations(self) -> List[str]:
        return sorted(self._operations)

    def execute(self, operation: str, payload: str) -> str:
        """
        Run one batch operation

        Args:
            operation: "validate", "process" or "categorize"
            payload: JSON document for the operation

        Returns:
            JSON document with the result

        Raises:
            OperationFailed: Unknown operation, or payload fails schema validation
            FinancialError: Malformed amounts are reported unchanged
        """
        handler = self._operations.get(operation)
        if handler is None:
            raise OperationFailed(f"Unknown batch operation: {operation}", operation=operation)

        # Make sure a backend is selected before any payload is parsed
        backend = get_backend()
        started = time.perf_counter()

        try:
            result = handler(payload)
        except ValidationError as e:
            raise OperationFailed(
                f"Invalid {operation} payload: {e.error_count()} schema errors", operation=operation
            ) from e
        except FinancialError:
            raise
        except ValueError as e:
            raise OperationFailed(f"Invalid {operation} payload: {e}", operation=operation) from e

        if get_feature_flags().log_backend_performance:
            log_action(
                self.logger, "info", f"Batch operation {operation} completed",
                operation=operation, backend=backend.name,
                extra={"elapsed_ms": round((time.perf_counter() - started) * 1000, 3),
                       "payload_bytes": len(payload)}
            )

        return dumps(result)

    def _validate(self, payload: str) -> Dict[str, Any]:
        request = ValidatePayload.model_validate_json(payload)
        transactions = [transaction.to_domain() for transaction in request.transactions]
        return self.validator.validate(transactions, request.valid_account_ids).to_dict()

    def _process(self, payload: str) -> Dict[str, Any]:
        request = ProcessPayload.model_validate_json(payload)
        transactions = [transaction.to_domain() for transaction in request.transactions]
        return self.processor.process(transactions, request.accounts_by_id()).to_dict()

    def _categorize(self, payload: str) -> Dict[str, Any]:
        request = CategorizePayload.model_validate_json(payload)
        patterns = [pattern.to_domain() for pattern in request.patterns]
        transactions = [transaction.to_domain() for transaction in request.transactions]
        return {"transactions": self.categorizer.categorize(transactions, patterns)}


_engine: Optional[BatchEngine] = None


def get_batch_engine() -> BatchEngine:
    """Get the shared batch engine"""
    global _engine
    if _engine is None:
        _engine = BatchEngine()
    return _engine


# Plain-data entry points

def validate_transactions(transactions: Iterable[Mapping[str, Any]],
                          valid_account_ids: Iterable[str]) -> Dict[str, Any]:
    """Validate plain transaction dicts; returns the validation result as a dict"""
    payload = dumps({
        "transactions": list(transactions),
        "valid_account_ids": list(valid_account_ids)
    })
    return json.loads(get_batch_engine().execute("validate", payload))


def process_transaction_batch(transactions: Iterable[Mapping[str, Any]],
                              accounts: Union[Mapping[str, Mapping[str, Any]],
                                              Iterable[Mapping[str, Any]]]) -> Dict[str, Any]:
    """
    Validate and apply plain transaction dicts to plain account dicts.
    accounts may be a list of account dicts or a mapping keyed by id.
    """
    if isinstance(accounts, Mapping):
        accounts = [{"id": account_id, **account} for account_id, account in accounts.items()]
    payload = dumps({
        "transactions": list(transactions),
        "accounts": list(accounts)
    })
    return json.loads(get_batch_engine().execute("process", payload))


def categorize_transactions(transactions: Iterable[Mapping[str, Any]],
                            patterns: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Suggest categories for plain transaction dicts"""
    payload = dumps({
        "transactions": list(transactions),
        "patterns": list(patterns)
    })
    return json.loads(get_batch_engine().execute("categorize", payload))["transactions"]
