#!/usr/bin/env python3
"""
Example: Processing a transaction batch

Initializes the decimal engine, shows which backend was selected, then
validates and applies a small batch through the plain-data entry points.
"""

import os
import sys

# Add the project root to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ledger_core.batch_engine import categorize_transactions, process_transaction_batch
from ledger_core.config import get_config
from ledger_core.currency import format_currency
from ledger_core.decimal_value import DecimalValue
from ledger_core.loader import get_loader, initialize_engine
from ledger_core.logging_config import setup_logging
from ledger_core.rounding import RoundingMode


def main():
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    print("1. Decimal engine")
    backend = initialize_engine()
    status = get_loader().describe()
    print(f"   Backend: {backend.name} (state: {status['state']})")
    if status["fallback_reason"]:
        print(f"   Fallback reason: {status['fallback_reason']}")

    print("\n2. Rounding")
    print(f"   10 / 3 at 2 places: {DecimalValue('10').divided_by('3', 2, RoundingMode.HALF_EVEN)}")
    print(f"   2.5 HALF_EVEN: {DecimalValue('2.5').round(0)}   2.5 HALF_UP: {DecimalValue('2.5').round(0, 'HALF_UP')}")

    print("\n3. Batch processing")
    accounts = [
        {"id": "cash", "type": "asset", "balance": "1000.00"},
        {"id": "sales", "type": "revenue", "balance": "0"},
        {"id": "supplies", "type": "expense", "balance": "0"},
    ]
    transactions = [
        {"id": "t1", "date": "2024-03-01", "description": "Invoice 1001 paid",
         "lines": [{"account_id": "cash", "amount": "1234.56", "is_debit": True},
                   {"account_id": "sales", "amount": "1234.56", "is_debit": False}]},
        {"id": "t2", "date": "2024-03-02", "description": "Office supplies",
         "lines": [{"account_id": "supplies", "amount": "89.90", "is_debit": True},
                   {"account_id": "cash", "amount": "89.90", "is_debit": False}]},
    ]
    result = process_transaction_batch(transactions, accounts)
    if result["valid"]:
        for account_id, account in result["updated_accounts"].items():
            print(f"   {account_id:<10} {format_currency(account['balance'])}")
    else:
        for error in result["errors"]:
            print(f"   {error['transaction_id']}: {error['code']} {error['message']}")

    print("\n4. Categorization")
    suggestions = categorize_transactions(
        [{"id": t["id"], "description": t["description"], "amount": t["lines"][0]["amount"]} for t in transactions],
        [{"text": "supplies", "category": "Office"}, {"text": "invoice", "category": "Sales"}]
    )
    for suggestion in suggestions:
        print(f"   {suggestion['id']}: {suggestion['category']} ({suggestion['category_confidence']:.2f})")


if __name__ == "__main__":
    main()
