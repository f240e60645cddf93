"""
Double-Entry Data Model

Accounts, transactions and transaction lines consumed by the batch
validator and processor. Every type is immutable; balances change only by
producing new Account values through the Batch Processor.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .decimal_value import DecimalValue


class NormalBalance(Enum):
    """Side of an entry that increases an account's balance"""
    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(Enum):
    """Standard accounting account types"""
    ASSET = "asset"           # Debit normal balance
    LIABILITY = "liability"   # Credit normal balance
    EQUITY = "equity"         # Credit normal balance
    REVENUE = "revenue"       # Credit normal balance
    EXPENSE = "expense"       # Debit normal balance

    @property
    def normal_balance(self) -> NormalBalance:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT

    @classmethod
    def parse(cls, value: Any) -> "AccountType":
        """
        Resolve an account type from an enum member or its name.
        "income" is accepted as an alias for revenue.

        Raises:
            ValueError: If value is not an account type
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().lower()
            if name == "income":
                return cls.REVENUE
            try:
                return cls(name)
            except ValueError:
                pass
        raise ValueError(f"Invalid account type: {value!r}")


def _amount(value: Any, field_name: str) -> DecimalValue:
    if value is None:
        raise ValueError(f"{field_name} is required")
    if isinstance(value, DecimalValue):
        return value
    return DecimalValue(value)


@dataclass(frozen=True)
class Account:
    """Account snapshot; balance is in the account's normal-balance sense"""
    id: str
    type: AccountType
    balance: DecimalValue = field(default_factory=DecimalValue.zero)
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'type', AccountType.parse(self.type))
        object.__setattr__(self, 'balance', _amount(self.balance, "balance"))

    def apply(self, amount: DecimalValue, is_debit: bool) -> "Account":
        """
        New account with one line applied: an entry on the normal side
        increases the balance, an entry on the other side decreases it.
        """
        on_normal_side = (self.type.normal_balance is NormalBalance.DEBIT) == is_debit
        balance = self.balance.plus(amount) if on_normal_side else self.balance.minus(amount)
        return Account(id=self.id, type=self.type, balance=balance, name=self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'balance': str(self.balance),
            'name': self.name
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            id=str(data['id']),
            type=AccountType.parse(data['type']),
            balance=_amount(data.get('balance', "0"), "balance"),
            name=data.get('name') or ""
        )


@dataclass(frozen=True)
class TransactionLine:
    """
    One debit or credit against a single account.
    Amounts are non-negative; the side is carried by is_debit.
    """
    account_id: str
    amount: DecimalValue
    is_debit: bool
    description: Optional[str] = None

    def __post_init__(self):
        amount = _amount(self.amount, "amount")
        if amount.is_negative():
            raise ValueError(f"Line amount must not be negative: {amount}")
        if not isinstance(self.is_debit, bool):
            raise ValueError(f"is_debit must be a boolean, got {self.is_debit!r}")
        object.__setattr__(self, 'amount', amount)

    @property
    def is_credit(self) -> bool:
        return not self.is_debit

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'account_id': self.account_id,
            'amount': str(self.amount),
            'is_debit': self.is_debit
        }
        if self.description is not None:
            result['description'] = self.description
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionLine":
        """Build from plain data; camelCase accountId/isDebit are accepted"""
        account_id = data.get('account_id', data.get('accountId'))
        is_debit = data.get('is_debit', data.get('isDebit'))
        return cls(
            account_id="" if account_id is None else str(account_id),
            amount=_amount(data.get('amount'), "amount"),
            is_debit=is_debit,
            description=data.get('description')
        )


@dataclass(frozen=True)
class Transaction:
    """Proposed transaction; validated and then folded into balances"""
    id: str
    date: Optional[str] = None  # ISO calendar date, YYYY-MM-DD
    description: str = ""
    lines: Tuple[TransactionLine, ...] = ()

    def __post_init__(self):
        if isinstance(self.date, datetime):
            object.__setattr__(self, 'date', self.date.date().isoformat())
        elif isinstance(self.date, date):
            object.__setattr__(self, 'date', self.date.isoformat())
        object.__setattr__(self, 'description', self.description or "")
        object.__setattr__(self, 'lines', tuple(self.lines))

    def debit_total(self) -> DecimalValue:
        total = DecimalValue.zero()
        for line in self.lines:
            if line.is_debit:
                total = total.plus(line.amount)
        return total

    def credit_total(self) -> DecimalValue:
        total = DecimalValue.zero()
        for line in self.lines:
            if line.is_credit:
                total = total.plus(line.amount)
        return total

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date,
            'description': self.description,
            'lines': [line.to_dict() for line in self.lines]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        lines = [
            line if isinstance(line, TransactionLine) else TransactionLine.from_dict(line)
            for line in data.get('lines') or []
        ]
        transaction_id = data.get('id')
        return cls(
            id="" if transaction_id is None else str(transaction_id),
            date=data.get('date'),
            description=data.get('description') or "",
            lines=tuple(lines)
        )
