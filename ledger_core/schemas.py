"""
Pydantic schemas for the serialized batch boundary

Amounts cross the boundary as canonical decimal strings; numbers are
coerced to strings before they reach DecimalValue.
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool

from .categorizer import CategorizationPattern
from .ledger import Account, AccountType, Transaction, TransactionLine


class BoundaryModel(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, populate_by_name=True)


class TransactionLineModel(BoundaryModel):
    account_id: str = Field(..., validation_alias=AliasChoices("account_id", "accountId"))
    amount: str = Field(..., description="Decimal amount as string")
    is_debit: StrictBool = Field(..., validation_alias=AliasChoices("is_debit", "isDebit"))
    description: Optional[str] = None

    def to_domain(self) -> TransactionLine:
        return TransactionLine(
            account_id=self.account_id,
            amount=self.amount,
            is_debit=self.is_debit,
            description=self.description
        )


class TransactionModel(BoundaryModel):
    id: str = ""
    date: Optional[str] = None  # ISO date string
    description: str = ""
    lines: List[TransactionLineModel] = Field(default_factory=list)

    def to_domain(self) -> Transaction:
        return Transaction(
            id=self.id,
            date=self.date,
            description=self.description,
            lines=tuple(line.to_domain() for line in self.lines)
        )


class AccountModel(BoundaryModel):
    id: str
    type: str = Field(..., description="Account type (asset, liability, equity, revenue, expense)")
    balance: str = "0"
    name: str = ""

    def to_domain(self) -> Account:
        return Account(
            id=self.id,
            type=AccountType.parse(self.type),
            balance=self.balance,
            name=self.name
        )


class CategorizationPatternModel(BoundaryModel):
    text: str
    category: str
    min_amount: Optional[str] = Field(None, validation_alias=AliasChoices("min_amount", "minAmount"))
    max_amount: Optional[str] = Field(None, validation_alias=AliasChoices("max_amount", "maxAmount"))

    def to_domain(self) -> CategorizationPattern:
        return CategorizationPattern(
            text=self.text,
            category=self.category,
            min_amount=self.min_amount,
            max_amount=self.max_amount
        )


class CategorizableTransactionModel(BoundaryModel):
    """Transaction as seen by the categorizer; unknown fields pass through"""
    model_config = ConfigDict(coerce_numbers_to_str=True, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    description: str = ""
    amount: Optional[str] = None
    category: Optional[str] = None
    category_confidence: Optional[float] = Field(
        None, validation_alias=AliasChoices("category_confidence", "categoryConfidence")
    )

    def to_domain(self) -> Dict[str, Any]:
        return self.model_dump()


# Payloads

class ValidatePayload(BoundaryModel):
    transactions: List[TransactionModel]
    valid_account_ids: List[str] = Field(
        ..., validation_alias=AliasChoices("valid_account_ids", "validAccountIds")
    )


class ProcessPayload(BoundaryModel):
    transactions: List[TransactionModel]
    accounts: List[AccountModel]

    def accounts_by_id(self) -> Dict[str, Account]:
        return {account.id: account.to_domain() for account in self.accounts}


class CategorizePayload(BoundaryModel):
    transactions: List[CategorizableTransactionModel]
    patterns: List[CategorizationPatternModel]
