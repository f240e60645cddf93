"""
Currency Helpers

ISO 4217 currency codes with minor-unit precision, conversion between
decimal amounts and integer minor units, display formatting, and the
balance helpers used by report code. NEVER uses float for monetary values.
"""

import re
from enum import Enum
from typing import Iterable, Union

from .decimal_value import DecimalValue, Numeric
from .errors import InvalidNumericFormat
from .ledger import AccountType, NormalBalance, TransactionLine
from .rounding import DEFAULT_ROUNDING, RoundingMode


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    EUR = ("EUR", 2)  # Euro, 2 decimal places
    GBP = ("GBP", 2)  # British Pound, 2 decimal places
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places
    CAD = ("CAD", 2)  # Canadian Dollar, 2 decimal places
    CHF = ("CHF", 2)  # Swiss Franc, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision


# Everything except digits, sign, decimal point and separators
_NON_NUMERIC = re.compile(r'[^\d.,\-+]')


def to_minor_units(value: Numeric, currency: Currency = Currency.USD,
                   rounding: Union[RoundingMode, int, str] = DEFAULT_ROUNDING) -> int:
    """
    Convert an amount to integer minor units (cents for USD)

    Args:
        value: Amount to convert
        currency: Currency defining the minor-unit precision
        rounding: Applied to sub-minor-unit amounts

    Returns:
        Amount in minor units
    """
    amount = value if isinstance(value, DecimalValue) else DecimalValue(value)
    scaled = amount.round(currency.precision, rounding).times(f"1e{currency.precision}")
    return int(scaled.to_fixed(0, RoundingMode.DOWN))


def from_minor_units(units: int, currency: Currency = Currency.USD) -> DecimalValue:
    """Convert integer minor units back to an amount with the currency's places"""
    if isinstance(units, bool) or not isinstance(units, int):
        raise InvalidNumericFormat(
            f"Minor units must be an integer, got {type(units).__name__}",
            operation="from_minor_units"
        )
    return DecimalValue(f"{units}e-{currency.precision}")


def format_currency(value: Numeric, currency: Currency = Currency.USD) -> str:
    """
    Format an amount for display, e.g. "USD 1,234.57".
    Rounds with banker's rounding to the currency precision.
    """
    amount = value if isinstance(value, DecimalValue) else DecimalValue(value)
    fixed = amount.to_fixed(currency.precision, RoundingMode.HALF_EVEN)

    sign = ""
    if fixed.startswith("-"):
        sign, fixed = "-", fixed[1:]

    integer, _, fraction = fixed.partition(".")
    grouped = f"{int(integer):,}"
    formatted = f"{grouped}.{fraction}" if fraction else grouped
    return f"{currency.code} {sign}{formatted}"


def normalize_amount_string(text: str) -> str:
    """
    Clean a user-entered amount: strips currency symbols and codes,
    whitespace and thousands separators. Accepts a decimal comma
    ("1.234,56" or "12,50").

    Raises:
        InvalidNumericFormat: If nothing numeric remains
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidNumericFormat("Amount must be a non-empty string",
                                   operation="normalize_amount_string")

    cleaned = _NON_NUMERIC.sub('', text.strip())

    if ',' in cleaned and '.' in cleaned:
        # Both present: the last one is the decimal mark
        if cleaned.rfind(',') > cleaned.rfind('.'):
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    elif cleaned.count(',') == 1 and len(cleaned.split(',')[1]) <= 2:
        # Single comma followed by at most two digits is a decimal comma
        cleaned = cleaned.replace(',', '.')
    else:
        cleaned = cleaned.replace(',', '')

    if not cleaned:
        raise InvalidNumericFormat(f"Cannot read an amount from {text!r}",
                                   operation="normalize_amount_string")

    # Raises InvalidNumericFormat for leftovers such as "1-2" or "--"
    DecimalValue.from_string(cleaned)
    return cleaned


def is_transaction_balanced(lines: Iterable[TransactionLine]) -> bool:
    """Exact double-entry check: total debits equal total credits"""
    debits = DecimalValue.zero()
    credits = DecimalValue.zero()
    for line in lines:
        if line.is_debit:
            debits = debits.plus(line.amount)
        else:
            credits = credits.plus(line.amount)
    return debits.equals(credits)


def calculate_account_balance(lines: Iterable[TransactionLine],
                              account_type: Union[AccountType, str]) -> DecimalValue:
    """
    Balance of the given lines in the account type's normal-balance sense:
    debit-normal accounts gain on debits, credit-normal accounts on credits.
    """
    account_type = AccountType.parse(account_type)
    balance = DecimalValue.zero()
    for line in lines:
        if line.is_debit:
            balance = balance.plus(line.amount)
        else:
            balance = balance.minus(line.amount)

    if account_type.normal_balance is NormalBalance.CREDIT:
        balance = -balance
    return balance
