"""
Module: rental_kernel.db.types
Responsibility: Annotated column aliases and the money/currency helpers used by
    every model, engine and service in the ledger.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and rental_engines.  MUST NOT import from any of
    those layers.

Invariants enforced:
    - Money is Numeric(18, 2).  round_money() is the ONLY sanctioned rounding
      function for amounts (ROUND_HALF_UP to two fractional digits).
    - Currency codes are three upper-case letters.  No conversion happens
      anywhere in the ledger, so only the shape of the code is checked.
    - No floats.  to_money() refuses float input.

Failure modes:
    - InvalidCurrencyError on a malformed currency code.
    - InvalidAmountError on a value that cannot be read as a decimal.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from sqlalchemy import Numeric, String

from rental_kernel.exceptions import InvalidAmountError, InvalidCurrencyError

# Monetary amount, two fractional digits
Money = Annotated[Decimal, Numeric(18, 2)]

# Three-letter currency code (e.g. "AED", "USD")
Currency = Annotated[str, String(3)]

# Short enumerated / code strings
ShortCode = Annotated[str, String(50)]

# Free text (descriptions, notes, receipt paths)
LongText = Annotated[str, String(2000)]

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0.00")

_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def round_money(amount: Decimal) -> Decimal:
    """
    Round a monetary amount to two fractional digits, half-up.

    Postconditions: Returns a Decimal with exactly two fractional digits.
    """
    return amount.quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)


def to_money(value: Decimal | int | str | None, field: str = "amount") -> Decimal | None:
    """
    Coerce an input value into a rounded money Decimal.

    None passes through unchanged so optional amounts stay optional.

    Raises:
        InvalidAmountError: If the value is a float or not a decimal number.
    """
    if value is None:
        return None
    if isinstance(value, float):
        raise InvalidAmountError(field, None, "floats are not accepted for money")
    if isinstance(value, Decimal):
        candidate = value
    else:
        try:
            candidate = Decimal(str(value))
        except InvalidOperation as exc:
            raise InvalidAmountError(field, None, f"not a number: {value!r}") from exc
    if not candidate.is_finite():
        raise InvalidAmountError(field, None, f"not a finite number: {value!r}")
    return round_money(candidate)


def validate_currency(code: str) -> str:
    """
    Validate and normalize a currency code.

    Returns:
        The upper-cased code.

    Raises:
        InvalidCurrencyError: If the code is not three ASCII letters.
    """
    if not isinstance(code, str):
        raise InvalidCurrencyError(str(code))
    normalized = code.strip().upper()
    if len(normalized) != 3 or not normalized.isascii() or not normalized.isalpha():
        raise InvalidCurrencyError(code)
    return normalized
