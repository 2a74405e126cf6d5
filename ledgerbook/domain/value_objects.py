"""
Domain Layer - Value objects for double-entry bookkeeping.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount a Numeric(18, 2) column holds.
MAX_AMOUNT = Decimal("9999999999999999.99")


class AccountCategory(str, Enum):
    """Account classification in the chart of accounts."""
    ASSETS = "Assets"
    LIABILITIES = "Liabilities"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSES = "Expenses"


class NormalSide(str, Enum):
    """Side on which an account balance normally increases."""
    DEBIT = "Debit"
    CREDIT = "Credit"


class EntryStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    POSTED = "posted"


def to_amount(value: object) -> Decimal:
    """
    Coerce user input into a Decimal.
    Empty or unparsable input counts as zero, the way a blank amount field does.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def quantize_amount(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def normal_balance(normal_side: NormalSide, debit: Decimal, credit: Decimal) -> Decimal:
    if normal_side == NormalSide.DEBIT:
        return debit - credit
    return credit - debit


@dataclass(frozen=True, slots=True)
class LineItemInput:
    """One candidate row of a journal entry form, as typed by the user."""
    account_id: uuid.UUID | None = None
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None

    @property
    def is_blank(self) -> bool:
        return (
            self.account_id is None
            and to_amount(self.debit) == 0
            and to_amount(self.credit) == 0
        )


@dataclass(frozen=True, slots=True)
class EntryDraft:
    """Proposed journal entry submitted for validation."""
    entry_date: date | None
    description: str | None
    lines: list[LineItemInput] = field(default_factory=list)
    reference: str | None = None


@dataclass(frozen=True, slots=True)
class LineItem:
    """Accepted journal line - exactly one of debit/credit is positive."""
    account_id: uuid.UUID
    account_number: str
    account_name: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None

    @property
    def is_debit(self) -> bool:
        return self.debit > 0
