"""
Domain Entities - Core business entities of the journal-entry lifecycle.
Double-entry bookkeeping: total debits = total credits.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from .value_objects import (
    ZERO,
    AccountCategory,
    EntryStatus,
    LineItem,
    NormalSide,
    normal_balance,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Account:
    """
    Entity - Account in the chart of accounts.
    balance = debit - credit for Debit-normal accounts, credit - debit otherwise.
    """
    number: str
    name: str
    category: AccountCategory
    normal_side: NormalSide
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_active: bool = True
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    balance: Decimal = ZERO
    description: str | None = None
    version: int = 1

    def is_consistent(self) -> bool:
        return self.balance == normal_balance(self.normal_side, self.debit, self.credit)

    def apply_posting(self, debit: Decimal, credit: Decimal) -> "Account":
        """Add a posting's amounts and recompute the balance from the normal side."""
        new_debit = self.debit + debit
        new_credit = self.credit + credit
        return replace(
            self,
            debit=new_debit,
            credit=new_credit,
            balance=normal_balance(self.normal_side, new_debit, new_credit),
            version=self.version + 1,
        )

    def balance_image(self) -> dict[str, Any]:
        return {
            "accountId": str(self.id),
            "accountName": self.name,
            "debit": str(self.debit),
            "credit": str(self.credit),
            "balance": str(self.balance),
        }


@dataclass
class JournalEntry:
    """
    Entity - Journal entry moving through draft -> pending_approval -> approved -> posted.
    Every mutation returns a new instance with a bumped version.
    """
    entry_number: int
    entry_date: date
    description: str
    line_items: list[LineItem]
    total_amount: Decimal
    status: EntryStatus
    created_by: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    reference: str | None = None
    created_by_name: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_by_name: str | None = None
    approved_at: datetime | None = None
    rejected_by: str | None = None
    rejected_by_name: str | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    posted_by: str | None = None
    posted_by_name: str | None = None
    posted_at: datetime | None = None
    version: int = 1

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.line_items), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.line_items), ZERO)

    @property
    def post_reference(self) -> str:
        return self.reference or f"JE-{self.entry_number:06d}"

    @property
    def affected_accounts(self) -> str:
        names = dict.fromkeys(line.account_name for line in self.line_items)
        return " | ".join(names)

    def revise(
        self,
        entry_date: date,
        description: str,
        line_items: list[LineItem],
        total_amount: Decimal,
    ) -> "JournalEntry":
        return replace(
            self,
            entry_date=entry_date,
            description=description,
            line_items=list(line_items),
            total_amount=total_amount,
            updated_at=utcnow(),
            version=self.version + 1,
        )

    def save_as_draft(self) -> "JournalEntry":
        return replace(self, status=EntryStatus.DRAFT, updated_at=utcnow(), version=self.version + 1)

    def submit(self) -> "JournalEntry":
        """Enter pending_approval; clears any earlier rejection."""
        now = utcnow()
        return replace(
            self,
            status=EntryStatus.PENDING_APPROVAL,
            submitted_at=now,
            rejected_by=None,
            rejected_by_name=None,
            rejected_at=None,
            rejection_reason=None,
            updated_at=now,
            version=self.version + 1,
        )

    def approve(self, user_id: str, user_name: str) -> "JournalEntry":
        now = utcnow()
        return replace(
            self,
            status=EntryStatus.APPROVED,
            approved_by=user_id,
            approved_by_name=user_name,
            approved_at=now,
            updated_at=now,
            version=self.version + 1,
        )

    def reject(self, user_id: str, user_name: str, reason: str) -> "JournalEntry":
        now = utcnow()
        return replace(
            self,
            status=EntryStatus.REJECTED,
            rejected_by=user_id,
            rejected_by_name=user_name,
            rejected_at=now,
            rejection_reason=reason,
            updated_at=now,
            version=self.version + 1,
        )

    def mark_posted(self, user_id: str, user_name: str) -> "JournalEntry":
        now = utcnow()
        return replace(
            self,
            status=EntryStatus.POSTED,
            posted_by=user_id,
            posted_by_name=user_name,
            posted_at=now,
            updated_at=now,
            version=self.version + 1,
        )

    def audit_image(self) -> dict[str, Any]:
        return {
            "entryNumber": self.entry_number,
            "reference": self.reference,
            "status": self.status.value,
            "description": self.description,
            "totalAmount": str(self.total_amount),
            "lineItemCount": len(self.line_items),
            "affectedAccounts": self.affected_accounts,
        }


@dataclass
class LedgerTransaction:
    """
    Append-only ledger row; ``balance`` is the account's running balance
    immediately after this row.
    """
    account_id: uuid.UUID
    journal_entry_id: uuid.UUID
    date: datetime
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    post_reference: str
    account_number: str | None = None
    account_name: str | None = None
    entry_number: int | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AuditEvent:
    """Immutable before/after record of one mutation."""
    event_type: str
    before_image: dict[str, Any] | None
    after_image: dict[str, Any] | None
    user_id: str
    username: str
    description: str = ""
    account_name: str | None = None
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: datetime = field(default_factory=utcnow)
