"""
Domain Services - repository contracts and the posting engine.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ledgerbook.core.security import Actor

from .entities import Account, AuditEvent, JournalEntry, LedgerTransaction, utcnow
from .exceptions import AccountNotFound
from .value_objects import EntryStatus

logger = logging.getLogger(__name__)


class IAccountRepository(ABC):
    """Account Directory - read access plus the posting-only balance write."""

    @abstractmethod
    def get(self, account_id: uuid.UUID) -> Account | None:
        ...

    @abstractmethod
    def list(self, active: bool | None = None) -> list[Account]:
        ...

    @abstractmethod
    def get_many(self, account_ids: list[uuid.UUID]) -> dict[uuid.UUID, Account]:
        ...

    @abstractmethod
    def update_totals(self, account: Account, expected_version: int) -> Account:
        ...


class IJournalEntryRepository(ABC):

    @abstractmethod
    def get(self, entry_id: uuid.UUID) -> JournalEntry | None:
        ...

    @abstractmethod
    def add(self, entry: JournalEntry) -> JournalEntry:
        ...

    @abstractmethod
    def update(self, entry: JournalEntry, expected_version: int) -> JournalEntry:
        ...

    @abstractmethod
    def delete(self, entry_id: uuid.UUID, expected_version: int) -> None:
        ...

    @abstractmethod
    def list(
        self,
        status: EntryStatus | None = None,
        search: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[JournalEntry]:
        ...


class ILedgerRepository(ABC):

    @abstractmethod
    def add(self, transaction: LedgerTransaction) -> LedgerTransaction:
        ...

    @abstractmethod
    def list_for_account(self, account_id: uuid.UUID) -> list[LedgerTransaction]:
        ...

    @abstractmethod
    def list_for_entry(self, journal_entry_id: uuid.UUID) -> list[LedgerTransaction]:
        ...

    @abstractmethod
    def delete_for_entry(self, journal_entry_id: uuid.UUID) -> int:
        ...


class IEntrySequence(ABC):

    @abstractmethod
    def next_entry_number(self) -> int:
        ...


class IUnitOfWork(ABC):
    """
    Transactional unit of work: begin on enter, stage writes through the
    repositories, then ``commit()``. Leaving the block without committing
    discards everything staged.
    """
    accounts: IAccountRepository
    entries: IJournalEntryRepository
    ledger: ILedgerRepository
    sequences: IEntrySequence

    @abstractmethod
    def __enter__(self) -> "IUnitOfWork":
        ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...


class IAuditRecorder(ABC):
    """Append-only event log. Raises AuditRecordError when the write fails."""

    @abstractmethod
    def record(
        self,
        event_type: str,
        before_image: dict[str, Any] | None,
        after_image: dict[str, Any] | None,
        actor: Actor,
        description: str = "",
        account_name: str | None = None,
    ) -> AuditEvent:
        ...


@dataclass
class PostingResult:
    """Outcome of staging one entry's posting."""
    transactions: list[LedgerTransaction] = field(default_factory=list)
    accounts_before: dict[uuid.UUID, Account] = field(default_factory=dict)
    accounts_after: dict[uuid.UUID, Account] = field(default_factory=dict)

    def balance_images(self) -> tuple[list[dict], list[dict]]:
        before = [account.balance_image() for account in self.accounts_before.values()]
        after = [account.balance_image() for account in self.accounts_after.values()]
        return before, after


class PostingEngine:
    """
    Service - applies a journal entry to account balances and the ledger.

    The only code path that changes account debit/credit/balance or creates
    ledger rows. All writes are staged on the caller's unit of work and land
    together on its commit. Balance is not re-checked here.
    """

    def post(self, uow: IUnitOfWork, entry: JournalEntry) -> PostingResult:
        result = PostingResult()
        posted_at = entry.posted_at or utcnow()

        for line in entry.line_items:
            account = result.accounts_after.get(line.account_id)
            if account is None:
                account = uow.accounts.get(line.account_id)
                if account is None:
                    raise AccountNotFound(line.account_id)
                result.accounts_before[account.id] = account

            updated = uow.accounts.update_totals(
                account.apply_posting(line.debit, line.credit),
                expected_version=account.version,
            )
            result.accounts_after[updated.id] = updated

            result.transactions.append(
                uow.ledger.add(
                    LedgerTransaction(
                        account_id=updated.id,
                        account_number=updated.number,
                        account_name=updated.name,
                        journal_entry_id=entry.id,
                        entry_number=entry.entry_number,
                        date=posted_at,
                        description=line.description or entry.description,
                        debit=line.debit,
                        credit=line.credit,
                        balance=updated.balance,
                        post_reference=entry.post_reference,
                    )
                )
            )

        logger.debug(
            "Staged posting of entry #%s: %d ledger rows across %d accounts",
            entry.entry_number, len(result.transactions), len(result.accounts_after),
        )
        return result

    def reverse(self, uow: IUnitOfWork, entry: JournalEntry) -> int:
        """
        Compensating write for a posting whose audit record failed: subtract
        the entry's amounts and drop its ledger rows.
        """
        touched: dict[uuid.UUID, Account] = {}
        for line in entry.line_items:
            account = touched.get(line.account_id) or uow.accounts.get(line.account_id)
            if account is None:
                raise AccountNotFound(line.account_id)
            touched[account.id] = uow.accounts.update_totals(
                account.apply_posting(-line.debit, -line.credit),
                expected_version=account.version,
            )
        return uow.ledger.delete_for_entry(entry.id)
