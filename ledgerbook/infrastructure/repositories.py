"""
Infrastructure - SQL implementations of the domain repositories.

Every write to a versioned row is a compare-and-swap on ``version``; a lost
race surfaces as ConcurrentModification and the unit of work rolls back.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import String, cast, delete, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledgerbook.core.security import Actor
from ledgerbook.domain.entities import (
    Account,
    AuditEvent,
    JournalEntry,
    LedgerTransaction,
    utcnow,
)
from ledgerbook.domain.exceptions import (
    AuditRecordError,
    ConcurrentModification,
    PersistenceFailure,
)
from ledgerbook.domain.services import (
    IAccountRepository,
    IAuditRecorder,
    IEntrySequence,
    IJournalEntryRepository,
    ILedgerRepository,
    IUnitOfWork,
)
from ledgerbook.domain.value_objects import (
    AccountCategory,
    EntryStatus,
    LineItem,
    NormalSide,
)
from ledgerbook.infrastructure.database import JOURNAL_ENTRY_SEQUENCE, SessionLocal
from ledgerbook.infrastructure.database.models import Account as AccountModel
from ledgerbook.infrastructure.database.models import EntrySequence
from ledgerbook.infrastructure.database.models import EventLog
from ledgerbook.infrastructure.database.models import JournalEntry as JournalEntryModel
from ledgerbook.infrastructure.database.models import JournalEntryLine
from ledgerbook.infrastructure.database.models import LedgerTransaction as LedgerModel

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def account_from_row(row: AccountModel) -> Account:
    return Account(
        id=row.id,
        number=row.number,
        name=row.name,
        category=AccountCategory(row.category),
        normal_side=NormalSide(row.normal_side),
        is_active=row.is_active,
        debit=row.debit,
        credit=row.credit,
        balance=row.balance,
        description=row.description,
        version=row.version,
    )


def ledger_from_row(row: LedgerModel) -> LedgerTransaction:
    return LedgerTransaction(
        id=row.id,
        account_id=row.account_id,
        account_number=row.account_number,
        account_name=row.account_name,
        journal_entry_id=row.journal_entry_id,
        entry_number=row.entry_number,
        date=row.date,
        description=row.description,
        debit=row.debit,
        credit=row.credit,
        balance=row.balance,
        post_reference=row.post_reference,
        created_at=row.created_at,
    )


def _entry_header(entry: JournalEntry) -> dict[str, Any]:
    return {
        "entry_number": entry.entry_number,
        "entry_date": entry.entry_date,
        "reference": entry.reference,
        "description": entry.description,
        "total_amount": entry.total_amount,
        "status": entry.status.value,
        "created_by": entry.created_by,
        "created_by_name": entry.created_by_name,
        "created_at": entry.created_at,
        "updated_at": entry.updated_at,
        "submitted_at": entry.submitted_at,
        "approved_by": entry.approved_by,
        "approved_by_name": entry.approved_by_name,
        "approved_at": entry.approved_at,
        "rejected_by": entry.rejected_by,
        "rejected_by_name": entry.rejected_by_name,
        "rejected_at": entry.rejected_at,
        "rejection_reason": entry.rejection_reason,
        "posted_by": entry.posted_by,
        "posted_by_name": entry.posted_by_name,
        "posted_at": entry.posted_at,
    }


class SqlAccountRepository(IAccountRepository):

    def __init__(self, session: Session):
        self.session = session

    def get(self, account_id: UUID) -> Account | None:
        row = self.session.get(AccountModel, account_id, populate_existing=True)
        return account_from_row(row) if row else None

    def list(self, active: bool | None = None) -> list[Account]:
        query = self.session.query(AccountModel)
        if active is not None:
            query = query.filter(AccountModel.is_active == active)
        return [account_from_row(row) for row in query.order_by(AccountModel.number).all()]

    def get_many(self, account_ids: list[UUID]) -> dict[UUID, Account]:
        if not account_ids:
            return {}
        rows = self.session.query(AccountModel).filter(AccountModel.id.in_(set(account_ids))).all()
        return {row.id: account_from_row(row) for row in rows}

    def update_totals(self, account: Account, expected_version: int) -> Account:
        result = self.session.execute(
            update(AccountModel)
            .where(AccountModel.id == account.id, AccountModel.version == expected_version)
            .values(
                debit=account.debit,
                credit=account.credit,
                balance=account.balance,
                version=expected_version + 1,
                updated_at=utcnow(),
            )
        )
        if result.rowcount != 1:
            raise ConcurrentModification("Account", account.number, expected_version)
        return replace(account, version=expected_version + 1)


class SqlJournalEntryRepository(IJournalEntryRepository):

    def __init__(self, session: Session):
        self.session = session

    def _lines(self, entry_id: UUID) -> list[LineItem]:
        rows = (
            self.session.query(JournalEntryLine)
            .filter(JournalEntryLine.journal_entry_id == entry_id)
            .order_by(JournalEntryLine.line_number)
            .all()
        )
        return [
            LineItem(
                account_id=row.account_id,
                account_number=row.account_number,
                account_name=row.account_name,
                debit=row.debit,
                credit=row.credit,
                description=row.description,
            )
            for row in rows
        ]

    def _to_entity(self, row: JournalEntryModel) -> JournalEntry:
        return JournalEntry(
            id=row.id,
            entry_number=row.entry_number,
            entry_date=row.entry_date,
            reference=row.reference,
            description=row.description,
            line_items=self._lines(row.id),
            total_amount=row.total_amount,
            status=EntryStatus(row.status),
            created_by=row.created_by,
            created_by_name=row.created_by_name,
            created_at=row.created_at,
            updated_at=row.updated_at,
            submitted_at=row.submitted_at,
            approved_by=row.approved_by,
            approved_by_name=row.approved_by_name,
            approved_at=row.approved_at,
            rejected_by=row.rejected_by,
            rejected_by_name=row.rejected_by_name,
            rejected_at=row.rejected_at,
            rejection_reason=row.rejection_reason,
            posted_by=row.posted_by,
            posted_by_name=row.posted_by_name,
            posted_at=row.posted_at,
            version=row.version,
        )

    def _write_lines(self, entry: JournalEntry) -> None:
        for line_number, line in enumerate(entry.line_items, start=1):
            self.session.add(
                JournalEntryLine(
                    journal_entry_id=entry.id,
                    line_number=line_number,
                    account_id=line.account_id,
                    account_number=line.account_number,
                    account_name=line.account_name,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                )
            )

    def get(self, entry_id: UUID) -> JournalEntry | None:
        row = self.session.get(JournalEntryModel, entry_id, populate_existing=True)
        return self._to_entity(row) if row else None

    def add(self, entry: JournalEntry) -> JournalEntry:
        self.session.add(JournalEntryModel(id=entry.id, version=entry.version, **_entry_header(entry)))
        self._write_lines(entry)
        self.session.flush()
        return entry

    def update(self, entry: JournalEntry, expected_version: int) -> JournalEntry:
        result = self.session.execute(
            update(JournalEntryModel)
            .where(JournalEntryModel.id == entry.id, JournalEntryModel.version == expected_version)
            .values(version=expected_version + 1, **_entry_header(entry))
        )
        if result.rowcount != 1:
            raise ConcurrentModification("Journal entry", entry.id, expected_version)
        self.session.execute(
            delete(JournalEntryLine).where(JournalEntryLine.journal_entry_id == entry.id)
        )
        self._write_lines(entry)
        self.session.flush()
        return replace(entry, version=expected_version + 1)

    def delete(self, entry_id: UUID, expected_version: int) -> None:
        self.session.execute(
            delete(JournalEntryLine).where(JournalEntryLine.journal_entry_id == entry_id)
        )
        result = self.session.execute(
            delete(JournalEntryModel).where(
                JournalEntryModel.id == entry_id, JournalEntryModel.version == expected_version
            )
        )
        if result.rowcount != 1:
            raise ConcurrentModification("Journal entry", entry_id, expected_version)

    def list(
        self,
        status: EntryStatus | None = None,
        search: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[JournalEntry]:
        query = self.session.query(JournalEntryModel)
        if status:
            query = query.filter(JournalEntryModel.status == status.value)
        if start_date:
            query = query.filter(JournalEntryModel.entry_date >= start_date)
        if end_date:
            query = query.filter(JournalEntryModel.entry_date <= end_date)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    cast(JournalEntryModel.entry_number, String).like(term),
                    JournalEntryModel.description.ilike(term),
                    JournalEntryModel.reference.ilike(term),
                )
            )
        rows = query.order_by(JournalEntryModel.entry_number.desc()).offset(skip).limit(limit).all()
        return [self._to_entity(row) for row in rows]


class SqlLedgerRepository(ILedgerRepository):

    def __init__(self, session: Session):
        self.session = session

    def add(self, transaction: LedgerTransaction) -> LedgerTransaction:
        row = LedgerModel(
            account_id=transaction.account_id,
            account_number=transaction.account_number,
            account_name=transaction.account_name,
            journal_entry_id=transaction.journal_entry_id,
            entry_number=transaction.entry_number,
            date=transaction.date,
            description=transaction.description,
            debit=transaction.debit,
            credit=transaction.credit,
            balance=transaction.balance,
            post_reference=transaction.post_reference,
            created_at=transaction.created_at,
        )
        self.session.add(row)
        self.session.flush()
        return replace(transaction, id=row.id)

    def list_for_account(self, account_id: UUID) -> list[LedgerTransaction]:
        rows = (
            self.session.query(LedgerModel)
            .filter(LedgerModel.account_id == account_id)
            .order_by(LedgerModel.id)
            .all()
        )
        return [ledger_from_row(row) for row in rows]

    def list_for_entry(self, journal_entry_id: UUID) -> list[LedgerTransaction]:
        rows = (
            self.session.query(LedgerModel)
            .filter(LedgerModel.journal_entry_id == journal_entry_id)
            .order_by(LedgerModel.id)
            .all()
        )
        return [ledger_from_row(row) for row in rows]

    def delete_for_entry(self, journal_entry_id: UUID) -> int:
        result = self.session.execute(
            delete(LedgerModel).where(LedgerModel.journal_entry_id == journal_entry_id)
        )
        return result.rowcount


class SqlEntrySequence(IEntrySequence):

    def __init__(self, session: Session, name: str = JOURNAL_ENTRY_SEQUENCE):
        self.session = session
        self.name = name

    def next_entry_number(self) -> int:
        result = self.session.execute(
            update(EntrySequence)
            .where(EntrySequence.name == self.name)
            .values(value=EntrySequence.value + 1)
        )
        if result.rowcount == 0:
            self.session.add(EntrySequence(name=self.name, value=1))
            self.session.flush()
            return 1
        row = self.session.get(EntrySequence, self.name, populate_existing=True)
        return row.value


class SqlUnitOfWork(IUnitOfWork):
    """One SQLAlchemy session and transaction shared by all repositories."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self.session_factory = session_factory or SessionLocal
        self._committed = False

    def __enter__(self) -> "SqlUnitOfWork":
        self.session = self.session_factory()
        self._committed = False
        self.accounts = SqlAccountRepository(self.session)
        self.entries = SqlJournalEntryRepository(self.session)
        self.ledger = SqlLedgerRepository(self.session)
        self.sequences = SqlEntrySequence(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if not self._committed:
                self.session.rollback()
        finally:
            self.session.close()
        if isinstance(exc, SQLAlchemyError):
            logger.error("Unit of work rolled back after storage error: %s", exc)
            raise PersistenceFailure("Storage write failed; nothing was committed") from exc

    def commit(self) -> None:
        self.session.commit()
        self._committed = True


class SqlAuditRecorder(IAuditRecorder):
    """Writes audit events to ``event_logs`` in their own transaction."""

    def __init__(self, session_factory: SessionFactory | None = None):
        self.session_factory = session_factory or SessionLocal

    def record(
        self,
        event_type: str,
        before_image: dict[str, Any] | None,
        after_image: dict[str, Any] | None,
        actor: Actor,
        description: str = "",
        account_name: str | None = None,
    ) -> AuditEvent:
        event = AuditEvent(
            event_type=event_type,
            before_image=before_image,
            after_image=after_image,
            user_id=actor.user_id,
            username=actor.username,
            description=description,
            account_name=account_name,
        )
        db = self.session_factory()
        try:
            db.add(
                EventLog(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    description=event.description,
                    account_name=event.account_name,
                    before_image=_dump(event.before_image),
                    after_image=_dump(event.after_image),
                    user_id=event.user_id,
                    username=event.username,
                    timestamp=event.timestamp,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise AuditRecordError(f"Could not record {event_type} event") from exc
        finally:
            db.close()
        return event


def _dump(image: dict[str, Any] | None) -> str | None:
    if image is None:
        return None
    return json.dumps(image, default=str, ensure_ascii=False)
