"""
Pytest configuration and fixtures.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from ledgerbook.application.journal_entries import JournalEntryService
from ledgerbook.core.config import Settings
from ledgerbook.core.security import Actor, UserRole
from ledgerbook.domain.entities import Account
from ledgerbook.domain.exceptions import AuditRecordError
from ledgerbook.domain.services import IAuditRecorder
from ledgerbook.domain.value_objects import (
    AccountCategory,
    EntryDraft,
    LineItemInput,
    NormalSide,
)
from ledgerbook.infrastructure.database import build_engine, init_db
from ledgerbook.infrastructure.database.models import Account as AccountModel
from ledgerbook.infrastructure.repositories import (
    SqlAuditRecorder,
    SqlLedgerRepository,
    SqlUnitOfWork,
)


class FailingAuditRecorder(IAuditRecorder):
    """Audit recorder whose writes fail once ``failing`` is set."""

    def __init__(self, inner: IAuditRecorder, failing: bool = False):
        self.inner = inner
        self.failing = failing
        self.attempts = 0

    def record(self, event_type, before_image, after_image, actor, description="", account_name=None):
        self.attempts += 1
        if self.failing:
            raise AuditRecordError(f"event log unavailable for {event_type}")
        return self.inner.record(
            event_type, before_image, after_image, actor, description, account_name
        )


class FlakyLedgerRepository(SqlLedgerRepository):
    """Fails on the Nth ledger insert of its unit of work."""

    def __init__(self, session, fail_on: int):
        super().__init__(session)
        self.fail_on = fail_on
        self.calls = 0

    def add(self, transaction):
        self.calls += 1
        if self.calls == self.fail_on:
            raise OperationalError(
                "INSERT INTO ledger_transactions", {}, Exception("disk I/O error")
            )
        return super().add(transaction)


class FlakyUnitOfWork(SqlUnitOfWork):

    def __init__(self, session_factory, fail_on: int):
        super().__init__(session_factory)
        self.fail_on = fail_on

    def __enter__(self):
        super().__enter__()
        self.ledger = FlakyLedgerRepository(self.session, self.fail_on)
        return self


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledgerbook_test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def accounts(session_factory) -> dict[str, AccountModel]:
    """Cash (Debit, balance 50), Revenue (Credit, balance 20), Expense, and an inactive account."""
    rows = {
        "cash": AccountModel(
            number="101", name="Cash", category="Assets", normal_side="Debit",
            debit=Decimal("50.00"), balance=Decimal("50.00"),
        ),
        "revenue": AccountModel(
            number="401", name="Service Revenue", category="Revenue", normal_side="Credit",
            credit=Decimal("20.00"), balance=Decimal("20.00"),
        ),
        "rent": AccountModel(
            number="510", name="Rent Expense", category="Expenses", normal_side="Debit",
        ),
        "closed": AccountModel(
            number="199", name="Old Clearing", category="Assets", normal_side="Debit",
            is_active=False,
        ),
    }
    db = session_factory()
    try:
        db.add_all(rows.values())
        db.commit()
    finally:
        db.close()
    return rows


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def audit(session_factory) -> FailingAuditRecorder:
    return FailingAuditRecorder(SqlAuditRecorder(session_factory))


@pytest.fixture
def service(session_factory, audit, settings) -> JournalEntryService:
    return JournalEntryService(
        uow_factory=lambda: SqlUnitOfWork(session_factory),
        audit=audit,
        settings=settings,
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="u-admin", username="admin", role=UserRole.ADMINISTRATOR,
                 display_name="Alex Admin")


@pytest.fixture
def manager() -> Actor:
    return Actor(user_id="u-manager", username="manager", role=UserRole.MANAGER,
                 display_name="Morgan Manager")


@pytest.fixture
def accountant() -> Actor:
    return Actor(user_id="u-acct", username="accountant", role=UserRole.ACCOUNTANT,
                 display_name="Casey Accountant")


@pytest.fixture
def other_accountant() -> Actor:
    return Actor(user_id="u-acct-2", username="accountant2", role=UserRole.ACCOUNTANT)


@pytest.fixture
def make_draft(accounts):
    """Balanced two-line draft: debit Cash, credit Service Revenue."""

    def _make(amount="30.00", credit_amount=None, description="Consulting fee received"):
        return EntryDraft(
            entry_date=date(2024, 3, 1),
            description=description,
            lines=[
                LineItemInput(account_id=accounts["cash"].id, debit=Decimal(amount)),
                LineItemInput(
                    account_id=accounts["revenue"].id,
                    credit=Decimal(credit_amount or amount),
                ),
            ],
        )

    return _make


@pytest.fixture
def make_account():
    """Build an in-memory Account entity."""

    def _make(number="101", name="Cash", normal_side=NormalSide.DEBIT, **kwargs) -> Account:
        category = kwargs.pop(
            "category",
            AccountCategory.ASSETS if normal_side == NormalSide.DEBIT else AccountCategory.REVENUE,
        )
        return Account(
            number=number, name=name, category=category, normal_side=normal_side,
            id=kwargs.pop("id", uuid4()), **kwargs,
        )

    return _make


@pytest.fixture
def flaky_service(session_factory, audit, settings):
    """Service whose unit of work fails on the Nth ledger insert."""

    def _make(fail_on: int) -> JournalEntryService:
        return JournalEntryService(
            uow_factory=lambda: FlakyUnitOfWork(session_factory, fail_on),
            audit=audit,
            settings=settings,
        )

    return _make


@pytest.fixture
def event_log(session_factory):
    """Return the stored audit events, oldest first."""
    from ledgerbook.infrastructure.database.models import EventLog

    def _read() -> list[EventLog]:
        db = session_factory()
        try:
            return db.query(EventLog).order_by(EventLog.timestamp).all()
        finally:
            db.close()

    return _read
