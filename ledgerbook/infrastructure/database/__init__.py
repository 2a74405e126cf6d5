"""
Database initialization and session management.
"""

import logging
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlmodel import SQLModel

from ledgerbook.core.config import get_settings
from ledgerbook.infrastructure.database.models import (
    Account,
    EntrySequence,
    EventLog,
    JournalEntry,
    JournalEntryLine,
    LedgerTransaction,
    get_engine_url,
)

logger = logging.getLogger(__name__)

JOURNAL_ENTRY_SEQUENCE = "journal_entry"


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False, pool_pre_ping=True)


settings = get_settings()

DATABASE_URL = get_engine_url(settings.database_type, settings.database_path)

engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Initialize database - create all tables and the entry-number sequence."""
    bind = bind or engine
    database = bind.url.database
    if bind.url.get_backend_name() == "sqlite" and database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    SQLModel.metadata.create_all(bind=bind)

    with Session(bind) as db:
        if db.get(EntrySequence, JOURNAL_ENTRY_SEQUENCE) is None:
            db.add(EntrySequence(name=JOURNAL_ENTRY_SEQUENCE, value=0))
            db.commit()


DEFAULT_ACCOUNTS = [
    ("101", "Cash", "Assets", "Debit"),
    ("102", "Petty Cash", "Assets", "Debit"),
    ("110", "Accounts Receivable", "Assets", "Debit"),
    ("120", "Supplies", "Assets", "Debit"),
    ("130", "Prepaid Insurance", "Assets", "Debit"),
    ("150", "Office Equipment", "Assets", "Debit"),
    ("151", "Accumulated Depreciation - Office Equipment", "Assets", "Credit"),
    ("201", "Accounts Payable", "Liabilities", "Credit"),
    ("210", "Salaries Payable", "Liabilities", "Credit"),
    ("220", "Unearned Revenue", "Liabilities", "Credit"),
    ("250", "Notes Payable", "Liabilities", "Credit"),
    ("301", "Owner's Capital", "Equity", "Credit"),
    ("302", "Owner's Drawings", "Equity", "Debit"),
    ("310", "Retained Earnings", "Equity", "Credit"),
    ("401", "Service Revenue", "Revenue", "Credit"),
    ("402", "Sales Revenue", "Revenue", "Credit"),
    ("410", "Interest Revenue", "Revenue", "Credit"),
    ("501", "Salaries Expense", "Expenses", "Debit"),
    ("510", "Rent Expense", "Expenses", "Debit"),
    ("520", "Utilities Expense", "Expenses", "Debit"),
    ("530", "Supplies Expense", "Expenses", "Debit"),
    ("540", "Insurance Expense", "Expenses", "Debit"),
    ("550", "Depreciation Expense", "Expenses", "Debit"),
]


def seed_default_accounts(bind: Engine | None = None, accounts=None) -> int:
    """Seed the chart of accounts; existing account numbers are skipped."""
    db = Session(bind or engine)
    created = 0
    try:
        existing = {number for (number,) in db.query(Account.number).all()}
        for number, name, category, normal_side in accounts or DEFAULT_ACCOUNTS:
            if number in existing:
                continue
            db.add(Account(number=number, name=name, category=category, normal_side=normal_side))
            created += 1
        db.commit()
    finally:
        db.close()
    logger.info("Seeded %d default accounts", created)
    return created


if __name__ == "__main__":
    init_db()
    print("Database initialized successfully!")
