"""
Infrastructure - SQLModel database models and configurations.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel

from ledgerbook.domain.entities import utcnow


class Account(SQLModel, table=True):
    """Chart-of-accounts row; balance fields change only through posting."""

    __tablename__ = "accounts"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    number: str = Field(unique=True, index=True)
    name: str
    category: str
    normal_side: str = "Debit"
    description: str | None = None
    is_active: bool = Field(default=True, index=True)
    debit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    credit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    balance: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 1


class JournalEntry(SQLModel, table=True):
    """Journal entry header."""

    __tablename__ = "journal_entries"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    entry_number: int = Field(unique=True, index=True)
    entry_date: date = Field(index=True)
    reference: str | None = None
    description: str
    total_amount: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    status: str = Field(index=True)

    created_by: str = Field(index=True)
    created_by_name: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
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


class JournalEntryLine(SQLModel, table=True):
    """Journal entry line item."""

    __tablename__ = "journal_entry_lines"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    journal_entry_id: UUID = Field(foreign_key="journal_entries.id", index=True)
    line_number: int
    account_id: UUID = Field(foreign_key="accounts.id")
    account_number: str
    account_name: str
    debit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    credit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    description: str | None = None


class LedgerTransaction(SQLModel, table=True):
    """Append-only ledger row; the integer key preserves creation order."""

    __tablename__ = "ledger_transactions"

    id: int | None = Field(default=None, primary_key=True)
    account_id: UUID = Field(foreign_key="accounts.id", index=True)
    account_number: str | None = None
    account_name: str | None = None
    journal_entry_id: UUID = Field(foreign_key="journal_entries.id", index=True)
    entry_number: int | None = None
    date: datetime
    description: str
    debit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    credit: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    balance: Decimal = Field(default=Decimal("0"), max_digits=18, decimal_places=2)
    post_reference: str
    created_at: datetime = Field(default_factory=utcnow)


class EventLog(SQLModel, table=True):
    """Audit trail for every mutation."""

    __tablename__ = "event_logs"

    event_id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_type: str = Field(index=True)
    description: str = ""
    account_name: str | None = None
    before_image: str | None = None  # JSON
    after_image: str | None = None  # JSON
    user_id: str = Field(index=True)
    username: str
    timestamp: datetime = Field(default_factory=utcnow, index=True)


class EntrySequence(SQLModel, table=True):
    """Monotonic counter backing journal entry numbers."""

    __tablename__ = "entry_sequences"

    name: str = Field(primary_key=True)
    value: int = 0


def get_engine_url(database_type: str | None = None, database_path: str | None = None) -> str:
    """Database URL from the given settings, falling back to the environment."""
    import os

    db_type = database_type or os.getenv("DATABASE_TYPE", "sqlite")

    if db_type == "sqlite":
        db_path = database_path or os.getenv("DATABASE_PATH", "./data/ledgerbook.db")
        return f"sqlite:///{db_path}"
    elif db_type == "postgresql":
        host = os.getenv("DB_HOST", "localhost")
        port = os.getenv("DB_PORT", "5432")
        dbname = os.getenv("DB_NAME", "ledgerbook")
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "postgres")
        return f"postgresql://{user}:{password}@{host}:{port}/{dbname}"
    else:
        raise ValueError(f"Unsupported database type: {db_type}")
