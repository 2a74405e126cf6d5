"""Infrastructure layer."""

from ledgerbook.infrastructure.database import SessionLocal, init_db, seed_default_accounts
from ledgerbook.infrastructure.repositories import SqlAuditRecorder, SqlUnitOfWork
