"""
API dependencies - caller identity and the journal-entry service.

Identity comes from the upstream identity service as request headers; the
role names the RBAC profile the caller acts under.
"""

from fastapi import Depends, Header, HTTPException, status

from ledgerbook.application.journal_entries import JournalEntryService
from ledgerbook.core.config import get_settings
from ledgerbook.core.security import Actor, Permission, RBACService, UserRole
from ledgerbook.infrastructure.database import SessionLocal
from ledgerbook.infrastructure.repositories import SqlAuditRecorder, SqlUnitOfWork

rbac_service = RBACService()


def get_session_factory():
    return SessionLocal


def get_journal_service(session_factory=Depends(get_session_factory)) -> JournalEntryService:
    return JournalEntryService(
        uow_factory=lambda: SqlUnitOfWork(session_factory),
        audit=SqlAuditRecorder(session_factory),
        settings=get_settings(),
    )


def get_current_actor(
    x_user_id: str | None = Header(None),
    x_username: str | None = Header(None),
    x_user_name: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Actor:
    """Build the actor from identity headers; 401 when they are missing or unknown."""
    role = UserRole.parse(x_user_role)
    if not x_user_id or not x_username or role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid user identity",
        )
    return Actor(
        user_id=x_user_id,
        username=x_username,
        role=role,
        display_name=x_user_name or "",
    )


def require_ledger_view(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not rbac_service.has_permission(actor.role, Permission.LEDGER_VIEW):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
    return actor
