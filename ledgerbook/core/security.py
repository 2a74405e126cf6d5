"""
Security Core - RBAC for the journal-entry workflow.
"""

from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    ADMINISTRATOR = "Administrator"
    MANAGER = "Manager"
    ACCOUNTANT = "Accountant"

    @classmethod
    def parse(cls, value: str | None) -> "UserRole | None":
        """Case-insensitive lookup; returns None for unknown roles."""
        if not value:
            return None
        for role in cls:
            if role.value.lower() == value.strip().lower():
                return role
        return None


class Permission(str, Enum):
    ENTRY_CREATE = "ENTRY_CREATE"
    ENTRY_EDIT_ANY = "ENTRY_EDIT_ANY"
    ENTRY_DELETE_ANY = "ENTRY_DELETE_ANY"
    ENTRY_APPROVE = "ENTRY_APPROVE"
    ENTRY_POST = "ENTRY_POST"
    LEDGER_VIEW = "LEDGER_VIEW"


ROLE_PERMISSIONS: dict[UserRole, list[Permission]] = {
    UserRole.ADMINISTRATOR: list(Permission),
    UserRole.MANAGER: [
        Permission.ENTRY_CREATE,
        Permission.ENTRY_EDIT_ANY,
        Permission.ENTRY_DELETE_ANY,
        Permission.ENTRY_APPROVE,
        Permission.ENTRY_POST,
        Permission.LEDGER_VIEW,
    ],
    UserRole.ACCOUNTANT: [
        Permission.ENTRY_CREATE,
        Permission.LEDGER_VIEW,
    ],
}


@dataclass(frozen=True, slots=True)
class Actor:
    """Identity of the user performing an operation (from the identity service)."""
    user_id: str
    username: str
    role: UserRole
    display_name: str = ""

    @property
    def name(self) -> str:
        return self.display_name or self.username


class AuditEventType(str, Enum):
    JOURNAL_ENTRY = "journal_entry"
    JOURNAL_ENTRY_APPROVED = "journal_entry_approved"
    JOURNAL_ENTRY_REJECTED = "journal_entry_rejected"
    JOURNAL_ENTRY_POSTED = "journal_entry_posted"
    JOURNAL_ENTRY_DELETED = "journal_entry_deleted"


class RBACService:
    def has_permission(self, role: UserRole, permission: Permission) -> bool:
        return permission in ROLE_PERMISSIONS.get(role, [])
