"""
Domain exceptions for the journal-entry lifecycle.

Every error carries a stable ``code`` and the HTTP ``status_code`` the API
layer answers with. Durability errors (storage or audit failures) always mean
the operation did not complete.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    MISSING_DATE = "MissingDate"
    MISSING_DESCRIPTION = "MissingDescription"
    MISSING_ACCOUNT = "MissingAccount"
    MISSING_AMOUNT = "MissingAmount"
    INVALID_AMOUNT = "InvalidAmount"
    BOTH_DEBIT_AND_CREDIT = "BothDebitAndCredit"
    INSUFFICIENT_LINES = "InsufficientLines"
    INACTIVE_ACCOUNT = "InactiveAccount"
    UNKNOWN_ACCOUNT = "UnknownAccount"
    DUPLICATE_ACCOUNT = "DuplicateAccount"
    UNBALANCED = "Unbalanced"
    ZERO_TOTAL = "ZeroTotal"
    MISSING_REJECTION_REASON = "MissingRejectionReason"


MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.MISSING_DATE: "Entry date is required. Please select a date for this journal entry.",
    ErrorKind.MISSING_DESCRIPTION: (
        "Description is required. Please provide a description for this journal entry."
    ),
    ErrorKind.MISSING_ACCOUNT: "Please select an account for this line item.",
    ErrorKind.MISSING_AMOUNT: (
        "Each line item must have either a debit or credit amount. Please enter an amount."
    ),
    ErrorKind.INVALID_AMOUNT: (
        "Amount must be a positive number. Please enter a valid amount greater than zero."
    ),
    ErrorKind.BOTH_DEBIT_AND_CREDIT: (
        "A line item cannot have both debit and credit amounts. Please enter only one."
    ),
    ErrorKind.INSUFFICIENT_LINES: (
        "A journal entry must have at least 2 line items (one debit and one credit). "
        "Please add more line items."
    ),
    ErrorKind.INACTIVE_ACCOUNT: (
        'Account "{account_name}" is inactive and cannot be used. Please select an active account.'
    ),
    ErrorKind.UNKNOWN_ACCOUNT: "The selected account does not exist. Please select another account.",
    ErrorKind.DUPLICATE_ACCOUNT: 'Account "{account_name}" is used on more than one line.',
    ErrorKind.UNBALANCED: (
        "Total debits must equal total credits. The difference is {difference}. "
        "Please adjust your entries to balance the transaction."
    ),
    ErrorKind.ZERO_TOTAL: (
        "Journal entry must have a total amount greater than zero. "
        "Please enter transaction amounts."
    ),
    ErrorKind.MISSING_REJECTION_REASON: "Please provide a reason for rejection.",
}


@dataclass(frozen=True)
class ValidationIssue:
    """A single field-tagged validation error."""
    kind: ErrorKind
    field: str
    row: int | None = None
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return MESSAGES[self.kind].format(**self.params)


class JournalEntryError(Exception):
    code = "JOURNAL_ENTRY_ERROR"
    status_code = 400


class ValidationFailed(JournalEntryError, ValueError):
    code = "VALIDATION_FAILED"
    status_code = 400

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = list(issues)
        super().__init__("; ".join(issue.message for issue in self.issues))

    @property
    def kinds(self) -> set[ErrorKind]:
        return {issue.kind for issue in self.issues}


class IllegalTransition(JournalEntryError):
    code = "ILLEGAL_TRANSITION"
    status_code = 409

    def __init__(self, status: str | None, action: str, reason: str | None = None):
        self.status = status
        self.action = action
        self.reason = reason
        source = status or "new"
        message = f"Cannot {action} a journal entry in state '{source}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnauthorizedTransition(IllegalTransition):
    """Role lacks the permission the transition requires."""
    code = "UNAUTHORIZED_TRANSITION"
    status_code = 403


class EntryNotFound(JournalEntryError):
    code = "ENTRY_NOT_FOUND"
    status_code = 404

    def __init__(self, entry_id: object):
        self.entry_id = entry_id
        super().__init__(f"Journal entry {entry_id} not found")


class AccountNotFound(JournalEntryError):
    code = "ACCOUNT_NOT_FOUND"
    status_code = 404

    def __init__(self, account_id: object):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class ConcurrentModification(JournalEntryError):
    code = "CONCURRENT_MODIFICATION"
    status_code = 409

    def __init__(self, kind: str, key: object, expected_version: int):
        self.kind = kind
        self.key = key
        self.expected_version = expected_version
        super().__init__(
            f"{kind} {key} was modified by another user (expected version {expected_version})"
        )


class DurabilityError(JournalEntryError):
    code = "DURABILITY_ERROR"
    status_code = 503
    user_message = "The operation did not complete. Please try again."


class PersistenceFailure(DurabilityError):
    code = "PERSISTENCE_FAILURE"


class AuditFailure(DurabilityError):
    code = "AUDIT_FAILURE"

    def __init__(self, message: str, compensated: bool = True):
        self.compensated = compensated
        super().__init__(message)


class AuditRecordError(Exception):
    """Raised by an audit recorder that could not persist an event."""
