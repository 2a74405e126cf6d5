"""Domain layer - Pure Python business logic."""

from ledgerbook.domain.entities import Account, AuditEvent, JournalEntry, LedgerTransaction
from ledgerbook.domain.services import (
    IAccountRepository,
    IAuditRecorder,
    IEntrySequence,
    IJournalEntryRepository,
    ILedgerRepository,
    IUnitOfWork,
    PostingEngine,
)
from ledgerbook.domain.validation import BalanceChecker, LineItemValidator, validate_entry
from ledgerbook.domain.value_objects import (
    AccountCategory,
    EntryDraft,
    EntryStatus,
    LineItem,
    LineItemInput,
    NormalSide,
)
from ledgerbook.domain.workflow import ApprovalStateMachine, WorkflowAction
