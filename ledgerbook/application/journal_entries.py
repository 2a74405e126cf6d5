"""
Application - journal-entry use cases.

Each operation is one unit of work: read, check the transition, validate,
stage writes, commit. Only after the commit is the audit event recorded; if
that fails the committed change is reverted with a compensating write and the
caller gets AuditFailure. An operation is complete only once its audit event
exists.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from ledgerbook.core.config import Settings, get_settings
from ledgerbook.core.security import Actor, AuditEventType
from ledgerbook.domain.entities import Account, JournalEntry, LedgerTransaction, utcnow
from ledgerbook.domain.exceptions import (
    AccountNotFound,
    AuditFailure,
    EntryNotFound,
    ErrorKind,
    IllegalTransition,
    ValidationFailed,
    ValidationIssue,
)
from ledgerbook.domain.services import (
    IAuditRecorder,
    IUnitOfWork,
    PostingEngine,
    PostingResult,
)
from ledgerbook.domain.validation import ValidatedEntry, validate_entry
from ledgerbook.domain.value_objects import EntryDraft, EntryStatus, LineItemInput
from ledgerbook.domain.workflow import ApprovalStateMachine, Transition, WorkflowAction

logger = logging.getLogger(__name__)

DOWNGRADE_NOTICE = (
    "Only Managers and Administrators can post journal entries directly. "
    "Your entry has been submitted for approval."
)

ACTION_FOR_STATUS: dict[EntryStatus, WorkflowAction] = {
    EntryStatus.DRAFT: WorkflowAction.SAVE_DRAFT,
    EntryStatus.PENDING_APPROVAL: WorkflowAction.SUBMIT,
    EntryStatus.POSTED: WorkflowAction.POST,
}

_VERB = {
    EntryStatus.DRAFT: "Saved",
    EntryStatus.PENDING_APPROVAL: "Submitted for approval",
    EntryStatus.POSTED: "Posted",
}


@dataclass
class EntryResult:
    """Outcome of a workflow operation."""
    entry: JournalEntry
    downgraded: bool = False
    notice: str | None = None
    transactions: list[LedgerTransaction] = field(default_factory=list)


def draft_from_entry(entry: JournalEntry) -> EntryDraft:
    """Rebuild the form input of a stored entry so it can be validated again."""
    return EntryDraft(
        entry_date=entry.entry_date,
        description=entry.description,
        reference=entry.reference,
        lines=[
            LineItemInput(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            )
            for line in entry.line_items
        ],
    )


class JournalEntryService:

    def __init__(
        self,
        uow_factory: Callable[[], IUnitOfWork],
        audit: IAuditRecorder,
        settings: Settings | None = None,
        state_machine: ApprovalStateMachine | None = None,
        posting_engine: PostingEngine | None = None,
    ):
        self.uow_factory = uow_factory
        self.audit = audit
        self.settings = settings or get_settings()
        self.state_machine = state_machine or ApprovalStateMachine()
        self.posting_engine = posting_engine or PostingEngine()

    # -- validation -------------------------------------------------------

    def _validate(self, uow: IUnitOfWork, draft: EntryDraft) -> ValidatedEntry:
        account_ids = [line.account_id for line in draft.lines if line.account_id is not None]
        return validate_entry(
            draft,
            uow.accounts.get_many(account_ids),
            min_line_amount=self.settings.min_line_amount,
            tolerance=self.settings.balance_tolerance,
            reject_duplicate_accounts=self.settings.reject_duplicate_accounts,
        )

    def validate_draft(self, draft: EntryDraft) -> ValidatedEntry:
        """Run line-item and balance checks without storing anything."""
        with self.uow_factory() as uow:
            return self._validate(uow, draft)

    # -- create / edit ----------------------------------------------------

    def create_entry(
        self,
        draft: EntryDraft,
        actor: Actor,
        requested: EntryStatus = EntryStatus.DRAFT,
    ) -> EntryResult:
        transition = self.state_machine.resolve(None, self._action_for(None, requested), actor)

        with self.uow_factory() as uow:
            validated = self._validate(uow, draft)
            now = utcnow()
            entry = JournalEntry(
                entry_number=uow.sequences.next_entry_number(),
                entry_date=validated.entry_date,
                reference=validated.reference,
                description=validated.description,
                line_items=validated.line_items,
                total_amount=validated.total_amount,
                status=transition.target,
                created_by=actor.user_id,
                created_by_name=actor.name,
                created_at=now,
                updated_at=now,
            )
            if transition.target == EntryStatus.PENDING_APPROVAL:
                entry = replace(entry, submitted_at=now)
            elif transition.is_posting:
                entry = replace(
                    entry, posted_by=actor.user_id, posted_by_name=actor.name, posted_at=now
                )
            entry = uow.entries.add(entry)
            posting = self.posting_engine.post(uow, entry) if transition.is_posting else None
            uow.commit()

        before, after = None, entry.audit_image()
        if posting is not None:
            before, after = self._with_balances(before, after, posting)
        self._record_or_compensate(
            AuditEventType.JOURNAL_ENTRY,
            before,
            after,
            actor,
            entry,
            f"{_VERB[entry.status]} journal entry #{entry.entry_number}",
            compensate=lambda: self._undo_create(entry, reverse_posting=posting is not None),
        )
        return self._finish(entry, transition, posting, actor)

    def update_entry(
        self,
        entry_id: uuid.UUID,
        draft: EntryDraft,
        actor: Actor,
        requested: EntryStatus = EntryStatus.DRAFT,
    ) -> EntryResult:
        """
        Edit a draft (save again, submit, or post) or edit and resubmit a
        rejected entry. The full validation runs again on the edited lines.
        The reference stays as first stored.
        """
        with self.uow_factory() as uow:
            current = self._get(uow, entry_id)
            transition = self.state_machine.resolve_edit(
                current.status,
                self._action_for(current.status, requested),
                actor,
                current.created_by,
            )
            validated = self._validate(uow, draft)
            revised = current.revise(
                entry_date=validated.entry_date,
                description=validated.description,
                line_items=validated.line_items,
                total_amount=validated.total_amount,
            )
            if transition.target == EntryStatus.PENDING_APPROVAL:
                revised = revised.submit()
            elif transition.is_posting:
                revised = revised.mark_posted(actor.user_id, actor.name)
            else:
                revised = revised.save_as_draft()
            updated = uow.entries.update(revised, expected_version=current.version)
            posting = self.posting_engine.post(uow, updated) if transition.is_posting else None
            uow.commit()

        before, after = current.audit_image(), updated.audit_image()
        if posting is not None:
            before, after = self._with_balances(before, after, posting)
        self._record_or_compensate(
            AuditEventType.JOURNAL_ENTRY,
            before,
            after,
            actor,
            updated,
            f"{_VERB[updated.status]} journal entry #{updated.entry_number}",
            compensate=lambda: self._restore(current, updated, reverse_posting=posting is not None),
        )
        return self._finish(updated, transition, posting, actor)

    def submit_entry(self, entry_id: uuid.UUID, actor: Actor) -> EntryResult:
        """Submit a stored draft or rejected entry unchanged."""
        current = self.get_entry(entry_id)
        return self.update_entry(
            entry_id, draft_from_entry(current), actor, EntryStatus.PENDING_APPROVAL
        )

    # -- approval ---------------------------------------------------------

    def approve_entry(self, entry_id: uuid.UUID, actor: Actor) -> EntryResult:
        with self.uow_factory() as uow:
            current = self._get(uow, entry_id)
            transition = self.state_machine.resolve(
                current.status, WorkflowAction.APPROVE, actor, current.created_by
            )
            updated = uow.entries.update(
                current.approve(actor.user_id, actor.name), expected_version=current.version
            )
            uow.commit()

        self._record_or_compensate(
            AuditEventType.JOURNAL_ENTRY_APPROVED,
            self._summary(current),
            {
                "status": updated.status.value,
                "approvedBy": actor.username,
                "approvedAt": updated.approved_at.isoformat(),
            },
            actor,
            updated,
            f"Approved journal entry #{updated.entry_number}",
            compensate=lambda: self._restore(current, updated),
        )
        return self._finish(updated, transition, None, actor)

    def reject_entry(self, entry_id: uuid.UUID, actor: Actor, reason: str | None) -> EntryResult:
        with self.uow_factory() as uow:
            current = self._get(uow, entry_id)
            transition = self.state_machine.resolve(
                current.status, WorkflowAction.REJECT, actor, current.created_by
            )
            reason = (reason or "").strip()
            if not reason:
                raise ValidationFailed(
                    [ValidationIssue(ErrorKind.MISSING_REJECTION_REASON, field="reason")]
                )
            updated = uow.entries.update(
                current.reject(actor.user_id, actor.name, reason),
                expected_version=current.version,
            )
            uow.commit()

        self._record_or_compensate(
            AuditEventType.JOURNAL_ENTRY_REJECTED,
            self._summary(current),
            {
                "status": updated.status.value,
                "rejectedBy": actor.username,
                "rejectedAt": updated.rejected_at.isoformat(),
                "rejectionReason": reason,
            },
            actor,
            updated,
            f"Rejected journal entry #{updated.entry_number}",
            compensate=lambda: self._restore(current, updated),
        )
        return self._finish(updated, transition, None, actor)

    # -- posting ----------------------------------------------------------

    def post_entry(self, entry_id: uuid.UUID, actor: Actor) -> EntryResult:
        """
        Post an approved entry. The poster of record is always ``actor``.
        A draft goes through the edit path so it is validated again first.
        """
        with self.uow_factory() as uow:
            current = self._get(uow, entry_id)
            if current.status == EntryStatus.DRAFT:
                stored = current
            else:
                stored = None
                transition = self.state_machine.resolve(
                    current.status, WorkflowAction.POST, actor, current.created_by
                )
                updated = uow.entries.update(
                    current.mark_posted(actor.user_id, actor.name),
                    expected_version=current.version,
                )
                posting = self.posting_engine.post(uow, updated)
                uow.commit()

        if stored is not None:
            return self.update_entry(entry_id, draft_from_entry(stored), actor, EntryStatus.POSTED)

        before, after = self._with_balances(
            self._summary(current),
            {
                "status": updated.status.value,
                "postedBy": actor.username,
                "postedAt": updated.posted_at.isoformat(),
                "lineItemsPosted": len(updated.line_items),
            },
            posting,
        )
        self._record_or_compensate(
            AuditEventType.JOURNAL_ENTRY_POSTED,
            before,
            after,
            actor,
            updated,
            f"Posted journal entry #{updated.entry_number} to ledger",
            compensate=lambda: self._restore(current, updated, reverse_posting=True),
        )
        return self._finish(updated, transition, posting, actor)

    # -- deletion ---------------------------------------------------------

    def delete_entry(self, entry_id: uuid.UUID, actor: Actor) -> None:
        with self.uow_factory() as uow:
            current = self._get(uow, entry_id)
            self.state_machine.resolve(
                current.status, WorkflowAction.DELETE, actor, current.created_by
            )
            uow.entries.delete(current.id, expected_version=current.version)
            uow.commit()

        self._record_or_compensate(
            AuditEventType.JOURNAL_ENTRY_DELETED,
            current.audit_image(),
            None,
            actor,
            current,
            f"Deleted draft journal entry #{current.entry_number}",
            compensate=lambda: self._undo_delete(current),
        )
        logger.info(
            "Draft journal entry #%s deleted by %s", current.entry_number, actor.username,
            extra={"entry_id": current.id, "user_id": actor.user_id},
        )

    # -- queries ----------------------------------------------------------

    def get_entry(self, entry_id: uuid.UUID) -> JournalEntry:
        with self.uow_factory() as uow:
            return self._get(uow, entry_id)

    def list_entries(
        self,
        status: EntryStatus | None = None,
        search: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[JournalEntry]:
        with self.uow_factory() as uow:
            return uow.entries.list(status, search, start_date, end_date, skip, limit)

    def list_accounts(self, active: bool | None = None) -> list[Account]:
        with self.uow_factory() as uow:
            return uow.accounts.list(active)

    def account_ledger(self, account_id: uuid.UUID) -> tuple[Account, list[LedgerTransaction]]:
        with self.uow_factory() as uow:
            account = uow.accounts.get(account_id)
            if account is None:
                raise AccountNotFound(account_id)
            return account, uow.ledger.list_for_account(account_id)

    def entry_transactions(self, entry_id: uuid.UUID) -> list[LedgerTransaction]:
        with self.uow_factory() as uow:
            return uow.ledger.list_for_entry(entry_id)

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _get(uow: IUnitOfWork, entry_id: uuid.UUID) -> JournalEntry:
        entry = uow.entries.get(entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    @staticmethod
    def _action_for(status: EntryStatus | None, requested: EntryStatus) -> WorkflowAction:
        action = ACTION_FOR_STATUS.get(requested)
        if action is None:
            raise IllegalTransition(
                status.value if status else None,
                f"move to {requested.value}",
                "only draft, pending_approval or posted may be requested",
            )
        return action

    @staticmethod
    def _summary(entry: JournalEntry) -> dict[str, Any]:
        return {
            "status": entry.status.value,
            "description": entry.description,
            "totalAmount": str(entry.total_amount),
        }

    @staticmethod
    def _with_balances(before, after, posting: PostingResult):
        balances_before, balances_after = posting.balance_images()
        before = dict(before or {}, accounts=balances_before)
        after = dict(after, accounts=balances_after)
        return before, after

    def _finish(
        self,
        entry: JournalEntry,
        transition: Transition,
        posting: PostingResult | None,
        actor: Actor,
    ) -> EntryResult:
        logger.info(
            "Journal entry #%s %s -> %s by %s",
            entry.entry_number,
            transition.source.value if transition.source else "new",
            entry.status.value,
            actor.username,
            extra={"entry_id": entry.id, "entry_number": entry.entry_number, "user_id": actor.user_id},
        )
        return EntryResult(
            entry=entry,
            downgraded=transition.downgraded,
            notice=DOWNGRADE_NOTICE if transition.downgraded else None,
            transactions=posting.transactions if posting else [],
        )

    def _record_or_compensate(
        self,
        event_type: AuditEventType,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        actor: Actor,
        entry: JournalEntry,
        description: str,
        compensate: Callable[[], None],
    ) -> None:
        try:
            self.audit.record(
                event_type.value,
                before,
                after,
                actor,
                description=description,
                account_name=entry.affected_accounts,
            )
        except Exception as exc:
            logger.error(
                "Audit event %s for entry #%s failed; reverting the change",
                event_type.value, entry.entry_number,
                extra={"entry_id": entry.id, "event_type": event_type.value},
            )
            try:
                compensate()
            except Exception:
                logger.critical(
                    "Could not revert entry #%s after audit failure; manual reconciliation needed",
                    entry.entry_number,
                    exc_info=True,
                    extra={"entry_id": entry.id, "event_type": event_type.value},
                )
                raise AuditFailure(
                    "Audit trail could not be written and the change could not be reverted",
                    compensated=False,
                ) from exc
            raise AuditFailure("Audit trail could not be written; the change was reverted") from exc

    def _undo_create(self, entry: JournalEntry, reverse_posting: bool = False) -> None:
        with self.uow_factory() as uow:
            if reverse_posting:
                self.posting_engine.reverse(uow, entry)
            uow.entries.delete(entry.id, expected_version=entry.version)
            uow.commit()

    def _restore(
        self,
        before: JournalEntry,
        after: JournalEntry,
        reverse_posting: bool = False,
    ) -> None:
        with self.uow_factory() as uow:
            if reverse_posting:
                self.posting_engine.reverse(uow, after)
            uow.entries.update(replace(before, updated_at=utcnow()), expected_version=after.version)
            uow.commit()

    def _undo_delete(self, entry: JournalEntry) -> None:
        with self.uow_factory() as uow:
            uow.entries.add(entry)
            uow.commit()
