"""
API Routers - journal entry lifecycle endpoints.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ledgerbook.api.dependencies import (
    get_current_actor,
    get_journal_service,
    require_ledger_view,
)
from ledgerbook.application.dto.accounting_dto import (
    EntryCheckDTO,
    JournalEntryCreateDTO,
    JournalEntryResponseDTO,
    JournalEntryResultDTO,
    LedgerTransactionResponseDTO,
    RejectionDTO,
)
from ledgerbook.application.journal_entries import EntryResult, JournalEntryService
from ledgerbook.core.security import Actor
from ledgerbook.domain.value_objects import EntryStatus

router = APIRouter(prefix="/api/v1", tags=["Journal entries"])


def to_result_dto(result: EntryResult) -> JournalEntryResultDTO:
    return JournalEntryResultDTO(
        entry=JournalEntryResponseDTO.model_validate(result.entry),
        downgraded=result.downgraded,
        message=result.notice,
        transactions=[
            LedgerTransactionResponseDTO.model_validate(txn) for txn in result.transactions
        ],
    )


@router.post(
    "/journal-entries",
    response_model=JournalEntryResultDTO,
    status_code=status.HTTP_201_CREATED,
)
def create_journal_entry(
    dto: JournalEntryCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    """
    Create a journal entry as a draft, submit it for approval, or post it.

    - Line items are validated and must balance
    - A post request from a role without posting rights is submitted instead
    """
    return to_result_dto(service.create_entry(dto.to_draft(), actor, dto.status))


@router.put("/journal-entries/{entry_id}", response_model=JournalEntryResultDTO)
def update_journal_entry(
    entry_id: UUID,
    dto: JournalEntryCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Edit a draft, or edit and resubmit a rejected entry."""
    return to_result_dto(service.update_entry(entry_id, dto.to_draft(), actor, dto.status))


@router.post("/journal-entries/{entry_id}/submit", response_model=JournalEntryResultDTO)
def submit_journal_entry(
    entry_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    return to_result_dto(service.submit_entry(entry_id, actor))


@router.post("/journal-entries/{entry_id}/approve", response_model=JournalEntryResultDTO)
def approve_journal_entry(
    entry_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    return to_result_dto(service.approve_entry(entry_id, actor))


@router.post("/journal-entries/{entry_id}/reject", response_model=JournalEntryResultDTO)
def reject_journal_entry(
    entry_id: UUID,
    dto: RejectionDTO,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    return to_result_dto(service.reject_entry(entry_id, actor, dto.reason))


@router.post("/journal-entries/{entry_id}/post", response_model=JournalEntryResultDTO)
def post_journal_entry(
    entry_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Post an approved entry (or a draft) to the ledger."""
    return to_result_dto(service.post_entry(entry_id, actor))


@router.delete("/journal-entries/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_journal_entry(
    entry_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Delete a draft. Only drafts can be deleted."""
    service.delete_entry(entry_id, actor)


@router.get("/journal-entries", response_model=list[JournalEntryResponseDTO])
def list_journal_entries(
    status_filter: EntryStatus | None = Query(None, alias="status"),
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    skip: int = 0,
    limit: int = 100,
    actor: Actor = Depends(require_ledger_view),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Journal entries, newest first."""
    entries = service.list_entries(status_filter, search, start_date, end_date, skip, limit)
    return [JournalEntryResponseDTO.model_validate(entry) for entry in entries]


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryResponseDTO)
def get_journal_entry(
    entry_id: UUID,
    actor: Actor = Depends(require_ledger_view),
    service: JournalEntryService = Depends(get_journal_service),
):
    return JournalEntryResponseDTO.model_validate(service.get_entry(entry_id))


@router.get(
    "/journal-entries/{entry_id}/transactions",
    response_model=list[LedgerTransactionResponseDTO],
)
def list_entry_transactions(
    entry_id: UUID,
    actor: Actor = Depends(require_ledger_view),
    service: JournalEntryService = Depends(get_journal_service),
):
    service.get_entry(entry_id)
    return [
        LedgerTransactionResponseDTO.model_validate(txn)
        for txn in service.entry_transactions(entry_id)
    ]


@router.post("/journal-entries/validate", response_model=EntryCheckDTO)
def validate_journal_entry(
    dto: JournalEntryCreateDTO,
    actor: Actor = Depends(get_current_actor),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Run line-item and balance checks without saving anything."""
    return EntryCheckDTO.model_validate(service.validate_draft(dto.to_draft()))
