"""
API Routers - chart of accounts and account ledgers.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from ledgerbook.api.dependencies import get_journal_service, require_ledger_view
from ledgerbook.application.dto.accounting_dto import (
    AccountLedgerDTO,
    AccountResponseDTO,
    LedgerTransactionResponseDTO,
)
from ledgerbook.application.journal_entries import JournalEntryService
from ledgerbook.core.security import Actor

router = APIRouter(prefix="/api/v1", tags=["Accounts"])


@router.get("/accounts", response_model=list[AccountResponseDTO])
def list_accounts(
    active: bool | None = None,
    actor: Actor = Depends(require_ledger_view),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Chart of accounts ordered by account number."""
    return [AccountResponseDTO.model_validate(account) for account in service.list_accounts(active)]


@router.get("/accounts/{account_id}/ledger", response_model=AccountLedgerDTO)
def get_account_ledger(
    account_id: UUID,
    actor: Actor = Depends(require_ledger_view),
    service: JournalEntryService = Depends(get_journal_service),
):
    """Ledger rows for one account in posting order, with running balance."""
    account, transactions = service.account_ledger(account_id)
    return AccountLedgerDTO(
        account=AccountResponseDTO.model_validate(account),
        transactions=[LedgerTransactionResponseDTO.model_validate(txn) for txn in transactions],
    )
