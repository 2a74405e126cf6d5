"""
API DTOs - Data Transfer Objects for API requests/responses.

Request DTOs are deliberately permissive: missing dates, blank rows and odd
amounts reach the line-item validator, which reports them per field.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledgerbook.domain.value_objects import (
    AccountCategory,
    EntryDraft,
    EntryStatus,
    LineItemInput,
    NormalSide,
)


class LineItemCreateDTO(BaseModel):
    """DTO - One row of the journal entry form."""
    account_id: UUID | None = Field(None, description="Account from the chart of accounts")
    debit: Decimal | str | None = Field(None, description="Debit amount")
    credit: Decimal | str | None = Field(None, description="Credit amount")
    description: str | None = Field(None, description="Line memo")

    def to_input(self) -> LineItemInput:
        return LineItemInput(
            account_id=self.account_id,
            debit=self.debit,
            credit=self.credit,
            description=self.description,
        )


class JournalEntryCreateDTO(BaseModel):
    """DTO - Create or edit a journal entry."""
    entry_date: date | None = Field(None, description="Entry date")
    description: str | None = Field(None, max_length=500, description="Entry description")
    reference: str | None = Field(None, max_length=100, description="External reference")
    status: EntryStatus = Field(
        EntryStatus.DRAFT, description="Requested status: draft, pending_approval or posted"
    )
    lines: list[LineItemCreateDTO] = Field(default_factory=list, description="Line items")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "entry_date": "2024-03-01",
            "description": "Owner investment",
            "reference": "DEP-0001",
            "status": "pending_approval",
            "lines": [
                {"account_id": "5b0c6d3e-8f0a-4d6e-9a51-7d0f0e1b2c31", "debit": "1000.00"},
                {"account_id": "0a6f2c1d-4e3b-4b8a-8c3d-2f1e0d9c8b7a", "credit": "1000.00"},
            ],
        }
    })

    def to_draft(self) -> EntryDraft:
        return EntryDraft(
            entry_date=self.entry_date,
            description=self.description,
            reference=self.reference,
            lines=[line.to_input() for line in self.lines],
        )


class RejectionDTO(BaseModel):
    reason: str | None = Field(None, description="Why the entry is rejected")

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: str | None) -> str | None:
        return value.strip() if value else value


class LineItemResponseDTO(BaseModel):
    account_id: UUID
    account_number: str
    account_name: str
    debit: Decimal
    credit: Decimal
    description: str | None

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResponseDTO(BaseModel):
    """DTO - Journal entry with its line items."""
    id: UUID
    entry_number: int
    entry_date: date
    reference: str | None
    description: str
    total_amount: Decimal
    status: EntryStatus
    line_items: list[LineItemResponseDTO]
    created_by: str
    created_by_name: str | None
    created_at: datetime
    updated_at: datetime
    submitted_at: datetime | None
    approved_by: str | None
    approved_by_name: str | None
    approved_at: datetime | None
    rejected_by: str | None
    rejected_by_name: str | None
    rejected_at: datetime | None
    rejection_reason: str | None
    posted_by: str | None
    posted_by_name: str | None
    posted_at: datetime | None
    version: int

    model_config = ConfigDict(from_attributes=True)


class LedgerTransactionResponseDTO(BaseModel):
    id: int
    account_id: UUID
    account_number: str | None
    account_name: str | None
    journal_entry_id: UUID
    entry_number: int | None
    date: datetime
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    post_reference: str

    model_config = ConfigDict(from_attributes=True)


class EntryCheckDTO(BaseModel):
    """DTO - Accepted line items of a validated (unsaved) entry."""
    total_amount: Decimal
    line_items: list[LineItemResponseDTO]

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResultDTO(BaseModel):
    """DTO - Outcome of a workflow operation."""
    entry: JournalEntryResponseDTO
    downgraded: bool = False
    message: str | None = None
    transactions: list[LedgerTransactionResponseDTO] = Field(default_factory=list)


class AccountResponseDTO(BaseModel):
    """DTO - Chart-of-accounts row with running totals."""
    id: UUID
    number: str
    name: str
    category: AccountCategory
    normal_side: NormalSide
    is_active: bool
    debit: Decimal
    credit: Decimal
    balance: Decimal
    description: str | None

    model_config = ConfigDict(from_attributes=True)


class AccountLedgerDTO(BaseModel):
    account: AccountResponseDTO
    transactions: list[LedgerTransactionResponseDTO]


class ValidationIssueDTO(BaseModel):
    kind: str
    field: str
    row: int | None = None
    message: str


class ErrorResponseDTO(BaseModel):
    code: str
    detail: str
    errors: list[ValidationIssueDTO] = Field(default_factory=list)
