"""
Main FastAPI application - Ledgerbook journal-entry service.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledgerbook.api.routers import accounts, journal_entries
from ledgerbook.application.dto.accounting_dto import ErrorResponseDTO, ValidationIssueDTO
from ledgerbook.core.logging_config import configure_logging
from ledgerbook.domain.exceptions import DurabilityError, JournalEntryError, ValidationFailed
from ledgerbook.infrastructure.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan - startup and shutdown events."""
    configure_logging()
    init_db()
    yield


app = FastAPI(
    title="Ledgerbook API",
    description="""
## Double-entry journal entries

### Features:
- **Journal entries**: draft, submit, approve or reject, post
- **Validation**: per-line checks and debit = credit balance
- **Posting**: account balances and ledger rows updated atomically
- **Audit trail**: every change recorded with before/after images

### Rules:
- Posted entries are immutable
- Only drafts can be deleted
- A change without an audit record is reverted
    """,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(journal_entries.router)
app.include_router(accounts.router)


@app.get("/")
def root():
    return {
        "name": "Ledgerbook API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "database": "connected"}


@app.exception_handler(JournalEntryError)
async def journal_entry_error_handler(request: Request, exc: JournalEntryError):
    """Map domain errors to their status code and a stable error code."""
    errors = []
    if isinstance(exc, ValidationFailed):
        errors = [
            ValidationIssueDTO(
                kind=issue.kind.value, field=issue.field, row=issue.row, message=issue.message
            )
            for issue in exc.issues
        ]
    detail = str(exc)
    if isinstance(exc, DurabilityError):
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        detail = exc.user_message
    body = ErrorResponseDTO(code=exc.code, detail=detail, errors=errors)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
