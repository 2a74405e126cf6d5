"""Application layer - Use cases and DTOs."""

from ledgerbook.application.journal_entries import EntryResult, JournalEntryService
