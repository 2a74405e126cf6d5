"""
Domain Validation - line-item rules and the debit/credit balance check.

Both checks are pure: they read the account snapshot they are given and never
mutate anything, so re-running them on the same input gives the same verdict.
"""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .entities import Account
from .exceptions import ErrorKind, ValidationFailed, ValidationIssue
from .value_objects import (
    CENT,
    MAX_AMOUNT,
    ZERO,
    EntryDraft,
    LineItem,
    quantize_amount,
    to_amount,
)


@dataclass
class LineValidationResult:
    line_items: list[LineItem] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class BalanceResult:
    total_debits: Decimal
    total_credits: Decimal
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def ok(self) -> bool:
        return not self.issues

    @property
    def total_amount(self) -> Decimal:
        return self.total_debits


@dataclass(frozen=True)
class ValidatedEntry:
    """Header fields plus the accepted, debit-first line items."""
    entry_date: date
    description: str
    reference: str | None
    line_items: list[LineItem]
    total_amount: Decimal


def sort_debits_first(line_items: list[LineItem]) -> list[LineItem]:
    # sorted() is stable, so order within each group is preserved
    return sorted(line_items, key=lambda line: 0 if line.is_debit else 1)


class LineItemValidator:
    """
    Checks a proposed entry for structural correctness.

    All rules run independently so every problem is reported at once; an entry
    is accepted only when no rule fires.
    """

    def __init__(
        self,
        accounts: Mapping[uuid.UUID, Account],
        min_line_amount: Decimal = CENT,
        reject_duplicate_accounts: bool = False,
    ):
        self.accounts = accounts
        self.min_line_amount = min_line_amount
        self.reject_duplicate_accounts = reject_duplicate_accounts

    def check(self, draft: EntryDraft) -> LineValidationResult:
        result = LineValidationResult()

        if draft.entry_date is None:
            result.issues.append(ValidationIssue(ErrorKind.MISSING_DATE, field="entry_date"))
        if not (draft.description or "").strip():
            result.issues.append(
                ValidationIssue(ErrorKind.MISSING_DESCRIPTION, field="description")
            )

        accepted: list[LineItem] = []
        seen_accounts: set[uuid.UUID] = set()
        filled_rows = 0

        for row_number, row in enumerate(draft.lines, start=1):
            if row.is_blank:
                continue

            row_issues = self._check_row(row_number, row, seen_accounts)
            debit = to_amount(row.debit)
            credit = to_amount(row.credit)
            if row.account_id is not None:
                seen_accounts.add(row.account_id)
                if debit != 0 or credit != 0:
                    filled_rows += 1

            if row_issues:
                result.issues.extend(row_issues)
                continue

            account = self.accounts[row.account_id]
            accepted.append(
                LineItem(
                    account_id=account.id,
                    account_number=account.number,
                    account_name=account.name,
                    debit=quantize_amount(debit) if debit > 0 else ZERO,
                    credit=quantize_amount(credit) if credit > 0 else ZERO,
                    description=(row.description or "").strip() or None,
                )
            )

        if filled_rows < 2:
            result.issues.append(ValidationIssue(ErrorKind.INSUFFICIENT_LINES, field="lines"))

        if result.ok:
            result.line_items = sort_debits_first(accepted)
        return result

    def _check_row(self, row_number, row, seen_accounts) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        debit = to_amount(row.debit)
        credit = to_amount(row.credit)
        has_amount = debit != 0 or credit != 0

        def issue(kind: ErrorKind, field_name: str, **params) -> None:
            issues.append(
                ValidationIssue(
                    kind,
                    field=f"lines[{row_number}].{field_name}",
                    row=row_number,
                    params=params,
                )
            )

        if row.account_id is None and has_amount:
            issue(ErrorKind.MISSING_ACCOUNT, "account_id")
        if row.account_id is not None and not has_amount:
            issue(ErrorKind.MISSING_AMOUNT, "amount")
        if debit > 0 and credit > 0:
            issue(ErrorKind.BOTH_DEBIT_AND_CREDIT, "amount")
        if (
            debit < 0
            or credit < 0
            or 0 < debit < self.min_line_amount
            or 0 < credit < self.min_line_amount
            or debit > MAX_AMOUNT
            or credit > MAX_AMOUNT
        ):
            issue(ErrorKind.INVALID_AMOUNT, "amount")

        if row.account_id is not None:
            account = self.accounts.get(row.account_id)
            if account is None:
                issue(ErrorKind.UNKNOWN_ACCOUNT, "account_id")
            elif not account.is_active:
                issue(ErrorKind.INACTIVE_ACCOUNT, "account_id", account_name=account.name)
            elif self.reject_duplicate_accounts and row.account_id in seen_accounts:
                issue(ErrorKind.DUPLICATE_ACCOUNT, "account_id", account_name=account.name)

        return issues

    def validate(self, draft: EntryDraft) -> list[LineItem]:
        result = self.check(draft)
        if not result.ok:
            raise ValidationFailed(result.issues)
        return result.line_items


class BalanceChecker:
    """Enforces total debits == total credits for a single entry."""

    def __init__(self, tolerance: Decimal = CENT):
        self.tolerance = tolerance

    def check(self, line_items: list[LineItem]) -> BalanceResult:
        total_debits = sum((line.debit for line in line_items), ZERO)
        total_credits = sum((line.credit for line in line_items), ZERO)
        difference = total_debits - total_credits
        issues: list[ValidationIssue] = []

        if abs(difference) > self.tolerance:
            issues.append(
                ValidationIssue(
                    ErrorKind.UNBALANCED,
                    field="lines",
                    params={
                        "difference": f"${abs(difference):,.2f}",
                        "signed_difference": difference,
                    },
                )
            )
        if total_debits == 0:
            issues.append(ValidationIssue(ErrorKind.ZERO_TOTAL, field="lines"))

        return BalanceResult(total_debits, total_credits, tuple(issues))

    def validate(self, line_items: list[LineItem]) -> Decimal:
        result = self.check(line_items)
        if not result.ok:
            raise ValidationFailed(list(result.issues))
        return result.total_amount


def validate_entry(
    draft: EntryDraft,
    accounts: Mapping[uuid.UUID, Account],
    min_line_amount: Decimal = CENT,
    tolerance: Decimal = CENT,
    reject_duplicate_accounts: bool = False,
) -> ValidatedEntry:
    """Run the line-item validator, then the balance checker on its output."""
    validator = LineItemValidator(
        accounts,
        min_line_amount=min_line_amount,
        reject_duplicate_accounts=reject_duplicate_accounts,
    )
    line_items = validator.validate(draft)
    total_amount = BalanceChecker(tolerance).validate(line_items)
    return ValidatedEntry(
        entry_date=draft.entry_date,
        description=draft.description.strip(),
        reference=(draft.reference or "").strip() or None,
        line_items=line_items,
        total_amount=total_amount,
    )
