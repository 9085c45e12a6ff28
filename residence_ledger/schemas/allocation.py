"""
Schemas for outstanding balances and payment allocation.
"""

import enum
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from residence_ledger.models.enums import AllocationType
from residence_ledger.schemas.common import LedgerWarning


class OutstandingObligation(BaseModel):
    """
    What a debtor still owes on one accrued receivable line.

    outstanding = max(0, original_amount - settled_amount).
    """
    debtor_id: str
    period_key: str
    original_amount: Decimal
    settled_amount: Decimal
    outstanding: Decimal
    accrual_entry_id: int
    accrual_line_id: int
    account_code: str
    charge_type: str | None = None
    accrual_date: date


class ResolvedBalances(BaseModel):
    debtor_id: str
    obligations: list[OutstandingObligation] = Field(default_factory=list)
    warnings: list[LedgerWarning] = Field(default_factory=list)

    @property
    def total_outstanding(self) -> Decimal:
        return sum(
            (o.outstanding for o in self.obligations), Decimal("0")
        )


class PeriodBalance(BaseModel):
    period_key: str
    outstanding: Decimal


class DebtorBalanceSummary(BaseModel):
    """Per-debtor view of what is owed, by period."""
    debtor_id: str
    total_outstanding: Decimal
    periods_with_balance: int
    oldest_balance_date: date | None = None
    by_period: list[PeriodBalance] = Field(default_factory=list)
    obligations: list[OutstandingObligation] = Field(default_factory=list)
    warnings: list[LedgerWarning] = Field(default_factory=list)


class AllocationStatus(str, enum.Enum):
    ALLOCATED = "ALLOCATED"
    NO_OUTSTANDING_BALANCE = "NO_OUTSTANDING_BALANCE"
    OVER_ALLOCATION = "OVER_ALLOCATION"


class AllocationLine(BaseModel):
    """One slice of a payment and the entry it produced."""
    allocation_type: AllocationType
    period_key: str | None = None
    accrual_entry_id: int | None = None
    accrual_line_id: int | None = None
    amount_allocated: Decimal
    original_outstanding: Decimal | None = None
    new_outstanding: Decimal | None = None
    journal_entry_id: int | None = None


class AllocationRequest(BaseModel):
    """HTTP request body for allocating a payment."""
    amount: Decimal = Field(gt=0)
    payment_date: date
    declared_period: str | None = Field(
        default=None, pattern=r"^\d{4}-\d{2}$"
    )
    payment_id: str | None = Field(default=None, max_length=64)
    cash_account_code: str | None = Field(default=None, max_length=64)
    residence_id: str | None = Field(default=None, max_length=64)


class AllocationResult(BaseModel):
    allocation_id: str
    debtor_id: str
    payment_id: str | None = None
    payment_amount: Decimal
    payment_date: date
    status: AllocationStatus
    declared_period: str | None = None
    effective_period: str | None = None
    period_overridden: bool = False
    lines: list[AllocationLine] = Field(default_factory=list)
    total_allocated: Decimal = Decimal("0")
    advance_payment_amount: Decimal = Decimal("0")
    remaining_outstanding: Decimal = Decimal("0")
    periods_covered: int = 0
    oldest_period_settled: str | None = None
    newest_period_settled: str | None = None
    failed_obligation: OutstandingObligation | None = None
    warnings: list[LedgerWarning] = Field(default_factory=list)

    def allocated_to(self, accrual_line_id: int) -> Decimal:
        """Amount of this payment settled against one accrual line."""
        return sum(
            (
                line.amount_allocated for line in self.lines
                if line.allocation_type == AllocationType.SETTLEMENT
                and line.accrual_line_id == accrual_line_id
            ),
            Decimal("0"),
        )
