"""
Balance sheet value objects.

Everything here is derived: the aggregator rebuilds it from the
ledger on every call and nothing is persisted. There is no
generation timestamp so two runs over an unchanged ledger
produce identical objects.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from residence_ledger.models.enums import AccountType
from residence_ledger.schemas.common import LedgerWarning

ZERO = Decimal("0.00")


class AccountBalance(BaseModel):
    """One account's line on the balance sheet."""
    code: str
    name: str
    account_type: AccountType
    category: str | None = None
    classification_basis: str
    balance: Decimal
    rolled_up_children: list[str] = Field(default_factory=list)


class AssetSection(BaseModel):
    current: list[AccountBalance] = Field(default_factory=list)
    non_current: list[AccountBalance] = Field(default_factory=list)
    total_current: Decimal = ZERO
    total_non_current: Decimal = ZERO
    total: Decimal = ZERO


class LiabilitySection(BaseModel):
    current: list[AccountBalance] = Field(default_factory=list)
    non_current: list[AccountBalance] = Field(default_factory=list)
    total_current: Decimal = ZERO
    total_non_current: Decimal = ZERO
    total: Decimal = ZERO


class EquitySection(BaseModel):
    """
    Equity buckets.

    retained_earnings is always derived from income and expense
    accounts; posted_retained_earnings holds balances of equity
    accounts classified as retained earnings (closing entries).
    """
    capital: Decimal = ZERO
    retained_earnings: Decimal = ZERO
    posted_retained_earnings: Decimal = ZERO
    other: Decimal = ZERO
    total: Decimal = ZERO
    accounts: list[AccountBalance] = Field(default_factory=list)


class IncomeSummary(BaseModel):
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net_income: Decimal = ZERO


class Ratios(BaseModel):
    """current_ratio and debt_to_equity are None when undefined."""
    working_capital: Decimal = ZERO
    current_ratio: Decimal | None = None
    debt_to_equity: Decimal | None = None


class AccountingEquation(BaseModel):
    """Outcome of the Assets = Liabilities + Equity check."""
    balanced: bool = True
    difference: Decimal = ZERO
    tolerance: Decimal = Decimal("0.01")
    correction_applied: bool = False
    correction_amount: Decimal = ZERO
    requires_review: bool = False
    message: str = "Assets = Liabilities + Equity"


class BalanceSheet(BaseModel):
    as_of_date: date
    residence_id: str | None = None
    assets: AssetSection = Field(default_factory=AssetSection)
    liabilities: LiabilitySection = Field(default_factory=LiabilitySection)
    equity: EquitySection = Field(default_factory=EquitySection)
    income_statement: IncomeSummary = Field(default_factory=IncomeSummary)
    ratios: Ratios = Field(default_factory=Ratios)
    accounting_equation: AccountingEquation = Field(
        default_factory=AccountingEquation
    )
    warnings: list[LedgerWarning] = Field(default_factory=list)
    entries_scanned: int = 0

    @classmethod
    def empty(cls, as_of_date: date, residence_id: str | None = None):
        """Zeroed placeholder used when a report period cannot be built."""
        return cls(as_of_date=as_of_date, residence_id=residence_id)


class MonthlyBalanceSheet(BaseModel):
    month: int
    month_name: str
    period_end: date
    status: str
    error: str | None = None
    balance_sheet: BalanceSheet


class AnnualSummary(BaseModel):
    """Arithmetic means of the twelve month-end figures."""
    average_total_assets: Decimal = ZERO
    average_total_liabilities: Decimal = ZERO
    average_total_equity: Decimal = ZERO
    average_current_assets: Decimal = ZERO
    average_non_current_assets: Decimal = ZERO
    average_current_liabilities: Decimal = ZERO
    average_non_current_liabilities: Decimal = ZERO
    months_failed: int = 0


class AnnualBalanceSheet(BaseModel):
    year: int
    residence_id: str | None = None
    monthly: list[MonthlyBalanceSheet]
    annual_summary: AnnualSummary
