"""
Balance sheet aggregator.

Builds a point-in-time balance sheet from the journal:

1. Read every POSTED entry dated on or before the report date
   (inside one residence when asked) plus opening balances that
   are already effective.
2. Fold lines into per-account debit/credit totals and apply the
   sign rule for the account's type.
3. Roll explicitly linked children into their aggregation parent
   (consolidated receivables, consolidated payables).
4. Classify assets and liabilities as current/non-current and
   equity into capital/retained earnings/other.
5. Derive retained earnings from income and expense accounts.
6. Check Assets = Liabilities + Equity and report the outcome.

Nothing is clamped or skipped: anomalies become warnings on the
result. Nothing is cached: every call re-reads the ledger.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

import structlog

from residence_ledger.config import Settings, get_settings
from residence_ledger.models.account import Account
from residence_ledger.models.enums import AccountType, DEBIT_NORMAL_TYPES
from residence_ledger.models.journal_entry import JournalLine
from residence_ledger.schemas.balance_sheet import (
    AccountBalance,
    AccountingEquation,
    AssetSection,
    BalanceSheet,
    EquitySection,
    IncomeSummary,
    LiabilitySection,
    Ratios,
)
from residence_ledger.schemas.common import LedgerWarning, WarningCode
from residence_ledger.services import classification
from residence_ledger.services.account_catalog import AccountCatalog
from residence_ledger.services.ledger_store import LedgerStore

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
RATIO_PLACES = Decimal("0.0001")


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_as_of_date(value) -> date:
    """Accept a date or an ISO YYYY-MM-DD string; raise ValueError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValueError(
                f"Malformed as_of_date '{value}', expected YYYY-MM-DD"
            ) from None
    raise ValueError(
        f"as_of_date must be a date, got {type(value).__name__}"
    )


class _AccountTotals:
    """Running debit/credit totals for one account."""

    def __init__(self, account: Account):
        self.account = account
        self.debit = Decimal("0")
        self.credit = Decimal("0")
        self.opening = Decimal("0")

    @property
    def balance(self) -> Decimal:
        if self.account.account_type in DEBIT_NORMAL_TYPES:
            return self.opening + self.debit - self.credit
        return self.opening + self.credit - self.debit


class BalanceSheetService:
    """
    Aggregates the ledger into a BalanceSheet.

    The store and catalog are injected; the service keeps no
    state between calls, so one instance can serve concurrent
    report requests.
    """

    def __init__(
        self,
        store: LedgerStore,
        catalog: AccountCatalog,
        settings: Settings | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.settings = settings or get_settings()

    def compute_balance_sheet(
        self, as_of_date, residence_id: str | None = None
    ) -> BalanceSheet:
        """
        Build the balance sheet as of the end of as_of_date.

        Raises ValueError for a malformed date before reading
        anything.
        """
        as_of = parse_as_of_date(as_of_date)
        if residence_id is not None and not residence_id.strip():
            raise ValueError("residence_id must not be blank")

        log = logger.bind(as_of_date=as_of.isoformat(), residence_id=residence_id)
        warnings: list[LedgerWarning] = []

        accounts = {a.code: a for a in self.catalog.all_accounts()}
        company_wide = {
            code for code, account in accounts.items() if account.is_company_wide
        } | set(self.settings.COMPANY_WIDE_ACCOUNT_CODES)

        totals: dict[str, _AccountTotals] = {}

        # --- Fold posted entries ---
        entries = self.store.posted_entries(as_of, residence_id=residence_id)
        for entry in entries:
            difference = entry.total_debit - entry.total_credit
            if difference != 0:
                warnings.append(LedgerWarning(
                    code=WarningCode.UNBALANCED_ENTRY,
                    message=(
                        f"Entry {entry.id} debits exceed credits by {difference}"
                    ),
                    entry_id=entry.id,
                    amount=difference,
                ))
            for line in entry.lines:
                self._fold(line, accounts, totals, warnings)

        # Shared property accounts stay whole on a residence sheet
        if residence_id is not None and company_wide:
            for line in self.store.company_wide_lines(
                company_wide, as_of, exclude_residence_id=residence_id
            ):
                self._fold(line, accounts, totals, warnings)

        # --- Opening balances ---
        for code, account in accounts.items():
            if not account.opening_balance or account.opening_balance_date is None:
                continue
            if account.opening_balance_date > as_of:
                continue
            if residence_id is not None and code not in company_wide:
                continue
            totals.setdefault(code, _AccountTotals(account)).opening += (
                account.opening_balance
            )

        # --- Parent/child aggregation ---
        rolled_into = self._aggregation_map(accounts)
        balances: dict[str, Decimal] = {}
        children: dict[str, list[str]] = {}
        for code, running in totals.items():
            target = rolled_into.get(code, code)
            balances[target] = balances.get(target, Decimal("0")) + running.balance
            if target != code:
                children.setdefault(target, []).append(code)

        sheet = self._assemble(
            as_of, residence_id, accounts, balances, children, warnings
        )
        sheet.entries_scanned = len(entries)

        for warning in sheet.warnings:
            log.warning(
                "balance_sheet_warning",
                code=warning.code.value,
                detail=warning.message,
                entry_id=warning.entry_id,
                account_code=warning.account_code,
            )
        log.info(
            "balance_sheet_generated",
            entries_scanned=sheet.entries_scanned,
            total_assets=str(sheet.assets.total),
            total_liabilities=str(sheet.liabilities.total),
            total_equity=str(sheet.equity.total),
            balanced=sheet.accounting_equation.balanced,
        )
        return sheet

    # --- Folding ---

    def _fold(
        self,
        line: JournalLine,
        accounts: dict[str, Account],
        totals: dict[str, _AccountTotals],
        warnings: list[LedgerWarning],
    ) -> None:
        account = accounts.get(line.account_code)
        if account is None:
            # Keep the amount on the sheet under the line's own description
            account = Account(
                code=line.account_code,
                name=line.account_name,
                account_type=line.account_type,
                category=None,
                parent_id=None,
                is_company_wide=False,
                opening_balance=Decimal("0"),
            )
            accounts[line.account_code] = account
            warnings.append(LedgerWarning(
                code=WarningCode.UNKNOWN_ACCOUNT,
                message=(
                    f"Account {line.account_code} is not in the chart of "
                    f"accounts; using the line's name and type"
                ),
                account_code=line.account_code,
            ))

        running = totals.get(line.account_code)
        if running is None:
            running = totals[line.account_code] = _AccountTotals(account)
        running.debit += line.debit or Decimal("0")
        running.credit += line.credit or Decimal("0")

    def _aggregation_map(self, accounts: dict[str, Account]) -> dict[str, str]:
        """Map child code -> aggregation parent code, by explicit parent id."""
        rolled_into = {}
        for parent_code in self.settings.AGGREGATION_PARENT_CODES:
            parent = accounts.get(parent_code)
            if parent is None or parent.id is None:
                continue
            for code, account in accounts.items():
                if account.parent_id == parent.id and code != parent_code:
                    rolled_into[code] = parent_code
        return rolled_into

    # --- Assembly ---

    def _assemble(
        self,
        as_of: date,
        residence_id: str | None,
        accounts: dict[str, Account],
        balances: dict[str, Decimal],
        children: dict[str, list[str]],
        warnings: list[LedgerWarning],
    ) -> BalanceSheet:
        assets = AssetSection()
        liabilities = LiabilitySection()
        equity = EquitySection()
        income = IncomeSummary()

        for code in sorted(balances):
            account = accounts[code]
            balance = quantize(balances[code])
            account_type = account.account_type

            if account_type == AccountType.INCOME:
                income.total_income += balance
                continue
            if account_type == AccountType.EXPENSE:
                income.total_expenses += balance
                continue

            if account_type == AccountType.EQUITY:
                section, basis = classification.classify_equity(account)
            else:
                section, basis = classification.classify_term(account)

            if basis == classification.LEGACY_FALLBACK:
                warnings.append(LedgerWarning(
                    code=WarningCode.LEGACY_CLASSIFICATION,
                    message=(
                        f"Account {code} has no category; classified as "
                        f"{section} by code range/name"
                    ),
                    account_code=code,
                ))

            line = AccountBalance(
                code=code,
                name=account.name,
                account_type=account_type,
                category=account.category.value if account.category else None,
                classification_basis=basis,
                balance=balance,
                rolled_up_children=sorted(children.get(code, [])),
            )

            if account_type == AccountType.EQUITY:
                equity.accounts.append(line)
                if section == classification.CAPITAL:
                    equity.capital += balance
                elif section == classification.RETAINED_EARNINGS:
                    equity.posted_retained_earnings += balance
                else:
                    equity.other += balance
                continue

            target = assets if account_type == AccountType.ASSET else liabilities
            if section == classification.CURRENT:
                target.current.append(line)
                target.total_current += balance
            else:
                target.non_current.append(line)
                target.total_non_current += balance

        for section in (assets, liabilities):
            section.total = section.total_current + section.total_non_current

        income.net_income = income.total_income - income.total_expenses
        equity.retained_earnings = income.net_income
        equity.total = (
            equity.capital
            + equity.retained_earnings
            + equity.posted_retained_earnings
            + equity.other
        )

        equation = self._check_equation(assets, liabilities, equity, warnings)

        return BalanceSheet(
            as_of_date=as_of,
            residence_id=residence_id,
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            income_statement=income,
            ratios=self._ratios(assets, liabilities, equity),
            accounting_equation=equation,
            warnings=warnings,
        )

    def _check_equation(
        self,
        assets: AssetSection,
        liabilities: LiabilitySection,
        equity: EquitySection,
        warnings: list[LedgerWarning],
    ) -> AccountingEquation:
        """
        Compare Assets with Liabilities + Equity.

        The raw difference is always reported. With
        AUTO_CORRECT_EQUITY enabled, retained earnings absorbs the
        difference for display and the sheet is flagged for review;
        it is still reported as unbalanced.
        """
        tolerance = self.settings.BALANCE_TOLERANCE
        signed = assets.total - (liabilities.total + equity.total)
        difference = abs(signed)
        equation = AccountingEquation(difference=difference, tolerance=tolerance)

        if difference <= tolerance:
            return equation

        equation.balanced = False
        equation.requires_review = True
        equation.message = (
            f"Assets differ from Liabilities + Equity by {difference}"
        )
        warnings.append(LedgerWarning(
            code=WarningCode.EQUATION_IMBALANCE,
            message=equation.message,
            amount=signed,
        ))

        if self.settings.AUTO_CORRECT_EQUITY:
            equity.retained_earnings += signed
            equity.total += signed
            equation.correction_applied = True
            equation.correction_amount = signed
            equation.message += "; retained earnings adjusted for display"

        return equation

    @staticmethod
    def _ratios(
        assets: AssetSection,
        liabilities: LiabilitySection,
        equity: EquitySection,
    ) -> Ratios:
        ratios = Ratios(
            working_capital=assets.total_current - liabilities.total_current
        )
        if liabilities.total_current > 0:
            ratios.current_ratio = (
                assets.total_current / liabilities.total_current
            ).quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)
        if equity.total > 0:
            ratios.debt_to_equity = (
                liabilities.total / equity.total
            ).quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)
        return ratios
