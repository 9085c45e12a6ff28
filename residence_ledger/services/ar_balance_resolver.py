"""
AR balance resolver.

Works out what a debtor still owes, per accrued charge, from the
journal alone:

- Accrual entries debiting the debtor's receivable account set
  the amount owed, one obligation per receivable line, in the
  period named by the accrual's "period" tag (or its date).
- Entries crediting the receivable reduce the obligation they are
  tagged against (accrual line id, then accrual entry id, then
  period). A payment made in March for January rent reduces
  January, never March. A settlement naming an accrual that has
  since been voided stays unattributed.
- Deposits are held as liabilities and never count as receivables,
  even when posted through the receivable account.
"""

from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy.orm import Session

from residence_ledger.models.enums import EntrySource
from residence_ledger.models.journal_entry import JournalEntry, JournalLine
from residence_ledger.schemas.allocation import (
    DebtorBalanceSummary,
    OutstandingObligation,
    PeriodBalance,
    ResolvedBalances,
)
from residence_ledger.schemas.common import LedgerWarning, WarningCode
from residence_ledger.services.account_catalog import AccountCatalog
from residence_ledger.services.errors import UnknownDebtorError
from residence_ledger.services.ledger_store import LedgerStore

logger = structlog.get_logger(__name__)

DEPOSIT_CHARGE_TYPE = "deposit"


def period_key(value: date) -> str:
    """Month key in YYYY-MM form."""
    return f"{value.year:04d}-{value.month:02d}"


def validate_debtor_id(debtor_id) -> str:
    if not isinstance(debtor_id, str) or not debtor_id.strip():
        raise ValueError("debtor_id is required")
    return debtor_id.strip()


def is_deposit(entry: JournalEntry) -> bool:
    metadata = entry.entry_metadata or {}
    return (
        entry.source == EntrySource.DEPOSIT
        or metadata.get("charge_type") == DEPOSIT_CHARGE_TYPE
    )


class _Obligation:
    """Owed/settled running state for one accrued receivable line."""

    def __init__(self, entry: JournalEntry, line: JournalLine, period: str):
        self.entry = entry
        self.line = line
        self.period = period
        self.owed = line.debit
        self.settled = Decimal("0")

    @property
    def room(self) -> Decimal:
        return max(self.owed - self.settled, Decimal("0"))

    def sort_key(self):
        return (self.entry.entry_date, self.entry.id, self.line.line_no)


class ARBalanceResolver:

    def __init__(self, store: LedgerStore, catalog: AccountCatalog):
        self.store = store
        self.catalog = catalog

    def get_outstanding_balances(self, debtor_id: str) -> list[OutstandingObligation]:
        """Outstanding obligations for a debtor, oldest accrual first."""
        return self.resolve(debtor_id).obligations

    def resolve(
        self, debtor_id: str, session: Session | None = None
    ) -> ResolvedBalances:
        """
        Outstanding obligations plus any anomalies found on the way.

        Raises ValueError for an empty debtor id and
        UnknownDebtorError when the debtor has no receivable
        account, before reading the journal.
        """
        debtor_id = validate_debtor_id(debtor_id)
        code = self.catalog.receivable_code(debtor_id)
        if self.catalog.get_by_code(code, session=session) is None:
            raise UnknownDebtorError(debtor_id)

        warnings: list[LedgerWarning] = []
        obligations: dict[int, _Obligation] = {}
        by_entry: dict[int, list[_Obligation]] = {}
        by_period: dict[str, list[_Obligation]] = {}
        excluded_entries: set[int] = set()
        settlements: list[tuple[JournalEntry, Decimal]] = []

        for entry in self.store.entries_for_account(code, session=session):
            if is_deposit(entry):
                excluded_entries.add(entry.id)
                continue

            if entry.source == EntrySource.ACCRUAL:
                metadata = entry.entry_metadata or {}
                period = metadata.get("period") or period_key(entry.entry_date)
                for line in entry.lines:
                    if line.account_code == code and line.debit > 0:
                        obligation = _Obligation(entry, line, period)
                        obligations[line.id] = obligation
                        by_entry.setdefault(entry.id, []).append(obligation)
                        by_period.setdefault(period, []).append(obligation)
                continue

            credited = sum(
                (line.credit for line in entry.lines if line.account_code == code),
                Decimal("0"),
            )
            if credited > 0:
                settlements.append((entry, credited))

        for period_obligations in by_period.values():
            period_obligations.sort(key=_Obligation.sort_key)

        for entry, amount in settlements:
            metadata = entry.entry_metadata or {}
            if metadata.get("accrual_entry_id") in excluded_entries:
                continue
            if self._tagged_by_id(metadata):
                targets = self._targets_by_id(metadata, obligations, by_entry)
                if not targets:
                    warnings.append(LedgerWarning(
                        code=WarningCode.ORPHANED_SETTLEMENT,
                        message=(
                            f"Entry {entry.id} settles accrual "
                            f"{metadata.get('accrual_entry_id')} which is no "
                            f"longer an obligation; not attributed"
                        ),
                        entry_id=entry.id,
                        account_code=code,
                        amount=amount,
                    ))
                    continue
            else:
                targets = by_period.get(metadata.get("period"), [])
            if not targets:
                warnings.append(LedgerWarning(
                    code=WarningCode.UNTAGGED_SETTLEMENT,
                    message=(
                        f"Entry {entry.id} credits {code} without a tag "
                        f"matching an accrual; not attributed"
                    ),
                    entry_id=entry.id,
                    account_code=code,
                    amount=amount,
                ))
                continue
            self._apply(amount, targets)

        result = []
        for obligation in sorted(obligations.values(), key=_Obligation.sort_key):
            raw = obligation.owed - obligation.settled
            if raw < 0:
                warnings.append(LedgerWarning(
                    code=WarningCode.OVER_SETTLED,
                    message=(
                        f"Accrual {obligation.entry.id} line "
                        f"{obligation.line.id} is settled {-raw} beyond "
                        f"the amount owed"
                    ),
                    entry_id=obligation.entry.id,
                    account_code=code,
                    amount=-raw,
                ))
            outstanding = max(raw, Decimal("0"))
            if outstanding == 0:
                continue
            metadata = obligation.entry.entry_metadata or {}
            result.append(OutstandingObligation(
                debtor_id=debtor_id,
                period_key=obligation.period,
                original_amount=obligation.owed,
                settled_amount=obligation.settled,
                outstanding=outstanding,
                accrual_entry_id=obligation.entry.id,
                accrual_line_id=obligation.line.id,
                account_code=code,
                charge_type=metadata.get("charge_type"),
                accrual_date=obligation.entry.entry_date,
            ))

        for warning in warnings:
            logger.warning(
                "receivable_warning",
                debtor_id=debtor_id,
                code=warning.code.value,
                detail=warning.message,
                entry_id=warning.entry_id,
            )
        logger.debug(
            "outstanding_balances_resolved",
            debtor_id=debtor_id,
            obligations=len(result),
            total_outstanding=str(sum((o.outstanding for o in result), Decimal("0"))),
        )
        return ResolvedBalances(
            debtor_id=debtor_id, obligations=result, warnings=warnings
        )

    def summarize(self, debtor_id: str) -> DebtorBalanceSummary:
        """Total owed, broken down by period, with the oldest balance date."""
        resolved = self.resolve(debtor_id)
        by_period: dict[str, Decimal] = {}
        for obligation in resolved.obligations:
            by_period[obligation.period_key] = (
                by_period.get(obligation.period_key, Decimal("0"))
                + obligation.outstanding
            )

        return DebtorBalanceSummary(
            debtor_id=resolved.debtor_id,
            total_outstanding=resolved.total_outstanding,
            periods_with_balance=len(by_period),
            oldest_balance_date=(
                resolved.obligations[0].accrual_date
                if resolved.obligations else None
            ),
            by_period=[
                PeriodBalance(period_key=key, outstanding=amount)
                for key, amount in sorted(by_period.items())
            ],
            obligations=resolved.obligations,
            warnings=resolved.warnings,
        )

    @staticmethod
    def _tagged_by_id(metadata) -> bool:
        return (
            metadata.get("accrual_line_id") is not None
            or metadata.get("accrual_entry_id") is not None
        )

    @staticmethod
    def _targets_by_id(metadata, obligations, by_entry) -> list[_Obligation]:
        """The exact accrual a settlement names, or nothing if it is gone."""
        line_id = metadata.get("accrual_line_id")
        if line_id in obligations:
            return [obligations[line_id]]
        return by_entry.get(metadata.get("accrual_entry_id"), [])

    @staticmethod
    def _apply(amount: Decimal, targets: list[_Obligation]) -> None:
        """Spread a settlement over its targets oldest first; excess lands on the last."""
        remaining = amount
        last = len(targets) - 1
        for index, obligation in enumerate(targets):
            take = remaining if index == last else min(remaining, obligation.room)
            obligation.settled += take
            remaining -= take
            if remaining == 0:
                break
