"""
Payment allocation engine.

Applies a lump-sum payment to a debtor's outstanding obligations,
oldest first:

1. Validate the payment (amount, date, debtor, cash account)
2. Take the debtor's lock and open one unit of work
3. Resolve outstanding obligations inside that unit of work
4. For each obligation, oldest first, settle min(remaining, outstanding):
   - re-read the accrual line under a row lock and recompute
     what is still owed; abort if it is less than planned
   - post a settlement entry (Dr cash, Cr the accrual's receivable)
     tagged with the accrual it settles
   - decrement the accrual line's outstanding figure and append an
     audit record to the accrual's metadata
5. Post anything left over as an advance payment (Dr cash,
   Cr the debtor's advance payment liability)
6. Commit everything together, or nothing

Accounting:
    Settlement: DEBIT  Cash                     (asset increases)
                CREDIT Receivable - debtor      (asset decreases)
    Advance:    DEBIT  Cash                     (asset increases)
                CREDIT Advance Payment - debtor (liability increases)
"""

import re
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from residence_ledger.config import Settings, get_settings
from residence_ledger.models.enums import AllocationType, EntrySource
from residence_ledger.models.journal_entry import JournalEntry, JournalLine
from residence_ledger.schemas.allocation import (
    AllocationLine,
    AllocationResult,
    AllocationStatus,
    OutstandingObligation,
)
from residence_ledger.schemas.common import LedgerWarning, WarningCode
from residence_ledger.schemas.ledger import JournalEntryCreate, JournalLineCreate
from residence_ledger.services.account_catalog import AccountCatalog
from residence_ledger.services.ar_balance_resolver import (
    ARBalanceResolver,
    validate_debtor_id,
)
from residence_ledger.services.errors import (
    AllocationCommitError,
    UnknownDebtorError,
)
from residence_ledger.services.ledger_store import LedgerStore
from residence_ledger.services.locks import DebtorLockRegistry, debtor_locks

logger = structlog.get_logger(__name__)

PERIOD_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class _AllocationAborted(Exception):
    """Rolls back the unit of work; the result already says why."""


def _validate_amount(value) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("payment amount must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"payment amount '{value}' is not a number") from None
    if not amount.is_finite() or amount <= 0:
        raise ValueError("payment amount must be positive")
    return amount


def _validate_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValueError(
                f"Malformed payment_date '{value}', expected YYYY-MM-DD"
            ) from None
    raise ValueError("payment_date must be a date")


class PaymentAllocationService:
    """
    FIFO allocation of payments against accrued receivables.

    Allocations for one debtor are serialized through the lock
    registry; the accrual line row lock and the journal entry
    version counter protect against writers in other processes.
    """

    def __init__(
        self,
        store: LedgerStore,
        catalog: AccountCatalog,
        resolver: ARBalanceResolver | None = None,
        settings: Settings | None = None,
        locks: DebtorLockRegistry | None = None,
    ):
        self.store = store
        self.catalog = catalog
        self.resolver = resolver or ARBalanceResolver(store, catalog)
        self.settings = settings or get_settings()
        self.locks = locks or debtor_locks

    def allocate(
        self,
        payment_amount,
        debtor_id: str,
        payment_date,
        declared_period: str | None = None,
        payment_id: str | None = None,
        cash_account_code: str | None = None,
        residence_id: str | None = None,
    ) -> AllocationResult:
        """
        Allocate a payment oldest obligation first.

        Raises ValueError (UnknownDebtorError for a debtor without a
        receivable account) before touching the journal, and
        AllocationCommitError when the unit of work cannot commit.
        NO_OUTSTANDING_BALANCE and OVER_ALLOCATION are returned as
        result statuses with nothing written.
        """
        amount = _validate_amount(payment_amount)
        debtor_id = validate_debtor_id(debtor_id)
        payment_date = _validate_date(payment_date)
        if declared_period is not None and not PERIOD_PATTERN.match(declared_period):
            raise ValueError(
                f"declared_period '{declared_period}' must be YYYY-MM"
            )
        cash_code = self._require_accounts(debtor_id, cash_account_code)

        result = AllocationResult(
            allocation_id=str(uuid.uuid4()),
            debtor_id=debtor_id,
            payment_id=payment_id,
            payment_amount=amount,
            payment_date=payment_date,
            status=AllocationStatus.ALLOCATED,
            declared_period=declared_period,
        )

        self._in_unit_of_work(
            result,
            lambda session: self._allocate(
                session, result, amount, cash_code, residence_id
            ),
        )

        logger.info(
            "payment_allocated",
            debtor_id=debtor_id,
            allocation_id=result.allocation_id,
            status=result.status.value,
            payment_amount=str(amount),
            total_allocated=str(result.total_allocated),
            advance_payment_amount=str(result.advance_payment_amount),
            periods_covered=result.periods_covered,
            period_overridden=result.period_overridden,
        )
        return result

    def record_advance_payment(
        self,
        payment_amount,
        debtor_id: str,
        payment_date,
        payment_id: str | None = None,
        cash_account_code: str | None = None,
        residence_id: str | None = None,
    ) -> AllocationResult:
        """Hold a whole payment as an advance, e.g. after NO_OUTSTANDING_BALANCE."""
        amount = _validate_amount(payment_amount)
        debtor_id = validate_debtor_id(debtor_id)
        payment_date = _validate_date(payment_date)
        cash_code = self._require_accounts(debtor_id, cash_account_code)

        result = AllocationResult(
            allocation_id=str(uuid.uuid4()),
            debtor_id=debtor_id,
            payment_id=payment_id,
            payment_amount=amount,
            payment_date=payment_date,
            status=AllocationStatus.ALLOCATED,
        )

        def post(session: Session) -> None:
            result.lines.append(
                self._post_advance(session, result, amount, cash_code, residence_id)
            )
            result.advance_payment_amount = amount

        self._in_unit_of_work(result, post)
        logger.info(
            "advance_payment_recorded",
            debtor_id=debtor_id,
            allocation_id=result.allocation_id,
            amount=str(amount),
        )
        return result

    # --- Unit of work ---

    def _require_accounts(self, debtor_id: str, cash_account_code: str | None) -> str:
        if self.catalog.get_by_code(self.catalog.receivable_code(debtor_id)) is None:
            raise UnknownDebtorError(debtor_id)
        cash_code = cash_account_code or self.settings.CASH_ACCOUNT_CODE
        self.catalog.require(cash_code)
        return cash_code

    def _in_unit_of_work(self, result: AllocationResult, work) -> None:
        """Run work under the debtor lock in one transaction."""
        with structlog.contextvars.bound_contextvars(
            debtor_id=result.debtor_id, allocation_id=result.allocation_id
        ):
            with self.locks.hold(result.debtor_id):
                try:
                    with self.store.unit_of_work() as session:
                        work(session)
                except _AllocationAborted:
                    logger.warning(
                        "allocation_aborted",
                        debtor_id=result.debtor_id,
                        allocation_id=result.allocation_id,
                        status=result.status.value,
                    )
                except SQLAlchemyError as exc:
                    logger.error(
                        "allocation_commit_failed",
                        debtor_id=result.debtor_id,
                        allocation_id=result.allocation_id,
                        error=str(exc),
                    )
                    raise AllocationCommitError(
                        result.debtor_id, result.allocation_id, exc
                    ) from exc

    # --- FIFO ---

    def _allocate(
        self,
        session: Session,
        result: AllocationResult,
        amount: Decimal,
        cash_code: str,
        residence_id: str | None,
    ) -> None:
        resolved = self.resolver.resolve(result.debtor_id, session=session)
        result.warnings.extend(resolved.warnings)
        obligations = resolved.obligations

        if not obligations:
            result.status = AllocationStatus.NO_OUTSTANDING_BALANCE
            return

        # The declared period is advisory; the oldest balance is paid first
        result.effective_period = obligations[0].period_key
        if result.declared_period and result.declared_period != result.effective_period:
            result.period_overridden = True
            result.warnings.append(LedgerWarning(
                code=WarningCode.PERIOD_OVERRIDDEN,
                message=(
                    f"Payment declared for {result.declared_period} applied "
                    f"from oldest outstanding period {result.effective_period}"
                ),
            ))
            logger.warning(
                "declared_period_overridden",
                debtor_id=result.debtor_id,
                declared_period=result.declared_period,
                effective_period=result.effective_period,
            )

        remaining = amount
        for obligation in obligations:
            if remaining <= 0:
                break
            portion = min(remaining, obligation.outstanding)
            result.lines.append(self._settle(
                session, result, obligation, portion, cash_code, residence_id
            ))
            remaining -= portion

        if remaining > 0:
            oldest = session.get(JournalEntry, obligations[0].accrual_entry_id)
            result.lines.append(self._post_advance(
                session, result, remaining, cash_code,
                residence_id or oldest.residence_id,
            ))
            result.advance_payment_amount = remaining

        settled = [
            line for line in result.lines
            if line.allocation_type == AllocationType.SETTLEMENT
        ]
        result.total_allocated = sum(
            (line.amount_allocated for line in settled), Decimal("0")
        )
        result.remaining_outstanding = (
            resolved.total_outstanding - result.total_allocated
        )
        periods = sorted({line.period_key for line in settled})
        result.periods_covered = len(periods)
        result.oldest_period_settled = periods[0] if periods else None
        result.newest_period_settled = periods[-1] if periods else None

    def _current_outstanding(
        self, session: Session, result: AllocationResult, line: JournalLine
    ) -> Decimal:
        """What the ledger says is still owed on one accrual line, right now."""
        fresh = self.resolver.resolve(result.debtor_id, session=session)
        ledger_outstanding = next(
            (
                o.outstanding for o in fresh.obligations
                if o.accrual_line_id == line.id
            ),
            Decimal("0"),
        )
        in_place = line.outstanding if line.outstanding is not None else line.debit
        return min(ledger_outstanding, in_place)

    def _settle(
        self,
        session: Session,
        result: AllocationResult,
        obligation: OutstandingObligation,
        amount: Decimal,
        cash_code: str,
        residence_id: str | None,
    ) -> AllocationLine:
        line = self.store.lock_line(session, obligation.accrual_line_id)
        available = self._current_outstanding(session, result, line)
        if amount > available:
            logger.warning(
                "over_allocation_detected",
                debtor_id=result.debtor_id,
                accrual_entry_id=obligation.accrual_entry_id,
                planned=str(amount),
                available=str(available),
            )
            result.status = AllocationStatus.OVER_ALLOCATION
            result.failed_obligation = obligation
            result.lines = []
            result.total_allocated = Decimal("0")
            result.advance_payment_amount = Decimal("0")
            raise _AllocationAborted()

        accrual = session.get(JournalEntry, obligation.accrual_entry_id)
        settlement = self.store.post_entry(JournalEntryCreate(
            entry_date=result.payment_date,
            description=(
                f"Payment from {result.debtor_id} settling "
                f"{obligation.period_key}"
            ),
            source=EntrySource.PAYMENT,
            residence_id=residence_id or accrual.residence_id,
            debtor_id=result.debtor_id,
            metadata={
                "period": obligation.period_key,
                "accrual_entry_id": obligation.accrual_entry_id,
                "accrual_line_id": obligation.accrual_line_id,
                "allocation_id": result.allocation_id,
                "allocation_type": AllocationType.SETTLEMENT.value,
                "payment_id": result.payment_id,
                "declared_period": result.declared_period,
                "effective_period": result.effective_period,
            },
            lines=[
                JournalLineCreate(account_code=cash_code, debit=amount),
                JournalLineCreate(account_code=obligation.account_code, credit=amount),
            ],
        ), session=session)

        new_outstanding = available - amount
        line.outstanding = new_outstanding
        self._record_allocation_audit(
            accrual, result, settlement, amount, new_outstanding
        )
        session.flush()

        return AllocationLine(
            allocation_type=AllocationType.SETTLEMENT,
            period_key=obligation.period_key,
            accrual_entry_id=obligation.accrual_entry_id,
            accrual_line_id=obligation.accrual_line_id,
            amount_allocated=amount,
            original_outstanding=available,
            new_outstanding=new_outstanding,
            journal_entry_id=settlement.id,
        )

    def _record_allocation_audit(
        self,
        accrual: JournalEntry,
        result: AllocationResult,
        settlement: JournalEntry,
        amount: Decimal,
        new_outstanding: Decimal,
    ) -> None:
        """
        Append to the accrual's allocation trail and refresh its totals.

        The totals cover every receivable line of the accrual. The
        metadata dict is reassigned so the JSON column is dirtied.
        """
        receivable_lines = [
            line for line in accrual.lines if line.outstanding is not None
        ]
        total_settled = sum(
            (line.debit - line.outstanding for line in receivable_lines),
            Decimal("0"),
        )
        still_owed = sum(
            (line.outstanding for line in receivable_lines), Decimal("0")
        )
        metadata = dict(accrual.entry_metadata or {})
        trail = list(metadata.get("allocations", []))
        trail.append({
            "allocation_id": result.allocation_id,
            "settlement_entry_id": settlement.id,
            "payment_id": result.payment_id,
            "amount": str(amount),
            "payment_date": result.payment_date.isoformat(),
            "remaining_outstanding": str(new_outstanding),
        })
        metadata["allocations"] = trail
        metadata["total_settled"] = str(total_settled)
        metadata["is_fully_settled"] = still_owed == 0
        accrual.entry_metadata = metadata

    def _post_advance(
        self,
        session: Session,
        result: AllocationResult,
        amount: Decimal,
        cash_code: str,
        residence_id: str | None,
    ) -> AllocationLine:
        advance_account = self.catalog.ensure_advance_account(
            result.debtor_id, session=session
        )
        entry = self.store.post_entry(JournalEntryCreate(
            entry_date=result.payment_date,
            description=f"Advance payment from {result.debtor_id}",
            source=EntrySource.ADVANCE_PAYMENT,
            residence_id=residence_id,
            debtor_id=result.debtor_id,
            metadata={
                "allocation_id": result.allocation_id,
                "allocation_type": AllocationType.ADVANCE_PAYMENT.value,
                "payment_id": result.payment_id,
            },
            lines=[
                JournalLineCreate(account_code=cash_code, debit=amount),
                JournalLineCreate(account_code=advance_account.code, credit=amount),
            ],
        ), session=session)

        return AllocationLine(
            allocation_type=AllocationType.ADVANCE_PAYMENT,
            amount_allocated=amount,
            journal_entry_id=entry.id,
        )
