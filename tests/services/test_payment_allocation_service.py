"""
Tests for the PaymentAllocationService.

Tests cover:
- FIFO settlement across periods
- Overpayment held as an advance payment
- Settlement entries tagged with the accrual they settle
- In-place outstanding figures and the allocation trail
- Declared period overridden by the oldest balance
- NO_OUTSTANDING_BALANCE and explicit advance payments
- OVER_ALLOCATION and commit failures leave the ledger untouched
- Input validation
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError
from structlog.testing import capture_logs

from residence_ledger.models.enums import (
    AccountCategory,
    AccountType,
    AllocationType,
    EntrySource,
)
from residence_ledger.schemas.allocation import AllocationStatus
from residence_ledger.schemas.common import WarningCode
from residence_ledger.schemas.ledger import AccountCreate
from residence_ledger.services.errors import (
    AllocationCommitError,
    UnknownDebtorError,
)
from residence_ledger.services.locks import DebtorLockRegistry
from residence_ledger.services.payment_allocation_service import (
    PaymentAllocationService,
)
from tests.factories import (
    ADVANCE,
    DEBTOR_ID,
    RECEIVABLE,
    accrue,
    accrue_rent_and_fee,
    settle,
    three_months_of_rent,
)


def remaining(resolver):
    return [
        (o.period_key, o.outstanding)
        for o in resolver.get_outstanding_balances(DEBTOR_ID)
    ]


def cash_entries(store):
    return store.entries_for_account("1000")


# --- FIFO ---

class TestFifoAllocation:

    def test_partial_payment_oldest_first(self, chart, store, resolver, allocator):
        jan, feb, mar = three_months_of_rent(store)

        result = allocator.allocate(Decimal("120"), DEBTOR_ID, date(2024, 3, 20))

        assert result.status == AllocationStatus.ALLOCATED
        assert result.allocated_to(jan.lines[0].id) == Decimal("100")
        assert result.allocated_to(feb.lines[0].id) == Decimal("20")
        assert result.allocated_to(mar.lines[0].id) == Decimal("0")
        assert result.total_allocated == Decimal("120")
        assert result.advance_payment_amount == Decimal("0")
        assert result.remaining_outstanding == Decimal("60")
        assert result.periods_covered == 2
        assert result.oldest_period_settled == "2024-01"
        assert result.newest_period_settled == "2024-02"
        assert remaining(resolver) == [
            ("2024-02", Decimal("30")),
            ("2024-03", Decimal("30")),
        ]

    def test_successive_payments_continue_where_the_last_stopped(
        self, chart, store, resolver, allocator
    ):
        _, feb, mar = three_months_of_rent(store)
        allocator.allocate(120, DEBTOR_ID, date(2024, 3, 20))

        result = allocator.allocate(60, DEBTOR_ID, date(2024, 3, 28))

        assert result.allocated_to(feb.lines[0].id) == Decimal("30")
        assert result.allocated_to(mar.lines[0].id) == Decimal("30")
        assert remaining(resolver) == []

    def test_overpayment_becomes_advance(self, chart, store, resolver, allocator):
        three_months_of_rent(store)

        result = allocator.allocate(200, DEBTOR_ID, date(2024, 3, 20))

        assert result.total_allocated == Decimal("180")
        assert result.advance_payment_amount == Decimal("20")
        assert result.remaining_outstanding == Decimal("0")
        advance_line = result.lines[-1]
        assert advance_line.allocation_type == AllocationType.ADVANCE_PAYMENT
        assert advance_line.amount_allocated == Decimal("20")

        advance_entry = store.get_entry(advance_line.journal_entry_id)
        assert advance_entry.source == EntrySource.ADVANCE_PAYMENT
        credited = {line.account_code: line.credit for line in advance_entry.lines}
        assert credited[ADVANCE] == Decimal("20")
        assert remaining(resolver) == []

    def test_allocated_plus_advance_equals_payment(self, chart, store, allocator):
        three_months_of_rent(store)

        result = allocator.allocate(Decimal("181.37"), DEBTOR_ID, date(2024, 3, 20))

        assert (
            result.total_allocated + result.advance_payment_amount
            == Decimal("181.37")
        )


# --- Ledger effects ---

class TestLedgerEffects:

    def test_settlement_tagged_with_accrual(self, chart, store, allocator):
        jan, _, _ = three_months_of_rent(store)

        result = allocator.allocate(100, DEBTOR_ID, date(2024, 3, 20),
                                    payment_id="PAY-1")

        settlement = store.get_entry(result.lines[0].journal_entry_id)
        assert settlement.source == EntrySource.PAYMENT
        assert settlement.debtor_id == DEBTOR_ID
        assert settlement.residence_id == "R1"
        assert settlement.entry_date == date(2024, 3, 20)
        assert settlement.entry_metadata["accrual_entry_id"] == jan.id
        assert settlement.entry_metadata["accrual_line_id"] == jan.lines[0].id
        assert settlement.entry_metadata["period"] == "2024-01"
        assert settlement.entry_metadata["allocation_id"] == result.allocation_id
        assert settlement.entry_metadata["payment_id"] == "PAY-1"
        sides = [(l.account_code, l.debit, l.credit) for l in settlement.lines]
        assert sides == [
            ("1000", Decimal("100"), Decimal("0")),
            (RECEIVABLE, Decimal("0"), Decimal("100")),
        ]

    def test_accrual_outstanding_updated_in_place(self, chart, store, allocator):
        jan, feb, _ = three_months_of_rent(store)

        allocator.allocate(120, DEBTOR_ID, date(2024, 3, 20))

        assert store.get_entry(jan.id).lines[0].outstanding == Decimal("0")
        assert store.get_entry(feb.id).lines[0].outstanding == Decimal("30")

    def test_allocation_trail_on_accrual(self, chart, store, allocator):
        _, feb, _ = three_months_of_rent(store)

        first = allocator.allocate(120, DEBTOR_ID, date(2024, 3, 20))
        second = allocator.allocate(10, DEBTOR_ID, date(2024, 3, 25))

        metadata = store.get_entry(feb.id).entry_metadata
        trail = metadata["allocations"]
        assert [a["allocation_id"] for a in trail] == [
            first.allocation_id, second.allocation_id
        ]
        assert [Decimal(a["amount"]) for a in trail] == [Decimal("20"), Decimal("10")]
        assert Decimal(metadata["total_settled"]) == Decimal("30")
        assert metadata["is_fully_settled"] is False
        assert metadata["charge_type"] == "rent"

    def test_trail_totals_cover_every_receivable_line(
        self, chart, store, resolver, allocator
    ):
        accrual = accrue_rent_and_fee(store, 100, 50, date(2024, 1, 1))

        allocator.allocate(100, DEBTOR_ID, date(2024, 1, 10))

        metadata = store.get_entry(accrual.id).entry_metadata
        assert Decimal(metadata["total_settled"]) == Decimal("100")
        assert metadata["is_fully_settled"] is False
        assert remaining(resolver) == [("2024-01", Decimal("50"))]

        result = allocator.allocate(300, DEBTOR_ID, date(2024, 1, 20))

        metadata = store.get_entry(accrual.id).entry_metadata
        assert Decimal(metadata["total_settled"]) == Decimal("150")
        assert metadata["is_fully_settled"] is True
        assert result.total_allocated == Decimal("50")
        assert result.advance_payment_amount == Decimal("250")
        assert [Decimal(a["amount"]) for a in metadata["allocations"]] == [
            Decimal("100"), Decimal("50")
        ]

    def test_advance_follows_accrual_residence(
        self, chart, store, allocator, balance_sheets
    ):
        three_months_of_rent(store)

        result = allocator.allocate(200, DEBTOR_ID, date(2024, 3, 20))

        advance_entry = store.get_entry(result.lines[-1].journal_entry_id)
        assert advance_entry.residence_id == "R1"
        sheet = balance_sheets.compute_balance_sheet(date(2024, 3, 31), "R1")
        assert sheet.accounting_equation.balanced is True
        assert sheet.liabilities.total == Decimal("20.00")

    def test_settlement_survives_voided_accrual(
        self, chart, store, resolver, allocator
    ):
        rent = accrue(store, 100, date(2024, 1, 1))
        accrue(store, 40, date(2024, 1, 1), charge_type="admin_fee",
               income_code="4100")
        allocator.allocate(60, DEBTOR_ID, date(2024, 1, 10))
        store.void_entry(rent.id)

        assert remaining(resolver) == [("2024-01", Decimal("40"))]

        result = allocator.allocate(40, DEBTOR_ID, date(2024, 1, 20))

        assert result.status == AllocationStatus.ALLOCATED
        assert result.total_allocated == Decimal("40")
        assert result.advance_payment_amount == Decimal("0")

    def test_cash_account_override(self, chart, store, allocator):
        three_months_of_rent(store)

        result = allocator.allocate(30, DEBTOR_ID, date(2024, 3, 20),
                                    cash_account_code="1001")

        settlement = store.get_entry(result.lines[0].journal_entry_id)
        assert settlement.lines[0].account_code == "1001"

    def test_balance_sheet_still_balances(self, chart, store, allocator,
                                          balance_sheets):
        three_months_of_rent(store)
        allocator.allocate(200, DEBTOR_ID, date(2024, 3, 20))

        sheet = balance_sheets.compute_balance_sheet(date(2024, 3, 31))

        assert sheet.accounting_equation.balanced is True
        cash = next(l for l in sheet.assets.current if l.code == "1000")
        receivables = next(l for l in sheet.assets.current if l.code == "1100")
        assert cash.balance == Decimal("200.00")
        assert receivables.balance == Decimal("0.00")
        assert sheet.liabilities.total == Decimal("20.00")

    def test_allocation_logged(self, chart, store, allocator):
        three_months_of_rent(store)

        with capture_logs() as logs:
            result = allocator.allocate(120, DEBTOR_ID, date(2024, 3, 20))

        allocated = [e for e in logs if e["event"] == "payment_allocated"]
        assert len(allocated) == 1
        assert allocated[0]["allocation_id"] == result.allocation_id
        assert allocated[0]["total_allocated"] == str(result.total_allocated)


# --- Declared period ---

class TestDeclaredPeriod:

    def test_declared_period_overridden_by_oldest(self, chart, store, allocator):
        jan, _, _ = three_months_of_rent(store)

        result = allocator.allocate(50, DEBTOR_ID, date(2024, 3, 20),
                                    declared_period="2024-03")

        assert result.period_overridden is True
        assert result.declared_period == "2024-03"
        assert result.effective_period == "2024-01"
        assert result.allocated_to(jan.lines[0].id) == Decimal("50")
        assert WarningCode.PERIOD_OVERRIDDEN in [w.code for w in result.warnings]

        settlement = store.get_entry(result.lines[0].journal_entry_id)
        assert settlement.entry_metadata["declared_period"] == "2024-03"
        assert settlement.entry_metadata["effective_period"] == "2024-01"

    def test_declared_period_matching_oldest(self, chart, store, allocator):
        three_months_of_rent(store)

        result = allocator.allocate(50, DEBTOR_ID, date(2024, 3, 20),
                                    declared_period="2024-01")

        assert result.period_overridden is False
        assert result.warnings == []


# --- Nothing owed ---

class TestNothingOwed:

    def test_no_outstanding_balance_writes_nothing(self, chart, store, allocator):
        result = allocator.allocate(75, DEBTOR_ID, date(2024, 3, 20))

        assert result.status == AllocationStatus.NO_OUTSTANDING_BALANCE
        assert result.lines == []
        assert result.total_allocated == Decimal("0")
        assert cash_entries(store) == []

    def test_record_advance_payment(self, chart, store, allocator):
        result = allocator.record_advance_payment(75, DEBTOR_ID, date(2024, 3, 20))

        assert result.status == AllocationStatus.ALLOCATED
        assert result.advance_payment_amount == Decimal("75")
        entry = store.get_entry(result.lines[0].journal_entry_id)
        assert [(l.account_code, l.debit, l.credit) for l in entry.lines] == [
            ("1000", Decimal("75"), Decimal("0")),
            (ADVANCE, Decimal("0"), Decimal("75")),
        ]

    def test_advance_account_created_on_demand(self, chart, catalog, allocator):
        # Only the receivable is provisioned up front
        catalog.create_account(AccountCreate(
            code="1100-S002", name="Accounts Receivable - Ben Dlamini",
            account_type=AccountType.ASSET,
            category=AccountCategory.CURRENT_ASSET, parent_code="1100",
        ))
        assert catalog.get_by_code("2200-S002") is None

        result = allocator.record_advance_payment(10, "S002", date(2024, 3, 20))

        assert catalog.get_by_code("2200-S002") is not None
        assert result.advance_payment_amount == Decimal("10")


# --- Failures ---

class StaleResolver:
    """Serves one outdated snapshot, then reads the ledger again."""

    def __init__(self, resolver, snapshot):
        self.resolver = resolver
        self.snapshot = snapshot
        self.calls = 0

    def resolve(self, debtor_id, session=None):
        self.calls += 1
        if self.calls == 1:
            return self.snapshot
        return self.resolver.resolve(debtor_id, session=session)


class TestFailures:

    def test_stale_plan_aborts_as_over_allocation(
        self, chart, store, catalog, resolver, settings
    ):
        jan, _, _ = three_months_of_rent(store)
        snapshot = resolver.resolve(DEBTOR_ID)
        # Another writer settles part of January after the snapshot
        settle(store, 60, date(2024, 3, 10), {"accrual_line_id": jan.lines[0].id})
        allocator = PaymentAllocationService(
            store, catalog, resolver=StaleResolver(resolver, snapshot),
            settings=settings, locks=DebtorLockRegistry(),
        )

        result = allocator.allocate(100, DEBTOR_ID, date(2024, 3, 20))

        assert result.status == AllocationStatus.OVER_ALLOCATION
        assert result.failed_obligation.accrual_line_id == jan.lines[0].id
        assert result.lines == []
        assert result.total_allocated == Decimal("0")
        assert len(cash_entries(store)) == 1
        assert store.get_entry(jan.id).lines[0].outstanding == Decimal("100")

    def test_commit_failure_rolls_back_everything(
        self, chart, store, resolver, allocator, monkeypatch
    ):
        jan, _, _ = three_months_of_rent(store)

        def fail_audit(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(allocator, "_record_allocation_audit", fail_audit)

        with pytest.raises(AllocationCommitError) as exc_info:
            allocator.allocate(120, DEBTOR_ID, date(2024, 3, 20))

        assert exc_info.value.retryable is True
        assert exc_info.value.debtor_id == DEBTOR_ID
        assert cash_entries(store) == []
        assert store.get_entry(jan.id).lines[0].outstanding == Decimal("100")
        assert remaining(resolver) == [
            ("2024-01", Decimal("100")),
            ("2024-02", Decimal("50")),
            ("2024-03", Decimal("30")),
        ]


# --- Validation ---

class TestValidation:

    @pytest.mark.parametrize("amount", [0, -5, "abc", True, "NaN", "Infinity"])
    def test_invalid_amount(self, chart, store, allocator, amount):
        with pytest.raises(ValueError):
            allocator.allocate(amount, DEBTOR_ID, date(2024, 3, 20))
        assert cash_entries(store) == []

    @pytest.mark.parametrize("payment_date", ["2024-02-30", "20/03/2024", None])
    def test_invalid_date(self, chart, allocator, payment_date):
        with pytest.raises(ValueError):
            allocator.allocate(10, DEBTOR_ID, payment_date)

    @pytest.mark.parametrize("period", ["2024-13", "2024-1", "March"])
    def test_invalid_declared_period(self, chart, allocator, period):
        with pytest.raises(ValueError, match="declared_period"):
            allocator.allocate(10, DEBTOR_ID, date(2024, 3, 20),
                               declared_period=period)

    def test_unknown_debtor(self, chart, allocator):
        with pytest.raises(UnknownDebtorError):
            allocator.allocate(10, "S999", date(2024, 3, 20))

    def test_unknown_cash_account(self, chart, allocator):
        with pytest.raises(ValueError, match="1999"):
            allocator.allocate(10, DEBTOR_ID, date(2024, 3, 20),
                               cash_account_code="1999")

    def test_iso_date_string_accepted(self, chart, store, allocator):
        three_months_of_rent(store)

        result = allocator.allocate("25.50", DEBTOR_ID, "2024-03-20")

        assert result.payment_date == date(2024, 3, 20)
        assert result.total_allocated == Decimal("25.50")
