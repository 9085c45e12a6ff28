"""
Concurrent allocations for one debtor.

Two payments arriving at the same moment must never settle the
same obligation twice: together they settle exactly what was
owed and the rest is held as an advance.
"""

import threading
from datetime import date
from decimal import Decimal

from residence_ledger.models.enums import AllocationType
from residence_ledger.schemas.allocation import AllocationStatus
from residence_ledger.services.locks import DebtorLockRegistry
from tests.factories import DEBTOR_ID, accrue


def pay_together(allocator, amounts):
    barrier = threading.Barrier(len(amounts))
    results, errors = [], []

    def pay(amount):
        barrier.wait()
        try:
            results.append(allocator.allocate(amount, DEBTOR_ID, date(2024, 3, 20)))
        except Exception as exc:  # surfaced through the errors list
            errors.append(exc)

    threads = [threading.Thread(target=pay, args=(a,)) for a in amounts]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results, errors


class TestConcurrentAllocation:

    def test_no_obligation_settled_twice(self, chart, store, resolver, allocator):
        jan = accrue(store, 100, date(2024, 1, 1))
        feb = accrue(store, 50, date(2024, 2, 1))

        results, errors = pay_together(allocator, [Decimal("100"), Decimal("100")])

        assert errors == []
        assert [r.status for r in results] == [AllocationStatus.ALLOCATED] * 2
        assert sum(r.allocated_to(jan.lines[0].id) for r in results) == Decimal("100")
        assert sum(r.allocated_to(feb.lines[0].id) for r in results) == Decimal("50")
        assert sum(r.total_allocated for r in results) == Decimal("150")
        assert sum(r.advance_payment_amount for r in results) == Decimal("50")
        assert resolver.get_outstanding_balances(DEBTOR_ID) == []

    def test_many_small_payments(self, chart, store, resolver, allocator):
        accrue(store, 100, date(2024, 1, 1))

        results, errors = pay_together(allocator, [Decimal("30")] * 4)

        assert errors == []
        assert sum(r.total_allocated for r in results) == Decimal("100")
        advances = [
            line for r in results for line in r.lines
            if line.allocation_type == AllocationType.ADVANCE_PAYMENT
        ]
        assert sum(line.amount_allocated for line in advances) == Decimal("20")
        assert resolver.get_outstanding_balances(DEBTOR_ID) == []


class TestDebtorLockRegistry:

    def test_same_debtor_same_lock(self):
        locks = DebtorLockRegistry()
        assert locks.lock_for("S001") is locks.lock_for("S001")

    def test_debtors_do_not_share_locks(self):
        locks = DebtorLockRegistry()
        with locks.hold("S001"):
            acquired = locks.lock_for("S002").acquire(blocking=False)
        assert acquired is True

    def test_hold_blocks_same_debtor(self):
        locks = DebtorLockRegistry()
        with locks.hold("S001"):
            acquired = locks.lock_for("S001").acquire(blocking=False)
        assert acquired is False
