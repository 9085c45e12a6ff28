"""Business logic services."""

from residence_ledger.services.account_catalog import AccountCatalog
from residence_ledger.services.ledger_store import LedgerStore
from residence_ledger.services.balance_sheet_service import BalanceSheetService
from residence_ledger.services.monthly_balance_sheet_service import (
    MonthlyBalanceSheetService,
)
from residence_ledger.services.ar_balance_resolver import ARBalanceResolver
from residence_ledger.services.payment_allocation_service import (
    PaymentAllocationService,
)
from residence_ledger.services.errors import (
    AllocationCommitError,
    UnknownDebtorError,
)

__all__ = [
    "AccountCatalog",
    "LedgerStore",
    "BalanceSheetService",
    "MonthlyBalanceSheetService",
    "ARBalanceResolver",
    "PaymentAllocationService",
    "AllocationCommitError",
    "UnknownDebtorError",
]
