"""
Service dependencies for the API layer.

Every router builds its services from the session factory
dependency, so tests swap the database by overriding
get_session_factory alone.
"""

from fastapi import Depends
from sqlalchemy.orm import sessionmaker

from residence_ledger.models.base import get_session_factory
from residence_ledger.services.account_catalog import AccountCatalog
from residence_ledger.services.ar_balance_resolver import ARBalanceResolver
from residence_ledger.services.balance_sheet_service import BalanceSheetService
from residence_ledger.services.ledger_store import LedgerStore
from residence_ledger.services.monthly_balance_sheet_service import (
    MonthlyBalanceSheetService,
)
from residence_ledger.services.payment_allocation_service import (
    PaymentAllocationService,
)


def get_catalog(
    session_factory: sessionmaker = Depends(get_session_factory),
) -> AccountCatalog:
    return AccountCatalog(session_factory)


def get_store(
    session_factory: sessionmaker = Depends(get_session_factory),
    catalog: AccountCatalog = Depends(get_catalog),
) -> LedgerStore:
    return LedgerStore(session_factory, catalog)


def get_balance_sheet_service(
    store: LedgerStore = Depends(get_store),
    catalog: AccountCatalog = Depends(get_catalog),
) -> BalanceSheetService:
    return BalanceSheetService(store, catalog)


def get_monthly_service(
    balance_sheets: BalanceSheetService = Depends(get_balance_sheet_service),
) -> MonthlyBalanceSheetService:
    return MonthlyBalanceSheetService(balance_sheets)


def get_resolver(
    store: LedgerStore = Depends(get_store),
    catalog: AccountCatalog = Depends(get_catalog),
) -> ARBalanceResolver:
    return ARBalanceResolver(store, catalog)


def get_allocation_service(
    store: LedgerStore = Depends(get_store),
    catalog: AccountCatalog = Depends(get_catalog),
    resolver: ARBalanceResolver = Depends(get_resolver),
) -> PaymentAllocationService:
    return PaymentAllocationService(store, catalog, resolver=resolver)
