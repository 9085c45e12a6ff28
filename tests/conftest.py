"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real database. Tables are created before and dropped after
every test, so each test starts from an empty ledger.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from residence_ledger.config import Settings
from residence_ledger.main import app
from residence_ledger.models import Base
from residence_ledger.models.base import get_session_factory
from residence_ledger.services.account_catalog import AccountCatalog
from residence_ledger.services.ar_balance_resolver import ARBalanceResolver
from residence_ledger.services.balance_sheet_service import BalanceSheetService
from residence_ledger.services.ledger_store import LedgerStore
from residence_ledger.services.locks import DebtorLockRegistry
from residence_ledger.services.payment_allocation_service import (
    PaymentAllocationService,
)
from tests.factories import STANDARD_CHART, DEBTOR_ID


# SQLite file database: shared by the threads in concurrency tests
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables before each test, drop them after.

    autouse=True means every test gets this automatically.
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    return TestSessionLocal


@pytest.fixture
def db_session():
    """Provide a database session for direct assertions."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def settings():
    """A private Settings instance tests can modify freely."""
    return Settings()


@pytest.fixture
def catalog(session_factory, settings):
    return AccountCatalog(session_factory, settings)


@pytest.fixture
def store(session_factory, catalog):
    return LedgerStore(session_factory, catalog)


@pytest.fixture
def chart(catalog):
    """Standard residence chart of accounts plus one provisioned debtor."""
    for request in STANDARD_CHART:
        catalog.create_account(request)
    catalog.ensure_debtor_accounts(DEBTOR_ID, "Alice Mokoena")
    return catalog


@pytest.fixture
def balance_sheets(store, catalog, settings):
    return BalanceSheetService(store, catalog, settings)


@pytest.fixture
def resolver(store, catalog):
    return ARBalanceResolver(store, catalog)


@pytest.fixture
def allocator(store, catalog, resolver, settings):
    return PaymentAllocationService(
        store, catalog, resolver=resolver, settings=settings,
        locks=DebtorLockRegistry(),
    )


@pytest.fixture
def client():
    """
    Provide a test client bound to the test database.

    Overriding get_session_factory is enough: every service
    dependency is built on top of it.
    """
    app.dependency_overrides[get_session_factory] = lambda: TestSessionLocal
    yield TestClient(app)
    app.dependency_overrides.clear()
