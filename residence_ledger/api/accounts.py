"""
Chart of accounts endpoints.

Thin HTTP wrapper around the AccountCatalog: status codes and
response shapes only.
"""

from fastapi import APIRouter, Depends, HTTPException

from residence_ledger.api.deps import get_catalog
from residence_ledger.schemas.ledger import (
    AccountCreate,
    AccountResponse,
    DebtorAccountsCreate,
)
from residence_ledger.services.account_catalog import AccountCatalog

router = APIRouter(tags=["Accounts"])


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    catalog: AccountCatalog = Depends(get_catalog),
):
    """Create a chart account. Parents are referenced by code."""
    try:
        return catalog.create_account(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/accounts/{code}", response_model=AccountResponse)
def get_account(code: str, catalog: AccountCatalog = Depends(get_catalog)):
    account = catalog.get_by_code(code)
    if account is None:
        raise HTTPException(status_code=404, detail=f"Account '{code}' not found")
    return account


@router.post(
    "/debtors/{debtor_id}/accounts",
    response_model=list[AccountResponse],
    status_code=201,
)
def provision_debtor_accounts(
    debtor_id: str,
    request: DebtorAccountsCreate,
    catalog: AccountCatalog = Depends(get_catalog),
):
    """Create the debtor's receivable and advance payment accounts."""
    try:
        receivable, advance = catalog.ensure_debtor_accounts(
            debtor_id, request.debtor_name
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [receivable, advance]
