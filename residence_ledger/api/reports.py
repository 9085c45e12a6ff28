"""
Balance sheet report endpoints.

Dates arrive as strings and are validated by the aggregator,
so a malformed date is a 400 with the aggregator's message.
"""

from fastapi import APIRouter, Depends, HTTPException

from residence_ledger.api.deps import get_balance_sheet_service, get_monthly_service
from residence_ledger.schemas.balance_sheet import AnnualBalanceSheet, BalanceSheet
from residence_ledger.services.balance_sheet_service import BalanceSheetService
from residence_ledger.services.monthly_balance_sheet_service import (
    MonthlyBalanceSheetService,
)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/balance-sheet", response_model=BalanceSheet)
def get_balance_sheet(
    as_of_date: str,
    residence_id: str | None = None,
    service: BalanceSheetService = Depends(get_balance_sheet_service),
):
    try:
        return service.compute_balance_sheet(as_of_date, residence_id=residence_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/balance-sheet/monthly", response_model=AnnualBalanceSheet)
def get_monthly_balance_sheets(
    year: int,
    residence_id: str | None = None,
    service: MonthlyBalanceSheetService = Depends(get_monthly_service),
):
    try:
        return service.generate_year(year, residence_id=residence_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
