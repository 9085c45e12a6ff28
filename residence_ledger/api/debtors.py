"""
Debtor balance and payment allocation endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from residence_ledger.api.deps import get_allocation_service, get_resolver
from residence_ledger.schemas.allocation import (
    AllocationRequest,
    AllocationResult,
    DebtorBalanceSummary,
)
from residence_ledger.services.ar_balance_resolver import ARBalanceResolver
from residence_ledger.services.errors import AllocationCommitError, UnknownDebtorError
from residence_ledger.services.payment_allocation_service import (
    PaymentAllocationService,
)

router = APIRouter(prefix="/debtors", tags=["Debtors"])


@router.get("/{debtor_id}/outstanding", response_model=DebtorBalanceSummary)
def get_outstanding(
    debtor_id: str,
    resolver: ARBalanceResolver = Depends(get_resolver),
):
    """Outstanding balance per period, oldest first."""
    try:
        return resolver.summarize(debtor_id)
    except UnknownDebtorError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/{debtor_id}/allocations",
    response_model=AllocationResult,
    status_code=201,
)
def allocate_payment(
    debtor_id: str,
    request: AllocationRequest,
    service: PaymentAllocationService = Depends(get_allocation_service),
):
    """
    Allocate a payment to the debtor's oldest balances first.

    A commit failure is a 409 the client can retry with the
    same request.
    """
    try:
        return service.allocate(
            request.amount,
            debtor_id,
            request.payment_date,
            declared_period=request.declared_period,
            payment_id=request.payment_id,
            cash_account_code=request.cash_account_code,
            residence_id=request.residence_id,
        )
    except UnknownDebtorError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AllocationCommitError as e:
        return JSONResponse(
            status_code=409,
            content={"detail": str(e), "retryable": e.retryable},
        )
