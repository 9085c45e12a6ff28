"""
Journal entry endpoints.

Posting goes through the LedgerStore, which enforces balance,
account validity and transaction_id idempotency.
"""

from fastapi import APIRouter, Depends, HTTPException

from residence_ledger.api.deps import get_store
from residence_ledger.schemas.ledger import JournalEntryCreate, JournalEntryResponse
from residence_ledger.services.ledger_store import LedgerStore

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post("/entries", response_model=JournalEntryResponse, status_code=201)
def post_entry(
    request: JournalEntryCreate,
    store: LedgerStore = Depends(get_store),
):
    """
    Post a balanced journal entry.

    Reusing a transaction_id returns the entry already posted
    under it.
    """
    try:
        return store.post_entry(request)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/entries/{entry_id}", response_model=JournalEntryResponse)
def get_entry(entry_id: int, store: LedgerStore = Depends(get_store)):
    try:
        return store.get_entry(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/entries/{entry_id}/void", response_model=JournalEntryResponse)
def void_entry(entry_id: int, store: LedgerStore = Depends(get_store)):
    try:
        store.get_entry(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    try:
        store.void_entry(entry_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return store.get_entry(entry_id)
