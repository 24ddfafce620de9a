from fastapi import APIRouter, Depends, Query

from imaginify.db.store import MongoStore
from imaginify.deps import get_current_user, get_store
from imaginify.models.schemas import LedgerEntryOut
from imaginify.models.user import User
from imaginify.services import users as users_service

router = APIRouter()


@router.get("/balance")
async def credits_balance(
    user: User = Depends(get_current_user),
    store: MongoStore = Depends(get_store),
):
    """Return current credit balance."""
    balance = (await users_service.get_balance(store, user.id)).unwrap()
    return {"balance": balance, "planId": user.plan_id}


@router.get("/ledger")
async def credits_ledger(
    user: User = Depends(get_current_user),
    store: MongoStore = Depends(get_store),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Return applied ledger entries for current user (newest first)."""
    entries = await users_service.list_ledger(store, user.id, limit=limit, offset=offset)
    out = [
        LedgerEntryOut(
            id=str(e.id),
            amount=e.amount,
            balance_after=e.balance_after,
            reason=e.reason,
            reference_type=e.reference_type,
            reference_id=e.reference_id,
            created_at=e.created_at,
        ).model_dump(mode="json", by_alias=True)
        for e in entries
    ]
    return {"entries": out, "limit": limit, "offset": offset}
