from fastapi import APIRouter, Depends, Header, Request

from imaginify.db.store import MongoStore
from imaginify.deps import get_revalidator, get_store
from imaginify.services import webhooks as webhooks_service
from imaginify.services.revalidation import Revalidator

router = APIRouter()


@router.post("/identity")
async def identity_webhook(
    request: Request,
    x_webhook_signature: str = Header(..., alias="X-Webhook-Signature"),
    store: MongoStore = Depends(get_store),
    revalidator: Revalidator = Depends(get_revalidator),
):
    """Identity provider events: user.created / user.updated / user.deleted."""
    body = await request.body()
    return await webhooks_service.handle_identity_event(store, revalidator, body, x_webhook_signature)
