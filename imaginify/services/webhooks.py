"""Identity provider webhook: verify HMAC, then map account events onto the user ledger."""

import json
from typing import Any

from imaginify.core.exceptions import BadRequestError
from imaginify.core.logging import get_logger
from imaginify.core.security import verify_webhook_signature
from imaginify.db.store import MongoStore
from imaginify.models.schemas import UserOut
from imaginify.services import users as users_service
from imaginify.services.revalidation import Revalidator

log = get_logger(__name__)


def _primary_email(data: dict[str, Any]) -> str:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for a in addresses:
        if a.get("id") == primary_id:
            return a.get("email_address") or ""
    return addresses[0].get("email_address", "") if addresses else ""


PROFILE_FIELDS = {
    "username": "username",
    "photo": "image_url",
    "firstname": "first_name",
    "lastname": "last_name",
}

# Fields a user may blank out on the provider side
CLEARABLE_FIELDS = ("photo", "firstname", "lastname")


def _profile(data: dict[str, Any]) -> dict[str, Any]:
    """Profile fields carried by the event. Keys missing from the event are left out."""
    profile = {field: data[key] or "" for field, key in PROFILE_FIELDS.items() if key in data}
    if data.get("email_addresses"):
        profile["email"] = _primary_email(data)
    return profile


def _new_user_profile(data: dict[str, Any]) -> dict[str, Any]:
    profile = {"photo": "", **_profile(data)}
    if not profile.get("username"):
        # email-only sign-ups carry no username
        profile["username"] = profile.get("email", "").split("@", 1)[0]
    return profile


def _changed_profile(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in _profile(data).items() if v or k in CLEARABLE_FIELDS}


async def handle_identity_event(
    store: MongoStore,
    revalidator: Revalidator,
    payload: bytes,
    signature: str,
) -> dict[str, Any]:
    settings = store.settings
    if not settings.identity_webhook_secret:
        raise BadRequestError("Webhook secret not configured")
    if not verify_webhook_signature(payload, signature, settings.identity_webhook_secret):
        raise BadRequestError("Invalid webhook signature")
    try:
        event = json.loads(payload.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadRequestError("Malformed webhook payload") from e
    event_type = event.get("type")
    data = event.get("data") or {}
    clerk_id = data.get("id")
    if not clerk_id:
        raise BadRequestError("Missing user id in webhook payload")

    if event_type == "user.created":
        profile = {
            "clerk_id": clerk_id,
            "plan_id": settings.default_plan_id,
            "credit_balance": settings.default_credit_balance,
            **_new_user_profile(data),
        }
        result = await users_service.create_user(store, profile)
    elif event_type == "user.updated":
        result = await users_service.update_user(store, clerk_id, _changed_profile(data))
    elif event_type == "user.deleted":
        result = await users_service.delete_user(store, clerk_id, revalidator)
    else:
        log.info("webhook_ignored", event_type=event_type)
        return {"status": "ignored", "event": event_type}

    user = result.unwrap()
    log.info("webhook_processed", event_type=event_type, clerk_id=clerk_id)
    return {
        "status": "ok",
        "event": event_type,
        "user": UserOut.from_user(user).model_dump(by_alias=True) if user else None,
    }
