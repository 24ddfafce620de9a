"""User records keyed by clerk id, and the credit balance they carry.

Every operation takes the store handle first and returns a Result: expected
outcomes (bad input, unknown user, rejected adjustment) come back as the
Result's error, transport failures raise StoreUnavailableError.
"""

import uuid
from typing import Any

from beanie import PydanticObjectId, UpdateResponse
from beanie.operators import Inc, Set
from bson.errors import InvalidId
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

from imaginify.core.audit import log_event
from imaginify.core.constants import ROOT_PAGE_PATH
from imaginify.core.exceptions import (
    AdjustmentError,
    AdjustmentPendingError,
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    ValidationError,
)
from imaginify.core.logging import get_logger
from imaginify.core.result import Result
from imaginify.db.store import MongoStore
from imaginify.models.credit_ledger import CreditLedgerEntry
from imaginify.models.schemas import UserCreate, UserUpdate
from imaginify.models.user import User
from imaginify.services.revalidation import Revalidator

log = get_logger(__name__)

REASONS = ("signup", "transformation", "purchase", "refund", "admin")


def _validation_error(e: PydanticValidationError) -> ValidationError:
    return ValidationError(details={"errors": e.errors(include_url=False, include_context=False)})


def _object_id(value: Any) -> PydanticObjectId | None:
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        return None


async def create_user(store: MongoStore, data: UserCreate | dict[str, Any]) -> Result[User]:
    try:
        payload = data if isinstance(data, UserCreate) else UserCreate.model_validate(data)
    except PydanticValidationError as e:
        return Result.fail(_validation_error(e))

    async def _create() -> User:
        user = User(**payload.model_dump())
        await user.insert()
        await log_event(user.clerk_id, "user_created", "user", str(user.id), {"email": user.email})
        return user

    try:
        # A retried insert after a lost ack would hit the unique clerk_id index
        user = await store.run("create_user", _create, retry=False)
    except ConflictError:
        return Result.fail(ConflictError("User already exists", details={"clerkId": payload.clerk_id}))
    log.info("user_created", user_id=str(user.id), clerk_id=user.clerk_id)
    return Result.ok(user)


async def get_user_by_clerk_id(store: MongoStore, clerk_id: str) -> Result[User]:
    if not clerk_id:
        return Result.fail(ValidationError("clerkId is required"))
    user = await store.run("get_user", lambda: User.find_one(User.clerk_id == clerk_id))
    if user is None:
        return Result.fail(NotFoundError("User not found"))
    return Result.ok(user)


async def update_user(store: MongoStore, clerk_id: str, fields: UserUpdate | dict[str, Any]) -> Result[User]:
    """Set only the fields present in `fields`; everything else is left as stored."""
    if not clerk_id:
        return Result.fail(ValidationError("clerkId is required"))
    try:
        payload = fields if isinstance(fields, UserUpdate) else UserUpdate.model_validate(fields)
    except PydanticValidationError as e:
        return Result.fail(_validation_error(e))
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return await get_user_by_clerk_id(store, clerk_id)

    async def _update() -> User | None:
        user = await User.find_one(User.clerk_id == clerk_id).update(
            Set(changes),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if user is not None:
            await log_event(clerk_id, "user_updated", "user", str(user.id), {"fields": sorted(changes)})
        return user

    user = await store.run("update_user", _update)
    if user is None:
        return Result.fail(NotFoundError("User update failed: user not found"))
    log.info("user_updated", clerk_id=clerk_id, fields=sorted(changes))
    return Result.ok(user)


async def delete_user(
    store: MongoStore,
    clerk_id: str,
    revalidator: Revalidator | None = None,
) -> Result[User]:
    """Remove the user keyed by `clerk_id`, then anything still stored under its primary key.

    The Result value is the record found by the primary-key pass, normally None.
    Only the lookup and the primary-key pass are retried; the clerk id delete
    runs once, so a lost ack never turns a committed delete into not-found.
    """
    if not clerk_id:
        return Result.fail(ValidationError("clerkId is required"))

    user = await store.run("delete_user", lambda: User.find_one(User.clerk_id == clerk_id))
    if user is None:
        return Result.fail(NotFoundError("User not found"))
    deleted = await store.run(
        "delete_user",
        lambda: User.find_one(User.clerk_id == clerk_id).delete(),
        retry=False,
    )
    if not deleted or deleted.deleted_count == 0:
        return Result.fail(NotFoundError("User not found"))

    async def _purge() -> User | None:
        leftover = await User.get(user.id)
        if leftover is not None:
            await leftover.delete()
        return leftover

    leftover = await store.run("delete_user", _purge)
    await store.run(
        "delete_user",
        lambda: log_event(clerk_id, "user_deleted", "user", str(user.id)),
        retry=False,
    )
    log.info("user_deleted", clerk_id=clerk_id, user_id=str(user.id))
    if revalidator is not None:
        await revalidator.revalidate_path(ROOT_PAGE_PATH)
    return Result.ok(leftover)


async def adjust_credits(
    store: MongoStore,
    user_id: PydanticObjectId | str,
    delta: int,
    reason: str = "transformation",
    idempotency_key: str | None = None,
    reference_type: str | None = None,
    reference_id: str | None = None,
) -> Result[User]:
    """Add `delta` (negative to debit) to the user's balance with one atomic $inc.

    The ledger entry is inserted before the increment, so its unique
    idempotency key lets one adjustment through per key. Never retried
    internally. Debits that would go below zero are rejected unless
    `allow_negative_balance` is set.
    """
    if reason not in REASONS:
        return Result.fail(ValidationError(f"Invalid reason: {reason}"))
    oid = _object_id(user_id)
    if oid is None:
        return Result.fail(AdjustmentError("User credits update failed: invalid user id"))
    key = idempotency_key or str(uuid.uuid4())
    allow_negative = store.settings.allow_negative_balance

    async def _replay(claim: CreditLedgerEntry | None) -> User:
        # a claim without balance_after is in flight, or was stranded by a transport failure
        if claim is None or claim.balance_after is None:
            raise AdjustmentPendingError()
        user = await User.get(oid)
        if user is None:
            raise AdjustmentError()
        log.info("credits_adjust_replayed", user_id=str(oid), idempotency_key=key)
        return user

    async def _claim() -> CreditLedgerEntry | None:
        return await CreditLedgerEntry.find_one(CreditLedgerEntry.idempotency_key == key)

    async def _adjust() -> User:
        if idempotency_key:
            claim = await _claim()
            if claim is not None:
                return await _replay(claim)
        entry = CreditLedgerEntry(
            user=oid,
            amount=delta,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            idempotency_key=key,
        )
        try:
            await entry.insert()
        except DuplicateKeyError:
            return await _replay(await _claim())

        filters = [User.id == oid]
        if delta < 0 and not allow_negative:
            filters.append(User.credit_balance >= -delta)
        user = await User.find_one(*filters).update(
            Inc({User.credit_balance: delta}),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if user is None:
            await entry.delete()
            current = await User.get(oid)
            if current is None:
                raise AdjustmentError()
            raise InsufficientCreditsError(details={"balance": current.credit_balance, "delta": delta})
        await entry.set({CreditLedgerEntry.balance_after: user.credit_balance})
        return user

    try:
        user = await store.run("adjust_credits", _adjust, retry=False)
    except AdjustmentError as e:
        log.warning("credits_adjust_failed", user_id=str(oid), delta=delta, code=e.code)
        return Result.fail(e)
    log.info("credits_adjusted", user_id=str(oid), delta=delta, balance=user.credit_balance, reason=reason)
    return Result.ok(user)


async def get_balance(store: MongoStore, user_id: PydanticObjectId) -> Result[int]:
    user = await store.run("get_balance", lambda: User.get(user_id))
    if user is None:
        return Result.fail(NotFoundError("User not found"))
    return Result.ok(user.credit_balance)


async def list_ledger(
    store: MongoStore,
    user_id: PydanticObjectId,
    limit: int = 50,
    offset: int = 0,
) -> list[CreditLedgerEntry]:
    """Applied ledger entries for the user, newest first."""
    return await store.run(
        "list_ledger",
        lambda: CreditLedgerEntry.find(
            CreditLedgerEntry.user == user_id,
            CreditLedgerEntry.balance_after != None,  # noqa: E711
        )
        .sort(-CreditLedgerEntry.created_at, -CreditLedgerEntry.id)
        .skip(offset)
        .limit(limit)
        .to_list(),
    )
