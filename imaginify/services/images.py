"""Image records: metadata for artifacts produced by the image service."""

from typing import Any

from beanie import PydanticObjectId
from bson.errors import InvalidId
from pydantic import ValidationError as PydanticValidationError

from imaginify.core.audit import log_event
from imaginify.core.constants import ROOT_PAGE_PATH, TRANSFORMATION_DEFAULTS
from imaginify.core.exceptions import NotFoundError, ValidationError
from imaginify.core.logging import get_logger
from imaginify.core.pagination import Page, paginate
from imaginify.core.result import Result
from imaginify.core.utils import deep_merge_objects, get_image_size
from imaginify.db.store import MongoStore
from imaginify.models.image import Image, TransformationConfig
from imaginify.models.schemas import ImageCreate
from imaginify.models.user import User
from imaginify.services import users as users_service
from imaginify.services.revalidation import Revalidator

log = get_logger(__name__)


def build_config(data: ImageCreate) -> TransformationConfig:
    """Defaults of every listed transformation type, overridden by the caller's options."""
    defaults: dict[str, Any] = {}
    for t in data.transformation_types:
        defaults = deep_merge_objects(TRANSFORMATION_DEFAULTS[t], defaults)
    requested = data.config.model_dump(by_alias=True, exclude_none=True) if data.config else {}
    return TransformationConfig.model_validate(deep_merge_objects(requested, defaults))


def _parse(data: ImageCreate | dict[str, Any]) -> ImageCreate:
    return data if isinstance(data, ImageCreate) else ImageCreate.model_validate(data)


def _build_image(author_id: PydanticObjectId, data: ImageCreate) -> Image:
    fields = data.model_dump(exclude={"config"})
    if "fill" in data.transformation_types and data.aspect_ratio:
        fields["width"] = get_image_size("fill", data, "width")
        fields["height"] = get_image_size("fill", data, "height")
    return Image(author=author_id, config=build_config(data), **fields)


async def add_image(
    store: MongoStore,
    author_id: PydanticObjectId,
    data: ImageCreate | dict[str, Any],
) -> Result[Image]:
    try:
        payload = _parse(data)
    except PydanticValidationError as e:
        return Result.fail(ValidationError(details={"errors": e.errors(include_url=False, include_context=False)}))

    async def _add() -> Image | None:
        if await User.get(author_id) is None:
            return None
        existing = await Image.find_one(Image.author == author_id, Image.public_id == payload.public_id)
        if existing is not None:
            return existing
        image = _build_image(author_id, payload)
        await image.insert()
        return image

    image = await store.run("add_image", _add, retry=False)
    if image is None:
        return Result.fail(NotFoundError("User not found"))
    log.info("image_added", image_id=str(image.id), author=str(author_id), types=image.transformation_types)
    return Result.ok(image)


async def get_image_by_id(store: MongoStore, image_id: PydanticObjectId | str) -> Result[Image]:
    try:
        oid = PydanticObjectId(image_id)
    except (InvalidId, TypeError):
        return Result.fail(NotFoundError("Image not found"))
    image = await store.run("get_image", lambda: Image.get(oid))
    if image is None:
        return Result.fail(NotFoundError("Image not found"))
    return Result.ok(image)


async def list_user_images(
    store: MongoStore,
    author_id: PydanticObjectId,
    limit: int = 9,
    offset: int = 0,
) -> Page[Image]:
    """Newest first."""
    limit, offset = paginate(limit, offset, max_limit=100)

    async def _list() -> Page[Image]:
        query = Image.find(Image.author == author_id)
        total = await query.count()
        items = await query.sort(-Image.created_at, -Image.id).skip(offset).limit(limit).to_list()
        return Page[Image](items=items, limit=limit, offset=offset, total=total)

    return await store.run("list_user_images", _list)


async def delete_image(
    store: MongoStore,
    image_id: PydanticObjectId | str,
    author_id: PydanticObjectId,
    revalidator: Revalidator | None = None,
) -> Result[Image]:
    """Only the author may delete; anyone else sees the same not-found outcome."""
    found = await get_image_by_id(store, image_id)
    if not found.is_ok or found.value.author != author_id:
        return Result.fail(NotFoundError("Image not found"))
    image = found.value

    async def _delete() -> None:
        await image.delete()
        await log_event(None, "image_deleted", "image", str(image.id), {"author": str(author_id)})

    await store.run("delete_image", _delete)
    log.info("image_deleted", image_id=str(image.id), author=str(author_id))
    if revalidator is not None:
        await revalidator.revalidate_path(ROOT_PAGE_PATH)
    return Result.ok(image)


async def record_transformation(
    store: MongoStore,
    author_id: PydanticObjectId,
    data: ImageCreate | dict[str, Any],
) -> Result[Image]:
    """Debit the transformation fee, then store the produced image.

    The debit is keyed on the image's public id, so resubmitting the same
    artifact never charges twice.
    """
    try:
        payload = _parse(data)
    except PydanticValidationError as e:
        return Result.fail(ValidationError(details={"errors": e.errors(include_url=False, include_context=False)}))
    fee = store.settings.credits_per_transformation
    debit = await users_service.adjust_credits(
        store,
        author_id,
        -fee,
        reason="transformation",
        idempotency_key=f"transformation:{author_id}:{payload.public_id}",
        reference_type="image",
        reference_id=payload.public_id,
    )
    if not debit.is_ok:
        return Result.fail(debit.error)
    return await add_image(store, author_id, payload)
