from fastapi import APIRouter, Depends, Query, Request, status

from imaginify.core.utils import form_url_query, remove_keys_from_query
from imaginify.db.store import MongoStore
from imaginify.deps import get_current_user, get_revalidator, get_store
from imaginify.models.schemas import ImageCreate, ImageOut
from imaginify.models.user import User
from imaginify.services import images as images_service
from imaginify.services.revalidation import Revalidator

router = APIRouter()


@router.post("", response_model=ImageOut, status_code=status.HTTP_201_CREATED)
async def image_create(
    body: ImageCreate,
    user: User = Depends(get_current_user),
    store: MongoStore = Depends(get_store),
):
    """Store a transformed image and debit the transformation fee."""
    image = (await images_service.record_transformation(store, user.id, body)).unwrap()
    return ImageOut.from_image(image)


@router.get("")
async def images_list(
    request: Request,
    user: User = Depends(get_current_user),
    store: MongoStore = Depends(get_store),
    limit: int = Query(9, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the current user's images, newest first, with links to neighbouring pages."""
    page = await images_service.list_user_images(store, user.id, limit=limit, offset=offset)
    path = request.url.path
    query = str(request.url.query)
    next_url = form_url_query(path, query, "offset", page.next_offset) if page.next_offset is not None else None
    prev_url = None
    if page.offset > 0:
        prev_offset = max(0, page.offset - page.limit)
        if prev_offset:
            prev_url = form_url_query(path, query, "offset", prev_offset)
        else:
            prev_url = remove_keys_from_query(path, query, ["offset"])
    return {
        "images": [ImageOut.from_image(i).model_dump(mode="json", by_alias=True) for i in page.items],
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
        "next": next_url,
        "prev": prev_url,
    }


@router.get("/{image_id}", response_model=ImageOut)
async def image_get(
    image_id: str,
    user: User = Depends(get_current_user),
    store: MongoStore = Depends(get_store),
):
    image = (await images_service.get_image_by_id(store, image_id)).unwrap()
    return ImageOut.from_image(image)


@router.delete("/{image_id}")
async def image_delete(
    image_id: str,
    user: User = Depends(get_current_user),
    store: MongoStore = Depends(get_store),
    revalidator: Revalidator = Depends(get_revalidator),
):
    """Delete one of the current user's images."""
    image = (await images_service.delete_image(store, image_id, user.id, revalidator)).unwrap()
    return {"id": str(image.id), "deleted": True}
