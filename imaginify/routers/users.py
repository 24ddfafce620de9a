from fastapi import APIRouter, Depends

from imaginify.deps import get_current_user
from imaginify.models.schemas import UserOut
from imaginify.models.user import User

router = APIRouter()


@router.get("/me", response_model=UserOut)
async def users_me(user: User = Depends(get_current_user)):
    """Return the signed-in user's profile and balance."""
    return UserOut.from_user(user)
