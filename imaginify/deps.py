"""Shared FastAPI dependencies."""

from fastapi import Request

from imaginify.core.exceptions import UnauthorizedError
from imaginify.core.security import load_session_cookie
from imaginify.db.store import MongoStore
from imaginify.models.user import User
from imaginify.services import users as users_service
from imaginify.services.revalidation import Revalidator

SESSION_COOKIE_NAME = "imaginify_session"


def get_store(request: Request) -> MongoStore:
    return request.app.state.store


def get_revalidator(request: Request) -> Revalidator:
    return request.app.state.revalidator


async def get_current_user(request: Request) -> User:
    """Dependency: load session from cookie and return the signed-in User."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload or not payload.get("clerk_id"):
        raise UnauthorizedError("Invalid or expired session")
    found = await users_service.get_user_by_clerk_id(get_store(request), payload["clerk_id"])
    if not found.is_ok:
        raise UnauthorizedError("User not found")
    return found.value
