"""Shared FastAPI dependencies."""

from fastapi import Request

from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.core.logging import bind_user_id
from app.core.security import load_session_cookie
from app.models.call_config import RateConfig
from app.models.user import User
from app.services.settlement import SettlementEngine
from app.services.wallets import MongoWalletStore

SESSION_COOKIE_NAME = "coinlive_session"


async def get_current_user(request: Request) -> User:
    """Dependency: load session from cookie and return User."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        raise UnauthorizedError("Not authenticated")
    payload = load_session_cookie(cookie)
    if not payload:
        raise UnauthorizedError("Invalid or expired session")
    user_id = payload.get("user_id")
    if not user_id:
        raise UnauthorizedError("Invalid session")
    user = await User.get(user_id)
    if not user:
        raise UnauthorizedError("User not found")
    if payload.get("session_version") != user.session_version:
        raise UnauthorizedError("Session invalidated")
    if user.is_blocked:
        raise ForbiddenError("Account blocked")
    bind_user_id(str(user.id))
    return user


async def require_admin(request: Request) -> User:
    """Dependency: require current user to have role admin."""
    user = await get_current_user(request)
    if getattr(user, "role", "user") != "admin":
        raise ForbiddenError("Admin only")
    return user


async def get_rate_config(request: Request) -> RateConfig:
    """Dependency: current rate snapshot from the app's cached provider."""
    return await request.app.state.rates.get()


def get_settlement_engine() -> SettlementEngine:
    return SettlementEngine(MongoWalletStore())
