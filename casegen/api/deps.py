from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from casegen.api.errors import ForbiddenError, UnauthorizedError
from casegen.api.services.auth import decode_session_token
from casegen.config.settings import settings
from casegen.db.models import User
from casegen.db.session import get_db

async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """从会话Cookie解析当前用户，未登录或账号停用时返回None"""
    token = request.cookies.get(settings.auth.AUTH_COOKIE_NAME)
    if not token:
        return None
    user_id = decode_session_token(token)
    if user_id is None:
        return None
    user = await db.get(User, user_id)
    if not user or user.status != "active":
        return None
    return user

async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """要求已登录用户"""
    if user is None:
        raise UnauthorizedError("请先登录")
    return user

async def require_admin(user: User = Depends(get_current_user)) -> User:
    """要求管理员"""
    if not user.is_admin:
        raise ForbiddenError("无权访问")
    return user

def can_access(user: User, owner_id: int) -> bool:
    """管理员或资源所有者可访问"""
    return user.is_admin or owner_id == user.id

def ensure_owner(user: User, owner_id: int, message: str = "无权访问") -> None:
    """非所有者且非管理员时抛出FORBIDDEN"""
    if not can_access(user, owner_id):
        raise ForbiddenError(message)
