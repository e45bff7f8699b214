from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import get_optional_user
from casegen.api.errors import AppError, UnauthorizedError
from casegen.api.models.base import ResponseModel
from casegen.api.models.user import LoginRequest, LoginResult, UserInfo
from casegen.api.services.auth import AuthService, create_session_token
from casegen.config.settings import settings
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[LoginResult]:
    """用户名密码登录，成功后写入会话Cookie"""
    try:
        user = await AuthService.authenticate(request.username, request.password, db)
        if not user:
            raise UnauthorizedError("用户名或密码错误")

        response.set_cookie(
            key=settings.auth.AUTH_COOKIE_NAME,
            value=create_session_token(user),
            max_age=settings.auth.AUTH_SESSION_EXPIRE_DAYS * 24 * 3600,
            httponly=True,
            samesite="lax",
            secure=settings.auth.AUTH_COOKIE_SECURE,
            path="/",
        )
        return ResponseModel(data=LoginResult(user=UserInfo.model_validate(user)))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"登录失败: {str(e)}")
        raise AppError("登录失败")

@router.get("/me")
async def get_me(
    user: Optional[User] = Depends(get_optional_user)
) -> ResponseModel[Optional[UserInfo]]:
    """获取当前登录用户，未登录时返回null"""
    return ResponseModel(data=UserInfo.model_validate(user) if user else None)

@router.post("/logout")
async def logout(response: Response) -> ResponseModel[dict]:
    """退出登录，清除会话Cookie"""
    response.delete_cookie(
        key=settings.auth.AUTH_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.auth.AUTH_COOKIE_SECURE,
    )
    return ResponseModel(data={"success": True})
