from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import require_admin
from casegen.api.errors import AppError
from casegen.api.models.base import ResponseModel
from casegen.api.models.user import UserInfo, UserCreate, UserUpdate, PasswordReset
from casegen.api.services.user import UserService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/users", tags=["users"])

@router.get("")
async def list_users(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[UserInfo]]:
    """获取用户列表"""
    try:
        users = await UserService.list_users(db)
        return ResponseModel(data=[UserInfo.model_validate(user) for user in users])
    except Exception as e:
        logger.error(f"获取用户列表失败: {str(e)}")
        raise AppError("获取用户列表失败")

@router.post("")
async def create_user(
    request: UserCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[UserInfo]:
    """创建用户"""
    try:
        user = await UserService.create_user(request, db)
        return ResponseModel(data=UserInfo.model_validate(user))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"创建用户失败: {str(e)}")
        raise AppError("创建用户失败")

@router.put("/{user_id}")
async def update_user(
    user_id: int,
    request: UserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[UserInfo]:
    """更新用户信息、角色或状态"""
    try:
        user = await UserService.update_user(user_id, request, db)
        return ResponseModel(data=UserInfo.model_validate(user))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新用户失败: {str(e)}")
        raise AppError("更新用户失败")

@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    request: PasswordReset,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """重置用户密码"""
    try:
        await UserService.reset_password(user_id, request.password, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"重置密码失败: {str(e)}")
        raise AppError("重置密码失败")

@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """删除用户"""
    try:
        await UserService.delete_user(user_id, admin, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除用户失败: {str(e)}")
        raise AppError("删除用户失败")
