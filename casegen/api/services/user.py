from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.errors import BadRequestError, NotFoundError
from casegen.api.models.user import UserCreate, UserUpdate
from casegen.api.services.auth import AuthService, get_password_hash
from casegen.db.models import User

class UserService:
    """用户管理服务，仅管理员可调用"""

    @classmethod
    async def list_users(cls, db: AsyncSession) -> List[User]:
        result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
        return list(result.scalars().all())

    @classmethod
    async def get_user(cls, user_id: int, db: AsyncSession) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError("用户不存在")
        return user

    @classmethod
    async def create_user(cls, data: UserCreate, db: AsyncSession) -> User:
        """创建用户"""
        if await AuthService.get_user_by_username(data.username, db):
            raise BadRequestError("用户名已存在")

        user = User(
            username=data.username,
            password_hash=get_password_hash(data.password),
            name=data.name,
            email=data.email,
            role=data.role,
            status="active",
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"用户创建成功: {user.username}")
        return user

    @classmethod
    async def update_user(cls, user_id: int, data: UserUpdate, db: AsyncSession) -> User:
        """更新用户信息"""
        user = await cls.get_user(user_id, db)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, field, value)
        await db.commit()
        await db.refresh(user)
        logger.info(f"用户信息更新成功: {user.username}")
        return user

    @classmethod
    async def reset_password(cls, user_id: int, password: str, db: AsyncSession) -> None:
        user = await cls.get_user(user_id, db)
        user.password_hash = get_password_hash(password)
        await db.commit()
        logger.info(f"用户密码已重置: {user.username}")

    @classmethod
    async def delete_user(cls, user_id: int, current_user: User, db: AsyncSession) -> None:
        """删除用户，不能删除自己"""
        if user_id == current_user.id:
            raise BadRequestError("不能删除当前登录的账号")
        user = await cls.get_user(user_id, db)
        await db.delete(user)
        await db.commit()
        logger.info(f"用户删除成功: {user.username}")
