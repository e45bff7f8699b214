from datetime import datetime, timedelta
from typing import Optional
import bcrypt
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.config.settings import settings
from casegen.db.models import User

def get_password_hash(password: str) -> str:
    """生成密码哈希"""
    # bcrypt 只使用前72字节
    password_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.auth.AUTH_BCRYPT_ROUNDS))
    return hashed.decode("utf-8")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """校验密码"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        return False

def create_session_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """创建会话令牌"""
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.auth.AUTH_SESSION_EXPIRE_DAYS))
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "exp": expire,
        "type": "session",
    }
    return jwt.encode(payload, settings.auth.AUTH_SECRET_KEY, algorithm=settings.auth.AUTH_ALGORITHM)

def decode_session_token(token: str) -> Optional[int]:
    """解析会话令牌，返回用户ID，无效时返回None"""
    try:
        payload = jwt.decode(token, settings.auth.AUTH_SECRET_KEY, algorithms=[settings.auth.AUTH_ALGORITHM])
    except JWTError as e:
        logger.debug(f"会话令牌无效: {str(e)}")
        return None
    if payload.get("type") != "session":
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None

class AuthService:
    """认证服务"""

    @classmethod
    async def get_user_by_username(cls, username: str, db: AsyncSession) -> Optional[User]:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    @classmethod
    async def get_user_by_id(cls, user_id: int, db: AsyncSession) -> Optional[User]:
        return await db.get(User, user_id)

    @classmethod
    async def authenticate(cls, username: str, password: str, db: AsyncSession) -> Optional[User]:
        """校验用户名密码，停用账号视为认证失败

        Returns:
            Optional[User]: 认证成功的用户
        """
        user = await cls.get_user_by_username(username, db)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"登录失败: {username}")
            return None
        if user.status != "active":
            logger.warning(f"停用账号尝试登录: {username}")
            return None

        user.last_signed_in = datetime.now()
        await db.commit()
        await db.refresh(user)
        logger.info(f"用户登录成功: {username}")
        return user

    @classmethod
    async def ensure_default_admin(cls, db: AsyncSession) -> User:
        """确保默认管理员存在"""
        username = settings.auth.AUTH_ADMIN_USERNAME
        user = await cls.get_user_by_username(username, db)
        if user:
            return user

        user = User(
            username=username,
            password_hash=get_password_hash(settings.auth.AUTH_ADMIN_PASSWORD),
            name=settings.auth.AUTH_ADMIN_NAME,
            role="admin",
            status="active",
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"已创建默认管理员账号: {username}")
        return user
