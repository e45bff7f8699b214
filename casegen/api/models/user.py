from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

class UserInfo(BaseModel):
    """用户信息模型"""
    id: int
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str
    status: str
    last_signed_in: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class LoginRequest(BaseModel):
    """登录请求模型"""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class LoginResult(BaseModel):
    """登录结果模型"""
    success: bool = True
    user: UserInfo

class UserCreate(BaseModel):
    """用户创建模型"""
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=6)
    name: Optional[str] = None
    email: Optional[str] = None
    role: Literal["user", "admin"] = "user"

class UserUpdate(BaseModel):
    """用户更新模型"""
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None
    status: Optional[Literal["active", "disabled"]] = None

class PasswordReset(BaseModel):
    """重置密码模型"""
    password: str = Field(..., min_length=6)
