from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from casegen.utils.common import mask_secret

Provider = Literal["deepseek", "openai", "anthropic", "custom"]

class AIModelCreate(BaseModel):
    """AI模型创建模型"""
    name: str = Field(..., min_length=1, max_length=255)
    provider: Provider
    model_id: str = Field(..., min_length=1)
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    is_default: bool = False
    is_system: bool = False

class AIModelUpdate(BaseModel):
    """AI模型更新模型"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    provider: Optional[Provider] = None
    model_id: Optional[str] = Field(None, min_length=1)
    api_url: Optional[str] = None
    api_key: Optional[str] = None

class AIModelInfo(BaseModel):
    """AI模型信息模型，密钥只返回掩码"""
    id: int
    user_id: int
    name: str
    provider: str
    model_id: str
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    is_default: bool
    is_system: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("api_key")
    def serialize_api_key(self, value: Optional[str]) -> Optional[str]:
        return mask_secret(value)

class ConnectionTestResult(BaseModel):
    """连接测试结果模型"""
    success: bool
    message: str
