from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

class HistoryInfo(BaseModel):
    """生成历史信息模型"""
    id: int
    user_id: int
    document_id: int
    mode: str
    case_count: int
    status: str
    error_message: Optional[str] = None
    generator_name: Optional[str] = None
    model_name: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
