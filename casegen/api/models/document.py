from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class DocumentInfo(BaseModel):
    """文档信息模型"""
    id: int
    user_id: int
    file_name: str
    file_type: str
    file_url: str
    status: str
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class DocumentDetail(DocumentInfo):
    """文档详情模型，包含解析后的文本"""
    parsed_content: Optional[str] = None

class DocumentUpload(BaseModel):
    """文档上传请求模型"""
    file_name: str = Field(..., min_length=1, max_length=255)
    file_type: Optional[str] = Field(None, description="文件扩展名，缺省时从文件名推断")
    file_data: str = Field(..., min_length=1, description="base64编码的文件内容")

class DocumentUploadResult(BaseModel):
    """文档上传结果模型"""
    id: int
    success: bool = True

class DocumentDownload(BaseModel):
    """文档下载信息模型"""
    url: str
    file_name: str
