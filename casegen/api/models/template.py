from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from .case import Priority, CaseType

class TemplateCase(BaseModel):
    """模板中的用例骨架"""
    scenario: str = Field(..., min_length=1)
    precondition: str = ""
    steps: List[str] = []
    expected_result: str = Field(..., min_length=1)
    priority: Priority = "P2"
    case_type: CaseType = "functional"

class TemplateCreate(BaseModel):
    """模板创建模型"""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    module_type: Optional[str] = None
    template_content: List[TemplateCase] = Field(..., min_length=1)
    is_system: bool = False

class TemplateUpdate(BaseModel):
    """模板更新模型"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    module_type: Optional[str] = None
    template_content: Optional[List[TemplateCase]] = Field(None, min_length=1)

class TemplateImportRequest(BaseModel):
    """模板导入请求模型"""
    file_data: str = Field(..., min_length=1, description="base64编码的Excel文件")
    is_system: bool = False

class TemplateImportResult(BaseModel):
    """模板导入结果模型"""
    id: int
    name: str
    case_count: int

class TemplateInfo(BaseModel):
    """模板信息模型"""
    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    module_type: Optional[str] = None
    template_content: List[TemplateCase]
    is_system: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
