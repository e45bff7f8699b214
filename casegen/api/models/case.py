from datetime import datetime
from typing import Any, Dict, List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

Priority = Literal["P0", "P1", "P2", "P3"]
CaseType = Literal["functional", "boundary", "exception", "performance"]
ExecutionStatus = Literal["pending", "passed", "failed"]

class CaseInfo(BaseModel):
    """测试用例信息模型"""
    id: int
    user_id: int
    document_id: Optional[int] = None
    case_number: str
    module: Optional[str] = None
    scenario: str
    precondition: Optional[str] = None
    steps: List[str] = []
    expected_result: str
    priority: str
    case_type: str
    generation_mode: str
    execution_status: str
    execution_result: Optional[str] = None
    executed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CaseUpdate(BaseModel):
    """用例更新请求模型"""
    module: Optional[str] = None
    scenario: Optional[str] = Field(None, min_length=1)
    precondition: Optional[str] = None
    steps: Optional[List[str]] = None
    expected_result: Optional[str] = Field(None, min_length=1)
    priority: Optional[Priority] = None
    case_type: Optional[CaseType] = None
    execution_status: Optional[ExecutionStatus] = None
    execution_result: Optional[str] = None
    change_note: Optional[str] = Field(None, max_length=500, description="修改说明")

class BatchIdsRequest(BaseModel):
    """批量操作请求模型"""
    ids: List[int] = Field(..., min_length=1)

class BatchStatusRequest(BatchIdsRequest):
    """批量更新执行状态请求模型"""
    execution_status: ExecutionStatus
    execution_result: Optional[str] = None

class BatchResult(BaseModel):
    """批量操作结果模型"""
    success: bool = True
    count: int

class CaseImportRequest(BaseModel):
    """用例导入请求模型"""
    file_data: str = Field(..., min_length=1, description="base64编码的Excel文件")
    file_name: Optional[str] = None
    document_id: Optional[int] = None

class TemplateGenerateRequest(BaseModel):
    """模板生成请求模型"""
    document_id: int
    template_id: Optional[int] = None

class AIGenerateRequest(BaseModel):
    """AI生成请求模型"""
    document_id: int
    model_id: Optional[int] = None

class GenerationResult(BaseModel):
    """生成结果模型"""
    success: bool = True
    count: int
    model_name: Optional[str] = None

class ExportRequest(BaseModel):
    """导出请求模型，ids与document_id都为空时导出全部可见用例"""
    ids: Optional[List[int]] = None
    document_id: Optional[int] = None

class ExportResult(BaseModel):
    """导出结果模型"""
    url: str
    count: int

class CaseVersionInfo(BaseModel):
    """用例版本信息模型"""
    id: int
    test_case_id: int
    user_id: int
    version: int
    snapshot: Dict[str, Any]
    change_note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ExecutionStats(BaseModel):
    """执行统计模型"""
    total: int = 0
    pending: int = 0
    passed: int = 0
    failed: int = 0
