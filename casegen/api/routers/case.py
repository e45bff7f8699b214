from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.ai_core.errors import AIGenerationError
from casegen.api.deps import get_current_user
from casegen.api.errors import AppError, BadRequestError
from casegen.api.models.base import ResponseModel
from casegen.api.models.case import (
    CaseInfo,
    CaseUpdate,
    CaseVersionInfo,
    BatchIdsRequest,
    BatchStatusRequest,
    BatchResult,
    CaseImportRequest,
    TemplateGenerateRequest,
    AIGenerateRequest,
    GenerationResult,
    ExportRequest,
    ExportResult,
)
from casegen.api.models.document import DocumentInfo
from casegen.api.services.case import CaseService
from casegen.api.services.document import DocumentService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/cases", tags=["cases"])

@router.get("")
async def search_cases(
    keyword: Optional[str] = Query(None, description="在测试场景、模块、用例编号中搜索"),
    module: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    case_type: Optional[str] = Query(None),
    execution_status: Optional[str] = Query(None),
    generation_mode: Optional[str] = Query(None),
    document_id: Optional[int] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[CaseInfo]]:
    """搜索测试用例"""
    try:
        cases = await CaseService.search_cases(
            user, db,
            keyword=keyword,
            module=module,
            priority=priority,
            case_type=case_type,
            execution_status=execution_status,
            generation_mode=generation_mode,
            document_id=document_id
        )
        return ResponseModel(data=[CaseInfo.model_validate(case) for case in cases])
    except Exception as e:
        logger.error(f"获取测试用例列表失败: {str(e)}")
        raise AppError("获取测试用例列表失败")

@router.get("/modules")
async def get_modules(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[str]]:
    """获取用例中的模块列表，用于筛选"""
    try:
        return ResponseModel(data=await CaseService.get_modules(user, db))
    except Exception as e:
        logger.error(f"获取模块列表失败: {str(e)}")
        raise AppError("获取模块列表失败")

@router.get("/documents")
async def get_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[DocumentInfo]]:
    """获取可用于筛选的文档列表"""
    try:
        documents = await DocumentService.list_documents(user, db)
        return ResponseModel(data=[DocumentInfo.model_validate(doc) for doc in documents])
    except Exception as e:
        logger.error(f"获取文档列表失败: {str(e)}")
        raise AppError("获取文档列表失败")

@router.post("/batch-delete")
async def batch_delete_cases(
    request: BatchIdsRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[BatchResult]:
    """批量删除测试用例，无权操作的ID会被忽略"""
    try:
        count = await CaseService.batch_delete(request.ids, user, db)
        return ResponseModel(data=BatchResult(count=count))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"批量删除测试用例失败: {str(e)}")
        raise AppError("批量删除测试用例失败")

@router.post("/batch-status")
async def batch_update_status(
    request: BatchStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[BatchResult]:
    """批量更新执行状态"""
    try:
        count = await CaseService.batch_update_status(
            request.ids, request.execution_status, request.execution_result, user, db
        )
        return ResponseModel(data=BatchResult(count=count))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"批量更新执行状态失败: {str(e)}")
        raise AppError("批量更新执行状态失败")

@router.post("/import")
async def import_cases(
    request: CaseImportRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[BatchResult]:
    """从Excel导入测试用例"""
    try:
        count = await CaseService.import_cases(request, user, db)
        return ResponseModel(data=BatchResult(count=count))
    except HTTPException:
        raise
    except ValueError as e:
        raise BadRequestError(str(e))
    except Exception as e:
        logger.error(f"导入测试用例失败: {str(e)}")
        raise AppError("导入测试用例失败")

@router.post("/generate/template")
async def generate_with_template(
    request: TemplateGenerateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[GenerationResult]:
    """使用内置用例库或自定义模板生成测试用例"""
    try:
        result = await CaseService.generate_with_template(request.document_id, request.template_id, user, db)
        return ResponseModel(data=result)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"模板生成测试用例失败: {str(e)}")
        raise AppError(f"模板生成测试用例失败: {str(e)}")

@router.post("/generate/ai")
async def generate_with_ai(
    request: AIGenerateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[GenerationResult]:
    """调用大模型生成测试用例"""
    try:
        result = await CaseService.generate_with_ai(request.document_id, request.model_id, user, db)
        return ResponseModel(data=result)
    except HTTPException:
        raise
    except AIGenerationError as e:
        raise AppError(str(e))
    except Exception as e:
        logger.error(f"AI生成测试用例失败: {str(e)}")
        raise AppError(f"AI生成测试用例失败: {str(e)}")

@router.post("/export")
async def export_cases(
    request: ExportRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[ExportResult]:
    """导出测试用例到Excel，返回文件下载地址"""
    try:
        return ResponseModel(data=await CaseService.export_cases(request, user, db))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"导出测试用例失败: {str(e)}")
        raise AppError("导出测试用例失败")

@router.get("/{case_id}")
async def get_case(
    case_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[CaseInfo]:
    """获取测试用例详情"""
    try:
        case = await CaseService.get_case(case_id, user, db)
        return ResponseModel(data=CaseInfo.model_validate(case))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取测试用例详情失败: {str(e)}")
        raise AppError("获取测试用例详情失败")

@router.put("/{case_id}")
async def update_case(
    case_id: int,
    request: CaseUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[CaseInfo]:
    """更新测试用例，修改前的内容会保存为历史版本"""
    try:
        case = await CaseService.update_case(case_id, request, user, db)
        return ResponseModel(data=CaseInfo.model_validate(case))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新测试用例失败: {str(e)}")
        raise AppError("更新测试用例失败")

@router.delete("/{case_id}")
async def delete_case(
    case_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """删除测试用例"""
    try:
        await CaseService.delete_case(case_id, user, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除测试用例失败: {str(e)}")
        raise AppError("删除测试用例失败")

@router.post("/{case_id}/copy")
async def copy_case(
    case_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[CaseInfo]:
    """复制测试用例"""
    try:
        case = await CaseService.copy_case(case_id, user, db)
        return ResponseModel(data=CaseInfo.model_validate(case))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"复制测试用例失败: {str(e)}")
        raise AppError("复制测试用例失败")

@router.get("/{case_id}/versions")
async def get_versions(
    case_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[CaseVersionInfo]]:
    """获取测试用例的历史版本"""
    try:
        versions = await CaseService.get_versions(case_id, user, db)
        return ResponseModel(data=[CaseVersionInfo.model_validate(v) for v in versions])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取用例版本失败: {str(e)}")
        raise AppError("获取用例版本失败")

@router.post("/{case_id}/versions/{version_id}/rollback")
async def rollback_version(
    case_id: int,
    version_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[CaseInfo]:
    """回滚测试用例到指定版本"""
    try:
        case = await CaseService.rollback_to_version(case_id, version_id, user, db)
        return ResponseModel(data=CaseInfo.model_validate(case))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"回滚测试用例失败: {str(e)}")
        raise AppError("回滚测试用例失败")
