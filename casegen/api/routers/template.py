from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import get_current_user
from casegen.api.errors import AppError, BadRequestError
from casegen.api.models.base import ResponseModel
from casegen.api.models.template import (
    TemplateInfo,
    TemplateCreate,
    TemplateUpdate,
    TemplateImportRequest,
    TemplateImportResult,
)
from casegen.api.services.template import TemplateService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/templates", tags=["templates"])

@router.get("")
async def list_templates(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[TemplateInfo]]:
    """获取模板列表，包含自己的模板和系统模板"""
    try:
        templates = await TemplateService.list_templates(user, db)
        return ResponseModel(data=[TemplateInfo.model_validate(t) for t in templates])
    except Exception as e:
        logger.error(f"获取模板列表失败: {str(e)}")
        raise AppError("获取模板列表失败")

@router.post("/import")
async def import_template(
    request: TemplateImportRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[TemplateImportResult]:
    """从Excel导入模板"""
    try:
        template = await TemplateService.import_template(request, user, db)
        return ResponseModel(data=TemplateImportResult(
            id=template.id,
            name=template.name,
            case_count=len(template.template_content or [])
        ))
    except HTTPException:
        raise
    except ValueError as e:
        raise BadRequestError(str(e))
    except Exception as e:
        logger.error(f"导入模板失败: {str(e)}")
        raise AppError("导入模板失败")

@router.get("/{template_id}")
async def get_template(
    template_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[TemplateInfo]:
    """获取模板详情"""
    try:
        template = await TemplateService.get_template(template_id, user, db)
        return ResponseModel(data=TemplateInfo.model_validate(template))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取模板详情失败: {str(e)}")
        raise AppError("获取模板详情失败")

@router.post("")
async def create_template(
    request: TemplateCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[TemplateInfo]:
    """创建模板"""
    try:
        template = await TemplateService.create_template(request, user, db)
        return ResponseModel(data=TemplateInfo.model_validate(template))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"创建模板失败: {str(e)}")
        raise AppError("创建模板失败")

@router.put("/{template_id}")
async def update_template(
    template_id: int,
    request: TemplateUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[TemplateInfo]:
    """更新模板"""
    try:
        template = await TemplateService.update_template(template_id, request, user, db)
        return ResponseModel(data=TemplateInfo.model_validate(template))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新模板失败: {str(e)}")
        raise AppError("更新模板失败")

@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """删除模板"""
    try:
        await TemplateService.delete_template(template_id, user, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除模板失败: {str(e)}")
        raise AppError("删除模板失败")
