from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import get_current_user
from casegen.api.errors import AppError
from casegen.api.models.ai_model import AIModelInfo, AIModelCreate, AIModelUpdate, ConnectionTestResult
from casegen.api.models.base import ResponseModel
from casegen.api.services.ai_model import AIModelService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/ai-models", tags=["ai-models"])

@router.get("")
async def list_models(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[AIModelInfo]]:
    """获取AI模型配置列表，密钥以掩码返回"""
    try:
        models = await AIModelService.list_models(user, db)
        return ResponseModel(data=[AIModelInfo.model_validate(model) for model in models])
    except Exception as e:
        logger.error(f"获取AI模型列表失败: {str(e)}")
        raise AppError("获取AI模型列表失败")

@router.get("/default")
async def get_default_model(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[Optional[AIModelInfo]]:
    """获取默认模型，未配置时返回null"""
    try:
        model = await AIModelService.get_default(user, db)
        return ResponseModel(data=AIModelInfo.model_validate(model) if model else None)
    except Exception as e:
        logger.error(f"获取默认AI模型失败: {str(e)}")
        raise AppError("获取默认AI模型失败")

@router.post("")
async def create_model(
    request: AIModelCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[AIModelInfo]:
    """添加AI模型配置"""
    try:
        model = await AIModelService.create_model(request, user, db)
        return ResponseModel(data=AIModelInfo.model_validate(model))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"创建AI模型失败: {str(e)}")
        raise AppError("创建AI模型失败")

@router.put("/{model_id}")
async def update_model(
    model_id: int,
    request: AIModelUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[AIModelInfo]:
    """更新AI模型配置，api_key为空时保留原密钥"""
    try:
        model = await AIModelService.update_model(model_id, request, user, db)
        return ResponseModel(data=AIModelInfo.model_validate(model))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"更新AI模型失败: {str(e)}")
        raise AppError("更新AI模型失败")

@router.delete("/{model_id}")
async def delete_model(
    model_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """删除AI模型配置"""
    try:
        await AIModelService.delete_model(model_id, user, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除AI模型失败: {str(e)}")
        raise AppError("删除AI模型失败")

@router.post("/{model_id}/default")
async def set_default_model(
    model_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[AIModelInfo]:
    """设为默认模型"""
    try:
        model = await AIModelService.set_default(model_id, user, db)
        return ResponseModel(data=AIModelInfo.model_validate(model))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"设置默认AI模型失败: {str(e)}")
        raise AppError("设置默认AI模型失败")

@router.post("/{model_id}/test")
async def test_model_connection(
    model_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[ConnectionTestResult]:
    """测试模型连接"""
    try:
        return ResponseModel(data=await AIModelService.test_connection(model_id, user, db))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"测试AI模型连接失败: {str(e)}")
        raise AppError("测试AI模型连接失败")
