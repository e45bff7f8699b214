from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import get_current_user
from casegen.api.errors import AppError
from casegen.api.models.base import ResponseModel
from casegen.api.models.history import HistoryInfo
from casegen.api.services.history import HistoryService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/history", tags=["history"])

@router.get("")
async def list_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[HistoryInfo]]:
    """获取用例生成历史"""
    try:
        records = await HistoryService.list_history(user, db)
        return ResponseModel(data=[HistoryInfo.model_validate(record) for record in records])
    except Exception as e:
        logger.error(f"获取生成历史失败: {str(e)}")
        raise AppError("获取生成历史失败")

@router.delete("/{history_id}")
async def delete_history(
    history_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """删除生成历史，仅管理员可操作"""
    try:
        await HistoryService.delete_history(history_id, user, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除生成历史失败: {str(e)}")
        raise AppError("删除生成历史失败")
