from typing import Any, Dict
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import get_current_user
from casegen.api.errors import AppError
from casegen.api.models.base import ResponseModel
from casegen.api.models.case import ExecutionStats
from casegen.api.services.stats import StatsService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/stats", tags=["stats"])

@router.get("/execution")
async def get_execution_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[ExecutionStats]:
    """获取用例执行统计"""
    try:
        return ResponseModel(data=await StatsService.execution_stats(user, db))
    except Exception as e:
        logger.error(f"获取执行统计失败: {str(e)}")
        raise AppError("获取执行统计失败")

@router.get("/dashboard")
async def get_dashboard_data(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[Dict[str, Any]]:
    """获取仪表盘数据"""
    try:
        return ResponseModel(data=await StatsService.dashboard(user, db))
    except Exception as e:
        logger.error(f"获取仪表盘数据失败: {str(e)}")
        raise AppError("获取仪表盘数据失败")
