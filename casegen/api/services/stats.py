from datetime import datetime, timedelta
from typing import Any, Dict
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.models.case import ExecutionStats
from casegen.db.models import Document, GenerationHistory, TestCase, User

RECENT_DAYS = 7

class StatsService:
    """统计服务，普通用户只统计自己的数据"""

    @classmethod
    def _scoped(cls, query, model, user: User):
        if not user.is_admin:
            query = query.where(model.user_id == user.id)
        return query

    @classmethod
    async def _count(cls, model, user: User, db: AsyncSession, *conditions) -> int:
        query = cls._scoped(select(func.count()).select_from(model), model, user)
        if conditions:
            query = query.where(*conditions)
        return await db.scalar(query) or 0

    @classmethod
    async def _group_count(cls, column, user: User, db: AsyncSession) -> Dict[str, int]:
        query = cls._scoped(select(column, func.count()), TestCase, user).group_by(column)
        result = await db.execute(query)
        return {key: count for key, count in result.all() if key is not None}

    @classmethod
    async def execution_stats(cls, user: User, db: AsyncSession) -> ExecutionStats:
        """按执行状态统计用例数量"""
        try:
            by_status = await cls._group_count(TestCase.execution_status, user, db)
            return ExecutionStats(
                total=sum(by_status.values()),
                pending=by_status.get("pending", 0),
                passed=by_status.get("passed", 0),
                failed=by_status.get("failed", 0),
            )
        except Exception as e:
            logger.error(f"获取执行统计失败: {str(e)}")
            raise

    @classmethod
    async def dashboard(cls, user: User, db: AsyncSession) -> Dict[str, Any]:
        """获取仪表盘数据

        Returns:
            Dict[str, Any]: 仪表盘数据，包括：
            - total_documents / total_cases / total_generations: 总数
            - recent_documents / recent_cases: 最近7天新增数量
            - case_stats: 用例按优先级、类型、生成方式、执行状态分类的数量
        """
        try:
            since = datetime.now() - timedelta(days=RECENT_DAYS)
            return {
                "total_documents": await cls._count(Document, user, db),
                "total_cases": await cls._count(TestCase, user, db),
                "total_generations": await cls._count(GenerationHistory, user, db),
                "recent_documents": await cls._count(Document, user, db, Document.created_at >= since),
                "recent_cases": await cls._count(TestCase, user, db, TestCase.created_at >= since),
                "case_stats": {
                    "by_priority": await cls._group_count(TestCase.priority, user, db),
                    "by_type": await cls._group_count(TestCase.case_type, user, db),
                    "by_mode": await cls._group_count(TestCase.generation_mode, user, db),
                    "by_status": await cls._group_count(TestCase.execution_status, user, db),
                },
            }
        except Exception as e:
            logger.error(f"获取仪表盘数据失败: {str(e)}")
            raise
