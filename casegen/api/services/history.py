from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.errors import ForbiddenError, NotFoundError
from casegen.db.models import GenerationHistory, User

class HistoryService:
    """用例生成历史服务"""

    @classmethod
    async def create_history(
        cls,
        user_id: int,
        document_id: int,
        mode: str,
        db: AsyncSession,
        generator_name: Optional[str] = None,
        model_name: Optional[str] = None
    ) -> GenerationHistory:
        """创建pending状态的生成记录并立即提交"""
        history = GenerationHistory(
            user_id=user_id,
            document_id=document_id,
            mode=mode,
            status="pending",
            case_count=0,
            generator_name=generator_name,
            model_name=model_name,
        )
        db.add(history)
        await db.commit()
        await db.refresh(history)
        return history

    @classmethod
    async def set_generator(
        cls,
        history: GenerationHistory,
        db: AsyncSession,
        generator_name: Optional[str] = None,
        model_name: Optional[str] = None
    ) -> None:
        """模板或模型确定后补记生成器名称"""
        history.generator_name = generator_name
        history.model_name = model_name
        await db.commit()

    @classmethod
    async def mark_completed(cls, history: GenerationHistory, case_count: int, db: AsyncSession) -> None:
        history.status = "completed"
        history.case_count = case_count
        history.error_message = None
        await db.commit()
        logger.info(f"用例生成完成, 历史ID: {history.id}, 数量: {case_count}")

    @classmethod
    async def mark_failed(cls, history: GenerationHistory, error_message: str, db: AsyncSession) -> None:
        history.status = "failed"
        history.error_message = error_message
        await db.commit()
        logger.warning(f"用例生成失败, 历史ID: {history.id}, 原因: {error_message}")

    @classmethod
    async def list_history(cls, user: User, db: AsyncSession) -> List[GenerationHistory]:
        """获取生成历史，普通用户只能看到自己的记录"""
        query = select(GenerationHistory)
        if not user.is_admin:
            query = query.where(GenerationHistory.user_id == user.id)
        query = query.order_by(GenerationHistory.created_at.desc(), GenerationHistory.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @classmethod
    async def delete_history(cls, history_id: int, user: User, db: AsyncSession) -> None:
        if not user.is_admin:
            raise ForbiddenError("只有管理员可以删除历史记录")
        history = await db.get(GenerationHistory, history_id)
        if not history:
            raise NotFoundError("历史记录不存在")
        await db.delete(history)
        await db.commit()
        logger.info(f"历史记录删除成功: {history_id}")
