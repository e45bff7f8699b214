from typing import List, Optional
from sqlalchemy import select, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.ai_core import llm_client
from casegen.ai_core.prompt_template import PromptTemplate
from casegen.api.deps import ensure_owner
from casegen.api.errors import BadRequestError, NotFoundError
from casegen.api.models.ai_model import AIModelCreate, AIModelUpdate, ConnectionTestResult
from casegen.db.models import AIModel, User

class AIModelService:
    """AI模型配置服务"""

    @classmethod
    async def list_models(cls, user: User, db: AsyncSession) -> List[AIModel]:
        """获取模型列表，普通用户可见自己的模型和系统模型"""
        query = select(AIModel)
        if not user.is_admin:
            query = query.where(or_(AIModel.user_id == user.id, AIModel.is_system.is_(True)))
        query = query.order_by(AIModel.is_default.desc(), AIModel.created_at.desc(), AIModel.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @classmethod
    async def get_model(cls, model_id: int, user: User, db: AsyncSession) -> AIModel:
        """获取可使用的模型"""
        model = await db.get(AIModel, model_id)
        if not model:
            raise NotFoundError("模型不存在")
        if not model.is_system:
            ensure_owner(user, model.user_id, "无权使用此模型")
        return model

    @classmethod
    async def _get_writable(cls, model_id: int, user: User, db: AsyncSession) -> AIModel:
        model = await db.get(AIModel, model_id)
        if not model:
            raise NotFoundError("模型不存在")
        ensure_owner(user, model.user_id, "无权修改此模型")
        return model

    @classmethod
    async def get_default(cls, user: User, db: AsyncSession) -> Optional[AIModel]:
        """获取默认模型，优先用户自己的默认模型，其次系统默认模型"""
        result = await db.execute(
            select(AIModel)
            .where(AIModel.is_default.is_(True))
            .where(or_(AIModel.user_id == user.id, AIModel.is_system.is_(True)))
            .order_by((AIModel.user_id == user.id).desc(), AIModel.id.desc())
        )
        return result.scalars().first()

    @classmethod
    async def _clear_default(cls, user_id: int, db: AsyncSession) -> None:
        await db.execute(
            update(AIModel)
            .where(AIModel.user_id == user_id)
            .values(is_default=False)
        )

    @classmethod
    async def create_model(cls, data: AIModelCreate, user: User, db: AsyncSession) -> AIModel:
        if data.provider == "custom" and not data.api_url:
            raise BadRequestError("自定义模型需要配置API地址")

        if data.is_default:
            await cls._clear_default(user.id, db)

        model = AIModel(
            user_id=user.id,
            name=data.name,
            provider=data.provider,
            model_id=data.model_id,
            api_url=data.api_url or None,
            api_key=data.api_key or None,
            is_default=data.is_default,
            is_system=data.is_system and user.is_admin,
        )
        db.add(model)
        await db.commit()
        await db.refresh(model)
        logger.info(f"AI模型创建成功: {model.name}, 服务商: {model.provider}")
        return model

    @classmethod
    async def update_model(cls, model_id: int, data: AIModelUpdate, user: User, db: AsyncSession) -> AIModel:
        model = await cls._get_writable(model_id, user, db)
        for field, value in data.model_dump(exclude_unset=True).items():
            # 空密钥表示保留原值
            if field == "api_key" and not value:
                continue
            if value is not None or field == "api_url":
                setattr(model, field, value)
        if model.provider == "custom" and not model.api_url:
            raise BadRequestError("自定义模型需要配置API地址")

        await db.commit()
        await db.refresh(model)
        logger.info(f"AI模型更新成功: {model_id}")
        return model

    @classmethod
    async def delete_model(cls, model_id: int, user: User, db: AsyncSession) -> None:
        model = await cls._get_writable(model_id, user, db)
        await db.delete(model)
        await db.commit()
        logger.info(f"AI模型删除成功: {model_id}")

    @classmethod
    async def set_default(cls, model_id: int, user: User, db: AsyncSession) -> AIModel:
        """设置默认模型，同一用户只有一个默认模型"""
        model = await cls._get_writable(model_id, user, db)
        await cls._clear_default(model.user_id, db)
        model.is_default = True
        await db.commit()
        await db.refresh(model)
        logger.info(f"默认AI模型已设置: {model.name}")
        return model

    @classmethod
    async def test_connection(cls, model_id: int, user: User, db: AsyncSession) -> ConnectionTestResult:
        """发送一条简单消息测试模型连通性"""
        model = await cls.get_model(model_id, user, db)
        messages = [{"role": "user", "content": PromptTemplate().render("connection_test")}]
        try:
            reply = await llm_client.invoke_llm(messages, model)
        except Exception as e:
            logger.warning(f"AI模型连接测试失败: {model.name}, 错误: {str(e)}")
            return ConnectionTestResult(success=False, message=str(e))
        logger.info(f"AI模型连接测试成功: {model.name}")
        return ConnectionTestResult(success=True, message=reply[:200])
