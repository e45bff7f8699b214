from typing import List
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import ensure_owner
from casegen.api.errors import BadRequestError, NotFoundError
from casegen.api.models.template import TemplateCreate, TemplateUpdate, TemplateImportRequest
from casegen.db.models import TestCaseTemplate, User
from casegen.doc_analyzer.document_parser import decode_base64
from casegen.doc_analyzer.excel_importer import import_template_from_excel

class TemplateService:
    """测试用例模板服务

    系统模板对所有用户可见，只有所有者或管理员可以修改和删除。
    """

    @classmethod
    async def list_templates(cls, user: User, db: AsyncSession) -> List[TestCaseTemplate]:
        query = select(TestCaseTemplate)
        if not user.is_admin:
            query = query.where(or_(
                TestCaseTemplate.user_id == user.id,
                TestCaseTemplate.is_system.is_(True)
            ))
        query = query.order_by(TestCaseTemplate.created_at.desc(), TestCaseTemplate.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @classmethod
    async def get_template(cls, template_id: int, user: User, db: AsyncSession) -> TestCaseTemplate:
        """获取可读的模板"""
        template = await db.get(TestCaseTemplate, template_id)
        if not template:
            raise NotFoundError("模板不存在")
        if not template.is_system:
            ensure_owner(user, template.user_id, "无权访问此模板")
        return template

    @classmethod
    async def _get_writable(cls, template_id: int, user: User, db: AsyncSession, message: str) -> TestCaseTemplate:
        template = await db.get(TestCaseTemplate, template_id)
        if not template:
            raise NotFoundError("模板不存在")
        ensure_owner(user, template.user_id, message)
        return template

    @classmethod
    async def create_template(cls, data: TemplateCreate, user: User, db: AsyncSession) -> TestCaseTemplate:
        """创建模板，只有管理员可以创建系统模板"""
        template = TestCaseTemplate(
            user_id=user.id,
            name=data.name,
            description=data.description,
            module_type=data.module_type,
            template_content=[case.model_dump() for case in data.template_content],
            is_system=data.is_system and user.is_admin,
        )
        db.add(template)
        await db.commit()
        await db.refresh(template)
        logger.info(f"模板创建成功: {template.name}, ID: {template.id}")
        return template

    @classmethod
    async def import_template(cls, data: TemplateImportRequest, user: User, db: AsyncSession) -> TestCaseTemplate:
        """从Excel导入模板"""
        try:
            content = decode_base64(data.file_data)
        except ValueError as e:
            raise BadRequestError(str(e))

        parsed = import_template_from_excel(content)
        template = TestCaseTemplate(
            user_id=user.id,
            name=parsed["name"],
            description=parsed["description"],
            module_type=parsed["module_type"],
            template_content=parsed["template_content"],
            is_system=data.is_system and user.is_admin,
        )
        db.add(template)
        await db.commit()
        await db.refresh(template)
        logger.info(f"模板导入成功: {template.name}, 用例数量: {len(template.template_content)}")
        return template

    @classmethod
    async def update_template(
        cls,
        template_id: int,
        data: TemplateUpdate,
        user: User,
        db: AsyncSession
    ) -> TestCaseTemplate:
        template = await cls._get_writable(template_id, user, db, "无权修改此模板")

        values = data.model_dump(exclude_unset=True)
        for field in ("name", "description", "module_type"):
            if field in values and (values[field] is not None or field != "name"):
                setattr(template, field, values[field])
        if data.template_content is not None:
            template.template_content = [case.model_dump() for case in data.template_content]

        await db.commit()
        await db.refresh(template)
        logger.info(f"模板更新成功: {template_id}")
        return template

    @classmethod
    async def delete_template(cls, template_id: int, user: User, db: AsyncSession) -> None:
        template = await cls._get_writable(template_id, user, db, "无权删除此模板")
        await db.delete(template)
        await db.commit()
        logger.info(f"模板删除成功: {template_id}")
