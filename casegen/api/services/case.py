from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.ai_core.llm_client import model_display_name
from casegen.api.deps import ensure_owner
from casegen.api.errors import AppError, BadRequestError, NotFoundError
from casegen.api.models.case import (
    CaseUpdate,
    CaseImportRequest,
    ExportRequest,
    ExportResult,
    GenerationResult,
)
from casegen.api.services.ai_model import AIModelService
from casegen.api.services.document import DocumentService
from casegen.api.services.history import HistoryService
from casegen.api.services.template import TemplateService
from casegen.db.models import Document, GenerationHistory, TestCase, TestCaseVersion, User
from casegen.doc_analyzer.document_parser import decode_base64
from casegen.doc_analyzer.excel_exporter import export_test_cases_to_excel
from casegen.doc_analyzer.excel_importer import import_test_cases_from_excel
from casegen.storage.storage import get_storage_service
from casegen.test_engine import ai_generator, template_generator
from casegen.utils.common import current_millis, get_file_extension

EXCEL_EXTENSIONS = {"xlsx", "xls"}
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
BUILTIN_GENERATOR_NAME = "内置模板"

class CaseService:
    """测试用例服务"""

    @classmethod
    def _visible(cls, user: User):
        """当前用户可见的用例查询"""
        query = select(TestCase)
        if not user.is_admin:
            query = query.where(TestCase.user_id == user.id)
        return query

    @classmethod
    async def search_cases(
        cls,
        user: User,
        db: AsyncSession,
        keyword: Optional[str] = None,
        module: Optional[str] = None,
        priority: Optional[str] = None,
        case_type: Optional[str] = None,
        execution_status: Optional[str] = None,
        generation_mode: Optional[str] = None,
        document_id: Optional[int] = None
    ) -> List[TestCase]:
        """搜索测试用例

        Args:
            user: 当前用户
            db: 数据库会话
            keyword: 在测试场景、模块、用例编号中模糊匹配
            其余参数为精确过滤条件

        Returns:
            List[TestCase]: 按创建时间倒序的用例
        """
        try:
            query = cls._visible(user)
            if keyword:
                pattern = f"%{keyword}%"
                query = query.where(or_(
                    TestCase.scenario.like(pattern),
                    TestCase.module.like(pattern),
                    TestCase.case_number.like(pattern),
                ))
            filters = {
                TestCase.module: module,
                TestCase.priority: priority,
                TestCase.case_type: case_type,
                TestCase.execution_status: execution_status,
                TestCase.generation_mode: generation_mode,
                TestCase.document_id: document_id,
            }
            for column, value in filters.items():
                if value is not None and value != "":
                    query = query.where(column == value)

            query = query.order_by(TestCase.created_at.desc(), TestCase.id.desc())
            result = await db.execute(query)
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"查询测试用例失败: {str(e)}")
            raise

    @classmethod
    async def get_modules(cls, user: User, db: AsyncSession) -> List[str]:
        """获取用例中出现过的模块"""
        query = select(TestCase.module).distinct().where(TestCase.module.is_not(None), TestCase.module != "")
        if not user.is_admin:
            query = query.where(TestCase.user_id == user.id)
        result = await db.execute(query.order_by(TestCase.module))
        return [module for module in result.scalars().all()]

    @classmethod
    async def get_case(cls, case_id: int, user: User, db: AsyncSession) -> TestCase:
        case = await db.get(TestCase, case_id)
        if not case:
            raise NotFoundError("测试用例不存在")
        ensure_owner(user, case.user_id, "无权访问此测试用例")
        return case

    @classmethod
    async def _save_version(cls, case: TestCase, user: User, db: AsyncSession, note: Optional[str]) -> TestCaseVersion:
        """保存用例当前状态为新版本"""
        latest = await db.scalar(
            select(func.max(TestCaseVersion.version)).where(TestCaseVersion.test_case_id == case.id)
        )
        version = TestCaseVersion(
            test_case_id=case.id,
            user_id=user.id,
            version=(latest or 0) + 1,
            snapshot=case.snapshot(),
            change_note=note,
        )
        db.add(version)
        return version

    @classmethod
    def _apply_status(cls, case: TestCase, status: str) -> None:
        case.execution_status = status
        case.executed_at = datetime.now() if status != "pending" else None

    @classmethod
    async def update_case(cls, case_id: int, data: CaseUpdate, user: User, db: AsyncSession) -> TestCase:
        """更新用例，修改前的内容保存为版本快照"""
        case = await cls.get_case(case_id, user, db)
        values = data.model_dump(exclude_unset=True)
        change_note = values.pop("change_note", None)

        await cls._save_version(case, user, db, change_note)
        for field, value in values.items():
            if field == "execution_status":
                if value is not None:
                    cls._apply_status(case, value)
            elif value is not None or field in ("module", "precondition", "execution_result"):
                setattr(case, field, value)

        await db.commit()
        await db.refresh(case)
        logger.info(f"测试用例更新成功: {case.case_number}")
        return case

    @classmethod
    async def delete_case(cls, case_id: int, user: User, db: AsyncSession) -> None:
        case = await cls.get_case(case_id, user, db)
        await cls._delete_cases([case.id], db)
        await db.commit()
        logger.info(f"测试用例删除成功: {case_id}")

    @classmethod
    async def _delete_cases(cls, case_ids: List[int], db: AsyncSession) -> None:
        """删除用例及其版本快照"""
        await db.execute(delete(TestCaseVersion).where(TestCaseVersion.test_case_id.in_(case_ids)))
        await db.execute(delete(TestCase).where(TestCase.id.in_(case_ids)))

    @classmethod
    async def _accessible(cls, ids: List[int], user: User, db: AsyncSession) -> List[TestCase]:
        """过滤出当前用户可操作的用例"""
        result = await db.execute(cls._visible(user).where(TestCase.id.in_(ids)))
        return list(result.scalars().all())

    @classmethod
    async def batch_delete(cls, ids: List[int], user: User, db: AsyncSession) -> int:
        cases = await cls._accessible(ids, user, db)
        if not cases:
            raise BadRequestError("没有可删除的测试用例")
        await cls._delete_cases([case.id for case in cases], db)
        await db.commit()
        logger.info(f"批量删除测试用例: {len(cases)} 条")
        return len(cases)

    @classmethod
    async def batch_update_status(
        cls,
        ids: List[int],
        status: str,
        execution_result: Optional[str],
        user: User,
        db: AsyncSession
    ) -> int:
        cases = await cls._accessible(ids, user, db)
        if not cases:
            raise BadRequestError("没有可更新的测试用例")
        for case in cases:
            cls._apply_status(case, status)
            if execution_result is not None:
                case.execution_result = execution_result
        await db.commit()
        logger.info(f"批量更新执行状态: {len(cases)} 条 -> {status}")
        return len(cases)

    @classmethod
    async def copy_case(cls, case_id: int, user: User, db: AsyncSession) -> TestCase:
        """复制用例，副本归当前用户所有且执行状态重置"""
        source = await cls.get_case(case_id, user, db)
        values = source.snapshot()
        values.update(execution_status="pending", execution_result=None)
        copy = TestCase(
            user_id=user.id,
            document_id=source.document_id,
            case_number=f"{source.case_number}-copy",
            generation_mode=source.generation_mode,
            **values
        )
        db.add(copy)
        await db.commit()
        await db.refresh(copy)
        logger.info(f"测试用例复制成功: {source.case_number} -> {copy.id}")
        return copy

    @classmethod
    async def get_versions(cls, case_id: int, user: User, db: AsyncSession) -> List[TestCaseVersion]:
        await cls.get_case(case_id, user, db)
        result = await db.execute(
            select(TestCaseVersion)
            .where(TestCaseVersion.test_case_id == case_id)
            .order_by(TestCaseVersion.version.desc())
        )
        return list(result.scalars().all())

    @classmethod
    async def rollback_to_version(cls, case_id: int, version_id: int, user: User, db: AsyncSession) -> TestCase:
        """回滚到指定版本，回滚前的状态同样保存为新版本"""
        case = await cls.get_case(case_id, user, db)
        version = await db.get(TestCaseVersion, version_id)
        if not version or version.test_case_id != case.id:
            raise NotFoundError("版本不存在")

        await cls._save_version(case, user, db, f"回滚到版本 {version.version}")
        snapshot = version.snapshot or {}
        for field in TestCase.SNAPSHOT_FIELDS:
            if field == "execution_status":
                cls._apply_status(case, snapshot.get(field) or "pending")
            elif field in snapshot:
                setattr(case, field, snapshot[field])

        await db.commit()
        await db.refresh(case)
        logger.info(f"测试用例已回滚: {case.case_number} -> 版本 {version.version}")
        return case

    @classmethod
    def _add_cases(
        cls,
        cases: List[Dict[str, Any]],
        user: User,
        document_id: Optional[int],
        mode: str,
        db: AsyncSession
    ) -> None:
        for item in cases:
            db.add(TestCase(
                user_id=user.id,
                document_id=document_id,
                case_number=item["case_number"],
                module=item.get("module") or None,
                scenario=item["scenario"],
                precondition=item.get("precondition") or None,
                steps=list(item.get("steps") or []),
                expected_result=item["expected_result"],
                priority=item["priority"],
                case_type=item["case_type"],
                generation_mode=mode,
                execution_status="pending",
            ))

    @classmethod
    async def import_cases(cls, data: CaseImportRequest, user: User, db: AsyncSession) -> int:
        """从Excel导入测试用例

        Returns:
            int: 导入数量
        """
        if data.file_name and get_file_extension(data.file_name) not in EXCEL_EXTENSIONS:
            raise BadRequestError("仅支持xlsx或xls格式的Excel文件")
        if data.document_id is not None:
            await DocumentService.get_document(data.document_id, user, db)

        try:
            content = decode_base64(data.file_data)
        except ValueError as e:
            raise BadRequestError(str(e))

        cases = import_test_cases_from_excel(content)
        timestamp = current_millis()
        template_generator.ensure_unique_case_numbers(cases, lambda index: f"IMP-{timestamp}-{index}")

        cls._add_cases(cases, user, data.document_id, "import", db)
        await db.commit()
        logger.info(f"导入测试用例成功: {len(cases)} 条")
        return len(cases)

    @classmethod
    async def _get_parsed_document(cls, document_id: int, user: User, db: AsyncSession) -> Document:
        document = await DocumentService.get_document(document_id, user, db)
        if document.status != "parsed" or not document.parsed_content:
            raise BadRequestError("文档尚未解析完成")
        return document

    @classmethod
    async def _run_generation(
        cls,
        document: Document,
        mode: str,
        user: User,
        db: AsyncSession,
        produce: Callable[[GenerationHistory], Awaitable[List[Dict[str, Any]]]],
        generator_name: Optional[str] = None
    ) -> GenerationHistory:
        """执行生成并记录历史

        历史先以pending写入，模板和模型的查找也在produce中进行，
        成功后记为completed，任何失败都记为failed并重新抛出异常。
        """
        history = await HistoryService.create_history(
            user.id, document.id, mode, db,
            generator_name=generator_name
        )
        try:
            cases = await produce(history)
            cls._add_cases(cases, user, document.id, mode, db)
            await HistoryService.mark_completed(history, len(cases), db)
            return history
        except Exception as e:
            await db.rollback()
            await db.refresh(history)
            message = e.detail if isinstance(e, AppError) else str(e)
            await HistoryService.mark_failed(history, message, db)
            raise

    @classmethod
    async def generate_with_template(
        cls,
        document_id: int,
        template_id: Optional[int],
        user: User,
        db: AsyncSession
    ) -> GenerationResult:
        """使用内置用例库或自定义模板生成用例"""
        document = await cls._get_parsed_document(document_id, user, db)
        content = document.parsed_content

        async def produce(history: GenerationHistory) -> List[Dict[str, Any]]:
            if not template_id:
                return template_generator.generate_with_template(content, document.file_name)
            template = await TemplateService.get_template(template_id, user, db)
            await HistoryService.set_generator(history, db, generator_name=template.name)
            return template_generator.generate_with_custom_template(
                content, document.file_name, template.template_content
            )

        history = await cls._run_generation(
            document, "template", user, db, produce,
            generator_name=None if template_id else BUILTIN_GENERATOR_NAME
        )
        return GenerationResult(count=history.case_count)

    @classmethod
    async def generate_with_ai(
        cls,
        document_id: int,
        model_id: Optional[int],
        user: User,
        db: AsyncSession
    ) -> GenerationResult:
        """调用大模型生成用例，未指定模型时使用默认模型"""
        document = await cls._get_parsed_document(document_id, user, db)
        content = document.parsed_content

        async def produce(history: GenerationHistory) -> List[Dict[str, Any]]:
            if model_id:
                model = await AIModelService.get_model(model_id, user, db)
            else:
                model = await AIModelService.get_default(user, db)
            model_name = model_display_name(model)
            await HistoryService.set_generator(
                history, db, generator_name=model_name, model_name=model_name
            )
            return await ai_generator.generate_with_ai(content, document.file_name, model)

        history = await cls._run_generation(document, "ai", user, db, produce)
        return GenerationResult(count=history.case_count, model_name=history.model_name)

    @classmethod
    async def export_cases(cls, data: ExportRequest, user: User, db: AsyncSession) -> ExportResult:
        """导出用例到Excel并保存到存储，返回下载地址"""
        query = cls._visible(user)
        if data.ids:
            query = query.where(TestCase.id.in_(data.ids))
        elif data.document_id is not None:
            query = query.where(TestCase.document_id == data.document_id)
        query = query.order_by(TestCase.id)

        result = await db.execute(query)
        cases = list(result.scalars().all())
        if not cases:
            raise BadRequestError("没有可导出的测试用例")

        content = export_test_cases_to_excel(case.to_dict() for case in cases)
        key = f"exports/{user.id}/{current_millis()}-test-cases.xlsx"
        url = await get_storage_service().put(key, content, XLSX_CONTENT_TYPE)
        logger.info(f"导出测试用例成功: {len(cases)} 条, 地址: {url}")
        return ExportResult(url=url, count=len(cases))
