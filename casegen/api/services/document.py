import mimetypes
from pathlib import Path
from typing import List, Optional
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import ensure_owner
from casegen.api.errors import BadRequestError, NotFoundError
from casegen.api.models.document import DocumentUpload, DocumentDownload
from casegen.config.settings import settings
from casegen.db import session as db_session
from casegen.db.models import Document, TestCase, TestCaseVersion, User
from casegen.doc_analyzer.document_parser import DocumentParser, decode_base64
from casegen.storage.storage import get_storage_service
from casegen.utils.common import current_millis, get_file_extension

class DocumentService:
    """需求文档服务"""

    @classmethod
    async def list_documents(cls, user: User, db: AsyncSession) -> List[Document]:
        """获取文档列表，普通用户只能看到自己的文档"""
        query = select(Document)
        if not user.is_admin:
            query = query.where(Document.user_id == user.id)
        query = query.order_by(Document.created_at.desc(), Document.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @classmethod
    async def get_document(cls, document_id: int, user: User, db: AsyncSession) -> Document:
        """获取文档并校验访问权限"""
        document = await db.get(Document, document_id)
        if not document:
            raise NotFoundError("文档不存在")
        ensure_owner(user, document.user_id, "无权访问此文档")
        return document

    @classmethod
    async def upload_document(cls, data: DocumentUpload, user: User, db: AsyncSession) -> Document:
        """保存上传的文档，解析由后台任务完成

        Args:
            data: 上传请求
            user: 当前用户
            db: 数据库会话

        Returns:
            Document: uploaded状态的文档记录
        """
        file_name = Path(data.file_name).name
        file_type = DocumentParser.normalize_type(data.file_type or get_file_extension(file_name))
        if file_type not in DocumentParser.UPLOAD_EXTENSIONS:
            raise BadRequestError(f"不支持的文件类型: {file_type or '未知'}")

        try:
            content = decode_base64(data.file_data)
        except ValueError as e:
            raise BadRequestError(str(e))
        if not content:
            raise BadRequestError("文件内容为空")
        if len(content) > settings.parser.PARSER_MAX_FILE_SIZE:
            raise BadRequestError("文件大小超过限制")

        try:
            storage = get_storage_service()
            file_key = f"documents/{user.id}/{current_millis()}-{file_name}"
            content_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
            file_url = await storage.put(file_key, content, content_type)

            document = Document(
                user_id=user.id,
                file_name=file_name,
                file_type=file_type,
                file_url=file_url,
                file_key=file_key,
                status="uploaded",
            )
            db.add(document)
            await db.commit()
            await db.refresh(document)

            logger.info(f"文档上传成功: {file_name}, ID: {document.id}")
            return document
        except Exception as e:
            logger.error(f"文档上传失败: {str(e)}")
            raise

    @classmethod
    async def parse_document(cls, document_id: int, content: Optional[bytes] = None) -> None:
        """后台解析文档，使用独立的数据库会话

        解析失败时文档状态置为error并记录原因。
        """
        async with db_session.AsyncSessionLocal() as session:
            document = await session.get(Document, document_id)
            if not document:
                logger.warning(f"待解析的文档不存在: {document_id}")
                return

            document.status = "parsing"
            document.error = None
            await session.commit()

            try:
                if content is not None:
                    text = DocumentParser.parse(content, document.file_type)
                elif document.file_url.startswith(("http://", "https://")):
                    text = await DocumentParser.parse_url(document.file_url, document.file_type)
                else:
                    data = await get_storage_service().read(document.file_key)
                    text = DocumentParser.parse(data, document.file_type)

                document.parsed_content = text
                document.status = "parsed"
                logger.info(f"文档解析成功: {document.file_name}, 长度: {len(text)}")
            except Exception as e:
                logger.error(f"文档解析失败: {document.file_name}, 错误: {str(e)}")
                document.status = "error"
                document.error = str(e)

            await session.commit()

    @classmethod
    async def reset_for_reparse(cls, document_id: int, user: User, db: AsyncSession) -> Document:
        """将文档重置为uploaded状态，等待重新解析"""
        document = await cls.get_document(document_id, user, db)
        if document.status == "parsing":
            raise BadRequestError("文档正在解析中")
        document.status = "uploaded"
        document.error = None
        await db.commit()
        await db.refresh(document)
        return document

    @classmethod
    async def get_download(cls, document_id: int, user: User, db: AsyncSession) -> DocumentDownload:
        document = await cls.get_document(document_id, user, db)
        url = document.file_url or await get_storage_service().get_url(document.file_key)
        return DocumentDownload(url=url, file_name=document.file_name)

    @classmethod
    async def delete_document(cls, document_id: int, user: User, db: AsyncSession) -> None:
        """删除文档及其关联的测试用例"""
        document = await cls.get_document(document_id, user, db)

        try:
            case_ids = select(TestCase.id).where(TestCase.document_id == document.id)
            await db.execute(delete(TestCaseVersion).where(TestCaseVersion.test_case_id.in_(case_ids)))
            result = await db.execute(delete(TestCase).where(TestCase.document_id == document.id))
            await db.delete(document)
            await db.commit()
        except Exception as e:
            logger.error(f"文档删除失败: {str(e)}")
            raise

        await get_storage_service().delete(document.file_key)
        logger.info(f"文档删除成功: {document_id}, 同时删除用例 {result.rowcount} 条")
