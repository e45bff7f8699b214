import io
import base64
import binascii
from typing import Optional
import httpx
import pdfplumber
import PyPDF2
from docx import Document as DocxDocument
from casegen.config.settings import settings
from casegen.logger.logger import logger

class DocumentParseError(ValueError):
    """文档解析失败"""

class DocumentParser:
    """需求文档解析器

    按文件类型提取纯文本：
    1. Word文档: 段落与表格单元格
    2. PDF文档: 优先pdfplumber，无结果时使用PyPDF2
    3. Markdown/文本: UTF-8解码
    """

    WORD_TYPES = {"docx", "doc"}
    PDF_TYPES = {"pdf"}
    TEXT_TYPES = {"md", "markdown", "txt", "text"}
    UPLOAD_EXTENSIONS = {"docx", "doc", "pdf", "md", "txt"}

    @classmethod
    def normalize_type(cls, file_type: str) -> str:
        return (file_type or "").lower().strip().lstrip(".")

    @classmethod
    def parse(cls, data: bytes, file_type: str) -> str:
        """解析文档内容

        Args:
            data: 文件内容
            file_type: 文件类型(扩展名)

        Returns:
            str: 去除首尾空白的文本
        """
        file_type = cls.normalize_type(file_type)
        if file_type in cls.WORD_TYPES:
            text = cls._parse_word(data)
        elif file_type in cls.PDF_TYPES:
            text = cls._parse_pdf(data)
        elif file_type in cls.TEXT_TYPES:
            text = data.decode("utf-8-sig", errors="replace")
        else:
            raise DocumentParseError(f"不支持的文件类型: {file_type}")

        text = text.strip()
        logger.info(f"文档解析完成, 类型: {file_type}, 长度: {len(text)}")
        return text

    @classmethod
    async def parse_url(cls, url: str, file_type: str, timeout: Optional[int] = None) -> str:
        """下载并解析远程文档"""
        timeout = timeout or settings.parser.PARSER_FETCH_TIMEOUT
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"文档下载失败: {url}, 错误: {str(e)}")
            raise DocumentParseError(f"文档下载失败: {str(e)}") from e
        return cls.parse(response.content, file_type)

    @staticmethod
    def _parse_word(data: bytes) -> str:
        try:
            document = DocxDocument(io.BytesIO(data))
        except Exception as e:
            logger.error(f"Word文档解析失败: {str(e)}")
            raise DocumentParseError("Word文档解析失败") from e

        lines = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    lines.append("\t".join(cells))
        return "\n".join(lines)

    @staticmethod
    def _parse_pdf(data: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
            text = "\n".join(p for p in pages if p)
            if text.strip():
                return text
        except Exception as e:
            logger.warning(f"pdfplumber解析失败: {str(e)}")

        try:
            reader = PyPDF2.PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages]
            return "\n".join(p for p in pages if p)
        except Exception as e:
            logger.error(f"PDF文档解析失败: {str(e)}")
            raise DocumentParseError("PDF文档解析失败") from e

def decode_base64(encoded: str) -> bytes:
    """解码base64字符串，兼容data URL前缀"""
    if encoded and encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        return base64.b64decode("".join((encoded or "").split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("文件内容不是有效的base64编码") from e
