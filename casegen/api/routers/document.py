from typing import List
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger
from casegen.api.deps import get_current_user
from casegen.api.errors import AppError
from casegen.api.models.base import ResponseModel
from casegen.api.models.document import (
    DocumentInfo,
    DocumentDetail,
    DocumentUpload,
    DocumentUploadResult,
    DocumentDownload,
)
from casegen.api.services.document import DocumentService
from casegen.db.models import User
from casegen.db.session import get_db

router = APIRouter(prefix="/api/v1/documents", tags=["documents"])

@router.get("")
async def list_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[List[DocumentInfo]]:
    """获取文档列表"""
    try:
        documents = await DocumentService.list_documents(user, db)
        return ResponseModel(data=[DocumentInfo.model_validate(doc) for doc in documents])
    except Exception as e:
        logger.error(f"获取文档列表失败: {str(e)}")
        raise AppError("获取文档列表失败")

@router.get("/{document_id}")
async def get_document(
    document_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[DocumentDetail]:
    """获取文档详情，包含解析后的文本"""
    try:
        document = await DocumentService.get_document(document_id, user, db)
        return ResponseModel(data=DocumentDetail.model_validate(document))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取文档详情失败: {str(e)}")
        raise AppError("获取文档详情失败")

@router.get("/{document_id}/download")
async def download_document(
    document_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[DocumentDownload]:
    """获取文档下载地址"""
    try:
        return ResponseModel(data=await DocumentService.get_download(document_id, user, db))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取文档下载地址失败: {str(e)}")
        raise AppError("获取文档下载地址失败")

@router.post("")
async def upload_document(
    request: DocumentUpload,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[DocumentUploadResult]:
    """上传文档

    文件保存后立即返回，解析在后台任务中进行，可通过文档详情查看解析状态。
    """
    try:
        document = await DocumentService.upload_document(request, user, db)
        background_tasks.add_task(DocumentService.parse_document, document.id)
        return ResponseModel(data=DocumentUploadResult(id=document.id))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"上传文档失败: {str(e)}")
        raise AppError("上传文档失败")

@router.post("/{document_id}/reparse")
async def reparse_document(
    document_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[DocumentInfo]:
    """重新解析文档，从存储中重新读取文件"""
    try:
        document = await DocumentService.reset_for_reparse(document_id, user, db)
        background_tasks.add_task(DocumentService.parse_document, document.id)
        return ResponseModel(data=DocumentInfo.model_validate(document))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"重新解析文档失败: {str(e)}")
        raise AppError("重新解析文档失败")

@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> ResponseModel[dict]:
    """删除文档及其测试用例"""
    try:
        await DocumentService.delete_document(document_id, user, db)
        return ResponseModel(data={"success": True})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除文档失败: {str(e)}")
        raise AppError("删除文档失败")
