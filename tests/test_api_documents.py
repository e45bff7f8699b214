import io
import pytest
from docx import Document as DocxDocument
from sqlalchemy import select
from casegen.db.models import Document, TestCase
from conftest import create_document, to_base64

async def _upload(client, file_name="login.md", content="用户登录功能需求".encode("utf-8")):
    return await client.post("/api/v1/documents", json={
        "file_name": file_name,
        "file_data": to_base64(content),
    })

@pytest.mark.asyncio
async def test_upload_and_parse_markdown(user_client, user):
    """测试上传文档后在后台解析"""
    response = await _upload(user_client)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["success"] is True

    response = await user_client.get(f"/api/v1/documents/{data['id']}")
    document = response.json()["data"]
    assert document["status"] == "parsed"
    assert document["parsed_content"] == "用户登录功能需求"
    assert document["file_type"] == "md"
    assert document["user_id"] == user.id
    assert document["file_url"].startswith("/files/documents/")

@pytest.mark.asyncio
async def test_upload_and_parse_docx(user_client):
    """测试上传Word文档"""
    doc = DocxDocument()
    doc.add_paragraph("搜索功能")
    doc.add_paragraph("支持按关键词搜索")
    buffer = io.BytesIO()
    doc.save(buffer)

    response = await _upload(user_client, "search.docx", buffer.getvalue())
    document_id = response.json()["data"]["id"]

    response = await user_client.get(f"/api/v1/documents/{document_id}")
    document = response.json()["data"]
    assert document["status"] == "parsed"
    assert document["parsed_content"] == "搜索功能\n支持按关键词搜索"

@pytest.mark.asyncio
async def test_parse_failure_sets_error_status(user_client):
    """测试解析失败时文档状态为error"""
    response = await _upload(user_client, "broken.pdf", b"not a pdf")
    document_id = response.json()["data"]["id"]

    response = await user_client.get(f"/api/v1/documents/{document_id}")
    document = response.json()["data"]
    assert document["status"] == "error"
    assert document["error"] == "PDF文档解析失败"

@pytest.mark.asyncio
async def test_upload_rejects_unsupported_type(user_client):
    """测试不支持的文件类型"""
    response = await _upload(user_client, "tool.exe", b"MZ")
    assert response.status_code == 400
    assert response.json()["error"] == "BAD_REQUEST"

@pytest.mark.asyncio
async def test_upload_rejects_invalid_base64(user_client):
    """测试无效的base64内容"""
    response = await user_client.post("/api/v1/documents", json={
        "file_name": "login.md",
        "file_data": "不是base64",
    })
    assert response.status_code == 400
    assert "base64" in response.json()["message"]

@pytest.mark.asyncio
async def test_download_serves_stored_file(user_client):
    """测试下载地址可以访问到原文件"""
    response = await _upload(user_client, "readme.txt", b"plain requirement")
    document_id = response.json()["data"]["id"]

    response = await user_client.get(f"/api/v1/documents/{document_id}/download")
    download = response.json()["data"]
    assert download["file_name"] == "readme.txt"

    response = await user_client.get(download["url"])
    assert response.status_code == 200
    assert response.content == b"plain requirement"

@pytest.mark.asyncio
async def test_document_ownership(user_client, other_client, admin_client, db, user):
    """测试其他用户不能访问文档，管理员可以"""
    document = await create_document(db, user)

    response = await other_client.get(f"/api/v1/documents/{document.id}")
    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"

    response = await other_client.delete(f"/api/v1/documents/{document.id}")
    assert response.status_code == 403

    response = await other_client.get("/api/v1/documents")
    assert response.json()["data"] == []

    response = await admin_client.get(f"/api/v1/documents/{document.id}")
    assert response.status_code == 200

    response = await user_client.get("/api/v1/documents/9999")
    assert response.status_code == 404
    assert response.json()["message"] == "文档不存在"

@pytest.mark.asyncio
async def test_reparse_document(user_client):
    """测试重新解析文档"""
    response = await _upload(user_client)
    document_id = response.json()["data"]["id"]

    response = await user_client.post(f"/api/v1/documents/{document_id}/reparse")
    assert response.status_code == 200

    response = await user_client.get(f"/api/v1/documents/{document_id}")
    assert response.json()["data"]["status"] == "parsed"

@pytest.mark.asyncio
async def test_delete_document_removes_cases(user_client, session_factory):
    """测试删除文档同时删除其测试用例"""
    response = await _upload(user_client)
    document_id = response.json()["data"]["id"]
    response = await user_client.post("/api/v1/cases/generate/template", json={"document_id": document_id})
    assert response.json()["data"]["count"] == 3

    response = await user_client.delete(f"/api/v1/documents/{document_id}")
    assert response.status_code == 200

    async with session_factory() as session:
        assert await session.get(Document, document_id) is None
        result = await session.execute(select(TestCase).where(TestCase.document_id == document_id))
        assert result.scalars().all() == []
