import pytest
from casegen.config.settings import settings
from conftest import create_user

@pytest.mark.asyncio
async def test_health_check(client):
    """测试健康检查接口"""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["code"] == 200
    assert data["data"]["status"] == "ok"

@pytest.mark.asyncio
async def test_login_me_logout(client, db):
    """测试登录、获取当前用户和退出登录"""
    await create_user(db, "alice", password="secret123")

    response = await client.post("/api/v1/auth/login", json={"username": "alice", "password": "secret123"})
    assert response.status_code == 200
    data = response.json()
    assert data["data"]["success"] is True
    assert data["data"]["user"]["username"] == "alice"
    assert "password_hash" not in data["data"]["user"]
    assert settings.auth.AUTH_COOKIE_NAME in response.cookies
    assert "httponly" in response.headers["set-cookie"].lower()

    response = await client.get("/api/v1/auth/me")
    assert response.json()["data"]["username"] == "alice"

    response = await client.post("/api/v1/auth/logout")
    assert response.json()["data"]["success"] is True

    response = await client.get("/api/v1/auth/me")
    assert response.json()["data"] is None

@pytest.mark.asyncio
async def test_login_wrong_password(client, db):
    """测试密码错误"""
    await create_user(db, "alice", password="secret123")
    response = await client.post("/api/v1/auth/login", json={"username": "alice", "password": "wrong-pass"})
    assert response.status_code == 401
    data = response.json()
    assert data["error"] == "UNAUTHORIZED"
    assert data["message"] == "用户名或密码错误"

@pytest.mark.asyncio
async def test_login_disabled_user(client, db):
    """测试停用账号不能登录"""
    await create_user(db, "carol", password="secret123", status="disabled")
    response = await client.post("/api/v1/auth/login", json={"username": "carol", "password": "secret123"})
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_me_without_session(client, session_factory):
    """测试未登录时当前用户为空"""
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 200
    assert response.json()["data"] is None

@pytest.mark.asyncio
async def test_protected_route_requires_login(client, session_factory):
    """测试未登录访问受保护接口"""
    response = await client.get("/api/v1/documents")
    assert response.status_code == 401
    data = response.json()
    assert data["error"] == "UNAUTHORIZED"
    assert data["message"] == "请先登录"

@pytest.mark.asyncio
async def test_invalid_session_cookie(make_client, session_factory):
    """测试无效的会话Cookie"""
    async with make_client() as client:
        client.cookies.set(settings.auth.AUTH_COOKIE_NAME, "not-a-token")
        response = await client.get("/api/v1/cases")
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_disabled_user_session_rejected(make_client, db):
    """测试账号停用后会话失效"""
    user = await create_user(db, "dave", status="disabled")
    async with make_client(user) as client:
        response = await client.get("/api/v1/cases")
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_validation_error_envelope(client, session_factory):
    """测试请求参数校验失败返回BAD_REQUEST"""
    response = await client.post("/api/v1/auth/login", json={"username": "alice"})
    assert response.status_code == 400
    data = response.json()
    assert data["code"] == 400
    assert data["error"] == "BAD_REQUEST"
    assert "password" in data["message"]
