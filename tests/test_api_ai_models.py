import pytest
from casegen.ai_core import llm_client
from casegen.ai_core.errors import AIGenerationError

MODEL = {
    "name": "DeepSeek",
    "provider": "deepseek",
    "model_id": "deepseek-chat",
    "api_key": "sk-abcdefghijkl",
}

@pytest.mark.asyncio
async def test_create_model_masks_key(user_client):
    """测试创建模型，返回的密钥为掩码"""
    response = await user_client.post("/api/v1/ai-models", json=MODEL)
    assert response.status_code == 200
    model = response.json()["data"]
    assert model["api_key"] == "sk-a****ijkl"
    assert model["is_default"] is False

    response = await user_client.get("/api/v1/ai-models")
    assert [m["api_key"] for m in response.json()["data"]] == ["sk-a****ijkl"]

@pytest.mark.asyncio
async def test_custom_model_requires_url(user_client):
    """测试自定义模型必须配置API地址"""
    response = await user_client.post("/api/v1/ai-models", json={**MODEL, "provider": "custom"})
    assert response.status_code == 400
    response = await user_client.post("/api/v1/ai-models", json={**MODEL, "provider": "unknown"})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_default_model(user_client):
    """测试设置默认模型，同一用户只有一个默认模型"""
    response = await user_client.get("/api/v1/ai-models/default")
    assert response.json()["data"] is None

    first = (await user_client.post("/api/v1/ai-models", json={**MODEL, "is_default": True})).json()["data"]
    second = (await user_client.post("/api/v1/ai-models", json={**MODEL, "name": "OpenAI", "provider": "openai"})).json()["data"]

    response = await user_client.get("/api/v1/ai-models/default")
    assert response.json()["data"]["id"] == first["id"]

    response = await user_client.post(f"/api/v1/ai-models/{second['id']}/default")
    assert response.json()["data"]["is_default"] is True

    response = await user_client.get("/api/v1/ai-models")
    defaults = [m["id"] for m in response.json()["data"] if m["is_default"]]
    assert defaults == [second["id"]]

@pytest.mark.asyncio
async def test_system_default_model_shared(admin_client, user_client):
    """测试用户没有默认模型时使用系统默认模型"""
    response = await admin_client.post("/api/v1/ai-models", json={**MODEL, "is_default": True, "is_system": True})
    system = response.json()["data"]

    response = await user_client.get("/api/v1/ai-models/default")
    assert response.json()["data"]["id"] == system["id"]

    response = await user_client.put(f"/api/v1/ai-models/{system['id']}", json={"name": "改名"})
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_update_keeps_key_when_empty(user_client, session_factory):
    """测试更新时空密钥保留原值"""
    model = (await user_client.post("/api/v1/ai-models", json=MODEL)).json()["data"]

    response = await user_client.put(f"/api/v1/ai-models/{model['id']}", json={"name": "新名称", "api_key": ""})
    assert response.json()["data"]["name"] == "新名称"
    assert response.json()["data"]["api_key"] == "sk-a****ijkl"

    response = await user_client.put(f"/api/v1/ai-models/{model['id']}", json={"api_key": "sk-zzzzzzzzzzzz"})
    assert response.json()["data"]["api_key"] == "sk-z****zzzz"

@pytest.mark.asyncio
async def test_model_ownership(user_client, other_client):
    """测试其他用户不能使用或修改模型"""
    model = (await user_client.post("/api/v1/ai-models", json=MODEL)).json()["data"]

    response = await other_client.post(f"/api/v1/ai-models/{model['id']}/test")
    assert response.status_code == 403
    response = await other_client.delete(f"/api/v1/ai-models/{model['id']}")
    assert response.status_code == 403
    response = await other_client.get("/api/v1/ai-models")
    assert response.json()["data"] == []

    response = await user_client.delete(f"/api/v1/ai-models/{model['id']}")
    assert response.status_code == 200
    response = await user_client.post(f"/api/v1/ai-models/{model['id']}/default")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_connection(user_client, monkeypatch):
    """测试模型连接测试的成功和失败结果"""
    model = (await user_client.post("/api/v1/ai-models", json=MODEL)).json()["data"]

    async def ok(messages, model=None):
        return "OK"

    monkeypatch.setattr(llm_client, "invoke_llm", ok)
    response = await user_client.post(f"/api/v1/ai-models/{model['id']}/test")
    assert response.json()["data"] == {"success": True, "message": "OK"}

    async def fail(messages, model=None):
        raise AIGenerationError("DeepSeek API error: 401 invalid key")

    monkeypatch.setattr(llm_client, "invoke_llm", fail)
    response = await user_client.post(f"/api/v1/ai-models/{model['id']}/test")
    assert response.status_code == 200
    assert response.json()["data"]["success"] is False
    assert "401" in response.json()["data"]["message"]
