import base64
import io
import pytest
from openpyxl import Workbook
from casegen.ai_core import llm_client
from casegen.config.settings import settings
from casegen.db.models import AIModel, TestCase
from conftest import create_document, to_base64

AI_RESPONSE = """以下是生成的测试用例：
[
  {"case_number": "AI-1", "module": "登录", "scenario": "正常登录", "steps": ["输入账号", "点击登录"],
   "expected_result": "登录成功", "priority": "P0", "case_type": "functional"},
  {"case_number": "AI-1", "module": "登录", "scenario": "密码为空", "steps": "1.输入账号 2.点击登录",
   "expected_result": "提示输入密码", "priority": "高", "case_type": "边界测试"}
]"""

async def create_case(db, user, document=None, **kwargs) -> TestCase:
    values = {
        "user_id": user.id,
        "document_id": document.id if document else None,
        "case_number": "TC-0001",
        "module": "login",
        "scenario": "正常登录",
        "precondition": "用户已注册",
        "steps": ["打开登录页面", "点击登录"],
        "expected_result": "登录成功",
        "priority": "P1",
        "case_type": "functional",
        "generation_mode": "template",
        "execution_status": "pending",
    }
    values.update(kwargs)
    case = TestCase(**values)
    db.add(case)
    await db.commit()
    await db.refresh(case)
    return case

@pytest.fixture
def fake_llm(monkeypatch):
    """替换模型调用，返回预设内容"""
    calls = []

    def _install(reply):
        async def fake_invoke(messages, model=None):
            calls.append(model)
            if isinstance(reply, Exception):
                raise reply
            return reply
        monkeypatch.setattr(llm_client, "invoke_llm", fake_invoke)
        return calls

    return _install

@pytest.mark.asyncio
async def test_generate_with_builtin_template(user_client, db, user):
    """测试使用内置用例库生成用例并记录历史"""
    document = await create_document(db, user, content="用户登录和搜索")

    response = await user_client.post("/api/v1/cases/generate/template", json={"document_id": document.id})
    assert response.status_code == 200
    assert response.json()["data"]["count"] == 6

    response = await user_client.get("/api/v1/cases", params={"document_id": document.id})
    cases = response.json()["data"]
    assert sorted(case["case_number"] for case in cases) == [f"TC-{i:04d}" for i in range(1, 7)]
    assert {case["generation_mode"] for case in cases} == {"template"}
    assert {case["execution_status"] for case in cases} == {"pending"}
    assert {case["module"] for case in cases} == {"login", "search"}

    response = await user_client.get("/api/v1/history")
    history = response.json()["data"]
    assert len(history) == 1
    assert history[0]["status"] == "completed"
    assert history[0]["mode"] == "template"
    assert history[0]["case_count"] == 6
    assert history[0]["generator_name"] == "内置模板"

@pytest.mark.asyncio
async def test_generate_with_custom_template(user_client, db, user):
    """测试使用自定义模板生成用例"""
    document = await create_document(db, user, content="订单列表支持分页")
    response = await user_client.post("/api/v1/templates", json={
        "name": "订单模板",
        "template_content": [
            {"scenario": "查看订单", "expected_result": "显示订单", "priority": "P0"},
            {"scenario": "订单为空", "expected_result": "显示空状态", "case_type": "boundary"},
        ],
    })
    template_id = response.json()["data"]["id"]

    response = await user_client.post("/api/v1/cases/generate/template", json={
        "document_id": document.id,
        "template_id": template_id,
    })
    assert response.json()["data"]["count"] == 2

    response = await user_client.get("/api/v1/cases", params={"document_id": document.id})
    cases = sorted(response.json()["data"], key=lambda c: c["case_number"])
    assert [c["scenario"] for c in cases] == ["查看订单", "订单为空"]
    assert {c["module"] for c in cases} == {"list"}

    response = await user_client.get("/api/v1/history")
    assert response.json()["data"][0]["generator_name"] == "订单模板"

@pytest.mark.asyncio
async def test_generate_requires_parsed_document(user_client, db, user):
    """测试文档未解析完成时不能生成"""
    document = await create_document(db, user, content=None, status="uploaded")
    response = await user_client.post("/api/v1/cases/generate/template", json={"document_id": document.id})
    assert response.status_code == 400
    assert response.json()["message"] == "文档尚未解析完成"

    response = await user_client.post("/api/v1/cases/generate/ai", json={"document_id": document.id})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_generate_on_other_users_document(other_client, db, user):
    """测试不能使用其他用户的文档生成用例"""
    document = await create_document(db, user)
    response = await other_client.post("/api/v1/cases/generate/template", json={"document_id": document.id})
    assert response.status_code == 403

@pytest.mark.asyncio
async def test_generate_with_ai(user_client, db, user, fake_llm):
    """测试AI生成用例，同一批编号不重复"""
    calls = fake_llm(AI_RESPONSE)
    document = await create_document(db, user)

    response = await user_client.post("/api/v1/cases/generate/ai", json={"document_id": document.id})
    assert response.status_code == 200
    result = response.json()["data"]
    assert result["count"] == 2
    assert result["model_name"] == settings.ai.AI_ZHIPU_MODEL_CHAT
    assert calls == [None]

    response = await user_client.get("/api/v1/cases", params={"generation_mode": "ai"})
    cases = response.json()["data"]
    numbers = [case["case_number"] for case in cases]
    assert len(set(numbers)) == 2
    by_scenario = {case["scenario"]: case for case in cases}
    assert by_scenario["密码为空"]["steps"] == ["输入账号", "点击登录"]
    assert by_scenario["密码为空"]["priority"] == "P1"
    assert by_scenario["密码为空"]["case_type"] == "boundary"

    response = await user_client.get("/api/v1/history")
    history = response.json()["data"][0]
    assert history["mode"] == "ai"
    assert history["status"] == "completed"
    assert history["model_name"] == settings.ai.AI_ZHIPU_MODEL_CHAT

@pytest.mark.asyncio
async def test_generate_with_ai_uses_selected_model(user_client, db, user, fake_llm):
    """测试使用用户配置的模型生成"""
    calls = fake_llm(AI_RESPONSE)
    document = await create_document(db, user)
    response = await user_client.post("/api/v1/ai-models", json={
        "name": "我的DeepSeek",
        "provider": "deepseek",
        "model_id": "deepseek-chat",
        "api_key": "sk-1234567890",
    })
    model_id = response.json()["data"]["id"]

    response = await user_client.post("/api/v1/cases/generate/ai", json={
        "document_id": document.id,
        "model_id": model_id,
    })
    assert response.json()["data"]["model_name"] == "我的DeepSeek"
    assert calls[0].id == model_id
    assert calls[0].api_key == "sk-1234567890"

@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["这不是JSON", '{"message": "no cases"}', RuntimeError("timeout")])
async def test_ai_failure_records_failed_history(user_client, db, user, fake_llm, reply):
    """测试AI生成失败时返回错误并记录失败历史"""
    fake_llm(reply)
    document = await create_document(db, user)

    response = await user_client.post("/api/v1/cases/generate/ai", json={"document_id": document.id})
    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "INTERNAL_SERVER_ERROR"
    assert data["message"].startswith("AI生成测试用例失败")

    response = await user_client.get("/api/v1/history")
    history = response.json()["data"]
    assert len(history) == 1
    assert history[0]["status"] == "failed"
    assert history[0]["mode"] == "ai"
    assert history[0]["document_id"] == document.id
    assert history[0]["case_count"] == 0
    assert history[0]["error_message"]

    response = await user_client.get("/api/v1/cases")
    assert response.json()["data"] == []

@pytest.mark.asyncio
async def test_missing_template_records_failed_history(user_client, db, user):
    """测试模板不存在时生成失败并记录失败历史"""
    document = await create_document(db, user)

    response = await user_client.post("/api/v1/cases/generate/template", json={
        "document_id": document.id,
        "template_id": 9999,
    })
    assert response.status_code == 404
    assert response.json()["message"] == "模板不存在"

    response = await user_client.get("/api/v1/history")
    history = response.json()["data"]
    assert len(history) == 1
    assert history[0]["status"] == "failed"
    assert history[0]["mode"] == "template"
    assert history[0]["document_id"] == document.id
    assert history[0]["error_message"] == "模板不存在"

@pytest.mark.asyncio
async def test_forbidden_model_records_failed_history(user_client, db, user, other_user, fake_llm):
    """测试使用他人的模型生成时被拒绝并记录失败历史"""
    calls = fake_llm(AI_RESPONSE)
    document = await create_document(db, user)
    model = AIModel(
        user_id=other_user.id,
        name="别人的模型",
        provider="openai",
        model_id="gpt-4o-mini",
        api_key="sk-other-key",
    )
    db.add(model)
    await db.commit()
    await db.refresh(model)

    response = await user_client.post("/api/v1/cases/generate/ai", json={
        "document_id": document.id,
        "model_id": model.id,
    })
    assert response.status_code == 403
    assert calls == []

    response = await user_client.get("/api/v1/history")
    history = response.json()["data"]
    assert len(history) == 1
    assert history[0]["status"] == "failed"
    assert history[0]["mode"] == "ai"
    assert history[0]["error_message"] == "无权使用此模型"

@pytest.mark.asyncio
async def test_export_download_import_round_trip(user_client, db, user):
    """测试导出、下载后再导入，关键字段保持一致"""
    document = await create_document(db, user, content="用户登录")
    await user_client.post("/api/v1/cases/generate/template", json={"document_id": document.id})

    response = await user_client.post("/api/v1/cases/export", json={"document_id": document.id})
    assert response.status_code == 200
    export = response.json()["data"]
    assert export["count"] == 3
    assert export["url"].endswith(".xlsx")

    response = await user_client.get(export["url"])
    assert response.status_code == 200
    content = response.content

    response = await user_client.post("/api/v1/cases/import", json={
        "file_data": to_base64(content),
        "file_name": "cases.xlsx",
    })
    assert response.status_code == 200
    assert response.json()["data"]["count"] == 3

    response = await user_client.get("/api/v1/cases", params={"generation_mode": "template"})
    originals = {c["case_number"]: c for c in response.json()["data"]}
    response = await user_client.get("/api/v1/cases", params={"generation_mode": "import"})
    imported = response.json()["data"]
    assert len(imported) == 3
    for case in imported:
        original = originals[case["case_number"]]
        for field in ("scenario", "expected_result", "steps", "priority", "case_type", "module"):
            assert case[field] == original[field]
        assert case["document_id"] is None

@pytest.mark.asyncio
async def test_import_defaults_and_generated_numbers(user_client):
    """测试导入时缺失编号自动生成，缺失优先级和类型使用默认值"""
    wb = Workbook()
    ws = wb.active
    ws.append(["测试场景", "预期结果"])
    ws.append(["场景一", "结果一"])
    ws.append(["场景二", "结果二"])
    buffer = io.BytesIO()
    wb.save(buffer)

    response = await user_client.post("/api/v1/cases/import", json={"file_data": to_base64(buffer.getvalue())})
    assert response.json()["data"]["count"] == 2

    response = await user_client.get("/api/v1/cases")
    cases = response.json()["data"]
    assert all(case["case_number"].startswith("IMP-") for case in cases)
    assert len({case["case_number"] for case in cases}) == 2
    assert {case["priority"] for case in cases} == {"P2"}
    assert {case["case_type"] for case in cases} == {"functional"}

@pytest.mark.asyncio
async def test_import_errors(user_client):
    """测试导入错误的文件"""
    wb = Workbook()
    wb.active.append(["测试场景", "优先级"])
    wb.active.append(["场景", "P0"])
    buffer = io.BytesIO()
    wb.save(buffer)

    response = await user_client.post("/api/v1/cases/import", json={"file_data": to_base64(buffer.getvalue())})
    assert response.status_code == 400
    assert response.json()["message"] == "Excel文件缺少必要的列：预期结果"

    response = await user_client.post("/api/v1/cases/import", json={"file_data": to_base64(b"garbage")})
    assert response.status_code == 400

    response = await user_client.post("/api/v1/cases/import", json={
        "file_data": to_base64(b"garbage"),
        "file_name": "cases.csv",
    })
    assert response.status_code == 400
    assert response.json()["message"] == "仅支持xlsx或xls格式的Excel文件"

    response = await user_client.post("/api/v1/cases/import", json={
        "file_data": base64.b64encode(b"garbage").decode("ascii"),
        "file_name": "legacy.xls",
    })
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_export_without_cases(user_client, session_factory):
    """测试没有可导出的用例"""
    response = await user_client.post("/api/v1/cases/export", json={})
    assert response.status_code == 400
    assert response.json()["message"] == "没有可导出的测试用例"

@pytest.mark.asyncio
async def test_case_ownership(user_client, other_client, admin_client, db, user):
    """测试其他用户不能读写用例，管理员可以"""
    case = await create_case(db, user)

    response = await other_client.get(f"/api/v1/cases/{case.id}")
    assert response.status_code == 403
    response = await other_client.put(f"/api/v1/cases/{case.id}", json={"scenario": "篡改"})
    assert response.status_code == 403
    response = await other_client.delete(f"/api/v1/cases/{case.id}")
    assert response.status_code == 403
    response = await other_client.get("/api/v1/cases")
    assert response.json()["data"] == []

    response = await admin_client.get(f"/api/v1/cases/{case.id}")
    assert response.status_code == 200
    response = await admin_client.get("/api/v1/cases")
    assert len(response.json()["data"]) == 1

    response = await user_client.get("/api/v1/cases/9999")
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"

@pytest.mark.asyncio
async def test_search_cases(user_client, db, user):
    """测试关键词搜索和过滤"""
    await create_case(db, user, case_number="TC-0001", scenario="正常登录", module="login", priority="P0")
    await create_case(db, user, case_number="TC-0002", scenario="关键词搜索", module="search", priority="P1")
    await create_case(db, user, case_number="EXP-9", scenario="导出数据", module="export",
                      execution_status="failed")

    async def search(**params):
        response = await user_client.get("/api/v1/cases", params=params)
        return sorted(case["case_number"] for case in response.json()["data"])

    assert await search(keyword="登录") == ["TC-0001"]
    assert await search(keyword="search") == ["TC-0002"]
    assert await search(keyword="EXP") == ["EXP-9"]
    assert await search(priority="P0") == ["TC-0001"]
    assert await search(execution_status="failed") == ["EXP-9"]
    assert await search(module="search", priority="P0") == []

    response = await user_client.get("/api/v1/cases/modules")
    assert response.json()["data"] == ["export", "login", "search"]

@pytest.mark.asyncio
async def test_update_case_versions_and_rollback(user_client, db, user):
    """测试更新用例保存版本并可以回滚"""
    case = await create_case(db, user)

    response = await user_client.put(f"/api/v1/cases/{case.id}", json={
        "scenario": "修改后的场景",
        "execution_status": "passed",
        "execution_result": "通过",
        "change_note": "补充执行结果",
    })
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["scenario"] == "修改后的场景"
    assert updated["execution_status"] == "passed"
    assert updated["executed_at"] is not None

    response = await user_client.get(f"/api/v1/cases/{case.id}/versions")
    versions = response.json()["data"]
    assert len(versions) == 1
    assert versions[0]["version"] == 1
    assert versions[0]["change_note"] == "补充执行结果"
    assert versions[0]["snapshot"]["scenario"] == "正常登录"

    response = await user_client.post(f"/api/v1/cases/{case.id}/versions/{versions[0]['id']}/rollback")
    assert response.status_code == 200
    restored = response.json()["data"]
    assert restored["scenario"] == "正常登录"
    assert restored["execution_status"] == "pending"
    assert restored["executed_at"] is None

    response = await user_client.get(f"/api/v1/cases/{case.id}/versions")
    versions = response.json()["data"]
    assert [v["version"] for v in versions] == [2, 1]
    assert versions[0]["snapshot"]["scenario"] == "修改后的场景"

    response = await user_client.post(f"/api/v1/cases/{case.id}/versions/9999/rollback")
    assert response.status_code == 404

@pytest.mark.asyncio
async def test_update_case_rejects_invalid_values(user_client, db, user):
    """测试更新时的枚举校验"""
    case = await create_case(db, user)
    response = await user_client.put(f"/api/v1/cases/{case.id}", json={"priority": "P9"})
    assert response.status_code == 400
    response = await user_client.put(f"/api/v1/cases/{case.id}", json={"execution_status": "blocked"})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_batch_status_and_delete(user_client, db, user, other_user):
    """测试批量操作忽略无权访问的用例"""
    mine = [await create_case(db, user, case_number=f"TC-{i}") for i in range(3)]
    foreign = await create_case(db, other_user, case_number="OTHER")

    response = await user_client.post("/api/v1/cases/batch-status", json={
        "ids": [mine[0].id, mine[1].id, foreign.id],
        "execution_status": "failed",
        "execution_result": "按钮无响应",
    })
    assert response.status_code == 200
    assert response.json()["data"]["count"] == 2

    response = await user_client.get("/api/v1/stats/execution")
    assert response.json()["data"] == {"total": 3, "pending": 1, "passed": 0, "failed": 2}

    response = await user_client.post("/api/v1/cases/batch-status", json={
        "ids": [foreign.id],
        "execution_status": "passed",
    })
    assert response.status_code == 400

    response = await user_client.post("/api/v1/cases/batch-delete", json={"ids": [mine[0].id, foreign.id]})
    assert response.json()["data"]["count"] == 1

    response = await user_client.post("/api/v1/cases/batch-delete", json={"ids": [foreign.id]})
    assert response.status_code == 400
    assert response.json()["message"] == "没有可删除的测试用例"

    response = await user_client.post("/api/v1/cases/batch-delete", json={"ids": []})
    assert response.status_code == 400

    response = await user_client.get("/api/v1/cases")
    assert len(response.json()["data"]) == 2

@pytest.mark.asyncio
async def test_copy_and_delete_case(user_client, db, user):
    """测试复制和删除用例"""
    case = await create_case(db, user, execution_status="passed", execution_result="通过")

    response = await user_client.post(f"/api/v1/cases/{case.id}/copy")
    assert response.status_code == 200
    copy = response.json()["data"]
    assert copy["id"] != case.id
    assert copy["case_number"] == "TC-0001-copy"
    assert copy["scenario"] == case.scenario
    assert copy["steps"] == case.steps
    assert copy["execution_status"] == "pending"
    assert copy["execution_result"] is None

    await user_client.put(f"/api/v1/cases/{case.id}", json={"module": "auth"})
    response = await user_client.delete(f"/api/v1/cases/{case.id}")
    assert response.status_code == 200
    response = await user_client.get(f"/api/v1/cases/{case.id}")
    assert response.status_code == 404
