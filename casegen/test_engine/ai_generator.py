import json
from typing import Any, Dict, List, Optional
from casegen.ai_core import llm_client
from casegen.ai_core.errors import AIGenerationError
from casegen.ai_core.prompt_template import PromptTemplate
from casegen.config.settings import settings
from casegen.doc_analyzer.excel_importer import parse_steps
from casegen.logger.logger import logger
from casegen.utils.common import extract_json_array
from .labels import normalize_priority, normalize_case_type
from .template_generator import DEFAULT_MODULE, ensure_unique_case_numbers

prompt_template = PromptTemplate()

# AI返回字段的别名
FIELD_ALIASES = {
    "case_number": ("case_number", "caseNumber"),
    "module": ("module",),
    "scenario": ("scenario", "title", "name"),
    "precondition": ("precondition",),
    "steps": ("steps",),
    "expected_result": ("expected_result", "expectedResult"),
    "priority": ("priority",),
    "case_type": ("case_type", "caseType"),
}

def build_messages(content: str, document_name: str) -> List[Dict[str, str]]:
    """构建AI生成测试用例的消息，文档内容截断到配置的最大长度"""
    content = (content or "")[:settings.ai.AI_MAX_CONTENT_LENGTH]
    return [
        {"role": "system", "content": prompt_template.render("testcase_system")},
        {
            "role": "user",
            "content": prompt_template.render(
                "testcase_generation",
                document_name=document_name,
                content=content
            ),
        },
    ]

def _pick(item: Dict[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None

def _normalize_steps(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(step).strip() for step in value if str(step).strip()]
    if isinstance(value, str):
        return parse_steps(value)
    return []

def normalize_ai_case(item: Dict[str, Any]) -> Dict[str, Any]:
    """将AI返回的单条用例规范化"""
    return {
        "case_number": str(_pick(item, "case_number") or ""),
        "module": str(_pick(item, "module") or DEFAULT_MODULE),
        "scenario": str(_pick(item, "scenario") or "未命名测试场景"),
        "precondition": str(_pick(item, "precondition") or ""),
        "steps": _normalize_steps(_pick(item, "steps")),
        "expected_result": str(_pick(item, "expected_result") or "无"),
        "priority": normalize_priority(_pick(item, "priority")),
        "case_type": normalize_case_type(_pick(item, "case_type")),
    }

def parse_test_cases_response(text: str) -> List[Dict[str, Any]]:
    """解析AI返回的测试用例

    先整体按JSON解析，{"testCases": [...]} 形式会被展开；
    解析失败时提取文本中的JSON数组。

    Raises:
        AIGenerationError: 结果不是测试用例数组
    """
    try:
        data = json.loads((text or "").strip())
    except json.JSONDecodeError:
        data = extract_json_array(text)

    if isinstance(data, dict):
        data = data.get("testCases", data.get("test_cases"))

    if not isinstance(data, list):
        raise AIGenerationError("返回的不是有效的测试用例数组")

    cases = [normalize_ai_case(item) for item in data if isinstance(item, dict)]
    return ensure_unique_case_numbers(cases)

async def generate_with_ai(
    content: str,
    document_name: str,
    model: Optional[Any] = None
) -> List[Dict[str, Any]]:
    """调用大模型生成测试用例

    Args:
        content: 文档文本
        document_name: 文档名称
        model: 用户配置的模型，为空时使用内置默认模型

    Returns:
        List[Dict[str, Any]]: 规范化后的用例
    """
    try:
        response = await llm_client.invoke_llm(build_messages(content, document_name), model)
        cases = parse_test_cases_response(response)
        logger.info(f"AI生成测试用例完成, 数量: {len(cases)}")
        return cases
    except Exception as e:
        logger.error(f"AI生成测试用例失败: {str(e)}")
        raise AIGenerationError(f"AI生成测试用例失败: {str(e)}") from e
