from typing import Any

PRIORITIES = ("P0", "P1", "P2", "P3")
CASE_TYPES = ("functional", "boundary", "exception", "performance")

DEFAULT_PRIORITY = "P2"
DEFAULT_CASE_TYPE = "functional"

PRIORITY_MAP = {
    **{code: code for code in PRIORITIES},
    "最高": "P0",
    "高": "P1",
    "中": "P2",
    "低": "P3",
}

CASE_TYPE_MAP = {
    **{code: code for code in CASE_TYPES},
    "功能测试": "functional",
    "边界测试": "boundary",
    "异常测试": "exception",
    "性能测试": "performance",
    "功能": "functional",
    "边界": "boundary",
    "异常": "exception",
    "性能": "performance",
}

CASE_TYPE_LABELS = {
    "functional": "功能测试",
    "boundary": "边界测试",
    "exception": "异常测试",
    "performance": "性能测试",
}

EXECUTION_STATUS_LABELS = {
    "pending": "待执行",
    "passed": "通过",
    "failed": "失败",
}

GENERATION_MODE_LABELS = {
    "ai": "AI生成",
    "template": "模板生成",
    "import": "导入",
}

def normalize_priority(value: Any) -> str:
    """将优先级代码或中文标签转换为 P0-P3，无法识别时返回 P2"""
    text = str(value).strip() if value is not None else ""
    return PRIORITY_MAP.get(text) or PRIORITY_MAP.get(text.upper()) or DEFAULT_PRIORITY

def normalize_case_type(value: Any) -> str:
    """将用例类型代码或中文标签转换为类型代码，无法识别时返回 functional"""
    text = str(value).strip() if value is not None else ""
    return CASE_TYPE_MAP.get(text) or CASE_TYPE_MAP.get(text.lower()) or DEFAULT_CASE_TYPE
