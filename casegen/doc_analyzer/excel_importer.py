import io
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText
from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
from casegen.logger.logger import logger
from casegen.test_engine.labels import normalize_priority, normalize_case_type

class ExcelImportError(ValueError):
    """Excel导入失败"""

# 表头别名，比较时忽略大小写与首尾空白
HEADER_ALIASES: Dict[str, List[str]] = {
    "case_number": ["用例编号", "编号", "caseNumber", "case_number", "id"],
    "module": ["模块", "所属模块", "module", "功能模块"],
    "scenario": ["测试场景", "场景", "scenario", "用例名称", "名称", "title"],
    "precondition": ["前置条件", "precondition", "前提条件"],
    "steps": ["测试步骤", "步骤", "steps", "操作步骤"],
    "expected_result": ["预期结果", "expectedResult", "expected_result", "期望结果"],
    "priority": ["优先级", "priority", "级别"],
    "case_type": ["用例类型", "类型", "caseType", "case_type", "测试类型"],
}

REQUIRED_COLUMNS = (
    ("scenario", "测试场景"),
    ("expected_result", "预期结果"),
)

DEFAULT_SCENARIO = "未命名测试场景"
DEFAULT_EXPECTED_RESULT = "无"
DEFAULT_TEMPLATE_NAME = "导入的模板"

TEMPLATE_INFO_SHEETS = ("模板信息", "info")
TEMPLATE_CASE_SHEETS = ("测试用例", "cases")

# 单行步骤中的编号，如 "1." "2、" "3)"
STEP_NUMBER_PATTERN = re.compile(r"\d+[.、)]\s*")

def cell_text(value: Any) -> str:
    """将单元格值转换为文本"""
    if value is None:
        return ""
    if isinstance(value, CellRichText):
        return "".join(str(block) for block in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)

def parse_steps(text: str) -> List[str]:
    """解析测试步骤

    优先按换行拆分，只有一行时再尝试按编号拆分。
    """
    steps = [line.strip() for line in re.split(r"\r?\n", text or "") if line.strip()]
    if len(steps) == 1:
        numbered = [part.strip() for part in STEP_NUMBER_PATTERN.split(steps[0]) if part.strip()]
        if len(numbered) > 1:
            steps = numbered
    return steps

def load_workbook_bytes(data: bytes) -> Workbook:
    """读取Excel文件内容"""
    try:
        return load_workbook(io.BytesIO(data), data_only=True, rich_text=True)
    except Exception as e:
        logger.error(f"读取Excel文件失败: {str(e)}")
        raise ExcelImportError("无法读取Excel文件，请上传有效的xlsx文件") from e

def _match_columns(ws: Worksheet) -> Dict[str, int]:
    header_row = next(ws.iter_rows(min_row=1, max_row=1, values_only=True), ())
    headers = [cell_text(value).strip().lower() for value in header_row]

    columns: Dict[str, int] = {}
    for field, aliases in HEADER_ALIASES.items():
        lowered = {alias.lower() for alias in aliases}
        for index, header in enumerate(headers):
            if header and header in lowered:
                columns[field] = index
                break
    return columns

def read_test_cases(ws: Worksheet) -> List[Dict[str, Any]]:
    """从工作表读取测试用例

    Args:
        ws: 工作表，第一行为表头

    Returns:
        List[Dict[str, Any]]: 规范化后的用例
    """
    columns = _match_columns(ws)
    for field, label in REQUIRED_COLUMNS:
        if field not in columns:
            raise ExcelImportError(f"Excel文件缺少必要的列：{label}")

    cases = []
    for row in ws.iter_rows(min_row=2, values_only=True):
        def get(field: str) -> str:
            index = columns.get(field)
            if index is None or index >= len(row):
                return ""
            return cell_text(row[index]).strip()

        scenario = get("scenario")
        expected_result = get("expected_result")
        if not scenario and not expected_result:
            continue

        cases.append({
            "case_number": get("case_number"),
            "module": get("module"),
            "scenario": scenario or DEFAULT_SCENARIO,
            "precondition": get("precondition"),
            "steps": parse_steps(get("steps")),
            "expected_result": expected_result or DEFAULT_EXPECTED_RESULT,
            "priority": normalize_priority(get("priority")),
            "case_type": normalize_case_type(get("case_type")),
        })
    return cases

def import_test_cases_from_excel(data: bytes) -> List[Dict[str, Any]]:
    """从Excel第一个工作表导入测试用例"""
    wb = load_workbook_bytes(data)
    if not wb.worksheets:
        raise ExcelImportError("Excel文件中没有工作表")

    cases = read_test_cases(wb.worksheets[0])
    if not cases:
        raise ExcelImportError("Excel文件中没有有效的测试用例数据")

    logger.info(f"Excel解析完成, 用例数量: {len(cases)}")
    return cases

def _find_sheet(wb: Workbook, names: tuple) -> Optional[Worksheet]:
    for name in names:
        if name in wb.sheetnames:
            return wb[name]
    return None

def import_template_from_excel(data: bytes) -> Dict[str, Any]:
    """从Excel导入用例模板

    模板信息表的 B1/B2/B3 依次为名称、描述和模块类型。
    用例从"测试用例"或"cases"工作表读取，不存在时使用第一个非信息表。
    """
    wb = load_workbook_bytes(data)
    if not wb.worksheets:
        raise ExcelImportError("Excel文件中没有工作表")

    name, description, module_type = DEFAULT_TEMPLATE_NAME, "", ""
    info_sheet = _find_sheet(wb, TEMPLATE_INFO_SHEETS)
    if info_sheet is not None:
        name = cell_text(info_sheet["B1"].value).strip() or DEFAULT_TEMPLATE_NAME
        description = cell_text(info_sheet["B2"].value).strip()
        module_type = cell_text(info_sheet["B3"].value).strip()

    case_sheet = _find_sheet(wb, TEMPLATE_CASE_SHEETS) or next(
        (ws for ws in wb.worksheets if ws is not info_sheet),
        wb.worksheets[0]
    )
    cases = read_test_cases(case_sheet)
    if not cases:
        raise ExcelImportError("Excel文件中没有有效的测试用例数据")

    skeletons = [
        {
            "scenario": case["scenario"],
            "precondition": case["precondition"],
            "steps": case["steps"],
            "expected_result": case["expected_result"],
            "priority": case["priority"],
            "case_type": case["case_type"],
        }
        for case in cases
    ]
    logger.info(f"模板解析完成: {name}, 用例数量: {len(skeletons)}")
    return {
        "name": name,
        "description": description or None,
        "module_type": module_type or None,
        "template_content": skeletons,
    }
