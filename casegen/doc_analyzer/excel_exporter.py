import io
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from casegen.logger.logger import logger
from casegen.test_engine.labels import (
    CASE_TYPE_LABELS,
    EXECUTION_STATUS_LABELS,
    GENERATION_MODE_LABELS,
)

SHEET_TITLE = "测试用例"
WORKBOOK_CREATOR = "测试用例生成器"

# (表头, 字段, 列宽)
COLUMNS = (
    ("用例编号", "case_number", 15),
    ("所属模块", "module", 15),
    ("测试场景", "scenario", 30),
    ("前置条件", "precondition", 25),
    ("测试步骤", "steps", 40),
    ("预期结果", "expected_result", 30),
    ("优先级", "priority", 10),
    ("用例类型", "case_type", 12),
    ("执行状态", "execution_status", 12),
    ("执行结果", "execution_result", 25),
    ("生成方式", "generation_mode", 12),
    ("创建时间", "created_at", 18),
)

HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
HEADER_HEIGHT = 25
CELL_ALIGNMENT = Alignment(vertical="top", wrap_text=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

STATUS_FILLS = {
    "passed": PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"),
    "failed": PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"),
}

PRIORITY_FONTS = {
    "P0": Font(color="FF0000", bold=True),
    "P1": Font(color="FF6600"),
    "P2": Font(color="0066FF"),
    "P3": Font(color="666666"),
}

def format_datetime(value: Any) -> str:
    """格式化为 YYYY/MM/DD HH:MM"""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    return value.strftime("%Y/%m/%d %H:%M")

def _cell_value(field: str, case: Dict[str, Any]) -> str:
    # 去掉工作表不允许的控制字符
    return ILLEGAL_CHARACTERS_RE.sub("", _raw_value(field, case))

def _raw_value(field: str, case: Dict[str, Any]) -> str:
    value = case.get(field)
    if field == "steps":
        return "\n".join(str(step) for step in (value or []))
    if field == "case_type":
        return CASE_TYPE_LABELS.get(value, value or "")
    if field == "execution_status":
        return EXECUTION_STATUS_LABELS.get(value, value or "")
    if field == "generation_mode":
        return GENERATION_MODE_LABELS.get(value, value or "")
    if field == "created_at":
        return format_datetime(value)
    return "" if value is None else str(value)

def export_test_cases_to_excel(cases: Iterable[Dict[str, Any]]) -> bytes:
    """导出测试用例为带样式的xlsx文件

    Args:
        cases: 用例字典列表

    Returns:
        bytes: xlsx文件内容
    """
    cases: List[Dict[str, Any]] = list(cases)

    wb = Workbook()
    wb.properties.creator = WORKBOOK_CREATOR
    ws = wb.active
    ws.title = SHEET_TITLE

    # 表头
    for col, (header, _, width) in enumerate(COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = HEADER_ALIGNMENT
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.row_dimensions[1].height = HEADER_HEIGHT
    ws.freeze_panes = "A2"

    # 数据行
    for row, case in enumerate(cases, 2):
        for col, (_, field, _) in enumerate(COLUMNS, 1):
            cell = ws.cell(row=row, column=col, value=_cell_value(field, case))
            # 以=开头的文本按字符串写入，不作为公式
            cell.data_type = "s"
            cell.alignment = CELL_ALIGNMENT
            cell.border = THIN_BORDER

            if field == "execution_status":
                fill: Optional[PatternFill] = STATUS_FILLS.get(case.get(field))
                if fill:
                    cell.fill = fill
            elif field == "priority":
                font: Optional[Font] = PRIORITY_FONTS.get(case.get(field))
                if font:
                    cell.font = font

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"导出测试用例完成, 数量: {len(cases)}")
    return buffer.getvalue()
