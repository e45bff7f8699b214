from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from casegen.utils.decorators import log_function_call
from .labels import normalize_priority, normalize_case_type

# 模块关键词，按检测顺序排列
MODULE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("login", ("登录", "login", "认证")),
    ("form", ("表单", "form", "提交")),
    ("search", ("搜索", "search", "查询")),
    ("list", ("列表", "list", "分页")),
    ("upload", ("上传", "upload", "文件")),
    ("export", ("导出", "export", "下载")),
    ("permission", ("权限", "permission", "角色")),
)

DEFAULT_MODULE = "general"

def _case(scenario, precondition, steps, expected_result, priority, case_type) -> Dict[str, Any]:
    return {
        "scenario": scenario,
        "precondition": precondition,
        "steps": steps,
        "expected_result": expected_result,
        "priority": priority,
        "case_type": case_type,
    }

# 内置用例库
BUILTIN_TEMPLATES: Dict[str, List[Dict[str, Any]]] = {
    "login": [
        _case("正常登录", "用户已注册且账号状态正常",
              ["打开登录页面", "输入正确的用户名", "输入正确的密码", "点击登录按钮"],
              "登录成功，跳转到首页", "P0", "functional"),
        _case("密码错误", "用户已注册",
              ["打开登录页面", "输入正确的用户名", "输入错误的密码", "点击登录按钮"],
              "提示密码错误，登录失败", "P1", "exception"),
        _case("用户名为空", "无",
              ["打开登录页面", "用户名输入框留空", "输入密码", "点击登录按钮"],
              "提示用户名不能为空", "P1", "boundary"),
    ],
    "form": [
        _case("正常提交表单", "用户已登录",
              ["打开表单页面", "填写所有必填字段", "点击提交按钮"],
              "表单提交成功，显示成功提示", "P0", "functional"),
        _case("必填字段为空", "用户已登录",
              ["打开表单页面", "留空必填字段", "点击提交按钮"],
              "提示必填字段不能为空", "P1", "boundary"),
        _case("字段格式校验", "用户已登录",
              ["打开表单页面", "在需要特定格式的字段输入非法格式", "点击提交按钮"],
              "提示格式错误", "P2", "boundary"),
    ],
    "search": [
        _case("关键词搜索", "系统中存在可搜索的数据",
              ["打开搜索页面", "输入搜索关键词", "点击搜索按钮"],
              "显示包含关键词的搜索结果", "P0", "functional"),
        _case("空关键词搜索", "无",
              ["打开搜索页面", "不输入任何关键词", "点击搜索按钮"],
              "显示全部数据或提示请输入搜索关键词", "P2", "boundary"),
        _case("无结果搜索", "无",
              ["打开搜索页面", "输入不存在的关键词", "点击搜索按钮"],
              "显示无搜索结果的提示", "P2", "functional"),
    ],
    "list": [
        _case("列表数据展示", "系统中存在数据",
              ["打开列表页面"],
              "正确显示数据列表", "P0", "functional"),
        _case("分页功能", "数据量超过单页显示数量",
              ["打开列表页面", "点击下一页"],
              "正确显示下一页数据", "P1", "functional"),
    ],
    "upload": [
        _case("正常上传文件", "用户已登录",
              ["点击上传按钮", "选择符合要求的文件", "确认上传"],
              "文件上传成功", "P0", "functional"),
        _case("上传超大文件", "用户已登录",
              ["点击上传按钮", "选择超过大小限制的文件", "确认上传"],
              "提示文件过大，上传失败", "P1", "boundary"),
    ],
    "export": [
        _case("导出数据", "系统中存在可导出的数据",
              ["选择要导出的数据", "点击导出按钮"],
              "成功下载导出文件", "P1", "functional"),
    ],
    "permission": [
        _case("无权限访问", "用户角色无对应权限",
              ["登录无权限账号", "尝试访问受限功能"],
              "提示无权限访问", "P1", "exception"),
    ],
    "general": [
        _case("页面加载", "无",
              ["打开页面"],
              "页面正常加载，无报错", "P0", "functional"),
    ],
}

def format_case_number(index: int, prefix: str = "TC") -> str:
    """生成用例编号，index从1开始"""
    return f"{prefix}-{index:04d}"

def detect_modules(content: Optional[str]) -> List[str]:
    """根据关键词检测文档涉及的功能模块

    Args:
        content: 文档文本

    Returns:
        List[str]: 按固定顺序排列的模块列表，未命中时为 ["general"]
    """
    text = (content or "").lower()
    modules = [
        module for module, keywords in MODULE_KEYWORDS
        if any(keyword in text for keyword in keywords)
    ]
    return modules or [DEFAULT_MODULE]

def _build_case(index: int, module: str, skeleton: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "case_number": format_case_number(index),
        "module": module,
        "scenario": skeleton.get("scenario") or "未命名测试场景",
        "precondition": skeleton.get("precondition") or "",
        "steps": [str(step) for step in (skeleton.get("steps") or [])],
        "expected_result": skeleton.get("expected_result") or "无",
        "priority": normalize_priority(skeleton.get("priority")),
        "case_type": normalize_case_type(skeleton.get("case_type")),
    }

@log_function_call()
def generate_with_template(content: Optional[str], document_name: str = "") -> List[Dict[str, Any]]:
    """使用内置用例库生成测试用例

    Args:
        content: 文档文本
        document_name: 文档名称

    Returns:
        List[Dict[str, Any]]: 按 TC-0001 起连续编号的用例
    """
    cases = []
    for module in detect_modules(content):
        for skeleton in BUILTIN_TEMPLATES[module]:
            cases.append(_build_case(len(cases) + 1, module, skeleton))
    return cases

@log_function_call()
def generate_with_custom_template(
    content: Optional[str],
    document_name: str,
    skeletons: Sequence[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """使用自定义模板生成测试用例，模块取检测到的第一个模块"""
    module = detect_modules(content)[0]
    return [
        _build_case(index, module, skeleton)
        for index, skeleton in enumerate(skeletons or [], start=1)
    ]

def ensure_unique_case_numbers(
    cases: List[Dict[str, Any]],
    default_number: Callable[[int], str] = format_case_number
) -> List[Dict[str, Any]]:
    """补全缺失的用例编号，并保证同一批用例编号不重复

    Args:
        cases: 用例列表，原地修改
        default_number: 缺失编号时按序号(从1开始)生成编号
    """
    seen = set()
    for index, case in enumerate(cases, start=1):
        number = str(case.get("case_number") or "").strip() or default_number(index)
        candidate, suffix = number, index
        while candidate in seen:
            candidate = f"{number}-{suffix}"
            suffix += 1
        seen.add(candidate)
        case["case_number"] = candidate
    return cases
