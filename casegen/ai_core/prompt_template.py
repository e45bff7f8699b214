from typing import Dict, Optional
from pathlib import Path
import json
from jinja2 import Template, Environment, BaseLoader
from casegen.logger.logger import logger

# 内置提示词模板
DEFAULT_TEMPLATES: Dict[str, str] = {
    "testcase_system": (
        "你是一个专业的软件测试工程师，擅长编写高质量的测试用例。"
        "请以JSON数组格式返回测试用例。"
    ),
    "testcase_generation": """你是一个专业的软件测试工程师。请根据以下需求文档，生成全面的测试用例。

文档名称：{{ document_name }}

文档内容：
{{ content }}

请生成测试用例，要求：
1. 覆盖所有功能点
2. 包含正向测试和异常测试
3. 包含边界条件测试
4. 每个测试用例包含：用例编号、所属模块、测试场景、前置条件、测试步骤、预期结果、优先级(P0-P3)、用例类型(functional/boundary/exception/performance)

请以JSON数组格式返回，每个元素格式如下：
{
  "case_number": "TC-0001",
  "module": "模块名称",
  "scenario": "测试场景描述",
  "precondition": "前置条件",
  "steps": ["步骤1", "步骤2", "步骤3"],
  "expected_result": "预期结果",
  "priority": "P0",
  "case_type": "functional"
}

只返回JSON数组，不要包含其他内容。""",
    "connection_test": "请回复\"OK\"。",
}

class PromptTemplate:
    """Prompt模板管理"""

    def __init__(self, template_dir: Optional[str] = None):
        """初始化Prompt模板管理器，模板目录中的 templates.json 可覆盖内置模板"""
        self.template_dir = Path(template_dir) if template_dir else None
        self.templates = dict(DEFAULT_TEMPLATES)
        self.env = Environment(loader=BaseLoader())
        self._load_templates()

    def _load_templates(self) -> None:
        """加载模板文件"""
        if not self.template_dir:
            return
        template_file = self.template_dir / "templates.json"
        if not template_file.exists():
            return
        try:
            self.templates.update(json.loads(template_file.read_text(encoding="utf-8")))
            logger.info(f"已加载自定义提示词模板: {template_file}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"加载模板文件失败: {str(e)}")

    def get_template(self, name: str) -> Optional[Template]:
        """获取指定名称的模板"""
        template_str = self.templates.get(name)
        return self.env.from_string(template_str) if template_str else None

    def render(self, template_name: str, **kwargs) -> str:
        """渲染指定模板"""
        template = self.get_template(template_name)
        if template is None:
            raise KeyError(f"提示词模板不存在: {template_name}")
        return template.render(**kwargs)

    def add_template(self, name: str, template: str) -> None:
        """添加或替换模板"""
        self.templates[name] = template
