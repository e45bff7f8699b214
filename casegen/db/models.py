from typing import Optional, List
from sqlalchemy import String, Text, ForeignKey, JSON, DateTime, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column
from .base import Base
from datetime import datetime

class User(Base):
    """用户模型"""

    username: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="user")  # user/admin
    status: Mapped[str] = mapped_column(String(20), default="active")  # active/disabled
    last_signed_in: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

class Document(Base):
    """需求文档模型"""

    user_id: Mapped[int] = mapped_column(Integer, index=True)
    file_name: Mapped[str] = mapped_column(String(255))
    file_type: Mapped[str] = mapped_column(String(50))  # docx/doc/pdf/md/txt
    file_url: Mapped[str] = mapped_column(Text)
    file_key: Mapped[str] = mapped_column(String(512))
    parsed_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="uploaded")  # uploaded/parsing/parsed/error
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

class TestCase(Base):
    """测试用例模型"""

    user_id: Mapped[int] = mapped_column(Integer, index=True)
    document_id: Mapped[Optional[int]] = mapped_column(ForeignKey("document.id"), nullable=True, index=True)
    case_number: Mapped[str] = mapped_column(String(64))
    module: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    scenario: Mapped[str] = mapped_column(Text)
    precondition: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    steps: Mapped[List[str]] = mapped_column(JSON, default=list)
    expected_result: Mapped[str] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(4), default="P2")  # P0/P1/P2/P3
    case_type: Mapped[str] = mapped_column(String(20), default="functional")  # functional/boundary/exception/performance
    generation_mode: Mapped[str] = mapped_column(String(20))  # ai/template/import
    execution_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending/passed/failed
    execution_result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # 可编辑字段，用于版本快照与复制
    SNAPSHOT_FIELDS = (
        "module", "scenario", "precondition", "steps", "expected_result",
        "priority", "case_type", "execution_status", "execution_result",
    )

    def snapshot(self) -> dict:
        """导出可编辑字段的快照"""
        data = {field: getattr(self, field) for field in self.SNAPSHOT_FIELDS}
        data["steps"] = list(self.steps or [])
        return data

    def to_dict(self) -> dict:
        data = self.snapshot()
        data.update({
            "id": self.id,
            "case_number": self.case_number,
            "document_id": self.document_id,
            "generation_mode": self.generation_mode,
            "executed_at": self.executed_at,
            "created_at": self.created_at,
        })
        return data

class TestCaseVersion(Base):
    """测试用例版本快照"""

    test_case_id: Mapped[int] = mapped_column(ForeignKey("testcase.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(Integer)
    version: Mapped[int] = mapped_column(Integer)
    snapshot: Mapped[dict] = mapped_column(JSON)
    change_note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

class TestCaseTemplate(Base):
    """测试用例模板"""

    user_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    module_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    template_content: Mapped[list] = mapped_column(JSON, default=list)  # 用例骨架列表
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)

class GenerationHistory(Base):
    """用例生成历史"""

    user_id: Mapped[int] = mapped_column(Integer, index=True)
    document_id: Mapped[int] = mapped_column(Integer, index=True)
    mode: Mapped[str] = mapped_column(String(20))  # ai/template
    case_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending/completed/failed
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generator_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    model_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

class AIModel(Base):
    """AI模型配置"""

    user_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255))
    provider: Mapped[str] = mapped_column(String(50))  # deepseek/openai/anthropic/custom
    model_id: Mapped[str] = mapped_column(String(255))
    api_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
