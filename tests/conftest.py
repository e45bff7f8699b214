import os
import sys
import base64
import tempfile
from pathlib import Path

# 添加项目根目录到Python路径
project_root = str(Path(__file__).parent.parent)
sys.path.insert(0, project_root)

# 设置测试环境变量，必须在导入项目模块之前
_temp_dir = tempfile.mkdtemp(prefix="casegen-test-")
os.environ["STORAGE_ENABLED"] = "false"  # 禁用对象存储
os.environ["STORAGE_LOCAL_DIR"] = str(Path(_temp_dir) / "files")
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"  # 使用内存数据库
os.environ["LOG_FILE"] = str(Path(_temp_dir) / "logs" / "test.log")
os.environ["AUTH_BCRYPT_ROUNDS"] = "4"
os.environ["AI_ZHIPU_API_KEY"] = ""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from casegen.api.services.auth import create_session_token, get_password_hash
from casegen.config.settings import settings
from casegen.db import session as db_session
from casegen.db.base import Base
from casegen.db.models import Document, User
from casegen.main import app

@pytest_asyncio.fixture
async def test_engine():
    """每个测试使用独立的内存数据库"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture
async def session_factory(test_engine, monkeypatch):
    """替换全局会话工厂，请求和后台任务都使用测试数据库"""
    factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    monkeypatch.setattr(db_session, "AsyncSessionLocal", factory)
    return factory

@pytest_asyncio.fixture
async def db(session_factory):
    """创建测试数据库会话"""
    async with session_factory() as session:
        yield session

async def create_user(
    db: AsyncSession,
    username: str,
    password: str = "secret123",
    role: str = "user",
    status: str = "active"
) -> User:
    user = User(
        username=username,
        password_hash=get_password_hash(password),
        name=username,
        role=role,
        status=status,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user

async def create_document(
    db: AsyncSession,
    user: User,
    content: str = "用户登录功能需求",
    status: str = "parsed",
    file_name: str = "需求.md"
) -> Document:
    document = Document(
        user_id=user.id,
        file_name=file_name,
        file_type="md",
        file_url=f"/files/{file_name}",
        file_key=f"documents/{user.id}/{file_name}",
        parsed_content=content,
        status=status,
    )
    db.add(document)
    await db.commit()
    await db.refresh(document)
    return document

def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")

@pytest.fixture
def make_client(session_factory):
    """创建测试客户端，传入用户时携带该用户的会话Cookie"""
    def _make(user: User = None) -> httpx.AsyncClient:
        cookies = {}
        if user is not None:
            cookies[settings.auth.AUTH_COOKIE_NAME] = create_session_token(user)
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies
        )
        return client

    return _make

@pytest_asyncio.fixture
async def client(make_client):
    async with make_client() as c:
        yield c

@pytest_asyncio.fixture
async def user(db) -> User:
    return await create_user(db, "alice")

@pytest_asyncio.fixture
async def other_user(db) -> User:
    return await create_user(db, "bob")

@pytest_asyncio.fixture
async def admin(db) -> User:
    return await create_user(db, "root", role="admin")

@pytest_asyncio.fixture
async def user_client(make_client, user):
    async with make_client(user) as c:
        yield c

@pytest_asyncio.fixture
async def other_client(make_client, other_user):
    async with make_client(other_user) as c:
        yield c

@pytest_asyncio.fixture
async def admin_client(make_client, admin):
    async with make_client(admin) as c:
        yield c
