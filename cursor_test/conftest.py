"""
测试配置和共享 Fixtures

所有测试使用内存 SQLite（aiosqlite 驱动），每个测试函数独立建库，互不影响。
"""
import os

# 必须在导入 medimates 之前设置，确保全局配置指向内存数据库而不是 .env 中的正式库
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from medimates.domain.services import (
    AdherenceTracker,
    MedicationCatalog,
    ReminderGenerator,
    ScheduleStore,
)
from medimates.infrastructure.database.base import Base
from medimates.infrastructure.database.connection import configure_sqlite_engine, get_async_session
from medimates.main import app

TEST_DATABASE_URL = "sqlite+aiosqlite://"

USER_ID = "user-1001"
OTHER_USER_ID = "user-2002"


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """
    创建测试数据库引擎（内存 SQLite）

    StaticPool 保证所有会话共享同一个连接，否则每个连接都会看到一个空的内存库。
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_sqlite_engine(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db_session(test_db_engine):
    """创建测试数据库会话"""
    session_factory = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def other_user_id():
    return OTHER_USER_ID


@pytest.fixture
def catalog(test_db_session):
    return MedicationCatalog(test_db_session)


@pytest.fixture
def schedule_store(test_db_session):
    return ScheduleStore(test_db_session)


@pytest.fixture
def generator(test_db_session):
    return ReminderGenerator(test_db_session)


@pytest.fixture
def tracker(test_db_session):
    return AdherenceTracker(test_db_session)


@pytest_asyncio.fixture
async def aspirin(catalog, user_id):
    """创建测试药品（无库存记录）"""
    return await catalog.create_medication(user_id, {"name": "Aspirin", "dosage": "100mg"})


@pytest_asyncio.fixture
async def vitamin(catalog, user_id):
    """创建第二个测试药品"""
    return await catalog.create_medication(user_id, {"name": "Vitamin D", "dosage": "1000IU", "icon": "capsule"})


@pytest_asyncio.fixture
async def reminder_with_two_doses(generator, user_id, aspirin, vitamin):
    """创建包含两条剂量的提醒（2025-06-13）"""
    creation = await generator.create_reminder(
        user_id,
        "2025-06-13",
        [
            {"medication_id": aspirin.id, "schedule_time": "08:00"},
            {"medication_id": vitamin.id, "schedule_time": "20:00"},
        ],
    )
    return creation.reminder


@pytest_asyncio.fixture
async def client(test_db_engine):
    """
    HTTP 测试客户端

    替换数据库会话依赖，使路由使用内存测试库。
    """
    session_factory = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async def override_get_async_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_async_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-User-Id": USER_ID}


@pytest.fixture
def other_auth_headers():
    return {"X-User-Id": OTHER_USER_ID}
