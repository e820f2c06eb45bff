"""
测试配置与夹具
"""
import os
from typing import AsyncGenerator

# 必须在导入应用之前设置
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from reqpool.main import app
from reqpool.core.database import Base, get_db
from reqpool.core.exceptions import InternalError
from reqpool.core.security import get_password_hash, create_user_token
from reqpool.models import User, UserRole, Requirement, RequirementStatus

fake = Faker("zh_CN")

DEFAULT_PASSWORD = "password123"


@pytest.fixture
async def engine():
    """每个测试一个独立的内存数据库"""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """测试客户端，每个请求使用独立会话"""
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_maker):
    """直接写库创建用户"""
    async def _make_user(role: UserRole = UserRole.DEVELOPER, password: str = DEFAULT_PASSWORD, **fields) -> User:
        async with session_maker() as session:
            user = User(
                username=fields.pop("username", None) or fake.unique.user_name(),
                email=fields.pop("email", None) or fake.unique.email(),
                name=fields.pop("name", None) or fake.name(),
                role=role.value,
                hashed_password=get_password_hash(password),
                **fields,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_requirement(session_maker):
    """直接写库创建待排期需求"""
    async def _make_requirement(**fields) -> Requirement:
        async with session_maker() as session:
            requirement = Requirement(
                code=fields.pop("code", None) or f"REQ-{fake.unique.random_int(1000, 9999)}",
                description=fields.pop("description", None) or fake.sentence(),
                requestor=fields.pop("requestor", None) or fake.name(),
                department=fields.pop("department", None) or "市场部",
                request_date=fields.pop("request_date", None) or fake.date_object(),
                status=RequirementStatus.PENDING_SCHEDULE.value,
                **fields,
            )
            session.add(requirement)
            await session.commit()
            return requirement

    return _make_requirement


@pytest.fixture
def count_rows(session_maker):
    """统计某张表的行数"""
    async def _count(model, *where) -> int:
        async with session_maker() as session:
            stmt = select(func.count()).select_from(model)
            if where:
                stmt = stmt.where(*where)
            return (await session.execute(stmt)).scalar()

    return _count


@pytest.fixture
def fetch(session_maker):
    """用新会话按主键读取实体"""
    async def _fetch(model, pk):
        async with session_maker() as session:
            return await session.get(model, pk)

    return _fetch


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
async def test_user(make_user) -> User:
    return await make_user(UserRole.DEVELOPER)


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return auth_headers_for(test_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


def fail_after(original):
    """包装一个写库步骤：照常执行并 flush，然后抛出存储错误"""
    async def _run(db, *args):
        await original(db, *args)
        await db.flush()
        raise InternalError("存储写入失败")

    return _run
