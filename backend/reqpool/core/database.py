"""
数据库配置 - 异步 SQLAlchemy
"""
import logging
import os
from contextlib import asynccontextmanager

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from reqpool.core.config import settings

logger = logging.getLogger(__name__)


def ensure_data_dir(database_url: str):
    """确保 SQLite 数据库文件所在目录存在"""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    directory = os.path.dirname(url.database)
    if directory:
        os.makedirs(directory, exist_ok=True)


ensure_data_dir(settings.DATABASE_URL)

# 创建异步引擎
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
    # SQLite 特有配置
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}
)

# 创建异步会话工厂
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """SQLAlchemy 基类"""
    pass


async def get_db() -> AsyncSession:
    """获取数据库会话"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transaction(session: AsyncSession):
    """
    在给定会话上执行一组写操作

    成功时提交，任何异常都会回滚后继续抛出，保证多表写入要么全部生效、要么全部撤销。
    """
    try:
        yield session
        await session.commit()
    except Exception as exc:
        logger.debug("事务回滚: %r", exc)
        await session.rollback()
        raise
