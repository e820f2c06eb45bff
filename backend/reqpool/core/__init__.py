"""
Core 模块导出

security 依赖模型层，需从 reqpool.core.security 直接导入，避免循环引用。
"""
from reqpool.core.config import settings
from reqpool.core.database import Base, get_db, transaction

__all__ = ["settings", "Base", "get_db", "transaction"]
