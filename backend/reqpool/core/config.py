"""
应用配置
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """应用配置类"""

    # 应用配置
    APP_NAME: str = "需求池管理系统"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置 - 默认使用 SQLite（本地开发）
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/requirement_pool.db"

    # JWT 配置
    JWT_SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24小时

    # 文件导入
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024  # 5MB

    # 用户默认值
    DEFAULT_USER_PASSWORD: str = "123456"
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"

    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
