"""
用户模型
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from reqpool.core.database import Base
from reqpool.models.enums import UserRole


def utcnow() -> datetime:
    return datetime.utcnow()


class User(Base):
    """用户表"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(100), unique=True, index=True)  # 导入的用户可以没有邮箱
    name = Column(String(100))
    phone = Column(String(30))
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.STAKEHOLDER.value, nullable=False)  # SQLite 兼容
    department = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.username
