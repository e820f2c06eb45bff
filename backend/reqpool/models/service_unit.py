"""
服务单元模型
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from reqpool.core.database import Base
from reqpool.models.user import utcnow


class ServiceUnit(Base):
    """服务单元表"""
    __tablename__ = "service_units"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    leader_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ServiceUnitMember(Base):
    """服务单元成员表，一个用户最多属于一个服务单元（由业务层校验）"""
    __tablename__ = "service_unit_members"

    id = Column(Integer, primary_key=True, index=True)
    service_unit_id = Column(Integer, ForeignKey("service_units.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
