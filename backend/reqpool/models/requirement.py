"""
需求模型
"""
from sqlalchemy import Column, Integer, String, Text, Date, DateTime

from reqpool.core.database import Base
from reqpool.models.enums import RequirementStatus
from reqpool.models.user import utcnow


class Requirement(Base):
    """需求池表"""
    __tablename__ = "requirements"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)  # 需求编号
    description = Column(Text, nullable=False)
    requestor = Column(String(100), nullable=False)  # 需求方
    department = Column(String(100), nullable=False)
    request_date = Column(Date, nullable=False)

    # 排期状态
    status = Column(String(20), default=RequirementStatus.PENDING_SCHEDULE.value, nullable=False)

    # 所属项目（弱引用）及项目状态镜像，只由项目的变更路径维护
    project_id = Column(String(20), index=True)
    project_status = Column(String(30))

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
