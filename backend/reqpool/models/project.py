"""
项目模型
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint

from reqpool.core.database import Base
from reqpool.models.enums import ProjectStatus
from reqpool.models.user import utcnow

PROJECT_ID_PREFIX = "PRJ-"


class Project(Base):
    """项目表"""
    __tablename__ = "projects"

    id = Column(String(20), primary_key=True)  # 形如 PRJ-001
    name = Column(String(200), nullable=False)
    create_time = Column(Date, nullable=False)
    status = Column(String(30), default=ProjectStatus.NEW.value, nullable=False)
    launch_time = Column(Date)  # 上线时间

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ProjectRequirement(Base):
    """项目-需求关联表"""
    __tablename__ = "project_requirements"
    __table_args__ = (UniqueConstraint("project_id", "requirement_id"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(20), ForeignKey("projects.id"), nullable=False, index=True)
    requirement_id = Column(Integer, ForeignKey("requirements.id"), nullable=False, index=True)
