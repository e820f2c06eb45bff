"""
模型导出
"""
from reqpool.models.enums import UserRole, RequirementStatus, ProjectStatus, ADMIN_ROLES
from reqpool.models.user import User
from reqpool.models.requirement import Requirement
from reqpool.models.project import Project, ProjectRequirement
from reqpool.models.service_unit import ServiceUnit, ServiceUnitMember

__all__ = [
    "UserRole",
    "RequirementStatus",
    "ProjectStatus",
    "ADMIN_ROLES",
    "User",
    "Requirement",
    "Project",
    "ProjectRequirement",
    "ServiceUnit",
    "ServiceUnitMember",
]
