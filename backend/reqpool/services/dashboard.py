"""
仪表盘统计
"""
from typing import Dict, Type

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from reqpool.models.enums import LabeledEnum, ProjectStatus, RequirementStatus
from reqpool.models.project import Project
from reqpool.models.requirement import Requirement


async def _count_by_status(db: AsyncSession, model, enum_cls: Type[LabeledEnum]) -> Dict[str, int]:
    """按状态分组计数，枚举中的每个状态都出现，没有数据的记 0"""
    counts = {member.value: 0 for member in enum_cls}
    result = await db.execute(
        select(model.status, func.count(model.id)).group_by(model.status)
    )
    for status, count in result.all():
        counts[status] = count
    return counts


async def get_dashboard_stats(db: AsyncSession) -> dict:
    total_requirements = (await db.execute(select(func.count(Requirement.id)))).scalar() or 0
    total_projects = (await db.execute(select(func.count(Project.id)))).scalar() or 0

    return {
        "total_requirements": total_requirements,
        "total_projects": total_projects,
        "requirements_by_status": await _count_by_status(db, Requirement, RequirementStatus),
        "projects_by_status": await _count_by_status(db, Project, ProjectStatus),
    }
