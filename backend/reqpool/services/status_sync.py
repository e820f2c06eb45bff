"""
需求 ↔ 项目状态同步

需求的 status / project_id / project_status 由项目的创建、更新、删除路径维护：

    待排期 --(加入项目 P)--> 已立项(P)
    已立项(P) --(P 状态变化)--> 已立项(P)   [project_status 跟随]
    已立项(P) --(P 被删除)--> 待排期

不变式: project_id 为空 ⇔ project_status 为空 ⇔ status == pending_schedule
"""
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reqpool.core.database import transaction
from reqpool.core.exceptions import ConflictError, NotFoundError, ValidationError
from reqpool.models.enums import ProjectStatus, RequirementStatus
from reqpool.models.project import Project, ProjectRequirement, PROJECT_ID_PREFIX
from reqpool.models.requirement import Requirement

logger = logging.getLogger(__name__)

SCHEDULED_STATUSES = (RequirementStatus.IN_PROJECT.value, RequirementStatus.COMPLETED.value)


def _unique(ids: Iterable[int]) -> List[int]:
    seen = []
    for item in ids:
        if item not in seen:
            seen.append(item)
    return seen


async def next_project_id(db: AsyncSession) -> str:
    """生成下一个项目编号：现有最大序号 + 1"""
    result = await db.execute(
        select(Project.id).where(Project.id.like(f"{PROJECT_ID_PREFIX}%"))
    )
    highest = 0
    for (project_id,) in result.all():
        suffix = project_id[len(PROJECT_ID_PREFIX):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{PROJECT_ID_PREFIX}{highest + 1:03d}"


async def get_project_or_404(db: AsyncSession, project_id: str, for_update: bool = False) -> Project:
    stmt = select(Project).where(Project.id == project_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("项目不存在")
    return project


async def get_requirement_ids(db: AsyncSession, project_id: str) -> List[int]:
    """项目关联的需求 ID 列表"""
    result = await db.execute(
        select(ProjectRequirement.requirement_id)
        .where(ProjectRequirement.project_id == project_id)
        .order_by(ProjectRequirement.requirement_id)
    )
    return list(result.scalars().all())


async def get_requirement_ids_by_project(db: AsyncSession) -> Dict[str, List[int]]:
    result = await db.execute(
        select(ProjectRequirement.project_id, ProjectRequirement.requirement_id)
        .order_by(ProjectRequirement.requirement_id)
    )
    mapping: Dict[str, List[int]] = {}
    for project_id, requirement_id in result.all():
        mapping.setdefault(project_id, []).append(requirement_id)
    return mapping


async def _check_attachable(db: AsyncSession, requirement_ids: List[int]) -> None:
    """写入前校验：需求必须存在，且尚未归属其他项目"""
    if not requirement_ids:
        return
    result = await db.execute(select(Requirement).where(Requirement.id.in_(requirement_ids)))
    found = {req.id: req for req in result.scalars().all()}

    missing = [rid for rid in requirement_ids if rid not in found]
    if missing:
        raise ValidationError(
            f"需求不存在: {', '.join(str(rid) for rid in missing)}", field="requirement_ids"
        )

    attached = [f"{req.code}({req.project_id})" for req in found.values() if req.project_id]
    if attached:
        raise ConflictError(f"需求已归属其他项目: {', '.join(attached)}")


async def attach_requirements(
    db: AsyncSession, project_id: str, requirement_ids: List[int], status: str
) -> None:
    """把需求转为已立项并写入关联记录"""
    if not requirement_ids:
        return
    await db.execute(
        update(Requirement)
        .where(Requirement.id.in_(requirement_ids))
        .values(
            status=RequirementStatus.IN_PROJECT.value,
            project_id=project_id,
            project_status=status,
        )
    )
    db.add_all(
        ProjectRequirement(project_id=project_id, requirement_id=rid) for rid in requirement_ids
    )


async def create_project(
    db: AsyncSession,
    name: str,
    requirement_ids: Iterable[int] = (),
    status: ProjectStatus = ProjectStatus.NEW,
    launch_time: Optional[date] = None,
) -> Project:
    """创建项目并把选中的需求转为已立项"""
    requirement_ids = _unique(requirement_ids)
    await _check_attachable(db, requirement_ids)

    project_id = await next_project_id(db)
    status = ProjectStatus(status)
    try:
        async with transaction(db):
            project = Project(
                id=project_id,
                name=name,
                create_time=date.today(),
                status=status.value,
                launch_time=launch_time,
            )
            db.add(project)
            await db.flush()
            await attach_requirements(db, project_id, requirement_ids, status.value)
    except IntegrityError:
        raise ConflictError("项目编号冲突，请重试")

    logger.info("创建项目 %s，关联需求 %s", project_id, requirement_ids)
    return project


async def mirror_project_status(db: AsyncSession, project_id: str, status: str) -> int:
    """把项目状态写入所有关联需求的 project_status，返回受影响行数"""
    result = await db.execute(
        update(Requirement)
        .where(Requirement.project_id == project_id)
        .values(project_status=status)
    )
    return result.rowcount


async def update_project(db: AsyncSession, project_id: str, changes: dict) -> Project:
    """
    更新项目名称、状态、上线时间

    状态变化会同步到所有关联需求的 project_status，需求本身的 status 与 project_id 不变。
    """
    async with transaction(db):
        project = await get_project_or_404(db, project_id, for_update=True)

        if changes.get("name") is not None:
            project.name = changes["name"]
        if "launch_time" in changes:
            project.launch_time = changes["launch_time"]

        new_status = changes.get("status")
        if new_status is not None:
            project.status = ProjectStatus(new_status).value
            count = await mirror_project_status(db, project.id, project.status)
            logger.info("项目 %s 状态变为 %s，同步 %d 条需求", project.id, project.status, count)

    return project


async def release_requirements(db: AsyncSession, project_id: str) -> int:
    """把项目下的需求恢复为待排期并删除关联记录"""
    result = await db.execute(
        update(Requirement)
        .where(Requirement.project_id == project_id)
        .values(
            status=RequirementStatus.PENDING_SCHEDULE.value,
            project_id=None,
            project_status=None,
        )
    )
    await db.execute(delete(ProjectRequirement).where(ProjectRequirement.project_id == project_id))
    return result.rowcount


async def delete_project(db: AsyncSession, project_id: str) -> None:
    """删除项目；需求重置与关联删除失败时项目保留"""
    async with transaction(db):
        project = await get_project_or_404(db, project_id, for_update=True)
        count = await release_requirements(db, project.id)
        await db.delete(project)

    logger.info("删除项目 %s，%d 条需求恢复为待排期", project_id, count)


def check_requirement_status(requirement: Requirement, new_status) -> str:
    """直接编辑需求状态时校验不变式，返回合法的状态值"""
    status = RequirementStatus.parse(new_status)
    if status is None:
        raise ValidationError(f"无效的需求状态: {new_status}", field="status")

    if requirement.project_id is None:
        if status != RequirementStatus.PENDING_SCHEDULE:
            raise ValidationError("未加入项目的需求只能是待排期状态", field="status")
    elif status.value not in SCHEDULED_STATUSES:
        raise ValidationError("已加入项目的需求不能改回待排期，请先删除所属项目", field="status")
    return status.value


async def delete_requirement(db: AsyncSession, requirement_id: int) -> None:
    """删除需求，先解除与项目的关联"""
    async with transaction(db):
        result = await db.execute(select(Requirement).where(Requirement.id == requirement_id))
        requirement = result.scalar_one_or_none()
        if not requirement:
            raise NotFoundError("需求不存在")

        await db.execute(
            delete(ProjectRequirement).where(ProjectRequirement.requirement_id == requirement_id)
        )
        await db.delete(requirement)

    logger.info("删除需求 %s", requirement_id)
