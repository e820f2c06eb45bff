"""
服务单元及成员维护

成员列表整体替换；单元行与成员行在同一个事务里写入，校验全部在写入前完成。
"""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from reqpool.core.database import transaction
from reqpool.core.exceptions import ConflictError, NotFoundError, ValidationError
from reqpool.models.service_unit import ServiceUnit, ServiceUnitMember
from reqpool.models.user import User

logger = logging.getLogger(__name__)


async def get_unit_or_404(db: AsyncSession, unit_id: int) -> ServiceUnit:
    result = await db.execute(select(ServiceUnit).where(ServiceUnit.id == unit_id))
    unit = result.scalar_one_or_none()
    if not unit:
        raise NotFoundError("服务单元不存在")
    return unit


async def _validate(
    db: AsyncSession,
    name: str,
    leader_id: int,
    member_ids: List[int],
    unit_id: Optional[int] = None,
) -> None:
    stmt = select(ServiceUnit.id).where(ServiceUnit.name == name)
    if unit_id is not None:
        stmt = stmt.where(ServiceUnit.id != unit_id)
    if (await db.execute(stmt)).first():
        raise ConflictError("服务单元名称已存在")

    leader = (await db.execute(select(User.id).where(User.id == leader_id))).first()
    if not leader:
        raise NotFoundError("负责人不存在")

    if not member_ids:
        return

    result = await db.execute(select(User.id).where(User.id.in_(member_ids)))
    found = set(result.scalars().all())
    missing = [uid for uid in member_ids if uid not in found]
    if missing:
        raise ValidationError(
            f"用户不存在: {', '.join(str(uid) for uid in missing)}", field="member_ids"
        )

    stmt = (
        select(User.username, ServiceUnit.name)
        .join(ServiceUnitMember, ServiceUnitMember.user_id == User.id)
        .join(ServiceUnit, ServiceUnit.id == ServiceUnitMember.service_unit_id)
        .where(ServiceUnitMember.user_id.in_(member_ids))
    )
    if unit_id is not None:
        stmt = stmt.where(ServiceUnitMember.service_unit_id != unit_id)
    assigned = (await db.execute(stmt)).all()
    if assigned:
        detail = ", ".join(f"{username}({unit_name})" for username, unit_name in assigned)
        raise ConflictError(f"以下成员已属于其他服务单元: {detail}")


def _unique(ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(ids))


async def replace_members(db: AsyncSession, unit_id: int, member_ids: List[int]) -> None:
    """删除单元现有成员后写入新的成员列表，调用方负责事务"""
    await db.execute(delete(ServiceUnitMember).where(ServiceUnitMember.service_unit_id == unit_id))
    db.add_all(ServiceUnitMember(service_unit_id=unit_id, user_id=uid) for uid in member_ids)


async def create_service_unit(
    db: AsyncSession, name: str, leader_id: int, member_ids: Iterable[int] = ()
) -> ServiceUnit:
    member_ids = _unique(member_ids)
    await _validate(db, name, leader_id, member_ids)

    async with transaction(db):
        unit = ServiceUnit(name=name, leader_id=leader_id)
        db.add(unit)
        await db.flush()
        await replace_members(db, unit.id, member_ids)

    logger.info("创建服务单元 %s(%s)，成员 %s", unit.name, unit.id, member_ids)
    return unit


async def update_service_unit(
    db: AsyncSession, unit_id: int, name: str, leader_id: int, member_ids: Iterable[int] = ()
) -> ServiceUnit:
    """更新名称、负责人，并整体替换成员列表"""
    member_ids = _unique(member_ids)
    unit = await get_unit_or_404(db, unit_id)
    await _validate(db, name, leader_id, member_ids, unit_id=unit.id)

    async with transaction(db):
        unit.name = name
        unit.leader_id = leader_id
        await replace_members(db, unit.id, member_ids)

    logger.info("更新服务单元 %s，成员替换为 %s", unit.id, member_ids)
    return unit


async def delete_service_unit(db: AsyncSession, unit_id: int) -> None:
    unit = await get_unit_or_404(db, unit_id)
    async with transaction(db):
        await db.execute(delete(ServiceUnitMember).where(ServiceUnitMember.service_unit_id == unit.id))
        await db.delete(unit)
    logger.info("删除服务单元 %s", unit_id)


async def get_member_ids(db: AsyncSession, unit_ids: Iterable[int]) -> Dict[int, List[int]]:
    unit_ids = list(unit_ids)
    mapping: Dict[int, List[int]] = {uid: [] for uid in unit_ids}
    if not unit_ids:
        return mapping
    result = await db.execute(
        select(ServiceUnitMember.service_unit_id, ServiceUnitMember.user_id)
        .where(ServiceUnitMember.service_unit_id.in_(unit_ids))
        .order_by(ServiceUnitMember.id)
    )
    for unit_id, user_id in result.all():
        mapping[unit_id].append(user_id)
    return mapping


async def list_unassigned_users(db: AsyncSession) -> List[User]:
    """不属于任何服务单元的用户"""
    assigned = select(ServiceUnitMember.user_id)
    result = await db.execute(select(User).where(User.id.not_in(assigned)).order_by(User.id))
    return list(result.scalars().all())
