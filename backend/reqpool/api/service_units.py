"""
服务单元 API
"""
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, Field

from reqpool.api.auth import UserResponse
from reqpool.core.database import get_db
from reqpool.core.security import get_current_user
from reqpool.models.service_unit import ServiceUnit
from reqpool.models.user import User
from reqpool.services import service_units

router = APIRouter(dependencies=[Depends(get_current_user)])


# ========== Schemas ==========

class ServiceUnitData(BaseModel):
    name: str = Field(min_length=1)
    leader_id: int
    member_ids: List[int] = []


class ServiceUnitResponse(BaseModel):
    id: int
    name: str
    leader_id: int
    leader_name: Optional[str]
    member_ids: List[int]
    member_names: List[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


async def _build_responses(db: AsyncSession, units: List[ServiceUnit]) -> List[ServiceUnitResponse]:
    members = await service_units.get_member_ids(db, [u.id for u in units])
    user_ids = {u.leader_id for u in units}
    for ids in members.values():
        user_ids.update(ids)

    names = {}
    if user_ids:
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        names = {user.id: user.display_name for user in result.scalars().all()}

    return [
        ServiceUnitResponse(
            id=unit.id,
            name=unit.name,
            leader_id=unit.leader_id,
            leader_name=names.get(unit.leader_id),
            member_ids=members[unit.id],
            member_names=[names[uid] for uid in members[unit.id] if uid in names],
            created_at=unit.created_at,
            updated_at=unit.updated_at,
        )
        for unit in units
    ]


# ========== Routes ==========

@router.get("/service-units", response_model=List[ServiceUnitResponse])
async def list_service_units(db: AsyncSession = Depends(get_db)):
    """获取服务单元列表"""
    result = await db.execute(select(ServiceUnit).order_by(ServiceUnit.id))
    return await _build_responses(db, list(result.scalars().all()))


@router.post("/service-units", response_model=ServiceUnitResponse, status_code=status.HTTP_201_CREATED)
async def create_service_unit(data: ServiceUnitData, db: AsyncSession = Depends(get_db)):
    """创建服务单元"""
    unit = await service_units.create_service_unit(db, data.name, data.leader_id, data.member_ids)
    return (await _build_responses(db, [unit]))[0]


@router.get("/service-units/{unit_id}", response_model=ServiceUnitResponse)
async def get_service_unit(unit_id: int, db: AsyncSession = Depends(get_db)):
    """获取服务单元详情"""
    unit = await service_units.get_unit_or_404(db, unit_id)
    return (await _build_responses(db, [unit]))[0]


@router.put("/service-units/{unit_id}", response_model=ServiceUnitResponse)
async def update_service_unit(unit_id: int, data: ServiceUnitData, db: AsyncSession = Depends(get_db)):
    """更新服务单元，成员列表整体替换"""
    unit = await service_units.update_service_unit(db, unit_id, data.name, data.leader_id, data.member_ids)
    return (await _build_responses(db, [unit]))[0]


@router.delete("/service-units/{unit_id}")
async def delete_service_unit(unit_id: int, db: AsyncSession = Depends(get_db)):
    """删除服务单元及其成员关系"""
    await service_units.delete_service_unit(db, unit_id)
    return {"success": True}


@router.get("/unassigned-users", response_model=List[UserResponse])
async def list_unassigned_users(db: AsyncSession = Depends(get_db)):
    """获取未分配到服务单元的用户"""
    return await service_units.list_unassigned_users(db)
