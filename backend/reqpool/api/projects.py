"""
项目管理 API
"""
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, Field

from reqpool.core.database import get_db
from reqpool.core.security import get_current_user
from reqpool.models.enums import ProjectStatus
from reqpool.models.project import Project
from reqpool.services import status_sync

router = APIRouter(dependencies=[Depends(get_current_user)])


# ========== Schemas ==========

class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    status: ProjectStatus = ProjectStatus.NEW
    launch_time: Optional[date] = None
    requirement_ids: List[int] = []


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    status: Optional[ProjectStatus] = None
    launch_time: Optional[date] = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    create_time: date
    status: ProjectStatus
    launch_time: Optional[date]
    requirement_ids: List[int] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def _to_response(project: Project, requirement_ids: List[int]) -> ProjectResponse:
    response = ProjectResponse.model_validate(project)
    response.requirement_ids = requirement_ids
    return response


# ========== Routes ==========

@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    status: Optional[ProjectStatus] = None,
    db: AsyncSession = Depends(get_db)
):
    """获取项目列表"""
    query = select(Project)
    if status:
        query = query.where(Project.status == status.value)
    result = await db.execute(query.order_by(Project.create_time.desc(), Project.id.desc()))
    projects = result.scalars().all()

    requirement_ids = await status_sync.get_requirement_ids_by_project(db)
    return [_to_response(p, requirement_ids.get(p.id, [])) for p in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(data: ProjectCreate, db: AsyncSession = Depends(get_db)):
    """创建项目，关联的需求转为已立项"""
    project = await status_sync.create_project(
        db,
        name=data.name,
        requirement_ids=data.requirement_ids,
        status=data.status,
        launch_time=data.launch_time,
    )
    return _to_response(project, await status_sync.get_requirement_ids(db, project.id))


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, db: AsyncSession = Depends(get_db)):
    """获取项目详情"""
    project = await status_sync.get_project_or_404(db, project_id)
    return _to_response(project, await status_sync.get_requirement_ids(db, project.id))


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(project_id: str, data: ProjectUpdate, db: AsyncSession = Depends(get_db)):
    """更新项目，状态变化同步到关联需求"""
    project = await status_sync.update_project(db, project_id, data.model_dump(exclude_unset=True))
    return _to_response(project, await status_sync.get_requirement_ids(db, project.id))


@router.delete("/{project_id}")
async def delete_project(project_id: str, db: AsyncSession = Depends(get_db)):
    """删除项目，关联需求恢复为待排期"""
    await status_sync.delete_project(db, project_id)
    return {"success": True}
