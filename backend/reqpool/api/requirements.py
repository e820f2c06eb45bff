"""
需求池 API
"""
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, UploadFile, File, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from pydantic import BaseModel

from reqpool.core.database import get_db, transaction
from reqpool.core.exceptions import ConflictError, NotFoundError
from reqpool.core.security import get_current_user
from reqpool.models.enums import RequirementStatus
from reqpool.models.requirement import Requirement
from reqpool.services import status_sync
from reqpool.services.importer import import_requirements
from reqpool.services.tabular import read_upload

router = APIRouter(dependencies=[Depends(get_current_user)])


# ========== Schemas ==========

class RequirementCreate(BaseModel):
    code: str
    description: str
    requestor: str
    department: str
    request_date: Optional[date] = None


class RequirementUpdate(BaseModel):
    code: Optional[str] = None
    description: Optional[str] = None
    requestor: Optional[str] = None
    department: Optional[str] = None
    request_date: Optional[date] = None
    status: Optional[RequirementStatus] = None


class RequirementResponse(BaseModel):
    id: int
    code: str
    description: str
    requestor: str
    department: str
    request_date: date
    status: RequirementStatus
    project_id: Optional[str]
    project_status: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImportResult(BaseModel):
    success: bool = True
    count: int
    message: str


async def _get_or_404(db: AsyncSession, requirement_id: int) -> Requirement:
    result = await db.execute(select(Requirement).where(Requirement.id == requirement_id))
    requirement = result.scalar_one_or_none()
    if not requirement:
        raise NotFoundError("需求不存在")
    return requirement


async def _ensure_code_free(db: AsyncSession, code: str, exclude_id: Optional[int] = None):
    stmt = select(Requirement.id).where(Requirement.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Requirement.id != exclude_id)
    if (await db.execute(stmt)).first():
        raise ConflictError("需求编号已存在")


# ========== Routes ==========

@router.get("", response_model=List[RequirementResponse])
async def list_requirements(
    status: Optional[RequirementStatus] = None,
    project_id: Optional[str] = None,
    keyword: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db)
):
    """获取需求列表"""
    query = select(Requirement)

    if status:
        query = query.where(Requirement.status == status.value)
    if project_id:
        query = query.where(Requirement.project_id == project_id)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.where(or_(
            Requirement.code.like(pattern),
            Requirement.description.like(pattern),
            Requirement.requestor.like(pattern),
        ))

    query = query.order_by(Requirement.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("", response_model=RequirementResponse, status_code=status.HTTP_201_CREATED)
async def create_requirement(req_data: RequirementCreate, db: AsyncSession = Depends(get_db)):
    """创建需求，新需求总是待排期"""
    await _ensure_code_free(db, req_data.code)

    async with transaction(db):
        requirement = Requirement(
            code=req_data.code,
            description=req_data.description,
            requestor=req_data.requestor,
            department=req_data.department,
            request_date=req_data.request_date or date.today(),
            status=RequirementStatus.PENDING_SCHEDULE.value,
        )
        db.add(requirement)

    return requirement


@router.post("/import", response_model=ImportResult)
async def import_requirement_file(file: UploadFile = File(...), db: AsyncSession = Depends(get_db)):
    """从 CSV / XLSX 批量导入需求"""
    content = await read_upload(file)
    count = await import_requirements(db, file.filename, content)
    return ImportResult(count=count, message=f"成功导入 {count} 条需求")


@router.get("/{requirement_id}", response_model=RequirementResponse)
async def get_requirement(requirement_id: int, db: AsyncSession = Depends(get_db)):
    """获取需求详情"""
    return await _get_or_404(db, requirement_id)


@router.put("/{requirement_id}", response_model=RequirementResponse)
async def update_requirement(
    requirement_id: int,
    req_data: RequirementUpdate,
    db: AsyncSession = Depends(get_db)
):
    """更新需求；所属项目与项目状态只能通过项目维护"""
    requirement = await _get_or_404(db, requirement_id)
    update_data = req_data.model_dump(exclude_unset=True, exclude_none=True)

    if "code" in update_data:
        await _ensure_code_free(db, update_data["code"], exclude_id=requirement.id)
    if "status" in update_data:
        update_data["status"] = status_sync.check_requirement_status(requirement, update_data["status"])

    async with transaction(db):
        for field, value in update_data.items():
            setattr(requirement, field, value)

    return requirement


@router.delete("/{requirement_id}")
async def delete_requirement(requirement_id: int, db: AsyncSession = Depends(get_db)):
    """删除需求"""
    await status_sync.delete_requirement(db, requirement_id)
    return {"success": True}
