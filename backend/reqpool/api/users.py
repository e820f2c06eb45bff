"""
用户管理 API (管理员)
"""
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, UploadFile, File, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from pydantic import BaseModel, EmailStr, Field

from reqpool.api.auth import UserResponse, ensure_unique
from reqpool.core.config import settings
from reqpool.core.database import get_db, transaction
from reqpool.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from reqpool.core.security import get_password_hash, require_roles
from reqpool.models.enums import ADMIN_ROLES, UserRole
from reqpool.models.service_unit import ServiceUnit, ServiceUnitMember
from reqpool.models.user import User
from reqpool.services.importer import build_user_template, import_users
from reqpool.services.tabular import read_upload

logger = logging.getLogger(__name__)

router = APIRouter()

admin_required = require_roles(*ADMIN_ROLES)


# ========== Schemas ==========

class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole = UserRole.STAKEHOLDER
    department: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)  # 缺省时使用默认密码


class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    department: Optional[str] = None


class PasswordReset(BaseModel):
    password: str = Field(min_length=6)


class ImportResult(BaseModel):
    success: bool = True
    count: int
    message: str


async def _get_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("用户不存在")
    return user


# ========== Routes ==========

@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = None,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """获取用户列表"""
    query = select(User)
    if role:
        query = query.where(User.role == role.value)
    result = await db.execute(query.order_by(User.id))
    return result.scalars().all()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """创建用户"""
    await ensure_unique(db, username=user_data.username, email=user_data.email)

    async with transaction(db):
        user = User(
            username=user_data.username,
            email=user_data.email,
            name=user_data.name or user_data.username,
            phone=user_data.phone,
            role=user_data.role.value,
            department=user_data.department,
            hashed_password=get_password_hash(user_data.password or settings.DEFAULT_USER_PASSWORD),
        )
        db.add(user)

    logger.info("%s 创建用户 %s", current_user.username, user.username)
    return user


@router.get("/template")
async def download_template(current_user: User = Depends(admin_required)):
    """下载用户导入模板"""
    return StreamingResponse(
        build_user_template(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=user_import_template.xlsx"}
    )


@router.post("/import", response_model=ImportResult)
async def import_user_file(
    file: UploadFile = File(...),
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """从 CSV / XLSX 批量导入用户"""
    content = await read_upload(file)
    count = await import_users(db, file.filename, content)
    return ImportResult(count=count, message=f"成功导入 {count} 个用户")


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """获取用户详情"""
    return await _get_or_404(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """更新用户信息，密码通过重置接口修改"""
    user = await _get_or_404(db, user_id)
    update_data = user_data.model_dump(exclude_unset=True, exclude_none=True)
    await ensure_unique(
        db, username=update_data.get("username"), email=update_data.get("email"), exclude_id=user.id
    )

    async with transaction(db):
        for field, value in update_data.items():
            if field == "role":
                value = value.value
            setattr(user, field, value)

    return user


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """删除用户；超级管理员不可删除"""
    user = await _get_or_404(db, user_id)
    if user.role == UserRole.SUPER_ADMIN.value:
        raise ForbiddenError("不能删除超级管理员")
    if user.id == current_user.id:
        raise ForbiddenError("不能删除当前登录的用户")

    led = (await db.execute(select(ServiceUnit.name).where(ServiceUnit.leader_id == user.id))).first()
    if led:
        raise ConflictError(f"该用户是服务单元 {led.name} 的负责人，请先更换负责人")

    async with transaction(db):
        await db.execute(delete(ServiceUnitMember).where(ServiceUnitMember.user_id == user.id))
        await db.delete(user)

    logger.info("%s 删除用户 %s", current_user.username, user.username)
    return {"success": True}


@router.post("/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    data: PasswordReset,
    current_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """重置用户密码"""
    user = await _get_or_404(db, user_id)
    async with transaction(db):
        user.hashed_password = get_password_hash(data.password)
    return {"success": True}
