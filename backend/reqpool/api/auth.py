"""
认证 API - 登录、注册、当前用户、个人资料
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, EmailStr, Field

from reqpool.core.database import get_db, transaction
from reqpool.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from reqpool.core.security import (
    verify_password,
    get_password_hash,
    create_user_token,
    get_current_user,
)
from reqpool.models.enums import UserRole
from reqpool.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_CREDENTIALS = "用户名或密码错误"


# ========== Schemas ==========

class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str
    department: Optional[str] = None
    username: Optional[str] = None


class UserLogin(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: Optional[str]
    name: Optional[str]
    phone: Optional[str]
    role: UserRole
    department: Optional[str]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    department: Optional[str] = None


class PasswordChange(BaseModel):
    old_password: str
    new_password: str = Field(min_length=6)


async def ensure_unique(db: AsyncSession, username: Optional[str] = None, email: Optional[str] = None,
                        exclude_id: Optional[int] = None, error=ConflictError) -> None:
    """检查用户名、邮箱是否被其他用户占用"""
    for column, value, message in (
        (User.username, username, "用户名已存在"),
        (User.email, email, "邮箱已存在"),
    ):
        if not value:
            continue
        stmt = select(User.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await db.execute(stmt)).first():
            raise error(message)


# ========== Routes ==========

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, db: AsyncSession = Depends(get_db)):
    """用户注册，用户名缺省时使用邮箱"""
    username = user_data.username or user_data.email
    await ensure_unique(db, username=username, email=user_data.email, error=ValidationError)

    async with transaction(db):
        user = User(
            username=username,
            email=user_data.email,
            hashed_password=get_password_hash(user_data.password),
            name=user_data.name,
            role=UserRole.STAKEHOLDER.value,
            department=user_data.department,
        )
        db.add(user)

    logger.info("新用户注册: %s", username)
    return user


@router.post("/login", response_model=TokenResponse)
async def login(login_data: UserLogin, db: AsyncSession = Depends(get_db)):
    """用户登录"""
    result = await db.execute(select(User).where(User.username == login_data.username))
    user = result.scalar_one_or_none()

    # 用户不存在与密码错误返回同样的信息
    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.info("登录失败: %s", login_data.username)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    return TokenResponse(token=create_user_token(user), user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """获取当前用户信息"""
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """修改个人资料"""
    update_data = data.model_dump(exclude_unset=True)
    await ensure_unique(db, email=update_data.get("email"), exclude_id=current_user.id)

    async with transaction(db):
        for field, value in update_data.items():
            setattr(current_user, field, value)

    return current_user


@router.put("/password")
async def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """修改密码，需要校验原密码"""
    if not verify_password(data.old_password, current_user.hashed_password):
        raise ValidationError("原密码不正确", field="old_password")

    async with transaction(db):
        current_user.hashed_password = get_password_hash(data.new_password)

    return {"success": True, "message": "密码修改成功"}
