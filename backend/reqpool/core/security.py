"""
安全相关工具 - 密码哈希、JWT 令牌、当前用户解析
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import hashlib
import hmac
import secrets

from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reqpool.core.config import settings
from reqpool.core.database import get_db
from reqpool.core.exceptions import UnauthorizedError, ForbiddenError
from reqpool.models.enums import UserRole
from reqpool.models.user import User

# Bearer Token 认证，缺失时由 get_current_user 统一返回 401
security = HTTPBearer(auto_error=False)

HASH_PREFIX = "$pbkdf2-sha256$"
HASH_ITERATIONS = 120_000


def get_password_hash(password: str) -> str:
    """生成密码哈希，格式: $pbkdf2-sha256$<迭代次数>$<盐>$<摘要>"""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), HASH_ITERATIONS)
    return f"{HASH_PREFIX}{HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    if not hashed_password or not hashed_password.startswith(HASH_PREFIX):
        return False
    try:
        iterations, salt, expected = hashed_password[len(HASH_PREFIX):].split("$")
        digest = hashlib.pbkdf2_hmac("sha256", plain_password.encode(), salt.encode(), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """创建访问令牌"""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_user_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """为用户签发令牌，载荷包含用户 ID、用户名、邮箱和角色"""
    return create_access_token(
        {"sub": str(user.id), "username": user.username, "email": user.email, "role": user.role},
        expires_delta,
    )


def decode_access_token(token: str) -> Optional[dict]:
    """解码访问令牌，签名错误或已过期时返回 None"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """获取当前用户，令牌中的用户已被删除时同样视为未认证"""
    if credentials is None:
        raise UnauthorizedError("缺少认证令牌")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError("无效的认证令牌")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("无效的认证令牌")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UnauthorizedError("用户不存在或已被删除")
    return user


def require_roles(*roles: UserRole):
    """角色校验依赖，用法: Depends(require_roles(UserRole.ADMIN))"""
    allowed = {role.value for role in roles}

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError()
        return current_user

    return checker
