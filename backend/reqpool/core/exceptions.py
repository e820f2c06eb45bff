"""
业务异常

API 层统一把这些异常渲染成 {"message": ..., "code": ...} 的 JSON 响应。

用法:
    from reqpool.core.exceptions import NotFoundError

    if not project:
        raise NotFoundError("项目不存在")
"""
from typing import Any, Dict, Optional


class AppError(Exception):
    """所有业务异常的基类"""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnauthorizedError(AppError):
    """未登录、令牌无效或已过期、账号密码错误"""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "未登录或登录已过期"):
        super().__init__(message)


class ForbiddenError(AppError):
    """无权执行该操作"""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "没有权限执行此操作"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    """唯一字段重复、成员已归属其他服务单元等"""

    status_code = 409
    code = "CONFLICT"


class ValidationError(AppError):
    """缺少必填字段、文件格式不正确等"""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "服务器内部错误"):
        super().__init__(message)
