"""
共享枚举 - 模型、接口、导入共用同一份定义
"""
from enum import Enum as PyEnum
from typing import Optional


class LabeledEnum(str, PyEnum):
    """带中文显示名的字符串枚举，子类用 __labels__ 声明显示名"""

    @property
    def label(self) -> str:
        return type(self).__labels__[self.value]

    @classmethod
    def parse(cls, raw) -> Optional["LabeledEnum"]:
        """接受枚举值或中文名，无法识别时返回 None"""
        if raw is None:
            return None
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip()
        for member in cls:
            if text == member.value or text == member.label:
                return member
        return None


class UserRole(LabeledEnum):
    """用户角色"""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    PRODUCT_MANAGER = "product_manager"
    DEVELOPER = "developer"
    TESTER = "tester"
    STAKEHOLDER = "stakeholder"

    __labels__ = {
        "super_admin": "超级管理员",
        "admin": "管理员",
        "product_manager": "产品经理",
        "developer": "开发人员",
        "tester": "测试人员",
        "stakeholder": "干系人",
    }


class RequirementStatus(LabeledEnum):
    """需求排期状态"""
    PENDING_SCHEDULE = "pending_schedule"
    IN_PROJECT = "in_project"
    COMPLETED = "completed"

    __labels__ = {
        "pending_schedule": "待排期",
        "in_project": "已立项",
        "completed": "已完成",
    }


class ProjectStatus(LabeledEnum):
    """项目生命周期状态，按推进顺序排列"""
    NEW = "new"
    REQUIREMENT_DESIGN = "requirement_design"
    REQUIREMENT_HANDOVER = "requirement_handover"
    IMPLEMENTATION = "implementation"
    COMPLETED = "completed"

    __labels__ = {
        "new": "新建未处理",
        "requirement_design": "需求设计",
        "requirement_handover": "需求交接",
        "implementation": "需求实现",
        "completed": "上线关闭",
    }


ADMIN_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN)
