"""
批量导入 - 需求 / 用户

需求导入整表校验：任何一行不合格都不写入。
用户导入逐行过滤：缺字段、角色无效、用户名或邮箱重复的行被跳过，
其余行在同一个事务里写入。
"""
import io
import logging
from datetime import date
from typing import Dict, List

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reqpool.core.database import transaction
from reqpool.core.exceptions import ConflictError, ValidationError
from reqpool.core.security import get_password_hash
from reqpool.models.enums import RequirementStatus, UserRole
from reqpool.models.requirement import Requirement
from reqpool.models.user import User
from reqpool.services.tabular import read_table

logger = logging.getLogger(__name__)

REQUIREMENT_COLUMNS = {
    "code": "需求编号",
    "description": "需求描述",
    "requestor": "需求方",
    "department": "需求部门",
    "request_date": "需求日期",
    "status": "排期状态",
}
REQUIREMENT_REQUIRED = ("code", "description", "requestor", "department")

# 用户模板列，顺序即模板列顺序
USER_COLUMNS = {
    "username": "用户名",
    "password": "密码",
    "role": "角色",
    "name": "姓名",
    "phone": "电话",
    "email": "邮箱",
    "department": "部门",
}
USER_REQUIRED = ("username", "password", "role")


def _aliases(columns: Dict[str, str]) -> Dict[str, str]:
    aliases = {field: field for field in columns}
    aliases.update({label: field for field, label in columns.items()})
    return aliases


def _parse_date(value: str, line: int) -> date:
    if not value:
        return date.today()
    try:
        return pd.to_datetime(value).date()
    except (ValueError, TypeError, OverflowError):
        raise ValidationError(f"第{line}行需求日期格式不正确: {value}", field="request_date")


async def import_requirements(db: AsyncSession, filename: str, content: bytes) -> int:
    """导入需求，返回写入条数"""
    columns, rows = read_table(filename, content, _aliases(REQUIREMENT_COLUMNS))

    missing = [REQUIREMENT_COLUMNS[f] for f in REQUIREMENT_REQUIRED if f not in columns]
    if missing:
        raise ValidationError(f"缺少必需列: {', '.join(missing)}")
    if not rows:
        raise ValidationError("文件中没有数据")

    records: List[dict] = []
    codes = set()
    for index, row in enumerate(rows):
        line = index + 2  # 第 1 行是表头
        blank = [REQUIREMENT_COLUMNS[f] for f in REQUIREMENT_REQUIRED if not row.get(f)]
        if blank:
            raise ValidationError(f"第{line}行缺少必填字段: {', '.join(blank)}")

        if row["code"] in codes:
            raise ValidationError(f"第{line}行需求编号重复: {row['code']}", field="code")
        codes.add(row["code"])

        status = RequirementStatus.parse(row.get("status")) if row.get("status") else RequirementStatus.PENDING_SCHEDULE
        if status != RequirementStatus.PENDING_SCHEDULE:
            raise ValidationError(f"第{line}行排期状态无效，导入的需求只能是待排期", field="status")

        records.append({
            "code": row["code"],
            "description": row["description"],
            "requestor": row["requestor"],
            "department": row["department"],
            "request_date": _parse_date(row.get("request_date", ""), line),
            "status": status.value,
        })

    result = await db.execute(select(Requirement.code).where(Requirement.code.in_(codes)))
    existing = sorted(result.scalars().all())
    if existing:
        raise ValidationError(f"需求编号已存在: {', '.join(existing)}", field="code")

    async with transaction(db):
        db.add_all(Requirement(**record) for record in records)

    logger.info("从 %s 导入需求 %d 条", filename, len(records))
    return len(records)


async def import_users(db: AsyncSession, filename: str, content: bytes) -> int:
    """导入用户，返回写入条数；同一文件内用户名重复时保留第一行"""
    columns, rows = read_table(filename, content, _aliases(USER_COLUMNS))

    missing = [USER_COLUMNS[f] for f in USER_REQUIRED if f not in columns]
    if missing:
        raise ValidationError(f"缺少必需列: {', '.join(missing)}")

    usernames = {row["username"] for row in rows if row.get("username")}
    emails = {row["email"] for row in rows if row.get("email")}
    taken_usernames = set()
    taken_emails = set()
    if usernames:
        result = await db.execute(select(User.username).where(User.username.in_(usernames)))
        taken_usernames = set(result.scalars().all())
    if emails:
        result = await db.execute(select(User.email).where(User.email.in_(emails)))
        taken_emails = set(result.scalars().all())

    users: List[User] = []
    skipped = 0
    for index, row in enumerate(rows):
        line = index + 2
        role = UserRole.parse(row.get("role"))
        email = row.get("email") or None

        if any(not row.get(f) for f in USER_REQUIRED) or role is None:
            logger.info("跳过第%d行：必填字段缺失或角色无效", line)
            skipped += 1
            continue
        if row["username"] in taken_usernames or (email and email in taken_emails):
            logger.info("跳过第%d行：用户名或邮箱已存在 (%s)", line, row["username"])
            skipped += 1
            continue

        taken_usernames.add(row["username"])
        if email:
            taken_emails.add(email)
        users.append(User(
            username=row["username"],
            hashed_password=get_password_hash(row["password"]),
            role=role.value,
            name=row.get("name") or row["username"],
            phone=row.get("phone") or None,
            email=email,
            department=row.get("department") or None,
        ))

    if users:
        try:
            async with transaction(db):
                db.add_all(users)
        except IntegrityError:
            raise ConflictError("导入失败：写入用户时发生冲突，本批次未写入")

    logger.info("从 %s 导入用户 %d 个，跳过 %d 行", filename, len(users), skipped)
    return len(users)


def build_user_template() -> io.BytesIO:
    """生成用户导入模板"""
    wb = Workbook()
    ws = wb.active
    ws.title = "用户导入模板"

    ws.append(list(USER_COLUMNS.values()))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.append(["zhangsan", "123456", UserRole.DEVELOPER.label, "张三", "13800000000",
               "zhangsan@example.com", "研发部"])

    roles = wb.create_sheet("角色说明")
    roles.append(["角色", "说明"])
    for role in UserRole:
        roles.append([role.label, role.value])

    # 保存到内存
    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
