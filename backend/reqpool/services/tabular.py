"""
上传表格解析 - CSV / XLSX 转成以字段名为键的行列表
"""
import io
import os
from typing import Dict, List, Set, Tuple

import pandas as pd
from fastapi import UploadFile

from reqpool.core.config import settings
from reqpool.core.exceptions import ValidationError

ALLOWED_EXTENSIONS = {".csv", ".xlsx"}
CSV_ENCODINGS = ("utf-8-sig", "gb18030")


def check_extension(filename: str) -> str:
    """校验扩展名，返回小写扩展名"""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"不支持的文件类型，仅支持 {', '.join(sorted(ALLOWED_EXTENSIONS))}", field="file"
        )
    return ext


def check_upload(filename: str, content: bytes) -> str:
    """按扩展名和大小校验上传文件，返回小写扩展名"""
    ext = check_extension(filename)
    if not content:
        raise ValidationError("上传文件为空", field="file")
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise _too_large()
    return ext


def _too_large() -> ValidationError:
    return ValidationError(
        f"文件大小超过限制 ({settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB)", field="file"
    )


async def read_upload(file: UploadFile) -> bytes:
    """先校验扩展名，再最多读取 MAX_UPLOAD_SIZE + 1 字节，超出即拒绝"""
    check_extension(file.filename)
    content = await file.read(settings.MAX_UPLOAD_SIZE + 1)
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise _too_large()
    return content


def _read_frame(ext: str, content: bytes) -> pd.DataFrame:
    if ext == ".xlsx":
        return pd.read_excel(
            io.BytesIO(content), dtype=str, engine="openpyxl", keep_default_na=False, na_values=[""]
        )

    last_error = None
    for encoding in CSV_ENCODINGS:
        try:
            return pd.read_csv(io.BytesIO(content), dtype=str, encoding=encoding, keep_default_na=False)
        except UnicodeDecodeError as exc:
            last_error = exc
    raise ValidationError(f"无法识别文件编码: {last_error}", field="file")


def read_table(
    filename: str, content: bytes, aliases: Dict[str, str]
) -> Tuple[Set[str], List[Dict[str, str]]]:
    """
    解析上传文件

    Args:
        filename: 原始文件名，用于判断格式
        content: 文件内容
        aliases: 表头别名 → 字段名，表头既可以是字段名也可以是中文列名

    Returns:
        (文件中出现的字段集合, 数据行列表)。每行只包含能识别的列，
        单元格统一为去掉首尾空白的字符串，整行为空的行被忽略。
    """
    ext = check_upload(filename, content)
    try:
        frame = _read_frame(ext, content)
    except ValidationError:
        raise
    except Exception as exc:
        raise ValidationError(f"文件解析失败: {exc}", field="file")

    columns = {}
    for column in frame.columns:
        key = aliases.get(str(column).strip())
        if key and key not in columns.values():
            columns[column] = key

    rows = []
    for record in frame.fillna("").to_dict(orient="records"):
        row = {key: str(record[column]).strip() for column, key in columns.items()}
        if any(row.values()):
            rows.append(row)
    return set(columns.values()), rows
