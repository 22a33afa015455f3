"""列表项 / 详情记录的文档构造."""

from datetime import UTC, datetime
from typing import Any


def parse_timestamp(value: Any) -> datetime | None:
    """解析 ISO 字符串或 Unix 时间戳，无法解析时返回 None."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value, UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int | float):
        return str(value)
    return None


def as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def build_list_doc(
    item: dict[str, Any], meta: dict[str, Any], fetched_at: datetime
) -> dict[str, Any]:
    """列表项文档."""
    return {
        "slug": str(item["slug"]),
        "problem_id": _text(item.get("problem_id") or item.get("django_id")),
        "category": _text(item.get("category")),
        "status": _text(item.get("status")),
        "level": _text(item.get("level")),
        "modified": parse_timestamp(item.get("modified")),
        "fetched_at": fetched_at,
        "list_offset": as_int(meta.get("offset")),
        "list_page_number": as_int(meta.get("page_number")),
        "raw": item,
    }


def build_detail_doc(
    slug: str,
    data: dict[str, Any],
    meta: dict[str, Any],
    fetched_at: datetime,
) -> dict[str, Any]:
    """详情文档（raw 为改写后的详情数据）."""
    return {
        "slug": slug,
        "detail_id": _text(data.get("id")),
        "problem_type": _text(data.get("problem_type")),
        "category": _text(data.get("category")),
        "status": _text(data.get("status")),
        "level": _text(data.get("level")),
        "modified": parse_timestamp(data.get("modified")),
        "fetched_at": fetched_at,
        "list_offset": as_int(meta.get("offset")),
        "list_page_number": as_int(meta.get("page_number")),
        "raw": data,
    }
