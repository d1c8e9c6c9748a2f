from __future__ import annotations

from typing import Any, Mapping

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def page_args(args: Mapping[str, Any]) -> tuple[int, int]:
    """Read ``pageIndex``/``pageSize`` query params, falling back to defaults on bad input."""
    try:
        page = int(args.get("pageIndex", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        size = int(args.get("pageSize", DEFAULT_PAGE_SIZE))
    except (TypeError, ValueError):
        size = DEFAULT_PAGE_SIZE
    if page < 1:
        page = 1
    if size < 1 or size > MAX_PAGE_SIZE:
        size = DEFAULT_PAGE_SIZE
    return page, size


def paginate(query, page: int, page_size: int) -> tuple[list, int]:
    total = query.order_by(None).count()
    items = query.limit(page_size).offset((page - 1) * page_size).all()
    return items, total


def pagination_dict(total: int, page: int, page_size: int) -> dict:
    return {
        "total": int(total),
        "pageIndex": page,
        "pageSize": page_size,
        "pageTotal": (int(total) + page_size - 1) // page_size,
    }
