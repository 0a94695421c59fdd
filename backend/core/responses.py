from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """Success envelope shared by every router: {success, data?, message?}."""
    out: dict = {"success": True}
    if data is not None:
        out["data"] = data
    if message:
        out["message"] = message
    out.update(extra)
    return out


def paginate(total: int, page: int, page_size: int) -> dict:
    return {
        "page": page,
        "page_size": page_size,
        "total": total,
        "total_pages": (total + page_size - 1) // page_size if page_size else 0,
    }
