from typing import Any, Optional

from fastapi.responses import JSONResponse


def ok(data: Any = None, message: Optional[str] = None, status_code: int = 200, **extra) -> JSONResponse:
    """Build the ``{success, message?, data?, count?, pagination?}`` envelope."""
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    for k, v in extra.items():
        if v is not None:
            body[k] = v
    return JSONResponse(status_code=status_code, content=body)


def error(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=body)


def paginate(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if limit else 0,
    }
