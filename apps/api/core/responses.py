"""
Response envelope.

Success: {"ok": true, "data": ..., "meta": {"traceId", "timestamp", "pagination"?}}
Error:   {"ok": false, "error": {"code", "message", "details"?}, "meta": {...}}
"""
import math
import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel

from core import clock
from core.logging import get_trace_id


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_dump(item) for item in data]
    if isinstance(data, dict):
        return {k: _dump(v) for k, v in data.items()}
    return data


def build_meta(pagination: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "traceId": get_trace_id() or str(uuid.uuid4()),
        "timestamp": clock.utcnow().isoformat(),
    }
    if pagination is not None:
        meta["pagination"] = pagination
    return meta


def paginate_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def ok(data: Any = None, pagination: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    return {"ok": True, "data": _dump(data), "meta": build_meta(pagination)}


def error_body(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error, "meta": build_meta()}
