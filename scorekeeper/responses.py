"""
Single response contract for every JSON endpoint:

    {"success": true,  "data": ..., "meta": {"timestamp", "requestId", ...}}
    {"success": false, "error": {"code", "message", "details"}, "meta": {...}}
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from starlette.requests import Request

from .timeutils import utc_now_iso


def new_request_id() -> str:
    return uuid.uuid4().hex[:9]


def request_id_for(request: Optional[Request]) -> str:
    if request is not None:
        rid = getattr(request.state, "request_id", None)
        if rid:
            return rid
    return new_request_id()


def build_meta(request: Optional[Request], **extra: Any) -> Dict[str, Any]:
    meta = {"timestamp": utc_now_iso(), "requestId": request_id_for(request)}
    meta.update({k: v for k, v in extra.items() if v is not None})
    return meta


def success(request: Optional[Request], data: Any, **meta: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, "meta": build_meta(request, **meta)}


def failure(
    request: Optional[Request],
    code: str,
    message: str,
    details: Any = None,
) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
        "meta": build_meta(request),
    }
