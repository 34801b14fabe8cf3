# tests/_problem.py
from __future__ import annotations

from typing import Any, Dict


def as_problem(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    把 API 错误响应统一取成 Problem 形状：{"detail": {error_code, message, http_status, context?}}。
    """
    d = payload.get("detail")
    if isinstance(d, dict) and "error_code" in d:
        return d
    if "error_code" in payload and "message" in payload:
        return payload
    raise AssertionError(f"not a problem payload: {payload!r}")
