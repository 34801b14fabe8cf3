# pharmastock/api/errors.py
from __future__ import annotations

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from pharmastock.api.problem import make_problem
from pharmastock.core.errors import InventoryError

logger = logging.getLogger("pharmastock.api")


def inventory_error_handler(_: Request, exc: InventoryError) -> JSONResponse:
    """
    库存域错误 → Problem 形状：

        {"detail": {"error_code", "message", "http_status", "context"?}}
    """
    if exc.status >= 500:
        logger.error("[api] %s: %s", exc.code, exc.message)
    else:
        logger.info("[api] %s (%s): %s", exc.code, exc.status, exc.message)
    return JSONResponse(
        status_code=exc.status,
        content={
            "detail": make_problem(
                status_code=exc.status,
                error_code=exc.code,
                message=exc.message,
                context=jsonable_encoder(exc.context) if exc.context else None,
            )
        },
    )
