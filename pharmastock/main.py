# pharmastock/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from pharmastock.api.errors import inventory_error_handler
from pharmastock.api.problem import make_problem
from pharmastock.api.routers.inventory import router as inventory_router
from pharmastock.api.routers.purchase_orders import router as purchase_orders_router
from pharmastock.api.routers.webhooks import router as webhooks_router
from pharmastock.core.config import AppSettings, get_settings
from pharmastock.core.errors import InventoryError
from pharmastock.core.logging import setup_logging
from pharmastock.db.base import init_models
from pharmastock.db.session import close_engines, get_session_maker
from pharmastock.metrics import router as metrics_router
from pharmastock.services.wiring import Services, build_services

logger = logging.getLogger("pharmastock")


def create_app(
    services: Optional[Services] = None,
    settings: Optional[AppSettings] = None,
) -> FastAPI:
    """
    应用工厂：

    - 传入 services（测试）→ 直接挂到 app.state，不触碰全局引擎
    - 不传 → lifespan 启动时按 settings 组装，停机时 drain 事件并释放引擎
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(
            settings.LOG_LEVEL, logger_levels=settings.LOG_LEVELS, sql_echo=settings.SQL_ECHO
        )
        init_models()
        owned = False
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(get_session_maker(), settings)
            owned = True
        logger.info("pharmastock started env=%s dispatch=%s", settings.ENV, settings.EVENT_DISPATCH)
        try:
            yield
        finally:
            await app.state.services.aclose()
            if owned:
                await close_engines()

    app = FastAPI(
        title="PharmaStock",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_exception_handler(InventoryError, inventory_error_handler)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(_req: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "detail": make_problem(
                    status_code=422,
                    error_code="validation_error",
                    message="request validation failed",
                    context={"errors": jsonable_encoder(exc.errors())},
                )
            },
        )

    @app.exception_handler(HTTPException)
    async def _http_exc(_req: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def _unhandled_exc(_req: Request, exc: Exception):
        logger.exception("UNHANDLED_EXC: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "detail": make_problem(
                    status_code=500, error_code="INTERNAL_ERROR", message="internal error"
                )
            },
        )

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    app.include_router(inventory_router)
    app.include_router(purchase_orders_router)
    app.include_router(webhooks_router)
    app.include_router(metrics_router)
    return app


app = create_app()
