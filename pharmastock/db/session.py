# pharmastock/db/session.py
# 统一的异步会话工厂 + FastAPI 依赖
from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pharmastock.core.config import get_settings

log = logging.getLogger("pharmastock.db")


# ---- DSN 归一：postgres → psycopg3，sqlite → aiosqlite ----
def normalize_async_dsn(url: str) -> str:
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql+psycopg://..."'，这里统一剥掉两侧引号
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()
    if not url:
        raise ValueError("DATABASE_URL 为空")
    # sqlite:/// → sqlite+aiosqlite:///
    if url.startswith("sqlite://") and not url.startswith("sqlite+"):
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def create_engine_for(url: str, *, echo: bool = False) -> AsyncEngine:
    dsn = normalize_async_dsn(url)
    return create_async_engine(dsn, future=True, echo=echo, pool_pre_ping=True)


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@lru_cache
def get_engine() -> AsyncEngine:
    """进程级 Engine（首次使用时创建，避免 import 即连库）。"""
    settings = get_settings()
    engine = create_engine_for(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    log.info("[DB] Using DSN: %s", engine.url.render_as_string(hide_password=True))
    return engine


@lru_cache
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return make_session_maker(get_engine())


# ---- FastAPI 依赖（只读查询用；写操作统一走 UnitOfWork） ----
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_session_maker()() as session:
        yield session


# ---- 关闭引擎（测试/生命周期） ----
async def close_engines() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
