# pharmastock/db/base.py
from __future__ import annotations

import importlib
import logging

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("pharmastock.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

# 显式导入顺序：保证字符串关系目标类已注册
_MODEL_MODULES = [
    "pharmastock.models.product",
    "pharmastock.models.batch",
    "pharmastock.models.stock_transaction",
    "pharmastock.models.purchase_order",
    "pharmastock.models.purchase_order_item",
    "pharmastock.models.webhook_subscription",
]


def init_models(*, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射：
      1) 按固定顺序导入 pharmastock.models.*
      2) 统一 configure_mappers()
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        log.debug("init_models() called again; already initialized, skipping.")
        return

    for mod in _MODEL_MODULES:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(_MODEL_MODULES))
