# pharmastock/core/logging.py
import logging
import sys
from typing import Mapping, Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _level(value: str) -> int:
    name = str(value).strip().upper()
    lvl = logging.getLevelName(name)
    if not isinstance(lvl, int):
        raise ValueError(f"unknown log level: {value!r}")
    return lvl


def setup_logging(
    level: str = "INFO",
    *,
    logger_levels: Optional[Mapping[str, str]] = None,
    sql_echo: bool = False,
) -> None:
    """
    统一日志：

    - 根 logger 设级别，单一 stdout handler（重复调用不叠加）
    - pharmastock.* 跟随 level；logger_levels 按名覆盖，例如 {"pharmastock.notify": "DEBUG"}
    - sql_echo=True 时 sqlalchemy.engine 输出 SQL，否则只留告警
    """
    root_level = _level(level)
    root = logging.getLogger()
    root.setLevel(root_level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)

    logging.getLogger("pharmastock").setLevel(root_level)

    # 第三方
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if sql_echo or root_level <= logging.DEBUG else logging.WARNING
    )

    for name, value in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(_level(value))
