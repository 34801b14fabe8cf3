# tests/core/test_logging.py
from __future__ import annotations

import logging

import pytest

from pharmastock.core.logging import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    names = ("pharmastock", "pharmastock.notify", "sqlalchemy.engine")
    saved = {n: logging.getLogger(n).level for n in names}
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for n, lvl in saved.items():
        logging.getLogger(n).setLevel(lvl)


def test_component_levels_follow_overrides(restore_logging):
    setup_logging("warning", logger_levels={"pharmastock.notify": "debug"})

    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("pharmastock").level == logging.WARNING
    assert logging.getLogger("pharmastock.notify").getEffectiveLevel() == logging.DEBUG
    assert logging.getLogger("pharmastock.po").getEffectiveLevel() == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_repeated_setup_keeps_single_handler(restore_logging):
    setup_logging("INFO")
    setup_logging("INFO", sql_echo=True)
    assert len(logging.getLogger().handlers) == 1
    assert logging.getLogger("sqlalchemy.engine").level == logging.INFO


def test_unknown_level_rejected(restore_logging):
    with pytest.raises(ValueError):
        setup_logging("LOUD")
