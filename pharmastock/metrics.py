# pharmastock/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    generate_latest,
    multiprocess,
)

# 业务指标
STOCK_MUTATIONS = Counter(
    "stock_mutations_total", "Committed stock movements", ["movement_type"]
)
CONCURRENCY_RETRIES = Counter(
    "stock_concurrency_retries_total", "Unit-of-work retries after ConcurrencyConflict", ["op"]
)
ALERT_SIGNALS = Counter("stock_alert_signals_total", "Stock alert signals raised", ["kind"])
NOTIFY_FAILURES = Counter(
    "stock_notification_failures_total", "Notification dispatch failures", ["channel"]
)

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程模式直接导出默认 REGISTRY；
    多进程模式（设置了 PROMETHEUS_MULTIPROC_DIR）下创建临时 CollectorRegistry，
    由 MultiProcessCollector 合并各分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
