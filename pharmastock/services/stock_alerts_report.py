# pharmastock/services/stock_alerts_report.py
from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pharmastock.core.errors import ValidationError
from pharmastock.models.batch import Batch
from pharmastock.models.product import Product

ALERT_FILTERS = ("all", "low_stock", "expiring", "expired")

_SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}


class StockAlertsReport:
    """
    库存告警报表（只读快照，不写任何东西）：

    - 商品维度（min_stock_level > 0 的活跃商品）：
        out_of_stock（critical）/ low_stock（低于一半阈值 critical，否则 warning）
    - 批次维度（有效期不为空的活跃批次）：
        expired（critical）/ expiring_7（critical）/ expiring_30（warning）
    - 排序：severity，再按剩余天数（无天数的排后）
    """

    def __init__(self, *, critical_days: int = 7, warning_days: int = 30) -> None:
        self.critical_days = int(critical_days)
        self.warning_days = int(warning_days)

    async def build(
        self,
        session: AsyncSession,
        tenant_id: int,
        *,
        alert_type: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        kind = (alert_type or "all").strip()
        if kind not in ALERT_FILTERS:
            raise ValidationError(
                f"未知的告警类型: {alert_type!r}", context={"type": alert_type, "allowed": ALERT_FILTERS}
            )
        today = today or date.today()

        products = (
            await session.execute(
                select(Product)
                .where(Product.tenant_id == int(tenant_id), Product.is_active.is_(True))
                .order_by(Product.id.asc())
            )
        ).scalars().all()
        batches = (
            await session.execute(
                select(Batch).where(
                    Batch.tenant_id == int(tenant_id),
                    Batch.is_active.is_(True),
                    Batch.quantity > 0,
                )
            )
        ).scalars().all()

        by_product: Dict[int, List[Batch]] = defaultdict(list)
        for b in batches:
            by_product[int(b.product_id)].append(b)

        alerts: List[Dict[str, Any]] = []
        for p in products:
            active = by_product.get(int(p.id), [])
            if kind in ("all", "low_stock"):
                alerts.extend(self._stock_alerts(p, sum(int(b.quantity) for b in active)))
            if kind in ("all", "expiring", "expired"):
                for b in active:
                    a = self._expiry_alert(p, b, today)
                    if a is None:
                        continue
                    if kind == "expired" and a["alert_type"] != "expired":
                        continue
                    if kind == "expiring" and a["alert_type"] == "expired":
                        continue
                    alerts.append(a)

        alerts.sort(
            key=lambda a: (
                _SEVERITY_ORDER.get(a["severity"], 2),
                a["days_until_expiry"] if a.get("days_until_expiry") is not None else 999,
            )
        )
        return {"alerts": alerts, "summary": self._summary(alerts)}

    @staticmethod
    def _stock_alerts(p: Product, total: int) -> List[Dict[str, Any]]:
        level = int(p.min_stock_level or 0)
        if level <= 0:
            return []
        if total == 0:
            return [
                {
                    "id": f"{p.id}-out",
                    "product_id": p.id,
                    "product_name": p.name,
                    "product_barcode": p.barcode,
                    "alert_type": "out_of_stock",
                    "severity": "critical",
                    "message": f"{p.name} - Out of stock",
                    "current_quantity": 0,
                    "min_stock_level": level,
                }
            ]
        if total < level:
            return [
                {
                    "id": f"{p.id}-low",
                    "product_id": p.id,
                    "product_name": p.name,
                    "product_barcode": p.barcode,
                    "alert_type": "low_stock",
                    "severity": "critical" if total < level / 2 else "warning",
                    "message": f"{p.name} - Low stock ({total} units)",
                    "current_quantity": total,
                    "min_stock_level": level,
                }
            ]
        return []

    def _expiry_alert(self, p: Product, b: Batch, today: date) -> Optional[Dict[str, Any]]:
        if b.expiry_date is None:
            return None
        days = (b.expiry_date - today).days
        label = b.batch_number or "N/A"
        if days < 0:
            alert_type, severity = "expired", "critical"
            message = f"{p.name} (Batch: {label}) - EXPIRED"
        elif days <= self.critical_days:
            alert_type, severity = "expiring_7", "critical"
            message = f"{p.name} (Batch: {label}) - Expires in {days} day(s)"
        elif days <= self.warning_days:
            alert_type, severity = "expiring_30", "warning"
            message = f"{p.name} (Batch: {label}) - Expires in {days} days"
        else:
            return None
        return {
            "id": f"{b.id}-{alert_type}",
            "product_id": p.id,
            "batch_id": b.id,
            "product_name": p.name,
            "product_barcode": p.barcode,
            "batch_number": b.batch_number,
            "alert_type": alert_type,
            "severity": severity,
            "message": message,
            "expiry_date": b.expiry_date,
            "quantity": int(b.quantity),
            "days_until_expiry": days,
        }

    @staticmethod
    def _summary(alerts: List[Dict[str, Any]]) -> Dict[str, int]:
        def count(field: str, value: str) -> int:
            return sum(1 for a in alerts if a.get(field) == value)

        return {
            "total": len(alerts),
            "critical": count("severity", "critical"),
            "warning": count("severity", "warning"),
            "out_of_stock": count("alert_type", "out_of_stock"),
            "low_stock": count("alert_type", "low_stock"),
            "expired": count("alert_type", "expired"),
            "expiring_7": count("alert_type", "expiring_7"),
            "expiring_30": count("alert_type", "expiring_30"),
        }
