# pharmastock/models/__init__.py
from pharmastock.models.batch import Batch
from pharmastock.models.product import Product
from pharmastock.models.purchase_order import PurchaseOrder
from pharmastock.models.purchase_order_item import PurchaseOrderItem
from pharmastock.models.stock_transaction import StockTransaction
from pharmastock.models.webhook_subscription import WebhookSubscription

__all__ = [
    "Batch",
    "Product",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "StockTransaction",
    "WebhookSubscription",
]
