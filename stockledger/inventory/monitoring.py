"""Low stock and exhausted stock checks over the ledger."""

import logging

from attrs import frozen

from . import StockAlertType
from .models import Inventory

logger = logging.getLogger(__name__)


@frozen
class StockAlert:
    inventory_id: int
    product_variant_id: int
    sku: str
    store_id: int
    quantity: int
    low_stock_threshold: int
    type: str


def _to_alerts(inventories, alert_type):
    return [
        StockAlert(
            inventory_id=inventory.pk,
            product_variant_id=inventory.product_variant_id,
            sku=inventory.product_variant.sku,
            store_id=inventory.store_id,
            quantity=inventory.quantity,
            low_stock_threshold=inventory.low_stock_threshold,
            type=alert_type,
        )
        for inventory in inventories
    ]


def check_low_stock(store_id=None) -> list[StockAlert]:
    """Return ledger rows still in stock but at or below their threshold."""
    inventories = (
        Inventory.objects.for_store(store_id)
        .low_stock()
        .select_related("product_variant")
        .order_by("store_id", "product_variant__sku")
    )
    alerts = _to_alerts(inventories, StockAlertType.LOW_STOCK)
    if alerts:
        logger.warning(
            "%s inventories at or below their low stock threshold", len(alerts)
        )
    return alerts


def check_exhausted_stock(store_id=None) -> list[StockAlert]:
    inventories = (
        Inventory.objects.for_store(store_id)
        .out_of_stock()
        .select_related("product_variant")
        .order_by("store_id", "product_variant__sku")
    )
    alerts = _to_alerts(inventories, StockAlertType.STOCK_EXHAUSTED)
    if alerts:
        logger.warning("%s inventories out of stock", len(alerts))
    return alerts
