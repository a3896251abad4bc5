"""Event logging for purchase operations."""

from . import PurchaseEvents
from .models import Purchase, PurchaseEvent


def purchase_created_event(*, purchase: Purchase, user=None) -> PurchaseEvent:
    return PurchaseEvent.objects.create(
        type=PurchaseEvents.CREATED,
        purchase=purchase,
        user=user,
        parameters={
            "store_id": purchase.store_id,
            "status": purchase.status,
            "item_count": purchase.items.count(),
            "total_amount": purchase.total_amount,
        },
    )


def purchase_updated_event(
    *, purchase: Purchase, updated_fields: list[str], user=None
) -> PurchaseEvent:
    """Log which header fields or lines an update changed."""
    return PurchaseEvent.objects.create(
        type=PurchaseEvents.UPDATED,
        purchase=purchase,
        user=user,
        parameters={"updated_fields": updated_fields},
    )


def purchase_status_changed_event(
    *, purchase: Purchase, old_status: str, new_status: str, user=None
) -> PurchaseEvent:
    return PurchaseEvent.objects.create(
        type=PurchaseEvents.STATUS_CHANGED,
        purchase=purchase,
        user=user,
        parameters={"old_status": old_status, "new_status": new_status},
    )


def purchase_received_event(*, purchase: Purchase, user=None) -> PurchaseEvent:
    """Log receipt of the goods.

    Records the stock added to the store by every line of the purchase.
    """
    return PurchaseEvent.objects.create(
        type=PurchaseEvents.RECEIVED,
        purchase=purchase,
        user=user,
        parameters={
            "lines": [
                {
                    "product_variant_id": item.product_variant_id,
                    "quantity": item.quantity,
                    "order_item_id": item.order_item_id,
                }
                for item in purchase.items.order_by("pk")
            ]
        },
    )


def purchase_cancelled_event(
    *, purchase: Purchase, reason: str | None = None, user=None
) -> PurchaseEvent:
    parameters = {}
    if reason:
        parameters["reason"] = reason

    return PurchaseEvent.objects.create(
        type=PurchaseEvents.CANCELLED,
        purchase=purchase,
        user=user,
        parameters=parameters,
    )


def purchase_shipping_cost_updated_event(
    *, purchase: Purchase, old_shipping_cost: int, user=None
) -> PurchaseEvent:
    return PurchaseEvent.objects.create(
        type=PurchaseEvents.SHIPPING_COST_UPDATED,
        purchase=purchase,
        user=user,
        parameters={
            "old_shipping_cost": old_shipping_cost,
            "new_shipping_cost": purchase.shipping_cost,
        },
    )


def purchase_orders_bound_event(
    *, purchase: Purchase, order_item_ids: list[int], user=None
) -> PurchaseEvent:
    return PurchaseEvent.objects.create(
        type=PurchaseEvents.ORDERS_BOUND,
        purchase=purchase,
        user=user,
        parameters={"order_item_ids": order_item_ids},
    )
