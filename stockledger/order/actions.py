import logging

from django.db import transaction

from .models import OrderItem

logger = logging.getLogger(__name__)


@transaction.atomic
def mark_order_item_fulfilled(order_item: OrderItem, quantity: int) -> OrderItem:
    """Record `quantity` more units delivered to a backordered order item.

    The item stops being a backorder once everything it asked for has arrived.
    Raises ValueError when the delivery would exceed the ordered quantity.
    """
    if quantity <= 0:
        raise ValueError(f"Fulfilled quantity must be positive, got {quantity}")

    locked = OrderItem.objects.select_for_update().get(pk=order_item.pk)
    new_fulfilled = locked.fulfilled_quantity + quantity
    if new_fulfilled > locked.quantity:
        raise ValueError(
            f"Order item {locked.pk} would be over-fulfilled: "
            f"{new_fulfilled} of {locked.quantity}"
        )

    locked.fulfilled_quantity = new_fulfilled
    update_fields = ["fulfilled_quantity", "updated_at"]
    if locked.is_fulfilled and locked.is_backorder:
        locked.is_backorder = False
        update_fields.append("is_backorder")
    locked.save(update_fields=update_fields)

    logger.info(
        "Order item %s fulfilled %s/%s (backorder=%s)",
        locked.pk,
        locked.fulfilled_quantity,
        locked.quantity,
        locked.is_backorder,
    )

    order_item.fulfilled_quantity = locked.fulfilled_quantity
    order_item.is_backorder = locked.is_backorder
    return order_item
