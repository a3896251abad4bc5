"""Custom exceptions for purchase operations."""

from typing import TYPE_CHECKING

from .error_codes import PurchaseErrorCode

if TYPE_CHECKING:
    from ..order.models import OrderItem
    from .models import Purchase


class PurchaseLocked(Exception):
    """Raised when changing a purchase that is already completed or cancelled."""

    def __init__(self, purchase: "Purchase"):
        self.purchase = purchase
        self.code = PurchaseErrorCode.PURCHASE_LOCKED
        super().__init__(
            f"Purchase {purchase.order_number} has status {purchase.status}, "
            "cannot modify"
        )


class OnlyPendingDeletable(Exception):
    def __init__(self, purchase: "Purchase"):
        self.purchase = purchase
        self.code = PurchaseErrorCode.ONLY_PENDING_DELETABLE
        super().__init__(
            f"Purchase {purchase.order_number} has status {purchase.status}, "
            "only pending purchases can be deleted"
        )


class BindingExceedsDemand(Exception):
    """Raised when a purchase line cannot be bound to a backordered item.

    Either the item belongs to another store than the purchase, or the
    requested quantity is more than the item still waits for.
    """

    def __init__(
        self,
        order_item: "OrderItem",
        requested_quantity: int,
        outstanding_quantity: int,
        message: str | None = None,
    ):
        self.order_item = order_item
        self.requested_quantity = requested_quantity
        self.outstanding_quantity = outstanding_quantity
        self.code = PurchaseErrorCode.BINDING_EXCEEDS_DEMAND
        super().__init__(
            message
            or (
                f"Cannot bind {requested_quantity} units to order item "
                f"{order_item.pk}: only {outstanding_quantity} outstanding"
            )
        )
