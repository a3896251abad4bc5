from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..inventory.error_codes import StockErrorCode

if TYPE_CHECKING:
    from ..product.models import ProductVariant


@dataclass
class InsufficientStockData:
    variant: Optional["ProductVariant"] = None
    available_quantity: int | None = None
    requested_quantity: int | None = None
    store_pk: int | None = None


class InsufficientStock(Exception):
    """Raised when a stock change would take a ledger row below zero."""

    def __init__(self, items: list[InsufficientStockData]):
        details = [
            f"{item.variant.sku if item.variant else '?'} "
            f"(store {item.store_pk}: available {item.available_quantity}, "
            f"requested {item.requested_quantity})"
            for item in items
        ]
        super().__init__(f"Insufficient stock for {', '.join(details)}")
        self.items = items
        self.code = StockErrorCode.INSUFFICIENT_STOCK


class NotFound(Exception):
    """Raised when a referenced store, variant, purchase or transfer is missing."""

    def __init__(self, model_name: str, pk, field: str | None = None):
        self.model_name = model_name
        self.pk = pk
        self.field = field
        self.code = "not_found"
        super().__init__(f"{model_name} {pk} does not exist.")


class InvalidStatusTransition(Exception):
    """Raised when a status change is not allowed by the transition table."""

    def __init__(
        self, current_status: str, new_status: str, instance=None, message=None
    ):
        self.current_status = current_status
        self.new_status = new_status
        self.instance = instance
        self.code = "invalid_status_transition"
        if message is None:
            subject = (
                f"{instance.__class__.__name__} {instance.pk}" if instance else "status"
            )
            message = (
                f"Cannot change {subject} from '{current_status}' "
                f"to '{new_status}'."
            )
        super().__init__(message)
