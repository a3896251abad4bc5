from ..core.exceptions import InvalidStatusTransition


class PurchaseStatus:
    """Status of a purchase through its lifecycle."""

    PENDING = "pending"  # Being prepared; lines can change
    CONFIRMED = "confirmed"  # Ordered from the supplier; lines can still change
    COMPLETED = "completed"  # Goods received; stock has been added
    CANCELLED = "cancelled"

    CHOICES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    TRANSITIONS = {
        PENDING: {CONFIRMED, CANCELLED},
        CONFIRMED: {COMPLETED, CANCELLED},
        COMPLETED: set(),
        CANCELLED: set(),
    }

    # Statuses in which lines, bindings and header fields may change
    MODIFIABLE_STATUSES = [PENDING, CONFIRMED]
    INITIAL_STATUSES = [PENDING, CONFIRMED, COMPLETED]

    @classmethod
    def can_transition(cls, current_status, new_status):
        return new_status in cls.TRANSITIONS.get(current_status, set())

    @classmethod
    def validate_transition(cls, current_status, new_status, instance=None):
        if not cls.can_transition(current_status, new_status):
            raise InvalidStatusTransition(current_status, new_status, instance=instance)


class PurchaseEvents:
    """Events that can occur during the purchase lifecycle."""

    CREATED = "created"
    UPDATED = "updated"
    STATUS_CHANGED = "status_changed"
    RECEIVED = "received"
    CANCELLED = "cancelled"
    SHIPPING_COST_UPDATED = "shipping_cost_updated"
    ORDERS_BOUND = "orders_bound"

    CHOICES = [
        (CREATED, "Purchase created"),
        (UPDATED, "Purchase updated"),
        (STATUS_CHANGED, "Purchase status changed"),
        (RECEIVED, "Goods received at store"),
        (CANCELLED, "Purchase cancelled"),
        (SHIPPING_COST_UPDATED, "Shipping cost updated"),
        (ORDERS_BOUND, "Backordered items bound to purchase"),
    ]
