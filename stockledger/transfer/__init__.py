from ..core.exceptions import InvalidStatusTransition


class TransferStatus:
    """Status of a store-to-store stock transfer."""

    PENDING = "pending"  # Planned; no stock has moved
    IN_TRANSIT = "in_transit"  # Debited from the source store
    COMPLETED = "completed"  # Credited to the destination store
    CANCELLED = "cancelled"  # Source credited back if it had been debited

    CHOICES = [
        (PENDING, "Pending"),
        (IN_TRANSIT, "In transit"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    TRANSITIONS = {
        PENDING: {IN_TRANSIT, COMPLETED, CANCELLED},
        IN_TRANSIT: {COMPLETED, CANCELLED},
        COMPLETED: set(),
        CANCELLED: set(),
    }

    TERMINAL_STATUSES = [COMPLETED, CANCELLED]
    INITIAL_STATUSES = [PENDING, IN_TRANSIT, COMPLETED]
    # Statuses in which the source store has been debited
    DEBITED_STATUSES = [IN_TRANSIT, COMPLETED]

    @classmethod
    def can_transition(cls, current_status, new_status):
        return new_status in cls.TRANSITIONS.get(current_status, set())

    @classmethod
    def validate_transition(cls, current_status, new_status, instance=None):
        if not cls.can_transition(current_status, new_status):
            raise InvalidStatusTransition(current_status, new_status, instance=instance)
