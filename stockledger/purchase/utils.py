from django.conf import settings
from django.utils import timezone

from .models import Purchase


def generate_purchase_order_number(date=None) -> str:
    """Return the next free order number for `date`, e.g. `PO-20240301-007`.

    The sequence restarts every day and continues from the highest number
    already issued for that day.
    """
    date = date or timezone.localdate()
    prefix = f"{settings.PURCHASE_ORDER_NUMBER_PREFIX}-{date:%Y%m%d}-"
    last_sequence = 0
    for order_number in Purchase.objects.filter(
        order_number__startswith=prefix
    ).values_list("order_number", flat=True):
        sequence = order_number[len(prefix) :]
        if sequence.isdigit():
            last_sequence = max(last_sequence, int(sequence))
    return f"{prefix}{last_sequence + 1:03d}"
