from django.conf import settings
from django.db import models
from django.db.models import F, Q

from ..product.models import ProductVariant
from ..store.models import Store
from . import TransferStatus


class InventoryTransfer(models.Model):
    """Stock of one variant moving from one store to another.

    The source is debited on entering `in_transit` (or `completed` straight
    from `pending`) and the destination is credited on entering `completed`.
    """

    from_store = models.ForeignKey(
        Store, related_name="outgoing_transfers", on_delete=models.PROTECT
    )
    to_store = models.ForeignKey(
        Store, related_name="incoming_transfers", on_delete=models.PROTECT
    )
    product_variant = models.ForeignKey(
        ProductVariant, related_name="transfers", on_delete=models.PROTECT
    )
    quantity = models.PositiveIntegerField()
    status = models.CharField(
        max_length=32, choices=TransferStatus.CHOICES, default=TransferStatus.PENDING
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who requested the transfer",
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-pk",)
        constraints = [
            models.CheckConstraint(
                condition=~Q(from_store=F("to_store")),
                name="inventory_transfer_distinct_stores",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gt=0), name="inventory_transfer_quantity_positive"
            ),
        ]

    def __str__(self):
        return (
            f"Transfer #{self.pk}: {self.quantity}x {self.product_variant_id} "
            f"{self.from_store_id} -> {self.to_store_id} ({self.status})"
        )

    @property
    def is_locked(self):
        return self.status in TransferStatus.TERMINAL_STATUSES
