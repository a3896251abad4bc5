from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import Q
from django.utils.timezone import now

from ..core.prices import minor_units_to_money
from ..order.models import OrderItem
from ..product.models import ProductVariant
from ..store.models import Store
from . import PurchaseEvents, PurchaseStatus


class Purchase(models.Model):
    """Goods bought from a supplier for one store.

    Stock is added to the store only when the purchase reaches `completed`.
    Monetary columns are integers in minor currency units.
    """

    store = models.ForeignKey(Store, related_name="purchases", on_delete=models.PROTECT)
    order_number = models.CharField(max_length=64, unique=True)
    status = models.CharField(
        max_length=32, choices=PurchaseStatus.CHOICES, default=PurchaseStatus.PENDING
    )
    shipping_cost = models.PositiveIntegerField(default=0)
    # shipping_cost + sum(quantity * cost_price) over the lines
    total_amount = models.PositiveBigIntegerField(default=0)
    purchased_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who created the purchase",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-pk",)

    def __str__(self):
        return self.order_number

    @property
    def total(self):
        return minor_units_to_money(self.total_amount)

    @property
    def is_modifiable(self):
        return self.status in PurchaseStatus.MODIFIABLE_STATUSES


class PurchaseItem(models.Model):
    """A purchased variant and quantity. Like the invoice line item.

    Lines are not unique on (purchase, product_variant): a manual line and a
    line bound to a backordered order item for the same variant stay separate
    so the order item can be fulfilled on receipt.
    """

    purchase = models.ForeignKey(
        Purchase, related_name="items", on_delete=models.CASCADE
    )
    product_variant = models.ForeignKey(
        ProductVariant, related_name="purchase_items", on_delete=models.PROTECT
    )
    order_item = models.ForeignKey(
        OrderItem,
        related_name="purchase_items",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text="Backordered order item this line fulfils on receipt",
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.PositiveIntegerField()
    cost_price = models.PositiveIntegerField()
    # Share of the purchase shipping cost; only ever set by the allocator.
    allocated_shipping_cost = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("pk",)
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0), name="purchase_item_quantity_positive"
            ),
        ]

    def __str__(self):
        return f"{self.quantity}x {self.product_variant_id}"

    @property
    def subtotal(self):
        return self.quantity * self.cost_price

    @property
    def landed_unit_cost(self):
        """Unit cost including the allocated shipping, as Money."""
        return minor_units_to_money(
            Decimal(self.subtotal + self.allocated_shipping_cost) / self.quantity
        )


class PurchaseEvent(models.Model):
    """Audit trail for purchase operations."""

    date = models.DateTimeField(default=now, editable=False, db_index=True)
    type = models.CharField(max_length=255, choices=PurchaseEvents.CHOICES)
    purchase = models.ForeignKey(
        Purchase, related_name="events", on_delete=models.CASCADE
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
        help_text="User who triggered this event",
    )
    parameters = models.JSONField(blank=True, default=dict, encoder=DjangoJSONEncoder)

    class Meta:
        ordering = ("date", "pk")

    def __repr__(self):
        return f"{self.__class__.__name__}(type={self.type!r}, user={self.user!r})"
