from django.db import models

from ..product.models import ProductVariant
from ..store.models import Store


class Order(models.Model):
    """A customer sales order.

    The ordering workflow (payments, shipments, refunds) lives elsewhere; the
    ledger engine only reads the store an order belongs to and updates the
    fulfilment counters of backordered items.
    """

    store = models.ForeignKey(Store, related_name="orders", on_delete=models.PROTECT)
    number = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-pk",)

    def __str__(self):
        return self.number


class OrderItemQuerySet(models.QuerySet):
    def backorders(self):
        return self.filter(
            is_backorder=True, fulfilled_quantity__lt=models.F("quantity")
        )


OrderItemManager = models.Manager.from_queryset(OrderItemQuerySet)


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product_variant = models.ForeignKey(
        ProductVariant, related_name="order_items", on_delete=models.PROTECT
    )
    quantity = models.PositiveIntegerField()
    # Units delivered to this item by received purchases.
    fulfilled_quantity = models.PositiveIntegerField(default=0)
    # Set when the store had no stock at order time; cleared once fully fulfilled.
    is_backorder = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = OrderItemManager()

    class Meta:
        ordering = ("created_at", "pk")

    def __str__(self):
        return f"{self.order_id}: {self.quantity}x {self.product_variant_id}"

    @property
    def store_id(self):
        return self.order.store_id

    @property
    def unfulfilled_quantity(self):
        return max(0, self.quantity - self.fulfilled_quantity)

    @property
    def is_fulfilled(self):
        return self.fulfilled_quantity >= self.quantity
