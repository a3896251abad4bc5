from django.conf import settings
from django.db import models
from django.db.models import F, Q

from ..product.models import ProductVariant
from ..store.models import Store
from . import InventoryTransactionType


class InventoryQuerySet(models.QuerySet):
    def low_stock(self):
        """Rows still in stock but at or below their alert threshold."""
        return self.filter(quantity__gt=0, quantity__lte=F("low_stock_threshold"))

    def out_of_stock(self):
        return self.filter(quantity=0)

    def for_store(self, store_id):
        if store_id is None:
            return self
        return self.filter(store_id=store_id)


InventoryManager = models.Manager.from_queryset(InventoryQuerySet)


class Inventory(models.Model):
    """Stock of one variant held by one store.

    `quantity` must only be changed through
    `stockledger.inventory.stock_management.apply_stock_change`, which records
    an InventoryTransaction for every change.
    """

    store = models.ForeignKey(
        Store, related_name="inventories", on_delete=models.PROTECT
    )
    product_variant = models.ForeignKey(
        ProductVariant, related_name="inventories", on_delete=models.PROTECT
    )
    quantity = models.PositiveIntegerField(default=0)
    # Informational; used by the low stock checks only.
    low_stock_threshold = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = InventoryManager()

    class Meta:
        ordering = ("pk",)
        constraints = [
            models.UniqueConstraint(
                fields=["store", "product_variant"],
                name="inventory_unique_store_variant",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=0),
                name="inventory_quantity_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.product_variant} @ {self.store}: {self.quantity}"

    @property
    def is_low_stock(self):
        return 0 < self.quantity <= self.low_stock_threshold


class InventoryTransaction(models.Model):
    """Append-only audit row written once per stock change."""

    inventory = models.ForeignKey(
        Inventory, related_name="transactions", on_delete=models.CASCADE
    )
    type = models.CharField(max_length=32, choices=InventoryTransactionType.CHOICES)
    # Signed delta applied to the inventory.
    quantity = models.IntegerField()
    before_quantity = models.PositiveIntegerField()
    after_quantity = models.PositiveIntegerField()
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User who made the change",
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("-created_at", "-pk")
        indexes = [
            models.Index(
                fields=["inventory", "-created_at"], name="inventory_txn_inventory_idx"
            ),
            models.Index(fields=["type", "-created_at"], name="inventory_txn_type_idx"),
        ]

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(type={self.type!r}, quantity={self.quantity}, "
            f"{self.before_quantity}->{self.after_quantity})"
        )

    def __str__(self):
        return (
            f"Inventory #{self.inventory_id}: "
            f"{self.get_type_display()} {self.quantity:+d}"
        )
