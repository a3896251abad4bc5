from django.db import models


class Product(models.Model):
    name = models.CharField(max_length=250)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("pk",)

    def __str__(self):
        return self.name


class ProductVariant(models.Model):
    """A sellable SKU.

    `cost_price` is the configured purchase price used when a purchase line does
    not state its own. `average_cost` is maintained outside the ledger engine.
    Both are integers in minor currency units.
    """

    product = models.ForeignKey(
        Product, related_name="variants", on_delete=models.CASCADE
    )
    sku = models.CharField(max_length=255, unique=True)
    name = models.CharField(max_length=255, blank=True)
    cost_price = models.PositiveIntegerField(default=0)
    average_cost = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("sku",)

    def __str__(self):
        return self.name or self.sku
