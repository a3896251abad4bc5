from django.db import models


class Store(models.Model):
    """A physical location holding its own stock ledger."""

    name = models.CharField(max_length=250)
    address = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("pk",)

    def __str__(self):
        return self.name
