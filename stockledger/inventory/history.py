import datetime

from attrs import frozen
from django.core.exceptions import ValidationError
from django.db.models import QuerySet

from ..core.exceptions import NotFound
from . import InventoryTransactionType
from .error_codes import InventoryErrorCode
from .models import Inventory, InventoryTransaction


@frozen
class HistoryFilter:
    type: str | None = None
    # Dates are inclusive; a `date` end bound covers the whole day.
    start_date: datetime.date | datetime.datetime | None = None
    end_date: datetime.date | datetime.datetime | None = None
    store_id: int | None = None


@frozen
class SkuHistory:
    inventories: list[Inventory]
    transactions: QuerySet


def _validate_filter(filters: HistoryFilter):
    errors = {}
    if filters.type is not None and filters.type not in dict(
        InventoryTransactionType.CHOICES
    ):
        errors["type"] = ValidationError(
            f"Unknown transaction type '{filters.type}'.",
            code=InventoryErrorCode.INVALID_TYPE.value,
        )
    if (
        filters.start_date is not None
        and filters.end_date is not None
        and _as_date(filters.start_date) > _as_date(filters.end_date)
    ):
        errors["end_date"] = ValidationError(
            "End date cannot be earlier than start date.",
            code=InventoryErrorCode.INVALID_DATE_RANGE.value,
        )
    if errors:
        raise ValidationError(errors)


def _as_date(value):
    if isinstance(value, datetime.datetime):
        return value.date()
    return value


def _apply_filter(transactions: QuerySet, filters: HistoryFilter) -> QuerySet:
    if filters.type:
        transactions = transactions.filter(type=filters.type)
    if filters.start_date is not None:
        if isinstance(filters.start_date, datetime.datetime):
            transactions = transactions.filter(created_at__gte=filters.start_date)
        else:
            transactions = transactions.filter(created_at__date__gte=filters.start_date)
    if filters.end_date is not None:
        if isinstance(filters.end_date, datetime.datetime):
            transactions = transactions.filter(created_at__lte=filters.end_date)
        else:
            transactions = transactions.filter(created_at__date__lte=filters.end_date)
    return transactions


def get_inventory_history(inventory_id, filters: HistoryFilter | None = None):
    """Return the transactions of one ledger row, newest first."""
    filters = filters or HistoryFilter()
    _validate_filter(filters)
    if not Inventory.objects.filter(pk=inventory_id).exists():
        raise NotFound("Inventory", inventory_id, field="inventory_id")
    transactions = InventoryTransaction.objects.filter(inventory_id=inventory_id)
    return _apply_filter(transactions, filters).order_by("-created_at", "-pk")


def get_sku_history(sku: str, filters: HistoryFilter | None = None) -> SkuHistory:
    """Return the ledger rows of a SKU across stores and their transactions.

    An unknown SKU yields empty results. `filters.store_id` narrows both the
    inventories and the transactions to one store.
    """
    filters = filters or HistoryFilter()
    _validate_filter(filters)

    inventories = Inventory.objects.filter(product_variant__sku=sku).select_related(
        "store", "product_variant"
    )
    if filters.store_id is not None:
        inventories = inventories.filter(store_id=filters.store_id)
    inventories = list(inventories.order_by("store_id"))

    if not inventories:
        return SkuHistory(
            inventories=[], transactions=InventoryTransaction.objects.none()
        )

    transactions = InventoryTransaction.objects.filter(
        inventory__in=[inventory.pk for inventory in inventories]
    ).select_related("inventory")
    transactions = _apply_filter(transactions, filters).order_by("-created_at", "-pk")
    return SkuHistory(inventories=inventories, transactions=transactions)
