"""Stock ledger primitives.

Every change to `Inventory.quantity` goes through `apply_stock_change`. It locks
the ledger row, refuses to take the quantity below zero and writes one
InventoryTransaction per call, so the transaction log always explains the
current quantity:

    inventory.quantity == last_transaction.after_quantity
    transaction.after_quantity == transaction.before_quantity + transaction.quantity

Purchases, transfers and manual adjustments are all built on top of it.
"""

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from ..core.exceptions import InsufficientStock, InsufficientStockData, NotFound
from ..product.models import ProductVariant
from ..store.models import Store
from . import InventoryAdjustmentAction, InventoryTransactionType
from .error_codes import InventoryErrorCode
from .models import Inventory, InventoryTransaction

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = {choice for choice, _ in InventoryTransactionType.CHOICES}


def get_inventory(store_id, product_variant_id) -> Inventory:
    try:
        return Inventory.objects.get(
            store_id=store_id, product_variant_id=product_variant_id
        )
    except Inventory.DoesNotExist:
        raise NotFound(
            "Inventory", f"store={store_id}, variant={product_variant_id}"
        ) from None


def get_or_create_inventory(
    store_id, product_variant_id, low_stock_threshold=None
) -> Inventory:
    """Return the ledger row for a store/variant pair, creating an empty one.

    New rows start at quantity 0 with `low_stock_threshold` or
    `settings.DEFAULT_LOW_STOCK_THRESHOLD`.
    """
    if low_stock_threshold is None:
        low_stock_threshold = settings.DEFAULT_LOW_STOCK_THRESHOLD
    inventory, created = Inventory.objects.get_or_create(
        store_id=store_id,
        product_variant_id=product_variant_id,
        defaults={"quantity": 0, "low_stock_threshold": low_stock_threshold},
    )
    if created:
        logger.debug(
            "Created inventory %s for store=%s variant=%s",
            inventory.pk,
            store_id,
            product_variant_id,
        )
    return inventory


@transaction.atomic
def apply_stock_change(
    inventory: Inventory,
    quantity_change: int,
    transaction_type: str,
    user=None,
    notes: str = "",
) -> Inventory:
    """Apply a signed quantity change to a ledger row and log it.

    Args:
        inventory: Ledger row to change. Refreshed in place with the new quantity.
        quantity_change: Signed delta; negative values debit the row.
        transaction_type: One of InventoryTransactionType.
        user: Actor recorded on the transaction (optional).
        notes: Free text stored on the transaction.

    Raises:
        InsufficientStock: If the change would take the quantity below zero.
            Nothing is written in that case.
        ValueError: If the transaction type is unknown.

    """
    if transaction_type not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown inventory transaction type: {transaction_type}")

    locked = (
        Inventory.objects.select_for_update()
        .select_related("product_variant")
        .get(pk=inventory.pk)
    )
    before_quantity = locked.quantity
    after_quantity = before_quantity + quantity_change

    if after_quantity < 0:
        logger.warning(
            "Rejected %s of %s on inventory %s: only %s in stock",
            transaction_type,
            quantity_change,
            locked.pk,
            before_quantity,
        )
        raise InsufficientStock(
            [
                InsufficientStockData(
                    variant=locked.product_variant,
                    available_quantity=before_quantity,
                    requested_quantity=-quantity_change,
                    store_pk=locked.store_id,
                )
            ]
        )

    locked.quantity = after_quantity
    locked.save(update_fields=["quantity", "updated_at"])

    InventoryTransaction.objects.create(
        inventory=locked,
        type=transaction_type,
        quantity=quantity_change,
        before_quantity=before_quantity,
        after_quantity=after_quantity,
        user=user,
        notes=notes or "",
    )

    if locked.is_low_stock and not 0 < before_quantity <= locked.low_stock_threshold:
        inventory_pk, threshold = locked.pk, locked.low_stock_threshold
        transaction.on_commit(
            lambda: logger.warning(
                "Inventory %s is low on stock: %s left (threshold %s)",
                inventory_pk,
                after_quantity,
                threshold,
            )
        )

    inventory.quantity = after_quantity
    inventory.updated_at = locked.updated_at
    return inventory


def _validate_adjustment(action, quantity):
    errors = {}
    if action not in {choice for choice, _ in InventoryAdjustmentAction.CHOICES}:
        errors["action"] = ValidationError(
            f"Unknown adjustment action '{action}'.",
            code=InventoryErrorCode.INVALID_ACTION.value,
        )
    if quantity is None:
        errors["quantity"] = ValidationError(
            "This field is required.", code=InventoryErrorCode.REQUIRED.value
        )
    elif action == InventoryAdjustmentAction.SET and quantity < 0:
        errors["quantity"] = ValidationError(
            "Quantity cannot be negative.",
            code=InventoryErrorCode.INVALID_QUANTITY.value,
        )
    elif action != InventoryAdjustmentAction.SET and quantity <= 0:
        errors["quantity"] = ValidationError(
            "Quantity must be greater than 0.",
            code=InventoryErrorCode.INVALID_QUANTITY.value,
        )
    if errors:
        raise ValidationError(errors)


@transaction.atomic
def adjust_inventory(
    store_id,
    product_variant_id,
    action: str,
    quantity: int,
    user=None,
    notes: str = "",
) -> Inventory:
    """Manually add, reduce or overwrite the stock of a variant in a store.

    The ledger row is created when missing. `set` records the difference
    between the requested and current quantity as an adjustment.
    """
    _validate_adjustment(action, quantity)

    if not Store.objects.filter(pk=store_id).exists():
        raise NotFound("Store", store_id, field="store_id")
    if not ProductVariant.objects.filter(pk=product_variant_id).exists():
        raise NotFound("ProductVariant", product_variant_id, field="product_variant_id")

    inventory = get_or_create_inventory(store_id, product_variant_id)

    if action == InventoryAdjustmentAction.ADD:
        quantity_change = quantity
        transaction_type = InventoryTransactionType.ADDITION
    elif action == InventoryAdjustmentAction.REDUCE:
        quantity_change = -quantity
        transaction_type = InventoryTransactionType.REDUCTION
    else:
        current = Inventory.objects.select_for_update().get(pk=inventory.pk).quantity
        quantity_change = quantity - current
        transaction_type = InventoryTransactionType.ADJUSTMENT

    if not notes:
        notes = f"Manual adjustment: {action} {quantity}"

    apply_stock_change(
        inventory, quantity_change, transaction_type, user=user, notes=notes
    )
    logger.info(
        "Adjusted inventory %s (%s %s): now %s",
        inventory.pk,
        action,
        quantity,
        inventory.quantity,
    )
    return inventory
