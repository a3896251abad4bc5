"""Purchase lifecycle: creation, updates, status changes and receipt.

A purchase holds manual lines and lines bound to backordered order items.
Lines are never merged, even for the same variant. The purchase shipping cost
is spread over the lines by quantity with `allocate_shipping_cost`, the last
line absorbing the rounding remainder, and

    total_amount == shipping_cost + sum(line.quantity * line.cost_price)

Stock only moves when the purchase is received, which happens exactly once,
when it enters `completed`.
"""

import datetime
import logging

from attrs import field, frozen
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from ..core.exceptions import InvalidStatusTransition, NotFound
from ..inventory import InventoryTransactionType
from ..inventory.stock_management import apply_stock_change, get_or_create_inventory
from ..order.actions import mark_order_item_fulfilled
from ..order.models import OrderItem
from ..product.models import ProductVariant
from ..store.models import Store
from . import PurchaseEvents, PurchaseStatus
from . import events as purchase_events
from .binding import OrderItemBindingInput, resolve_bindings
from .error_codes import PurchaseErrorCode
from .exceptions import BindingExceedsDemand, OnlyPendingDeletable, PurchaseLocked
from .models import Purchase, PurchaseItem
from .shipping import allocate_shipping_cost
from .utils import generate_purchase_order_number

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


@frozen
class PurchaseItemInput:
    variant_id: int
    quantity: int
    cost_price: int


@frozen
class PurchaseInput:
    store_id: int
    items: list[PurchaseItemInput] = field(factory=list)
    order_items: list[OrderItemBindingInput] = field(factory=list)
    order_number: str | None = None
    shipping_cost: int = 0
    status: str = PurchaseStatus.PENDING
    purchased_at: datetime.datetime | None = None
    notes: str = ""


@frozen
class PurchaseUpdateInput:
    """Fields left as None keep their current value.

    Passing `items` or `order_items` replaces every line of the purchase.
    """

    store_id: int | None = None
    items: list[PurchaseItemInput] | None = None
    order_items: list[OrderItemBindingInput] | None = None
    order_number: str | None = None
    shipping_cost: int | None = None
    status: str | None = None
    purchased_at: datetime.datetime | None = None
    notes: str | None = None


def get_purchase(purchase_id) -> Purchase:
    try:
        return Purchase.objects.get(pk=purchase_id)
    except Purchase.DoesNotExist:
        raise NotFound("Purchase", purchase_id) from None


def _lock_purchase(purchase: Purchase) -> Purchase:
    return Purchase.objects.select_for_update().get(pk=purchase.pk)


def _get_store(store_id) -> Store:
    try:
        return Store.objects.get(pk=store_id)
    except Store.DoesNotExist:
        raise NotFound("Store", store_id, field="store_id") from None


def _validate_shipping_cost(shipping_cost, errors):
    if shipping_cost is not None and shipping_cost < 0:
        errors["shipping_cost"] = ValidationError(
            "Shipping cost cannot be negative.",
            code=PurchaseErrorCode.INVALID_PRICE.value,
        )


def _validate_lines(items, order_items, errors):
    if not items and not order_items:
        errors["items"] = ValidationError(
            "Provide at least one item or order item.",
            code=PurchaseErrorCode.REQUIRED.value,
        )
        return

    item_errors = []
    for index, item in enumerate(items):
        if item.quantity <= 0:
            item_errors.append(
                ValidationError(
                    "Item %(index)s: quantity must be greater than 0.",
                    code=PurchaseErrorCode.INVALID_QUANTITY.value,
                    params={"index": index},
                )
            )
        if item.cost_price < 0:
            item_errors.append(
                ValidationError(
                    "Item %(index)s: cost price cannot be negative.",
                    code=PurchaseErrorCode.INVALID_PRICE.value,
                    params={"index": index},
                )
            )
    if item_errors:
        errors["items"] = item_errors

    binding_errors = []
    for index, binding in enumerate(order_items):
        if binding.purchase_quantity <= 0:
            binding_errors.append(
                ValidationError(
                    "Order item %(index)s: purchase quantity must be greater than 0.",
                    code=PurchaseErrorCode.INVALID_QUANTITY.value,
                    params={"index": index},
                )
            )
        if binding.cost_price is not None and binding.cost_price < 0:
            binding_errors.append(
                ValidationError(
                    "Order item %(index)s: cost price cannot be negative.",
                    code=PurchaseErrorCode.INVALID_PRICE.value,
                    params={"index": index},
                )
            )
    if binding_errors:
        errors["order_items"] = binding_errors


def _validate_order_number(order_number, errors, exclude_purchase_id=None):
    if not order_number:
        return
    if not order_number.strip():
        errors["order_number"] = ValidationError(
            "Order number cannot be blank.", code=PurchaseErrorCode.INVALID.value
        )
        return
    purchases = Purchase.objects.filter(order_number=order_number)
    if exclude_purchase_id is not None:
        purchases = purchases.exclude(pk=exclude_purchase_id)
    if purchases.exists():
        errors["order_number"] = ValidationError(
            "Purchase with this order number already exists.",
            code=PurchaseErrorCode.UNIQUE.value,
        )


def _build_lines(
    store_id, items, order_items, exclude_purchase_id=None
) -> list[PurchaseItem]:
    """Return unsaved lines: manual items first, then bound order items."""
    variants = ProductVariant.objects.in_bulk({item.variant_id for item in items})
    lines = []
    for item in items:
        variant = variants.get(item.variant_id)
        if variant is None:
            raise NotFound("ProductVariant", item.variant_id, field="items")
        lines.append(
            PurchaseItem(
                product_variant=variant,
                quantity=item.quantity,
                unit_price=item.cost_price,
                cost_price=item.cost_price,
            )
        )
    for binding in resolve_bindings(store_id, order_items, exclude_purchase_id):
        lines.append(
            PurchaseItem(
                product_variant=binding.order_item.product_variant,
                order_item=binding.order_item,
                quantity=binding.quantity,
                unit_price=binding.cost_price,
                cost_price=binding.cost_price,
            )
        )
    return lines


def _allocate(shipping_cost: int, lines: list[PurchaseItem]) -> int:
    """Set each line's shipping share and return the purchase total."""
    shares = allocate_shipping_cost(shipping_cost, [line.quantity for line in lines])
    for line, share in zip(lines, shares):
        line.allocated_shipping_cost = share
    return shipping_cost + sum(line.subtotal for line in lines)


def _reallocate(purchase: Purchase):
    lines = list(purchase.items.order_by("pk"))
    purchase.total_amount = _allocate(purchase.shipping_cost, lines)
    PurchaseItem.objects.bulk_update(lines, ["allocated_shipping_cost"])
    purchase.save(update_fields=["total_amount", "updated_at"])


def _save_lines(purchase: Purchase, lines: list[PurchaseItem]):
    for line in lines:
        line.purchase = purchase
    PurchaseItem.objects.bulk_create(lines)


def _insert_purchase(order_number: str | None, **fields) -> Purchase:
    """Insert the purchase row, generating an order number when none is given.

    A generated number can be taken by a concurrent insert between reading the
    day's sequence and writing the row; the insert then runs again with a fresh
    number, up to ORDER_NUMBER_ATTEMPTS times.
    """
    if order_number:
        return Purchase.objects.create(order_number=order_number, **fields)

    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        order_number = generate_purchase_order_number()
        try:
            with transaction.atomic():
                return Purchase.objects.create(order_number=order_number, **fields)
        except IntegrityError:
            if attempt == ORDER_NUMBER_ATTEMPTS:
                raise
            logger.warning(
                "Order number %s was taken concurrently, retrying (attempt %s)",
                order_number,
                attempt,
            )


@transaction.atomic
def create_purchase(purchase_input: PurchaseInput, user=None) -> Purchase:
    """Create a purchase with its lines.

    A purchase created as `completed` is received straight away: its lines are
    added to the store stock and bound order items are fulfilled.

    Raises:
        ValidationError: For malformed input.
        NotFound: If the store, a variant or an order item does not exist.
        BindingExceedsDemand: If an order item binding is not acceptable.

    """
    errors = {}
    _validate_shipping_cost(purchase_input.shipping_cost, errors)
    if purchase_input.status not in PurchaseStatus.INITIAL_STATUSES:
        errors["status"] = ValidationError(
            f"Purchase cannot be created with status '{purchase_input.status}'.",
            code=PurchaseErrorCode.INVALID_STATUS.value,
        )
    _validate_lines(purchase_input.items, purchase_input.order_items, errors)
    _validate_order_number(purchase_input.order_number, errors)
    if errors:
        raise ValidationError(errors)

    store = _get_store(purchase_input.store_id)
    lines = _build_lines(store.pk, purchase_input.items, purchase_input.order_items)
    total_amount = _allocate(purchase_input.shipping_cost, lines)

    purchase = _insert_purchase(
        purchase_input.order_number,
        store=store,
        status=purchase_input.status,
        shipping_cost=purchase_input.shipping_cost,
        total_amount=total_amount,
        purchased_at=purchase_input.purchased_at,
        notes=purchase_input.notes,
        user=user,
    )
    _save_lines(purchase, lines)
    purchase_events.purchase_created_event(purchase=purchase, user=user)
    logger.info(
        "Created purchase %s for store %s: %s lines, total %s",
        purchase.order_number,
        store.pk,
        len(lines),
        total_amount,
    )

    if purchase.status == PurchaseStatus.COMPLETED:
        receive_purchase(purchase, user=user)
    return purchase


@transaction.atomic
def update_purchase(
    purchase: Purchase, update_input: PurchaseUpdateInput, user=None
) -> Purchase:
    """Update a pending or confirmed purchase.

    Header fields are changed when given. Lines are replaced wholesale when
    `items` or `order_items` is given, so line ids do not survive the update.
    Shipping is always re-allocated. A new status goes through
    `transition_purchase_status`, after the other changes are saved.

    Raises:
        PurchaseLocked: If the purchase is completed or cancelled.

    """
    purchase = _lock_purchase(purchase)
    if not purchase.is_modifiable:
        raise PurchaseLocked(purchase)

    replace_lines = (
        update_input.items is not None or update_input.order_items is not None
    )
    errors = {}
    _validate_shipping_cost(update_input.shipping_cost, errors)
    if (
        update_input.status is not None
        and update_input.status not in dict(PurchaseStatus.CHOICES)
    ):
        errors["status"] = ValidationError(
            f"Unknown purchase status '{update_input.status}'.",
            code=PurchaseErrorCode.INVALID_STATUS.value,
        )
    if replace_lines:
        _validate_lines(
            update_input.items or [], update_input.order_items or [], errors
        )
    _validate_order_number(
        update_input.order_number, errors, exclude_purchase_id=purchase.pk
    )
    store_changed = (
        update_input.store_id is not None
        and update_input.store_id != purchase.store_id
    )
    if (
        store_changed
        and not replace_lines
        and purchase.items.filter(order_item__isnull=False).exists()
    ):
        errors["store_id"] = ValidationError(
            "Lines bound to order items must be replaced when changing the store.",
            code=PurchaseErrorCode.INVALID.value,
        )
    if errors:
        raise ValidationError(errors)

    updated_fields = []
    if store_changed:
        purchase.store = _get_store(update_input.store_id)
        updated_fields.append("store")
    for field_name in ["order_number", "shipping_cost", "purchased_at", "notes"]:
        value = getattr(update_input, field_name)
        if field_name == "order_number" and not value:
            continue
        if value is not None and value != getattr(purchase, field_name):
            setattr(purchase, field_name, value)
            updated_fields.append(field_name)
    purchase.save(update_fields=[*updated_fields, "updated_at"])

    if replace_lines:
        lines = _build_lines(
            purchase.store_id,
            update_input.items or [],
            update_input.order_items or [],
            exclude_purchase_id=purchase.pk,
        )
        purchase.items.all().delete()
        _save_lines(purchase, lines)
        updated_fields.append("items")

    _reallocate(purchase)
    if updated_fields:
        purchase_events.purchase_updated_event(
            purchase=purchase, updated_fields=updated_fields, user=user
        )
    logger.info("Updated purchase %s: %s", purchase.order_number, updated_fields)

    if update_input.status is not None and update_input.status != purchase.status:
        purchase = transition_purchase_status(purchase, update_input.status, user=user)
    return purchase


@transaction.atomic
def update_shipping_cost(purchase: Purchase, shipping_cost: int, user=None) -> Purchase:
    """Change the shipping cost and re-allocate it across the current lines.

    Allowed in any status; received stock is not touched.
    """
    errors = {}
    _validate_shipping_cost(shipping_cost, errors)
    if errors:
        raise ValidationError(errors)

    purchase = _lock_purchase(purchase)
    old_shipping_cost = purchase.shipping_cost
    purchase.shipping_cost = shipping_cost
    purchase.save(update_fields=["shipping_cost", "updated_at"])
    _reallocate(purchase)

    purchase_events.purchase_shipping_cost_updated_event(
        purchase=purchase, old_shipping_cost=old_shipping_cost, user=user
    )
    logger.info(
        "Purchase %s shipping cost changed from %s to %s",
        purchase.order_number,
        old_shipping_cost,
        shipping_cost,
    )
    return purchase


@transaction.atomic
def transition_purchase_status(
    purchase: Purchase, new_status: str, user=None
) -> Purchase:
    """Move a purchase to `new_status`, receiving it on entering `completed`.

    The purchase row is locked first, so of two concurrent attempts to
    complete it the second one fails on the transition check and the goods
    are received once.

    Raises:
        InvalidStatusTransition: If the transition table does not allow it.

    """
    purchase = _lock_purchase(purchase)
    PurchaseStatus.validate_transition(purchase.status, new_status, instance=purchase)

    if new_status == PurchaseStatus.CANCELLED:
        return _cancel(purchase, reason=None, user=user)

    old_status = purchase.status
    purchase.status = new_status
    purchase.save(update_fields=["status", "updated_at"])
    purchase_events.purchase_status_changed_event(
        purchase=purchase, old_status=old_status, new_status=new_status, user=user
    )
    logger.info(
        "Purchase %s status changed from %s to %s",
        purchase.order_number,
        old_status,
        new_status,
    )

    if new_status == PurchaseStatus.COMPLETED:
        receive_purchase(purchase, user=user)
    return purchase


@transaction.atomic
def receive_purchase(purchase: Purchase, user=None) -> Purchase:
    """Add every line to the store stock and fulfil bound order items.

    Called when a purchase enters `completed`. A purchase can only be received
    once.

    Raises:
        InvalidStatusTransition: If the purchase is not completed or was
            already received.
        BindingExceedsDemand: If a bound order item no longer waits for the
            line quantity. Nothing is stocked then.

    """
    if purchase.status != PurchaseStatus.COMPLETED:
        raise InvalidStatusTransition(
            purchase.status,
            PurchaseStatus.COMPLETED,
            instance=purchase,
            message=(
                f"Purchase {purchase.order_number} has status {purchase.status}, "
                "only completed purchases can be received"
            ),
        )
    if purchase.events.filter(type=PurchaseEvents.RECEIVED).exists():
        raise InvalidStatusTransition(
            purchase.status,
            PurchaseStatus.COMPLETED,
            instance=purchase,
            message=f"Purchase {purchase.order_number} was already received",
        )

    notes = f"Purchase {purchase.order_number} received"
    lines = purchase.items.order_by("pk")
    for line in lines:
        inventory = get_or_create_inventory(purchase.store_id, line.product_variant_id)
        apply_stock_change(
            inventory,
            line.quantity,
            InventoryTransactionType.ADDITION,
            user=user,
            notes=notes,
        )
        if line.order_item_id is not None:
            _fulfil_order_item(line)

    purchase_events.purchase_received_event(purchase=purchase, user=user)
    logger.info(
        "Received purchase %s into store %s", purchase.order_number, purchase.store_id
    )
    return purchase


def _fulfil_order_item(line: PurchaseItem):
    order_item = OrderItem.objects.select_for_update().get(pk=line.order_item_id)
    outstanding = order_item.quantity - order_item.fulfilled_quantity
    if line.quantity > outstanding:
        raise BindingExceedsDemand(
            order_item,
            line.quantity,
            outstanding,
            message=(
                f"Cannot receive {line.quantity} units for order item "
                f"{order_item.pk}: only {outstanding} still outstanding"
            ),
        )
    mark_order_item_fulfilled(order_item, line.quantity)


def _cancel(purchase: Purchase, reason, user) -> Purchase:
    old_status = purchase.status
    purchase.status = PurchaseStatus.CANCELLED
    update_fields = ["status", "updated_at"]
    if reason:
        cancellation_note = f"Cancellation reason: {reason}"
        purchase.notes = (
            f"{purchase.notes}\n{cancellation_note}"
            if purchase.notes
            else cancellation_note
        )
        update_fields.append("notes")
    purchase.save(update_fields=update_fields)

    purchase_events.purchase_status_changed_event(
        purchase=purchase,
        old_status=old_status,
        new_status=PurchaseStatus.CANCELLED,
        user=user,
    )
    purchase_events.purchase_cancelled_event(
        purchase=purchase, reason=reason, user=user
    )
    logger.info("Cancelled purchase %s (%s)", purchase.order_number, reason)
    return purchase


@transaction.atomic
def cancel_purchase(purchase: Purchase, reason: str | None = None, user=None):
    """Cancel a pending or confirmed purchase. No stock moves."""
    purchase = _lock_purchase(purchase)
    if not PurchaseStatus.can_transition(purchase.status, PurchaseStatus.CANCELLED):
        raise InvalidStatusTransition(
            purchase.status,
            PurchaseStatus.CANCELLED,
            instance=purchase,
            message=(
                f"Purchase {purchase.order_number} has status {purchase.status}, "
                "cannot cancel"
            ),
        )
    return _cancel(purchase, reason=reason, user=user)


@transaction.atomic
def delete_purchase(purchase: Purchase, user=None):
    """Delete a pending purchase together with its lines and events."""
    purchase = _lock_purchase(purchase)
    if purchase.status != PurchaseStatus.PENDING:
        raise OnlyPendingDeletable(purchase)

    order_number = purchase.order_number
    purchase.delete()
    logger.info(
        "Deleted purchase %s (user=%s)", order_number, user.pk if user else None
    )


@transaction.atomic
def bind_orders_to_purchase(
    purchase: Purchase, bindings: list[OrderItemBindingInput], user=None
) -> Purchase:
    """Append lines bound to backordered order items to an open purchase.

    The new lines come after the existing ones, and shipping is re-allocated
    over all lines.

    Raises:
        PurchaseLocked: If the purchase is completed or cancelled.
        BindingExceedsDemand: If a binding is not acceptable.

    """
    purchase = _lock_purchase(purchase)
    if not purchase.is_modifiable:
        raise PurchaseLocked(purchase)

    errors = {}
    if not bindings:
        errors["order_items"] = ValidationError(
            "Provide at least one order item.", code=PurchaseErrorCode.REQUIRED.value
        )
    else:
        _validate_lines([], bindings, errors)
    if errors:
        raise ValidationError(errors)

    lines = _build_lines(purchase.store_id, [], bindings)
    _save_lines(purchase, lines)
    _reallocate(purchase)

    order_item_ids = [line.order_item_id for line in lines]
    purchase_events.purchase_orders_bound_event(
        purchase=purchase, order_item_ids=order_item_ids, user=user
    )
    logger.info(
        "Bound order items %s to purchase %s", order_item_ids, purchase.order_number
    )
    return purchase
