"""Binding purchase lines to backordered order items.

A backordered order item waits for stock that was missing when it was sold.
Binding a purchase line to it reserves part of an upcoming delivery for the
item; when the purchase is received the item's fulfilled quantity goes up by
the line quantity.

An item can be covered by several purchases, but never beyond its outstanding
demand:

    quantity - fulfilled_quantity - quantity bound on other open purchases

Only pending and confirmed purchases count as open. Completed purchases have
already raised `fulfilled_quantity` and cancelled ones never will.
"""

from collections import defaultdict

from attrs import frozen
from django.db.models import ExpressionWrapper, F, IntegerField, Q, Sum, Value
from django.db.models.functions import Coalesce

from ..core.exceptions import NotFound
from ..order.models import OrderItem
from . import PurchaseStatus
from .exceptions import BindingExceedsDemand
from .models import PurchaseItem


@frozen
class OrderItemBindingInput:
    order_item_id: int
    purchase_quantity: int
    # Falls back to the variant's cost price.
    cost_price: int | None = None


@frozen
class ResolvedBinding:
    order_item: OrderItem
    quantity: int
    cost_price: int


def get_bound_quantity(order_item_id, exclude_purchase_id=None) -> int:
    """Return how many units of an order item open purchases already cover."""
    lines = PurchaseItem.objects.filter(
        order_item_id=order_item_id,
        purchase__status__in=PurchaseStatus.MODIFIABLE_STATUSES,
    )
    if exclude_purchase_id is not None:
        lines = lines.exclude(purchase_id=exclude_purchase_id)
    return lines.aggregate(
        total=Coalesce(Sum("quantity"), Value(0), output_field=IntegerField())
    )["total"]


def get_outstanding_demand(order_item: OrderItem, exclude_purchase_id=None) -> int:
    if not order_item.is_backorder:
        return 0
    bound = get_bound_quantity(order_item.pk, exclude_purchase_id)
    return max(0, order_item.unfulfilled_quantity - bound)


def get_pending_backorders(store_id=None, product_variant_id=None):
    """Return backordered order items that open purchases do not fully cover.

    Each item is annotated with `bound_quantity` and `outstanding_quantity`.
    """
    order_items = OrderItem.objects.backorders().select_related(
        "order", "product_variant"
    )
    if store_id is not None:
        order_items = order_items.filter(order__store_id=store_id)
    if product_variant_id is not None:
        order_items = order_items.filter(product_variant_id=product_variant_id)

    return (
        order_items.annotate(
            bound_quantity=Coalesce(
                Sum(
                    "purchase_items__quantity",
                    filter=Q(
                        purchase_items__purchase__status__in=(
                            PurchaseStatus.MODIFIABLE_STATUSES
                        )
                    ),
                ),
                Value(0),
                output_field=IntegerField(),
            )
        )
        .annotate(
            outstanding_quantity=ExpressionWrapper(
                F("quantity") - F("fulfilled_quantity") - F("bound_quantity"),
                output_field=IntegerField(),
            )
        )
        .filter(outstanding_quantity__gt=0)
        .order_by("created_at", "pk")
    )


def resolve_bindings(
    store_id, bindings: list[OrderItemBindingInput], exclude_purchase_id=None
) -> list[ResolvedBinding]:
    """Check bindings against the purchase store and outstanding demand.

    The order items are locked until the end of the surrounding transaction.
    Bindings to the same item are checked against its demand together.
    Lines of `exclude_purchase_id` do not count as bound, for purchases whose
    lines are being replaced.

    Raises:
        NotFound: If an order item does not exist.
        BindingExceedsDemand: If an item belongs to another store or the
            requested quantity is more than its outstanding demand.

    """
    if not bindings:
        return []

    order_items = (
        OrderItem.objects.select_for_update(of=("self",))
        .select_related("order", "product_variant")
        .in_bulk({binding.order_item_id for binding in bindings})
    )

    requested = defaultdict(int)
    for binding in bindings:
        if binding.order_item_id not in order_items:
            raise NotFound("OrderItem", binding.order_item_id, field="order_items")
        requested[binding.order_item_id] += binding.purchase_quantity

    for order_item_id, quantity in requested.items():
        order_item = order_items[order_item_id]
        if order_item.order.store_id != store_id:
            raise BindingExceedsDemand(
                order_item,
                quantity,
                0,
                message=(
                    f"Order item {order_item.pk} belongs to store "
                    f"{order_item.order.store_id}, not store {store_id}"
                ),
            )
        outstanding = get_outstanding_demand(order_item, exclude_purchase_id)
        if quantity > outstanding:
            raise BindingExceedsDemand(order_item, quantity, outstanding)

    resolved = []
    for binding in bindings:
        order_item = order_items[binding.order_item_id]
        cost_price = binding.cost_price
        if cost_price is None:
            cost_price = order_item.product_variant.cost_price
        resolved.append(
            ResolvedBinding(
                order_item=order_item,
                quantity=binding.purchase_quantity,
                cost_price=cost_price,
            )
        )
    return resolved
