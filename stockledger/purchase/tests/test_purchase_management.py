from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError
from freezegun import freeze_time
from prices import Money

from ...core.exceptions import InvalidStatusTransition, NotFound
from ...inventory import InventoryTransactionType
from ...inventory.models import Inventory, InventoryTransaction
from .. import PurchaseEvents, PurchaseStatus
from ..binding import OrderItemBindingInput, get_outstanding_demand
from ..exceptions import OnlyPendingDeletable, PurchaseLocked
from ..models import Purchase, PurchaseEvent, PurchaseItem
from ..purchase_management import (
    ORDER_NUMBER_ATTEMPTS,
    PurchaseInput,
    PurchaseItemInput,
    PurchaseUpdateInput,
    cancel_purchase,
    create_purchase,
    delete_purchase,
    receive_purchase,
    transition_purchase_status,
    update_purchase,
    update_shipping_cost,
)
from ..utils import generate_purchase_order_number


def test_create_completed_purchase_receives_stock(store, variant, staff_user):
    """A single manual line bought as completed lands in the store stock."""
    # when
    purchase = create_purchase(
        PurchaseInput(
            store_id=store.pk,
            order_number="PO-A",
            shipping_cost=15000,
            status=PurchaseStatus.COMPLETED,
            items=[
                PurchaseItemInput(variant_id=variant.pk, quantity=10, cost_price=15000)
            ],
        ),
        user=staff_user,
    )

    # then
    purchase.refresh_from_db()
    assert purchase.total_amount == 165000
    assert purchase.total == Money(Decimal("1650.00"), "USD")
    assert purchase.user == staff_user

    line = purchase.items.get()
    assert line.allocated_shipping_cost == 15000
    assert line.unit_price == line.cost_price == 15000
    assert line.landed_unit_cost == Money(Decimal("165.00"), "USD")

    inventory = Inventory.objects.get(store=store, product_variant=variant)
    assert inventory.quantity == 10
    txn = inventory.transactions.get()
    assert txn.type == InventoryTransactionType.ADDITION
    assert txn.quantity == 10
    assert txn.notes == "Purchase PO-A received"
    assert txn.user == staff_user

    assert list(purchase.events.values_list("type", flat=True)) == [
        PurchaseEvents.CREATED,
        PurchaseEvents.RECEIVED,
    ]


def test_create_completed_purchase_allocates_by_quantity(
    store, product_variant_factory
):
    # given
    shirt = product_variant_factory("SHIRT-S")
    jacket = product_variant_factory("JACKET-S")

    # when
    purchase = create_purchase(
        PurchaseInput(
            store_id=store.pk,
            shipping_cost=30000,
            status=PurchaseStatus.COMPLETED,
            items=[
                PurchaseItemInput(variant_id=shirt.pk, quantity=10, cost_price=8000),
                PurchaseItemInput(variant_id=jacket.pk, quantity=5, cost_price=16000),
            ],
        )
    )

    # then
    lines = list(purchase.items.order_by("pk"))
    assert [line.allocated_shipping_cost for line in lines] == [20000, 10000]
    purchase.refresh_from_db()
    assert purchase.total_amount == 30000 + 80000 + 80000
    assert Inventory.objects.get(store=store, product_variant=shirt).quantity == 10
    assert Inventory.objects.get(store=store, product_variant=jacket).quantity == 5


def test_create_pending_purchase_does_not_touch_stock(store, variant):
    purchase = create_purchase(
        PurchaseInput(
            store_id=store.pk,
            items=[
                PurchaseItemInput(variant_id=variant.pk, quantity=3, cost_price=100)
            ],
        )
    )

    assert purchase.status == PurchaseStatus.PENDING
    assert not Inventory.objects.exists()
    assert not InventoryTransaction.objects.exists()


@freeze_time("2024-03-01 10:00")
def test_create_purchase_generates_order_number(store, variant, purchase_factory):
    first = purchase_factory()
    second = purchase_factory()

    assert first.order_number == "PO-20240301-001"
    assert second.order_number == "PO-20240301-002"


@freeze_time("2024-03-01 10:00")
def test_create_purchase_retries_order_number_taken_concurrently(
    store, purchase_factory, mocker
):
    """Another request takes the generated number before the insert."""
    # given
    generated = []

    def generate_and_lose_race(date=None):
        order_number = generate_purchase_order_number(date)
        if not generated:
            Purchase.objects.create(store=store, order_number=order_number)
        generated.append(order_number)
        return order_number

    mocker.patch(
        "stockledger.purchase.purchase_management.generate_purchase_order_number",
        side_effect=generate_and_lose_race,
    )

    # when
    purchase = purchase_factory()

    # then
    assert generated == ["PO-20240301-001", "PO-20240301-002"]
    assert purchase.order_number == "PO-20240301-002"
    assert purchase.items.count() == 1
    assert Purchase.objects.count() == 2


def test_create_purchase_order_number_retries_are_bounded(
    store, purchase_factory, mocker
):
    # given
    Purchase.objects.create(store=store, order_number="PO-TAKEN")
    generate = mocker.patch(
        "stockledger.purchase.purchase_management.generate_purchase_order_number",
        return_value="PO-TAKEN",
    )

    # when
    with pytest.raises(IntegrityError):
        purchase_factory()

    # then
    assert generate.call_count == ORDER_NUMBER_ATTEMPTS
    assert Purchase.objects.count() == 1


def test_create_purchase_keeps_same_variant_lines_apart(
    store, variant, order_item_factory
):
    """A manual line and a bound line for one variant are not merged."""
    # given
    order_item = order_item_factory(variant, 4)

    # when
    purchase = create_purchase(
        PurchaseInput(
            store_id=store.pk,
            shipping_cost=900,
            items=[
                PurchaseItemInput(variant_id=variant.pk, quantity=2, cost_price=100)
            ],
            order_items=[
                OrderItemBindingInput(order_item_id=order_item.pk, purchase_quantity=4)
            ],
        )
    )

    # then
    lines = list(purchase.items.order_by("pk"))
    assert [(line.quantity, line.order_item_id) for line in lines] == [
        (2, None),
        (4, order_item.pk),
    ]
    assert [line.allocated_shipping_cost for line in lines] == [300, 600]
    # bound line falls back to the variant cost price
    assert lines[1].cost_price == variant.cost_price
    assert purchase.total_amount == 900 + 200 + 4 * variant.cost_price


def test_create_purchase_requires_lines(store):
    with pytest.raises(ValidationError) as exc_info:
        create_purchase(PurchaseInput(store_id=store.pk))

    assert exc_info.value.error_dict["items"][0].code == "required"
    assert not Purchase.objects.exists()


def test_create_purchase_validates_input(store, variant):
    with pytest.raises(ValidationError) as exc_info:
        create_purchase(
            PurchaseInput(
                store_id=store.pk,
                shipping_cost=-1,
                status=PurchaseStatus.CANCELLED,
                items=[
                    PurchaseItemInput(variant_id=variant.pk, quantity=0, cost_price=-5)
                ],
            )
        )

    errors = exc_info.value.error_dict
    assert errors["shipping_cost"][0].code == "invalid_price"
    assert errors["status"][0].code == "invalid_status"
    assert [error.code for error in errors["items"]] == [
        "invalid_quantity",
        "invalid_price",
    ]


def test_create_purchase_duplicated_order_number(store, variant, purchase):
    with pytest.raises(ValidationError) as exc_info:
        create_purchase(
            PurchaseInput(
                store_id=store.pk,
                order_number=purchase.order_number,
                items=[
                    PurchaseItemInput(variant_id=variant.pk, quantity=1, cost_price=1)
                ],
            )
        )

    assert exc_info.value.error_dict["order_number"][0].code == "unique"


def test_create_purchase_unknown_store(variant):
    with pytest.raises(NotFound) as exc_info:
        create_purchase(
            PurchaseInput(
                store_id=0,
                items=[
                    PurchaseItemInput(variant_id=variant.pk, quantity=1, cost_price=1)
                ],
            )
        )

    assert exc_info.value.model_name == "Store"


def test_create_purchase_unknown_variant(store):
    with pytest.raises(NotFound) as exc_info:
        create_purchase(
            PurchaseInput(
                store_id=store.pk,
                items=[PurchaseItemInput(variant_id=0, quantity=1, cost_price=1)],
            )
        )

    assert exc_info.value.model_name == "ProductVariant"
    assert not Purchase.objects.exists()


def test_update_purchase_replaces_lines(purchase, product_variant_factory):
    # given
    old_line_ids = set(purchase.items.values_list("pk", flat=True))
    jacket = product_variant_factory("JACKET-M")

    # when
    purchase = update_purchase(
        purchase,
        PurchaseUpdateInput(
            items=[
                PurchaseItemInput(variant_id=jacket.pk, quantity=1, cost_price=2000),
                PurchaseItemInput(variant_id=jacket.pk, quantity=2, cost_price=2000),
            ],
            notes="Reordered",
        ),
    )

    # then
    lines = list(purchase.items.order_by("pk"))
    assert not old_line_ids & {line.pk for line in lines}
    assert [line.quantity for line in lines] == [1, 2]
    assert [line.allocated_shipping_cost for line in lines] == [166, 334]
    purchase.refresh_from_db()
    assert purchase.notes == "Reordered"
    assert purchase.total_amount == 500 + 6000
    event = purchase.events.get(type=PurchaseEvents.UPDATED)
    assert event.parameters["updated_fields"] == ["notes", "items"]


def test_update_purchase_keeps_lines_when_not_given(purchase):
    line_ids = list(purchase.items.values_list("pk", flat=True))

    purchase = update_purchase(purchase, PurchaseUpdateInput(shipping_cost=800))

    assert list(purchase.items.values_list("pk", flat=True)) == line_ids
    assert purchase.items.get().allocated_shipping_cost == 800
    assert purchase.total_amount == 800 + 10000


def test_update_purchase_store_change_with_new_lines(
    purchase_factory, other_store, variant, backorder_item
):
    """Replacing the lines drops the bindings to the old store's order items."""
    # given
    purchase = purchase_factory(
        items=[],
        order_items=[
            OrderItemBindingInput(order_item_id=backorder_item.pk, purchase_quantity=5)
        ],
    )

    # when
    purchase = update_purchase(
        purchase,
        PurchaseUpdateInput(
            store_id=other_store.pk,
            items=[
                PurchaseItemInput(variant_id=variant.pk, quantity=2, cost_price=1000)
            ],
        ),
    )

    # then
    purchase.refresh_from_db()
    assert purchase.store == other_store
    line = purchase.items.get()
    assert line.order_item is None
    assert line.quantity == 2
    assert get_outstanding_demand(backorder_item) == 5


def test_update_purchase_store_change_keeping_bound_lines(
    purchase_factory, other_store, backorder_item
):
    purchase = purchase_factory(
        items=[],
        order_items=[
            OrderItemBindingInput(order_item_id=backorder_item.pk, purchase_quantity=5)
        ],
    )

    with pytest.raises(ValidationError) as exc_info:
        update_purchase(purchase, PurchaseUpdateInput(store_id=other_store.pk))

    assert exc_info.value.error_dict["store_id"][0].code == "invalid"
    purchase.refresh_from_db()
    assert purchase.store_id != other_store.pk


def test_update_purchase_status_receives(purchase, store, variant):
    # given
    transition_purchase_status(purchase, PurchaseStatus.CONFIRMED)

    # when
    purchase = update_purchase(
        purchase, PurchaseUpdateInput(status=PurchaseStatus.COMPLETED)
    )

    # then
    assert purchase.status == PurchaseStatus.COMPLETED
    assert Inventory.objects.get(store=store, product_variant=variant).quantity == 10


def test_update_purchase_invalid_transition_rolls_back(purchase):
    with pytest.raises(InvalidStatusTransition):
        update_purchase(
            purchase,
            PurchaseUpdateInput(notes="Changed", status=PurchaseStatus.COMPLETED),
        )

    purchase.refresh_from_db()
    assert purchase.notes == ""
    assert purchase.status == PurchaseStatus.PENDING


@pytest.mark.parametrize(
    "status", [PurchaseStatus.COMPLETED, PurchaseStatus.CANCELLED]
)
def test_update_purchase_locked(status, purchase_factory):
    purchase = purchase_factory(status=PurchaseStatus.CONFIRMED)
    transition_purchase_status(purchase, status)

    with pytest.raises(PurchaseLocked, match=f"status {status}, cannot modify"):
        update_purchase(purchase, PurchaseUpdateInput(notes="Too late"))


def test_update_shipping_cost_reallocates(store, variant, product_variant_factory):
    # given
    jacket = product_variant_factory("JACKET-XL")
    purchase = create_purchase(
        PurchaseInput(
            store_id=store.pk,
            shipping_cost=50000,
            items=[
                PurchaseItemInput(variant_id=variant.pk, quantity=10, cost_price=100),
                PurchaseItemInput(variant_id=jacket.pk, quantity=10, cost_price=300),
            ],
        )
    )

    # when
    purchase = update_shipping_cost(purchase, 100000)

    # then
    assert [
        line.allocated_shipping_cost for line in purchase.items.order_by("pk")
    ] == [50000, 50000]
    purchase.refresh_from_db()
    assert purchase.shipping_cost == 100000
    assert purchase.total_amount == 100000 + 1000 + 3000
    event = purchase.events.get(type=PurchaseEvents.SHIPPING_COST_UPDATED)
    assert event.parameters == {
        "old_shipping_cost": 50000,
        "new_shipping_cost": 100000,
    }


def test_update_shipping_cost_on_completed_purchase(
    purchase_factory, store, variant
):
    """Shipping can be corrected after receipt without moving stock again."""
    purchase = purchase_factory(status=PurchaseStatus.COMPLETED, shipping_cost=0)

    update_shipping_cost(purchase, 250)

    assert purchase.items.get().allocated_shipping_cost == 250
    assert Inventory.objects.get(store=store, product_variant=variant).quantity == 10
    assert InventoryTransaction.objects.count() == 1


def test_update_shipping_cost_negative(purchase):
    with pytest.raises(ValidationError) as exc_info:
        update_shipping_cost(purchase, -100)

    assert exc_info.value.error_dict["shipping_cost"][0].code == "invalid_price"
    purchase.refresh_from_db()
    assert purchase.shipping_cost == 500


def test_transition_to_completed_receives_once(purchase, store, variant):
    # given
    transition_purchase_status(purchase, PurchaseStatus.CONFIRMED)
    transition_purchase_status(purchase, PurchaseStatus.COMPLETED)

    # when
    with pytest.raises(InvalidStatusTransition):
        transition_purchase_status(purchase, PurchaseStatus.COMPLETED)

    # then
    inventory = Inventory.objects.get(store=store, product_variant=variant)
    assert inventory.quantity == 10
    assert inventory.transactions.count() == 1
    assert purchase.events.filter(type=PurchaseEvents.RECEIVED).count() == 1


def test_receive_purchase_twice_fails(purchase_factory):
    purchase = purchase_factory(status=PurchaseStatus.COMPLETED)

    with pytest.raises(InvalidStatusTransition, match="already received"):
        receive_purchase(purchase)


def test_receive_purchase_requires_completed_status(purchase):
    with pytest.raises(InvalidStatusTransition):
        receive_purchase(purchase)

    assert not Inventory.objects.exists()


@pytest.mark.parametrize(
    ("path", "new_status"),
    [
        ([], PurchaseStatus.COMPLETED),
        ([], PurchaseStatus.PENDING),
        ([PurchaseStatus.CONFIRMED], PurchaseStatus.PENDING),
        ([PurchaseStatus.CANCELLED], PurchaseStatus.CONFIRMED),
        (
            [PurchaseStatus.CONFIRMED, PurchaseStatus.COMPLETED],
            PurchaseStatus.CANCELLED,
        ),
    ],
)
def test_invalid_purchase_transitions(path, new_status, purchase):
    for status in path:
        transition_purchase_status(purchase, status)

    with pytest.raises(InvalidStatusTransition):
        transition_purchase_status(purchase, new_status)


def test_transition_records_status_event(purchase, staff_user):
    transition_purchase_status(purchase, PurchaseStatus.CONFIRMED, user=staff_user)

    event = purchase.events.get(type=PurchaseEvents.STATUS_CHANGED)
    assert event.user == staff_user
    assert event.parameters == {"old_status": "pending", "new_status": "confirmed"}


def test_cancel_purchase_appends_reason(purchase_factory):
    purchase = purchase_factory(notes="Spring restock")

    purchase = cancel_purchase(purchase, reason="Supplier out of stock")

    purchase.refresh_from_db()
    assert purchase.status == PurchaseStatus.CANCELLED
    assert purchase.notes == (
        "Spring restock\nCancellation reason: Supplier out of stock"
    )
    event = purchase.events.get(type=PurchaseEvents.CANCELLED)
    assert event.parameters == {"reason": "Supplier out of stock"}
    assert not Inventory.objects.exists()


def test_cancel_completed_purchase(purchase_factory):
    purchase = purchase_factory(status=PurchaseStatus.COMPLETED)

    with pytest.raises(
        InvalidStatusTransition, match="status completed, cannot cancel"
    ):
        cancel_purchase(purchase, reason="Changed mind")


def test_delete_pending_purchase(purchase):
    delete_purchase(purchase)

    assert not Purchase.objects.exists()
    assert not PurchaseItem.objects.exists()
    assert not PurchaseEvent.objects.exists()


@pytest.mark.parametrize("status", [PurchaseStatus.CONFIRMED, PurchaseStatus.COMPLETED])
def test_delete_non_pending_purchase(status, purchase_factory):
    purchase = purchase_factory(status=status)

    with pytest.raises(OnlyPendingDeletable):
        delete_purchase(purchase)

    assert Purchase.objects.filter(pk=purchase.pk).exists()
