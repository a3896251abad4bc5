import pytest

from ..purchase_management import PurchaseInput, PurchaseItemInput, create_purchase


@pytest.fixture
def purchase_factory(store, variant):
    """Create purchases through the engine; one manual line by default."""

    def create(items=None, order_items=(), store=store, **kwargs):
        if items is None:
            items = [
                PurchaseItemInput(variant_id=variant.pk, quantity=10, cost_price=1000)
            ]
        return create_purchase(
            PurchaseInput(
                store_id=store.pk,
                items=list(items),
                order_items=list(order_items),
                **kwargs,
            )
        )

    return create


@pytest.fixture
def purchase(purchase_factory):
    return purchase_factory(order_number="PO-TEST-001", shipping_cost=500)
