"""Shared pytest fixtures."""

import pytest
from django.contrib.auth import get_user_model

from ..inventory.models import Inventory
from ..order.models import Order, OrderItem
from ..product.models import Product, ProductVariant
from ..store.models import Store


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(
        username="staff", email="staff@example.com", password="password"
    )


@pytest.fixture
def store(db):
    return Store.objects.create(name="Main Street", address="1 Main Street")


@pytest.fixture
def other_store(db):
    return Store.objects.create(name="Harbour", address="7 Harbour Road")


@pytest.fixture
def product(db):
    return Product.objects.create(name="Linen Shirt")


@pytest.fixture
def variant(product):
    return ProductVariant.objects.create(
        product=product, sku="SHIRT-M", name="Linen Shirt M", cost_price=1500
    )


@pytest.fixture
def product_variant_factory(product):
    """Create product variants on demand."""

    def create_variant(sku, cost_price=1000, **kwargs):
        return ProductVariant.objects.create(
            product=product, sku=sku, cost_price=cost_price, **kwargs
        )

    return create_variant


@pytest.fixture
def inventory_factory(db):
    """Create ledger rows directly, bypassing the transaction log."""

    def create_inventory(store, variant, quantity=0, low_stock_threshold=0):
        return Inventory.objects.create(
            store=store,
            product_variant=variant,
            quantity=quantity,
            low_stock_threshold=low_stock_threshold,
        )

    return create_inventory


@pytest.fixture
def order(store):
    return Order.objects.create(store=store, number="SO-1001")


@pytest.fixture
def order_item_factory(order):
    """Create order items; backordered by default."""

    def create_order_item(variant, quantity, is_backorder=True, order=order, **kwargs):
        return OrderItem.objects.create(
            order=order,
            product_variant=variant,
            quantity=quantity,
            is_backorder=is_backorder,
            **kwargs,
        )

    return create_order_item


@pytest.fixture
def backorder_item(order_item_factory, variant):
    return order_item_factory(variant, 5)
