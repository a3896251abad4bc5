import datetime

from freezegun import freeze_time

from ..models import Purchase
from ..utils import generate_purchase_order_number


@freeze_time("2024-03-01 10:00")
def test_generate_purchase_order_number_first_of_day(db):
    assert generate_purchase_order_number() == "PO-20240301-001"


@freeze_time("2024-03-01 10:00")
def test_generate_purchase_order_number_continues_sequence(store):
    # given
    for order_number in ["PO-20240301-001", "PO-20240301-007", "PO-20240229-010"]:
        Purchase.objects.create(store=store, order_number=order_number)

    # when / then
    assert generate_purchase_order_number() == "PO-20240301-008"


def test_generate_purchase_order_number_for_date(store):
    Purchase.objects.create(store=store, order_number="PO-20231231-099")

    number = generate_purchase_order_number(datetime.date(2023, 12, 31))

    assert number == "PO-20231231-100"


def test_generate_purchase_order_number_ignores_foreign_suffixes(store, settings):
    settings.PURCHASE_ORDER_NUMBER_PREFIX = "BUY"
    Purchase.objects.create(store=store, order_number="BUY-20240301-manual")

    number = generate_purchase_order_number(datetime.date(2024, 3, 1))

    assert number == "BUY-20240301-001"
