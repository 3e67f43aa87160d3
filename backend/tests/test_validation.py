from decimal import Decimal

import pytest

from backoffice.errors import ValidationError
from backoffice.money import format_cents, to_cents
from backoffice.validation import parse_discount, parse_sale_request


def _payload(**overrides):
    payload = {
        "items": [{"productId": 1, "size": "M", "quantity": 2, "price": 19.99}],
        "payments": [{"amount": 39.98, "method": "cash"}],
    }
    payload.update(overrides)
    return payload


def test_parse_minimal_request():
    request = parse_sale_request(_payload())

    item = request.items[0]
    assert item.product_id == 1
    assert item.size == "M"
    assert item.quantity == 2
    assert item.unit_price_cents == 1999
    assert item.discount.is_empty
    assert request.payments[0].method == "CASH"
    assert request.payments[0].amount_cents == 3998
    assert request.tax_cents is None
    assert request.customer_id is None


def test_customer_fields():
    request = parse_sale_request(_payload(customerId="7", customerName=" Ana ", customerPhone="555"))
    assert request.customer_id == 7
    assert request.customer_name == "Ana"
    assert request.can_create_customer


def test_name_alone_cannot_create_customer():
    assert not parse_sale_request(_payload(customerName="Ana")).can_create_customer


@pytest.mark.parametrize("items", [None, [], "x"])
def test_items_required(items):
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(items=items))


@pytest.mark.parametrize("quantity", [0, -1, 1.5, "two", True, None])
def test_bad_quantity(quantity):
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(items=[{"productId": 1, "quantity": quantity, "price": 1}]))


@pytest.mark.parametrize("price", [0, -5, "abc", None, float("nan")])
def test_bad_price(price):
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(items=[{"productId": 1, "quantity": 1, "price": price}]))


def test_missing_payment_method():
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(payments=[{"amount": 10}]))


def test_negative_tax_rejected():
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(tax=-1))


def test_non_object_payload_rejected():
    with pytest.raises(ValidationError):
        parse_sale_request(["items"])


def test_parse_discount_defaults_to_amount():
    discount = parse_discount(5, None, "discount")
    assert discount.type == "AMOUNT"
    assert discount.value == 500


def test_percentage_discount_kept_as_percent():
    discount = parse_discount("12.5", "PERCENTAGE", "discount")
    assert discount.type == "PERCENTAGE"
    assert discount.value == Decimal("12.5")


@pytest.mark.parametrize(
    "value, discount_type",
    [(150, "PERCENTAGE"), (-1, "PERCENTAGE"), (-1, "AMOUNT"), (5, "BOGO")],
)
def test_bad_discounts(value, discount_type):
    with pytest.raises(ValidationError):
        parse_discount(value, discount_type, "discount")


def test_zero_discount_is_empty():
    assert parse_discount(0, "PERCENTAGE", "discount").is_empty


def test_to_cents_rounds_half_up():
    assert to_cents("0.005", "amount") == 1
    assert to_cents(12.345, "amount") == 1235
    assert to_cents(10, "amount") == 1000


def test_format_cents():
    assert format_cents(123456) == "1234.56"
    assert format_cents(-3000) == "-30.00"
    assert format_cents(None) is None


@pytest.mark.parametrize("price", [1e30, "1e30", "-1e400", 10_000_000])
def test_out_of_range_price_is_a_validation_error(price):
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(items=[{"productId": 1, "quantity": 1, "price": price}]))


@pytest.mark.parametrize("quantity", ["--5", "-", "²", "1_000", " "])
def test_non_decimal_quantity_strings_rejected(quantity):
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(items=[{"productId": 1, "quantity": quantity, "price": 1}]))


@pytest.mark.parametrize("product_id", ["²", "-3", "1.0"])
def test_non_decimal_product_id_rejected(product_id):
    with pytest.raises(ValidationError):
        parse_sale_request(_payload(items=[{"productId": product_id, "quantity": 1, "price": 1}]))


def test_numeric_strings_still_accepted():
    request = parse_sale_request(_payload(items=[{"productId": " 12 ", "quantity": "3", "price": "9999999.99"}]))
    item = request.items[0]
    assert item.product_id == 12
    assert item.quantity == 3
    assert item.unit_price_cents == 999_999_999


def test_item_discount_without_type_is_ignored():
    request = parse_sale_request(_payload(items=[{"productId": 1, "quantity": 1, "price": 20, "discount": 5}]))
    assert request.items[0].discount.is_empty


def test_bill_discount_without_type_is_amount():
    request = parse_sale_request(_payload(discount=5))
    assert request.bill_discount.type == "AMOUNT"
    assert request.bill_discount.value == 500
