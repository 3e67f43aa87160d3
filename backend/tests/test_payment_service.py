import pytest

from backoffice.errors import InvalidPaymentSet
from backoffice.services.payment_service import (
    OUTCOME_ADVANCE,
    OUTCOME_CREDIT,
    OUTCOME_EXACT,
    PAYMENT_STATUS_OVERPAID,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    TenderedPayment,
    allocate_payments,
    store_credit_total,
)


def test_exact_split_tender_without_customer():
    allocation = allocate_payments(
        8500,
        [TenderedPayment("CASH", 5000), TenderedPayment("CARD", 3500)],
        has_customer=False,
    )

    assert allocation.outcome == OUTCOME_EXACT
    assert allocation.collected_cents == 8500
    assert allocation.balance_cents == 0
    assert allocation.payment_status == PAYMENT_STATUS_PAID


def test_underpayment_with_customer_becomes_credit():
    allocation = allocate_payments(10000, [TenderedPayment("CASH", 6000)], has_customer=True)

    assert allocation.outcome == OUTCOME_CREDIT
    assert allocation.balance_cents == 4000
    assert allocation.payment_status == PAYMENT_STATUS_PARTIAL


def test_overpayment_with_customer_becomes_advance():
    allocation = allocate_payments(10000, [TenderedPayment("MOBILE", 12000)], has_customer=True)

    assert allocation.outcome == OUTCOME_ADVANCE
    assert allocation.balance_cents == -2000
    assert allocation.payment_status == PAYMENT_STATUS_OVERPAID


def test_collected_plus_balance_equals_target():
    for collected in (1, 9999, 10000, 10001, 25000):
        allocation = allocate_payments(10000, [TenderedPayment("CASH", collected)], has_customer=True)
        assert allocation.collected_cents + allocation.balance_cents == allocation.target_cents


def test_underpayment_without_customer_rejected():
    with pytest.raises(InvalidPaymentSet) as exc:
        allocate_payments(10000, [TenderedPayment("CASH", 9000)], has_customer=False)
    assert exc.value.details["balance_cents"] == 1000


def test_overpayment_without_customer_rejected():
    with pytest.raises(InvalidPaymentSet):
        allocate_payments(10000, [TenderedPayment("CASH", 11000)], has_customer=False)


def test_empty_payments_rejected_for_nonzero_target():
    with pytest.raises(InvalidPaymentSet):
        allocate_payments(500, [], has_customer=True)


def test_empty_payments_for_zero_target_is_exact():
    allocation = allocate_payments(0, [], has_customer=False)
    assert allocation.outcome == OUTCOME_EXACT


@pytest.mark.parametrize("amount", [0, -100])
def test_non_positive_amount_rejected(amount):
    with pytest.raises(InvalidPaymentSet):
        allocate_payments(1000, [TenderedPayment("CASH", amount)], has_customer=True)


def test_unknown_method_rejected():
    with pytest.raises(InvalidPaymentSet) as exc:
        allocate_payments(1000, [TenderedPayment("CHEQUE", 1000)], has_customer=True)
    assert exc.value.details["method"] == "CHEQUE"


def test_store_credit_requires_customer():
    with pytest.raises(InvalidPaymentSet):
        allocate_payments(1000, [TenderedPayment("STORE_CREDIT", 1000)], has_customer=False)


def test_store_credit_total_sums_only_store_credit():
    payments = [
        TenderedPayment("STORE_CREDIT", 700),
        TenderedPayment("CASH", 300),
        TenderedPayment("STORE_CREDIT", 200),
    ]
    assert store_credit_total(payments) == 900
