import pytest

from backoffice.errors import InvalidPaymentSet, ValidationError
from backoffice.models import Customer, CustomerTransaction
from backoffice.services import customer_service

from conftest import balance_of


def _set_balance(session, customer, debt, advance):
    customer.total_debt_cents = debt
    customer.total_advance_cents = advance
    session.commit()


def test_debt_increases_when_no_advance(db_session, customer):
    txns = customer_service.apply_balance_delta(customer.id, 4000, sale_ref="SALE-1")
    db_session.commit()

    assert balance_of(db_session, customer.id) == (4000, 0)
    assert [(t.transaction_type, t.amount_cents) for t in txns] == [(customer_service.TXN_DEBT_INC, 4000)]


def test_advance_increases_when_no_debt(db_session, customer):
    customer_service.apply_balance_delta(customer.id, -2000)
    db_session.commit()
    assert balance_of(db_session, customer.id) == (0, 2000)


def test_debt_is_netted_against_advance(db_session, customer):
    _set_balance(db_session, customer, 0, 3000)

    txns = customer_service.apply_balance_delta(customer.id, 5000)
    db_session.commit()

    assert balance_of(db_session, customer.id) == (2000, 0)
    assert [(t.transaction_type, t.amount_cents) for t in txns] == [
        (customer_service.TXN_ADVANCE_DEC, 3000),
        (customer_service.TXN_DEBT_INC, 2000),
    ]


def test_advance_is_netted_against_debt(db_session, customer):
    _set_balance(db_session, customer, 1500, 0)

    customer_service.apply_balance_delta(customer.id, -4000)
    db_session.commit()

    assert balance_of(db_session, customer.id) == (0, 2500)


def test_zero_delta_writes_nothing(db_session, customer):
    assert customer_service.apply_balance_delta(customer.id, 0) == []
    assert db_session.query(CustomerTransaction).count() == 0


@pytest.mark.parametrize(
    "debt, advance, delta",
    [
        (0, 0, 4000),
        (0, 0, -4000),
        (1500, 0, -4000),
        (1500, 0, 1000),
        (0, 3000, 5000),
        (0, 3000, -700),
        (0, 3000, 3000),
    ],
)
def test_reverse_restores_prior_balance(db_session, customer, debt, advance, delta):
    _set_balance(db_session, customer, debt, advance)

    customer_service.apply_balance_delta(customer.id, delta)
    after = balance_of(db_session, customer.id)
    assert after[0] == 0 or after[1] == 0

    customer_service.reverse(customer.id, delta)
    db_session.commit()
    assert balance_of(db_session, customer.id) == (debt, advance)


def test_unknown_customer_rejected(db_session):
    with pytest.raises(ValidationError):
        customer_service.apply_balance_delta(404, 100)
    with pytest.raises(ValidationError):
        customer_service.find_customer(customer_id=404)


def test_find_customer_by_phone(db_session, customer):
    assert customer_service.find_customer(phone=" 555-0100 ").id == customer.id
    assert customer_service.find_customer(phone="555-9999") is None
    assert customer_service.find_customer() is None


def test_resolve_customer_creates_from_name_and_phone(db_session):
    created = customer_service.resolve_customer(None, "New Person", "555-0199")
    db_session.commit()

    assert created.id is not None
    assert db_session.query(Customer).filter_by(phone="555-0199").count() == 1
    assert customer_service.resolve_customer(None, "Other Name", "555-0199").id == created.id


def test_resolve_customer_without_identity(db_session):
    assert customer_service.resolve_customer(None, "Name Only", None) is None


def test_redeem_store_credit(db_session, customer_with_advance):
    customer_service.redeem_store_credit(customer_with_advance.id, 1200, sale_ref="SALE-2")
    db_session.commit()
    assert balance_of(db_session, customer_with_advance.id) == (0, 1800)


def test_redeem_store_credit_beyond_advance_rejected(db_session, customer_with_advance):
    with pytest.raises(InvalidPaymentSet) as exc:
        customer_service.redeem_store_credit(customer_with_advance.id, 3001)
    assert exc.value.details["available_cents"] == 3000
    db_session.rollback()
    assert balance_of(db_session, customer_with_advance.id) == (0, 3000)


def test_reverse_store_credit(db_session, customer_with_advance):
    customer_service.redeem_store_credit(customer_with_advance.id, 1000)
    customer_service.reverse_store_credit(customer_with_advance.id, 1000)
    db_session.commit()
    assert balance_of(db_session, customer_with_advance.id) == (0, 3000)


def test_record_purchase_updates_aggregates(db_session, customer):
    customer_service.record_purchase(customer.id, 10000, 6000)
    db_session.commit()

    db_session.expire_all()
    refreshed = db_session.get(Customer, customer.id)
    assert refreshed.total_purchases_cents == 10000
    assert refreshed.total_paid_cents == 6000


def test_recent_transactions_newest_first(db_session, customer):
    customer_service.apply_balance_delta(customer.id, 1000, sale_ref="SALE-A")
    customer_service.apply_balance_delta(customer.id, -400, sale_ref="SALE-B")
    db_session.commit()

    txns = customer_service.get_recent_transactions(customer.id)
    assert [t.sale_ref for t in txns] == ["SALE-B", "SALE-A"]
