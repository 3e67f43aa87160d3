# Overview: Multi-threaded settlement tests against a file-backed SQLite database.

import os
import tempfile
import threading
import unittest

import pytest

from backoffice import create_app
from backoffice.errors import InsufficientStock, SettlementError
from backoffice.extensions import db
from backoffice.models import Customer, ProductSizeStock, Sale
from backoffice.services.settlement_service import settle_sale
from backoffice.validation import parse_sale_request

from conftest import make_product


pytestmark = pytest.mark.concurrency


class ConcurrentSettlementTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "settlement.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SETTLEMENT_LOCK_TIMEOUT_SECONDS": 30,
            "SETTLEMENT_RETRY_ATTEMPTS": 5,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _seed_product(self, name, quantity, size="M"):
        with self.app.app_context():
            product = make_product(db.session, name, {size: quantity}, price_cents=1000)
            product_id = product.id
            db.session.remove()
        return product_id

    def _seed_customer(self):
        with self.app.app_context():
            customer = Customer(
                name="Concurrent Customer",
                phone="555-0142",
                total_debt_cents=0,
                total_advance_cents=0,
                total_purchases_cents=0,
                total_paid_cents=0,
            )
            db.session.add(customer)
            db.session.commit()
            customer_id = customer.id
            db.session.remove()
        return customer_id

    def _run_concurrently(self, payloads):
        results = []
        lock = threading.Lock()
        barrier = threading.Barrier(len(payloads))

        def worker(payload):
            with self.app.app_context():
                try:
                    barrier.wait()
                    sale = settle_sale(parse_sale_request(payload))
                    with lock:
                        results.append(sale.sale_number)
                except SettlementError as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(payload,)) for payload in payloads]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _quantity(self, product_id, size="M"):
        with self.app.app_context():
            row = db.session.query(ProductSizeStock).filter_by(product_id=product_id, size=size).one()
            quantity = row.quantity
            db.session.remove()
        return quantity

    @staticmethod
    def _one_unit(product_id, size="M", **extra):
        payload = {
            "items": [{"productId": product_id, "size": size, "quantity": 1, "price": 10}],
            "payments": [{"amount": 10, "method": "CASH"}],
        }
        payload.update(extra)
        return payload

    def test_last_unit_sold_once(self):
        product_id = self._seed_product("Last Unit", 1)

        results = self._run_concurrently([self._one_unit(product_id) for _ in range(2)])

        committed = [r for r in results if isinstance(r, str)]
        failures = [r for r in results if not isinstance(r, str)]
        self.assertEqual(len(committed), 1)
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], InsufficientStock)
        self.assertEqual(failures[0].available, 0)
        self.assertEqual(self._quantity(product_id), 0)

    def test_n_buyers_k_units(self):
        stock, buyers = 3, 10
        product_id = self._seed_product("Scarce", stock)

        results = self._run_concurrently([self._one_unit(product_id) for _ in range(buyers)])

        committed = [r for r in results if isinstance(r, str)]
        failures = [r for r in results if not isinstance(r, str)]
        self.assertEqual(len(committed), min(stock, buyers))
        self.assertEqual(len(failures), buyers - stock)
        self.assertTrue(all(isinstance(f, InsufficientStock) for f in failures))
        self.assertEqual(len(set(committed)), len(committed))
        self.assertEqual(self._quantity(product_id), 0)

        with self.app.app_context():
            self.assertEqual(db.session.query(Sale).count(), min(stock, buyers))
            db.session.remove()

    def test_unrelated_products_all_settle(self):
        first = self._seed_product("First", 2)
        second = self._seed_product("Second", 2)

        results = self._run_concurrently([
            self._one_unit(first),
            self._one_unit(second),
            self._one_unit(first),
            self._one_unit(second),
        ])

        self.assertTrue(all(isinstance(r, str) for r in results), results)
        self.assertEqual(self._quantity(first), 0)
        self.assertEqual(self._quantity(second), 0)

    def test_concurrent_debt_for_one_customer_is_not_lost(self):
        product_id = self._seed_product("Credit Line", 10)
        customer_id = self._seed_customer()

        payloads = []
        for _ in range(5):
            payload = self._one_unit(product_id, customerId=customer_id)
            payload["payments"] = [{"amount": 4, "method": "CASH"}]
            payloads.append(payload)

        results = self._run_concurrently(payloads)

        self.assertTrue(all(isinstance(r, str) for r in results), results)
        with self.app.app_context():
            customer = db.session.get(Customer, customer_id)
            self.assertEqual(customer.total_debt_cents, 5 * 600)
            self.assertEqual(customer.total_advance_cents, 0)
            db.session.remove()


if __name__ == "__main__":
    unittest.main()
