import unittest
from decimal import Decimal

from backoffice.errors import ValidationError
from backoffice.services.discount_service import (
    DISCOUNT_AMOUNT,
    DISCOUNT_PERCENTAGE,
    Discount,
    LineInput,
    apply_discount,
    calculate_totals,
)


class DiscountCalculatorTests(unittest.TestCase):
    def test_no_discounts(self):
        result = calculate_totals([LineInput(1000, 2), LineInput(250, 1)])

        self.assertEqual(result.subtotal_cents, 2250)
        self.assertEqual(result.item_discount_total_cents, 0)
        self.assertEqual(result.bill_discount_applied_cents, 0)
        self.assertEqual(result.payable_before_tax_cents, 2250)

    def test_item_percentage_then_bill_amount(self):
        # 2 x 50.00 at 10% off = 90.00; bill discount 5.00
        result = calculate_totals(
            [LineInput(5000, 2, Discount(DISCOUNT_PERCENTAGE, Decimal("10")))],
            Discount(DISCOUNT_AMOUNT, 500),
        )

        line = result.lines[0]
        self.assertEqual(line.gross_cents, 10000)
        self.assertEqual(line.discount_cents, 1000)
        self.assertEqual(line.net_cents, 9000)
        self.assertEqual(result.subtotal_cents, 9000)
        self.assertEqual(result.bill_discount_applied_cents, 500)
        self.assertEqual(result.payable_before_tax_cents, 8500)

    def test_amount_discount_clamped_to_line(self):
        result = calculate_totals([LineInput(300, 1, Discount(DISCOUNT_AMOUNT, 1000))])

        self.assertEqual(result.lines[0].discount_cents, 300)
        self.assertEqual(result.lines[0].net_cents, 0)
        self.assertEqual(result.payable_before_tax_cents, 0)

    def test_bill_discount_never_makes_payable_negative(self):
        result = calculate_totals([LineInput(1000, 1)], Discount(DISCOUNT_AMOUNT, 5000))

        self.assertEqual(result.bill_discount_applied_cents, 1000)
        self.assertEqual(result.payable_before_tax_cents, 0)

    def test_full_percentage(self):
        result = calculate_totals([LineInput(1999, 3)], Discount(DISCOUNT_PERCENTAGE, Decimal("100")))
        self.assertEqual(result.payable_before_tax_cents, 0)

    def test_percentage_rounds_half_up(self):
        # 12.5% of 1.00 = 12.5 cents -> 13
        self.assertEqual(apply_discount(100, Discount(DISCOUNT_PERCENTAGE, Decimal("12.5"))), 13)

    def test_empty_discount_takes_nothing(self):
        self.assertEqual(apply_discount(1000, Discount()), 0)
        self.assertEqual(apply_discount(1000, Discount(DISCOUNT_AMOUNT, 0)), 0)

    def test_invariant_payable_equals_subtotal_minus_bill_discount(self):
        lines = [
            LineInput(1234, 3, Discount(DISCOUNT_PERCENTAGE, Decimal("7.5"))),
            LineInput(999, 1, Discount(DISCOUNT_AMOUNT, 100)),
            LineInput(50, 10),
        ]
        result = calculate_totals(lines, Discount(DISCOUNT_PERCENTAGE, Decimal("3")))

        self.assertEqual(result.subtotal_cents, sum(line.net_cents for line in result.lines))
        self.assertEqual(
            result.payable_before_tax_cents,
            result.subtotal_cents - result.bill_discount_applied_cents,
        )
        self.assertGreaterEqual(result.payable_before_tax_cents, 0)

    def test_rejects_percentage_over_100(self):
        with self.assertRaises(ValidationError):
            calculate_totals([LineInput(1000, 1, Discount(DISCOUNT_PERCENTAGE, Decimal("101")))])

    def test_rejects_negative_amount(self):
        with self.assertRaises(ValidationError):
            calculate_totals([LineInput(1000, 1)], Discount(DISCOUNT_AMOUNT, -5))

    def test_rejects_negative_price(self):
        with self.assertRaises(ValidationError):
            calculate_totals([LineInput(-1, 1)])

    def test_rejects_unknown_type(self):
        with self.assertRaises(ValidationError):
            calculate_totals([LineInput(1000, 1, Discount("BOGO", 1))])


if __name__ == "__main__":
    unittest.main()
