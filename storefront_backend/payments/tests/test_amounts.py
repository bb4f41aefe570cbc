from decimal import Decimal

from django.test import SimpleTestCase

from payments.services.amounts import from_gateway_amount, is_zero_decimal, to_gateway_amount


class GatewayAmountTests(SimpleTestCase):
    """
    GUARANTEES:
    - Two-decimal currencies are sent in minor units (x100)
    - Zero-decimal currencies are sent in whole units
    - Rounding is half-up, never banker's rounding
    - Malformed amounts raise ValueError
    """

    def test_two_decimal_currency_is_multiplied_by_100(self):
        self.assertEqual(to_gateway_amount(Decimal("19.99"), "usd"), 1999)
        self.assertEqual(to_gateway_amount("10", "EUR"), 1000)
        self.assertEqual(to_gateway_amount(0, "USD"), 0)

    def test_zero_decimal_currency_is_sent_in_whole_units(self):
        self.assertEqual(to_gateway_amount(Decimal("1500"), "JPY"), 1500)
        self.assertEqual(to_gateway_amount(Decimal("19.99"), "jpy"), 20)
        self.assertTrue(is_zero_decimal("krw"))
        self.assertFalse(is_zero_decimal("USD"))

    def test_rounding_is_half_up(self):
        self.assertEqual(to_gateway_amount(Decimal("10.005"), "USD"), 1001)
        self.assertEqual(to_gateway_amount(Decimal("0.125"), "USD"), 13)
        self.assertEqual(to_gateway_amount(Decimal("2.5"), "JPY"), 3)

    def test_float_input_uses_its_decimal_repr(self):
        self.assertEqual(to_gateway_amount(0.1 + 0.2, "USD"), 30)

    def test_malformed_amount_raises_value_error(self):
        for bad in ("abc", None, "", "NaN", "Infinity"):
            with self.subTest(bad=bad):
                with self.assertRaises(ValueError):
                    to_gateway_amount(bad, "USD")

    def test_from_gateway_amount_is_the_inverse(self):
        self.assertEqual(from_gateway_amount(1999, "USD"), Decimal("19.99"))
        self.assertEqual(from_gateway_amount(1500, "JPY"), Decimal("1500.00"))
        with self.assertRaises(ValueError):
            from_gateway_amount("x", "USD")
