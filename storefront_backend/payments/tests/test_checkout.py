from dataclasses import replace
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from notifications.models import EmailTemplate, NotificationJob
from payments.services.exceptions import GatewayTimeoutError, PaymentGatewayError
from sales.models import Order
from sales.tests.factories import (
    FakeGateway,
    make_option,
    make_payment_method,
    make_product,
    make_shipping_method,
    make_store,
)
from store.models import Coupon, PaymentMethod


class CheckoutViewTests(TestCase):
    """
    GUARANTEES:
    - Prices are computed server-side; the gateway gets minor-unit amounts
    - Online flow: session first, then a pending Order keyed by session id
    - A failed preliminary write never fails the checkout
    - Offline flow: order is processing/paid and confirmed after commit
    - Gateway timeouts answer 504, other gateway errors 502
    """

    def setUp(self):
        self.store = make_store(tax_rate=Decimal("10.00"))
        self.product = make_product(self.store, unit_price="10.00")
        self.card = make_payment_method(self.store, code="card")
        self.shipping = make_shipping_method(self.store, code="standard", flat_rate="5.00")

        self.gateway = FakeGateway()
        patcher = patch("payments.views.checkout.get_gateway", return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.client = APIClient()
        self.url = reverse("payments:checkout")

    def payload(self, **overrides):
        data = {
            "store_id": str(self.store.id),
            "items": [{"product_id": str(self.product.id), "quantity": 2}],
            "payment_method": "card",
            "shipping_method": "standard",
            "customer_email": "buyer@example.com",
            "customer_name": "Ada Buyer",
            "shipping_address": {"street": "1 Main St", "city": "Springfield"},
        }
        data.update(overrides)
        return data

    # =====================================================
    # ONLINE FLOW
    # =====================================================

    def test_online_checkout_creates_session_and_pending_order(self):
        res = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["session_id"], "cs_test_1")
        self.assertEqual(res.data["checkout_url"], "https://checkout.stripe.test/cs_test_1")

        order = Order.objects.get(payment_reference="cs_test_1")
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.payment_status, Order.PAYMENT_PENDING)
        self.assertEqual(order.payment_flow, Order.FLOW_ONLINE)
        self.assertEqual(order.subtotal_amount, Decimal("20.00"))
        self.assertEqual(order.tax_amount, Decimal("2.00"))
        self.assertEqual(order.shipping_amount, Decimal("5.00"))
        self.assertEqual(order.total_amount, Decimal("27.00"))
        self.assertEqual(order.total_amount, order.computed_total)
        self.assertEqual(str(res.data["order"]["order_id"]), str(order.id))

        self.assertFalse(NotificationJob.objects.exists())

    def test_session_receives_minor_units_and_metadata(self):
        self.client.post(self.url, self.payload(), format="json")

        sent = self.gateway.created_sessions[0]
        lines = sent["line_items"]

        product_line = lines[0]
        self.assertEqual(product_line["quantity"], 2)
        self.assertEqual(product_line["price_data"]["unit_amount"], 1000)
        self.assertEqual(product_line["price_data"]["currency"], "usd")

        extras = {
            line["price_data"]["product_data"]["metadata"]["line_kind"]: line["price_data"]["unit_amount"]
            for line in lines[1:]
        }
        self.assertEqual(extras, {"tax": 200, "shipping": 500})

        self.assertEqual(sent["metadata"]["store_id"], str(self.store.id))
        self.assertEqual(sent["metadata"]["customer_email"], "buyer@example.com")
        self.assertEqual(sent["success_url"], "http://shop.test/checkout/success")
        self.assertIsNone(sent["discount_coupon"])

    def test_without_success_url_session_returns_through_stripe_return(self):
        self.gateway.config = replace(self.gateway.config, success_url="")

        res = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(res.status_code, 201)
        self.assertEqual(
            self.gateway.created_sessions[0]["success_url"],
            "http://testserver/api/payments/stripe/return/?session_id={CHECKOUT_SESSION_ID}",
        )

    def test_coupon_becomes_one_off_gateway_discount(self):
        Coupon.objects.create(
            store=self.store,
            code="SAVE10",
            discount_type=Coupon.TYPE_PERCENTAGE,
            discount_value=Decimal("10.00"),
        )

        res = self.client.post(self.url, self.payload(coupon_code="SAVE10"), format="json")

        self.assertEqual(res.status_code, 201)
        order = Order.objects.get(payment_reference="cs_test_1")
        self.assertEqual(order.discount_amount, Decimal("2.00"))
        self.assertEqual(order.coupon_code, "SAVE10")
        self.assertEqual(self.gateway.created_sessions[0]["discount_coupon"]["amount_off"], 200)

    def test_options_are_priced_into_the_unit_price(self):
        option = make_option(self.product, name="Gift wrap", price="2.50")
        items = [{"product_id": str(self.product.id), "quantity": 1, "option_ids": [str(option.id)]}]

        res = self.client.post(self.url, self.payload(items=items), format="json")

        self.assertEqual(res.status_code, 201)
        item = Order.objects.get(payment_reference="cs_test_1").items.get()
        self.assertEqual(item.unit_price, Decimal("12.50"))
        self.assertEqual(item.selected_options[0]["name"], "Gift wrap")

    def test_failed_preliminary_write_still_returns_session(self):
        with patch("payments.views.checkout.materialize_order", side_effect=RuntimeError("db down")):
            res = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["session_id"], "cs_test_1")
        self.assertIsNone(res.data["order"])
        self.assertFalse(Order.objects.exists())

    def test_gateway_timeout_is_504(self):
        self.gateway.fail_with = GatewayTimeoutError("timed out")
        res = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(res.status_code, 504)
        self.assertFalse(Order.objects.exists())

    def test_gateway_error_is_502(self):
        self.gateway.fail_with = PaymentGatewayError("card_declined")
        res = self.client.post(self.url, self.payload(), format="json")

        self.assertEqual(res.status_code, 502)
        self.assertFalse(Order.objects.exists())

    # =====================================================
    # OFFLINE FLOW
    # =====================================================

    def test_offline_checkout_is_paid_and_confirmed(self):
        make_payment_method(
            self.store,
            code="cod",
            provider=PaymentMethod.PROVIDER_CASH_ON_DELIVERY,
            flow=PaymentMethod.FLOW_OFFLINE,
        )

        with self.captureOnCommitCallbacks(execute=True):
            res = self.client.post(self.url, self.payload(payment_method="cod"), format="json")

        self.assertEqual(res.status_code, 201)
        self.assertIsNone(res.data["session_id"])
        self.assertEqual(self.gateway.calls, [])

        order = Order.objects.get(id=res.data["order"]["order_id"])
        self.assertIsNone(order.payment_reference)
        self.assertEqual(order.status, Order.STATUS_PROCESSING)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(order.payment_flow, Order.FLOW_OFFLINE)
        self.assertIsNotNone(order.confirmation_email_sent_at)
        self.assertEqual(
            NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS).count(),
            1,
        )

    # =====================================================
    # VALIDATION
    # =====================================================

    def test_unknown_store_is_404(self):
        res = self.client.post(
            self.url, self.payload(store_id="00000000-0000-0000-0000-000000000000"), format="json"
        )
        self.assertEqual(res.status_code, 404)

    def test_unknown_payment_method_is_400(self):
        res = self.client.post(self.url, self.payload(payment_method="paypal"), format="json")
        self.assertEqual(res.status_code, 400)

    def test_unknown_shipping_method_is_400(self):
        res = self.client.post(self.url, self.payload(shipping_method="drone"), format="json")
        self.assertEqual(res.status_code, 400)

    def test_unknown_product_is_400(self):
        items = [{"product_id": "00000000-0000-0000-0000-000000000000", "quantity": 1}]
        res = self.client.post(self.url, self.payload(items=items), format="json")

        self.assertEqual(res.status_code, 400)
        self.assertEqual(self.gateway.calls, [])

    def test_invalid_coupon_is_400(self):
        res = self.client.post(self.url, self.payload(coupon_code="NOPE"), format="json")
        self.assertEqual(res.status_code, 400)

    def test_empty_cart_is_400(self):
        res = self.client.post(self.url, self.payload(items=[]), format="json")
        self.assertEqual(res.status_code, 400)

    def test_email_is_required(self):
        data = self.payload()
        del data["customer_email"]
        res = self.client.post(self.url, data, format="json")
        self.assertEqual(res.status_code, 400)
