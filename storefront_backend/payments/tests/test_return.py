from unittest.mock import patch

from django.test import TestCase
from django.urls import reverse

from notifications.models import EmailTemplate, NotificationJob
from payments.services.exceptions import GatewayTimeoutError
from sales.models import Order
from sales.tests.factories import FakeGateway, make_order, make_product, make_store


class StripeReturnViewTests(TestCase):
    """
    GUARANTEES:
    - A paid session seen on return finalizes the order (same path as webhook)
    - The shopper is always redirected, even when the gateway is down
    - Confirmation email is still queued only once across return + webhook
    """

    def setUp(self):
        self.store = make_store(domain="https://shop.example.com/")
        self.product = make_product(self.store)
        self.order = make_order(self.store, [(self.product, 1)], reference="cs_test_return")

        self.gateway = FakeGateway()
        patcher = patch("payments.views.stripe_return.get_gateway", return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.url = reverse("payments:stripe-return")

    def test_paid_session_finalizes_and_redirects_to_order(self):
        self.gateway.sessions["cs_test_return"] = {
            "id": "cs_test_return",
            "payment_status": "paid",
            "status": "complete",
            "metadata": {"store_id": str(self.store.id)},
        }

        res = self.client.get(self.url, {"session_id": "cs_test_return"})

        self.assertEqual(res.status_code, 302)
        self.assertEqual(res["Location"], f"https://shop.example.com/order/{self.order.id}")

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(
            NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS).count(),
            1,
        )

    def test_repeated_return_does_not_requeue_email(self):
        self.gateway.sessions["cs_test_return"] = {"id": "cs_test_return", "payment_status": "paid", "status": "complete"}

        self.client.get(self.url, {"session_id": "cs_test_return"})
        self.client.get(self.url, {"session_id": "cs_test_return"})

        self.assertEqual(NotificationJob.objects.count(), 1)

    def test_unpaid_session_leaves_order_pending(self):
        self.gateway.sessions["cs_test_return"] = {"id": "cs_test_return", "payment_status": "unpaid", "status": "complete"}

        res = self.client.get(self.url, {"session_id": "cs_test_return"})

        self.assertEqual(res.status_code, 302)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING)

    def test_gateway_failure_still_redirects(self):
        self.gateway.fail_with = GatewayTimeoutError("down")

        res = self.client.get(self.url, {"session_id": "cs_test_return"})

        self.assertEqual(res.status_code, 302)
        self.assertEqual(res["Location"], f"https://shop.example.com/order/{self.order.id}")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING)

    def test_unknown_session_redirects_to_processing_page(self):
        res = self.client.get(self.url, {"session_id": "cs_test_unknown"})

        self.assertEqual(res.status_code, 302)
        self.assertEqual(
            res["Location"],
            "http://shop.test/order-success?session_id=cs_test_unknown&status=processing",
        )

    def test_missing_session_id_goes_back_to_cart(self):
        res = self.client.get(self.url)

        self.assertEqual(res.status_code, 302)
        self.assertEqual(res["Location"], "http://shop.test/cart")
