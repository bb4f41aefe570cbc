from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from notifications.models import EmailTemplate, NotificationJob
from sales.models import Order
from sales.services.order_lifecycle import claim_confirmation_email, mark_order_paid
from sales.tests.factories import make_order, make_product, make_store

User = get_user_model()


class OrderApiTestBase(TestCase):
    def setUp(self):
        self.store = make_store()
        self.product = make_product(self.store)

        self.pending = make_order(self.store, [(self.product, 1)], reference="cs_test_pending", email="p@example.com")
        self.paid = make_order(self.store, [(self.product, 2)], reference="cs_test_paid", email="paid@example.com")
        mark_order_paid(order_id=self.paid.id)
        claim_confirmation_email(order_id=self.paid.id)

        self.staff = User.objects.create_user(username="staff", password="pass", is_staff=True)
        self.client = APIClient()
        self.client.force_authenticate(self.staff)

    def action_url(self, order, name):
        return reverse(f"sales:orders-{name}", kwargs={"pk": order.id})


# =====================================================
# STAFF READS
# =====================================================


class OrderListTests(OrderApiTestBase):
    """
    GUARANTEES:
    - Staff only
    - Filterable by status / payment_status
    - Detail includes items, invoices, shipments
    """

    def test_requires_staff(self):
        customer = User.objects.create_user(username="shopper", password="pass")
        client = APIClient()
        client.force_authenticate(customer)

        self.assertEqual(client.get(reverse("sales:orders-list")).status_code, 403)
        self.assertEqual(APIClient().get(reverse("sales:orders-list")).status_code, 401)

    def test_list_and_filter(self):
        res = self.client.get(reverse("sales:orders-list"))
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["count"], 2)

        res = self.client.get(reverse("sales:orders-list"), {"payment_status": Order.PAYMENT_PAID})
        self.assertEqual([row["id"] for row in res.data["results"]], [str(self.paid.id)])

    def test_search_by_reference(self):
        res = self.client.get(reverse("sales:orders-list"), {"search": "cs_test_pending"})
        self.assertEqual(res.data["count"], 1)

    def test_detail_includes_items(self):
        res = self.client.get(reverse("sales:orders-detail", kwargs={"pk": self.paid.id}))

        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.data["items"]), 1)
        self.assertEqual(res.data["items"][0]["quantity"], 2)
        self.assertEqual(res.data["invoices"], [])


# =====================================================
# STAFF ACTIONS
# =====================================================


class OrderActionTests(OrderApiTestBase):
    """
    GUARANTEES:
    - Actions on unpaid orders answer 409 and queue nothing
    - Resend always queues, even when the claim was already taken
    - Invoice / shipment are created once and re-used on resend
    """

    def test_resend_confirmation_requires_paid(self):
        res = self.client.post(self.action_url(self.pending, "resend-confirmation"))

        self.assertEqual(res.status_code, 409)
        self.assertFalse(NotificationJob.objects.exists())

    def test_resend_confirmation_queues_again(self):
        res = self.client.post(self.action_url(self.paid, "resend-confirmation"))

        self.assertEqual(res.status_code, 202)
        job = NotificationJob.objects.get(id=res.data["job_id"])
        self.assertEqual(job.template_identifier, EmailTemplate.ORDER_SUCCESS)
        self.assertEqual(job.recipient_email, "paid@example.com")

    def test_send_invoice(self):
        first = self.client.post(self.action_url(self.paid, "send-invoice"))
        second = self.client.post(self.action_url(self.paid, "send-invoice"))

        self.assertEqual(first.status_code, 202)
        self.assertEqual(first.data["invoice_number"], second.data["invoice_number"])
        self.assertEqual(self.paid.invoices.count(), 1)
        self.assertEqual(NotificationJob.objects.filter(template_identifier=EmailTemplate.INVOICE).count(), 2)

    def test_send_invoice_requires_paid(self):
        res = self.client.post(self.action_url(self.pending, "send-invoice"))
        self.assertEqual(res.status_code, 409)

    def test_send_shipment_marks_order_shipped(self):
        res = self.client.post(
            self.action_url(self.paid, "send-shipment"),
            {"tracking_number": "1Z999", "carrier": "UPS", "tracking_url": "https://ups.test/1Z999"},
            format="json",
        )

        self.assertEqual(res.status_code, 202)
        self.assertEqual(res.data["tracking_number"], "1Z999")

        self.paid.refresh_from_db()
        self.assertEqual(self.paid.status, Order.STATUS_SHIPPED)
        self.assertEqual(self.paid.tracking_number, "1Z999")
        self.assertIsNotNone(self.paid.shipped_at)
        self.assertEqual(NotificationJob.objects.filter(template_identifier=EmailTemplate.SHIPMENT).count(), 1)

    def test_resending_shipment_updates_tracking(self):
        self.client.post(self.action_url(self.paid, "send-shipment"), {"tracking_number": "OLD"}, format="json")
        self.client.post(self.action_url(self.paid, "send-shipment"), {"tracking_number": "NEW"}, format="json")

        self.paid.refresh_from_db()
        self.assertEqual(self.paid.tracking_number, "NEW")
        self.assertEqual(self.paid.shipments.count(), 1)

    def test_send_shipment_requires_paid(self):
        res = self.client.post(self.action_url(self.pending, "send-shipment"), {}, format="json")
        self.assertEqual(res.status_code, 409)


# =====================================================
# PUBLIC POLLING
# =====================================================


class OrderByReferenceTests(OrderApiTestBase):
    def test_lookup_by_reference(self):
        res = APIClient().get(reverse("sales:order-by-reference", kwargs={"payment_reference": "cs_test_paid"}))

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["payment_status"], Order.PAYMENT_PAID)
        self.assertNotIn("customer_email", res.data)

    def test_unknown_reference_is_404(self):
        res = APIClient().get(reverse("sales:order-by-reference", kwargs={"payment_reference": "cs_nope"}))
        self.assertEqual(res.status_code, 404)
