from unittest.mock import patch

from django.test import TestCase

from notifications.models import EmailTemplate, NotificationJob
from notifications.services.dispatcher import NotificationDispatcher
from sales.models import Invoice, Order, Shipment
from sales.services.order_finalization import (
    SOURCE_RETURN,
    SOURCE_SWEEP,
    SOURCE_WEBHOOK,
    cancel_expired_order,
    confirm_order_payment,
)
from sales.services.order_lifecycle import claim_confirmation_email, mark_order_paid
from sales.services.order_notifications import send_order_confirmation
from sales.tests.factories import FakeNotificationService, make_order, make_product, make_store


class ConfirmOrderPaymentTests(TestCase):
    """
    GUARANTEES:
    - pending -> processing/paid exactly once, whichever signal comes first
    - Confirmation email queued exactly once across all signals
    - A paid order whose claim never happened is healed by the next signal
    - Cancelled orders are never resurrected by a late payment signal
    """

    def setUp(self):
        self.store = make_store()
        self.product = make_product(self.store)
        self.order = make_order(self.store, [(self.product, 2)], reference="cs_test_fin")
        self.service = FakeNotificationService()
        self.dispatcher = NotificationDispatcher(service=self.service, inline=True)

    def jobs(self):
        return NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS)

    def test_first_signal_transitions_and_claims(self):
        outcome = confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        self.assertTrue(outcome.transitioned)
        self.assertTrue(outcome.email_claimed)
        self.assertTrue(outcome.is_paid)
        self.assertEqual(outcome.status, Order.STATUS_PROCESSING)
        self.assertEqual(self.jobs().count(), 1)

    def test_every_later_signal_is_a_noop(self):
        confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        for source in (SOURCE_RETURN, SOURCE_SWEEP, SOURCE_WEBHOOK):
            stale = Order.objects.get(id=self.order.id)
            outcome = confirm_order_payment(order=stale, source=source, dispatcher=self.dispatcher)
            self.assertFalse(outcome.transitioned)
            self.assertFalse(outcome.email_claimed)
            self.assertTrue(outcome.is_paid)

        self.assertEqual(self.jobs().count(), 1)

    def test_email_is_delivered_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        self.assertEqual(len(self.service.sent), 1)
        sent = self.service.sent[0]
        self.assertEqual(sent["template"], EmailTemplate.ORDER_SUCCESS)
        self.assertEqual(sent["recipient"], "buyer@example.com")
        self.assertEqual(sent["variables"]["order_number"], self.order.order_number)
        self.assertEqual(self.jobs().get().status, NotificationJob.STATUS_SENT)

    def test_paid_but_unclaimed_order_is_healed(self):
        # crash between the status flip and the claim
        mark_order_paid(order_id=self.order.id)

        outcome = confirm_order_payment(order=self.order, source=SOURCE_SWEEP, dispatcher=self.dispatcher)

        self.assertFalse(outcome.transitioned)
        self.assertTrue(outcome.email_claimed)
        self.assertEqual(self.jobs().count(), 1)

    def test_cancelled_order_is_not_resurrected(self):
        cancel_expired_order(order=self.order)

        outcome = confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        self.assertFalse(outcome.is_paid)
        self.assertEqual(outcome.status, Order.STATUS_CANCELLED)
        self.assertFalse(self.jobs().exists())

    def test_expiry_never_touches_paid_order(self):
        confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        self.assertFalse(cancel_expired_order(order=self.order))
        self.assertEqual(self.order.status, Order.STATUS_PROCESSING)

    def test_claim_is_released_when_queueing_fails(self):
        mark_order_paid(order_id=self.order.id)
        self.order.refresh_from_db()

        with patch(
            "sales.services.order_notifications.queue_order_confirmation",
            side_effect=RuntimeError("outbox unavailable"),
        ):
            self.assertFalse(send_order_confirmation(order=self.order, dispatcher=self.dispatcher))

        self.order.refresh_from_db()
        self.assertIsNone(self.order.confirmation_email_sent_at)

        self.assertTrue(send_order_confirmation(order=self.order, dispatcher=self.dispatcher))
        self.assertEqual(self.jobs().count(), 1)

    def test_claim_can_only_be_won_once(self):
        self.assertTrue(claim_confirmation_email(order_id=self.order.id))
        self.assertFalse(claim_confirmation_email(order_id=self.order.id))


class PostConfirmationSideEffectTests(TestCase):
    """
    GUARANTEES:
    - auto_invoice_enabled / auto_ship_enabled run once, for the claim winner
    - A failing side effect never undoes or blocks the confirmation
    """

    def setUp(self):
        self.store = make_store(
            settings={"sales_settings": {"auto_invoice_enabled": True, "auto_ship_enabled": True}}
        )
        self.product = make_product(self.store)
        self.order = make_order(self.store, [(self.product, 1)], reference="cs_test_side")
        self.dispatcher = NotificationDispatcher(service=FakeNotificationService(), inline=True)

    def test_flags_issue_invoice_and_shipment(self):
        confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)
        confirm_order_payment(order=self.order, source=SOURCE_RETURN, dispatcher=self.dispatcher)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_SHIPPED)
        self.assertEqual(Invoice.objects.filter(order=self.order).count(), 1)
        self.assertEqual(Shipment.objects.filter(order=self.order).count(), 1)

        templates = list(NotificationJob.objects.values_list("template_identifier", flat=True))
        self.assertEqual(templates.count(EmailTemplate.ORDER_SUCCESS), 1)
        self.assertEqual(templates.count(EmailTemplate.INVOICE), 1)
        self.assertEqual(templates.count(EmailTemplate.SHIPMENT), 1)

    def test_failing_side_effect_is_contained(self):
        with patch("sales.services.order_notifications.issue_invoice", side_effect=RuntimeError("pdf failed")):
            outcome = confirm_order_payment(order=self.order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        self.assertTrue(outcome.transitioned)
        self.assertTrue(outcome.email_claimed)
        self.assertFalse(Invoice.objects.exists())
        self.assertTrue(
            NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS).exists()
        )

    def test_side_effects_off_by_default(self):
        plain = make_store(name="Plain")
        order = make_order(plain, [(make_product(plain, sku="P-1"), 1)], reference="cs_test_plain")

        confirm_order_payment(order=order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        self.assertFalse(Invoice.objects.filter(order=order).exists())
        self.assertFalse(Shipment.objects.filter(order=order).exists())
