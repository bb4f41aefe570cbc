from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from notifications.models import EmailTemplate, NotificationJob
from notifications.services.dispatcher import NotificationDispatcher
from payments.models import PaymentEvent
from payments.services.exceptions import GatewayTimeoutError
from payments.services.verifiers import VerificationOutcome, VerificationResult, build_default_registry
from payments.services.webhook_processor import finalize_checkout_session
from sales.models import Invoice, Order
from sales.services.order_finalization import SOURCE_WEBHOOK
from sales.services.order_lifecycle import mark_order_paid
from sales.services.reconciliation import reconcile_pending_orders
from sales.tests.factories import FakeGateway, FakeNotificationService, make_order, make_product, make_store
from store.models import PaymentMethod


class ReconcilePendingOrdersTests(TestCase):
    """
    GUARANTEES:
    - Paid-but-unconfirmed orders are finalized like a webhook would
    - Unpaid orders stay pending; expired sessions are cancelled
    - Timeouts leave the order for the next cycle
    - Unsupported providers are skipped
    - One broken order never aborts the batch
    - Orders younger than the grace period are left alone
    - A webhook racing the sweep still yields one confirmation email
    """

    def setUp(self):
        self.store = make_store()
        self.product = make_product(self.store)
        self.gateway = FakeGateway()
        self.registry = build_default_registry(gateway=self.gateway)
        self.dispatcher = NotificationDispatcher(service=FakeNotificationService(), inline=True)
        self.later = timezone.now() + timedelta(hours=1)

    def order(self, reference, **kwargs):
        return make_order(self.store, [(self.product, 1)], reference=reference, **kwargs)

    def session(self, ref, *, payment_status="paid", status="complete"):
        self.gateway.sessions[ref] = {"id": ref, "payment_status": payment_status, "status": status}

    def sweep(self, **kwargs):
        kwargs.setdefault("now", self.later)
        return reconcile_pending_orders(registry=self.registry, dispatcher=self.dispatcher, **kwargs)

    def test_paid_session_is_confirmed(self):
        order = self.order("cs_test_lost_webhook")
        self.session("cs_test_lost_webhook")

        result = self.sweep()

        self.assertEqual(result.examined, 1)
        self.assertEqual(result.confirmed, 1)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertIsNotNone(order.confirmation_email_sent_at)
        self.assertEqual(NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS).count(), 1)

    def test_second_sweep_finds_nothing(self):
        self.order("cs_test_once")
        self.session("cs_test_once")

        self.sweep()
        result = self.sweep()

        self.assertEqual(result.examined, 0)
        self.assertEqual(NotificationJob.objects.count(), 1)

    def test_unpaid_session_stays_pending(self):
        order = self.order("cs_test_open")
        self.session("cs_test_open", payment_status="unpaid", status="open")

        result = self.sweep()

        self.assertEqual(result.unpaid, 1)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING)

    def test_expired_session_cancels_order(self):
        order = self.order("cs_test_gone")
        self.session("cs_test_gone", payment_status="unpaid", status="expired")

        result = self.sweep()

        self.assertEqual(result.expired, 1)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_CANCELLED)

    def test_timeout_is_unverified_and_retried(self):
        order = self.order("cs_test_slow")
        self.gateway.fail_with = GatewayTimeoutError("timeout")

        result = self.sweep()

        self.assertEqual(result.unverified, 1)
        self.assertEqual(result.errors, 0)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING)

        self.gateway.fail_with = None
        self.session("cs_test_slow")
        self.assertEqual(self.sweep().confirmed, 1)

    def test_unsupported_provider_is_skipped(self):
        self.order("bt-ref-1", provider=PaymentMethod.PROVIDER_BANK_TRANSFER)

        result = self.sweep()

        self.assertEqual(result.unsupported, 1)
        self.assertEqual(self.gateway.calls, [])

    def test_one_failing_order_does_not_abort_batch(self):
        broken = self.order("cs_test_broken")
        healthy = self.order("cs_test_healthy")
        self.session("cs_test_healthy")

        real_verify = self.registry.get("stripe").verify

        def flaky(ref, *, stripe_account=None):
            if ref == broken.payment_reference:
                raise RuntimeError("unexpected payload")
            return real_verify(ref, stripe_account=stripe_account)

        with patch.object(self.registry.get("stripe"), "verify", side_effect=flaky):
            result = self.sweep()

        self.assertEqual(result.errors, 1)
        self.assertEqual(result.confirmed, 1)
        healthy.refresh_from_db()
        self.assertEqual(healthy.payment_status, Order.PAYMENT_PAID)

    def test_grace_period_protects_fresh_orders(self):
        self.order("cs_test_fresh")
        self.session("cs_test_fresh")

        result = self.sweep(now=timezone.now())

        self.assertEqual(result.examined, 0)

    def test_batch_size_bounds_the_pass(self):
        for i in range(3):
            self.order(f"cs_test_batch_{i}")
            self.session(f"cs_test_batch_{i}", payment_status="unpaid", status="open")

        self.assertEqual(self.sweep(batch_size=2).examined, 2)

    def test_dry_run_writes_nothing(self):
        order = self.order("cs_test_dry")
        self.session("cs_test_dry")

        result = self.sweep(dry_run=True)

        self.assertEqual(result.confirmed, 1)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertFalse(NotificationJob.objects.exists())

    def test_paid_order_without_claim_is_healed(self):
        order = self.order("cs_test_heal")
        mark_order_paid(order_id=order.id, now=timezone.now() - timedelta(hours=2))

        result = self.sweep()

        self.assertEqual(result.examined, 0)
        self.assertEqual(result.healed, 1)
        order.refresh_from_db()
        self.assertIsNotNone(order.confirmation_email_sent_at)

    def test_healed_order_runs_store_side_effects(self):
        self.store.settings = {"sales_settings": {"auto_invoice_enabled": True}}
        self.store.save(update_fields=["settings"])
        order = self.order("cs_test_heal_invoice")
        mark_order_paid(order_id=order.id, now=timezone.now() - timedelta(hours=2))

        result = self.sweep()
        again = self.sweep()

        self.assertEqual(result.healed, 1)
        self.assertEqual(again.healed, 0)
        self.assertEqual(Invoice.objects.filter(order=order).count(), 1)
        self.assertEqual(NotificationJob.objects.filter(template_identifier=EmailTemplate.INVOICE).count(), 1)

    def test_webhook_confirming_mid_sweep_sends_one_email(self):
        order = self.order("cs_test_race")
        session = {"id": "cs_test_race", "payment_status": "paid", "status": "complete"}
        verifier = self.registry.get("stripe")

        def webhook_wins_first(ref, *, stripe_account=None):
            finalize_checkout_session(
                session=session, gateway=self.gateway, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher
            )
            return VerificationResult(outcome=VerificationOutcome.PAID)

        with patch.object(verifier, "verify", side_effect=webhook_wins_first):
            result = self.sweep()

        self.assertEqual(result.examined, 1)
        self.assertEqual(result.confirmed, 0)
        self.assertEqual(result.already_paid, 1)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS).count(), 1)

    def test_webhook_redelivery_after_sweep_is_noop(self):
        order = self.order("cs_test_sweep_first")
        self.session("cs_test_sweep_first")

        self.assertEqual(self.sweep().confirmed, 1)
        processing = finalize_checkout_session(
            session=self.gateway.sessions["cs_test_sweep_first"],
            gateway=self.gateway,
            source=SOURCE_WEBHOOK,
            dispatcher=self.dispatcher,
        )

        self.assertEqual(processing.result, PaymentEvent.RESULT_NOOP)
        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PROCESSING)
        self.assertEqual(NotificationJob.objects.filter(template_identifier=EmailTemplate.ORDER_SUCCESS).count(), 1)

    def test_verifier_receives_connected_account(self):
        connected = make_store(name="Connected", stripe_account_id="acct_123")
        order = make_order(connected, [(make_product(connected, sku="C-1"), 1)], reference="cs_test_connect")

        verifier = self.registry.get("stripe")
        with patch.object(
            verifier,
            "verify",
            return_value=VerificationResult(outcome=VerificationOutcome.UNPAID),
        ) as mocked:
            self.sweep()

        mocked.assert_called_once_with(order.payment_reference, stripe_account="acct_123")


class ReconcileCommandTests(TestCase):
    def test_command_prints_summary(self):
        store = make_store()
        make_order(store, [(make_product(store), 1)], reference="cs_test_cmd")
        gateway = FakeGateway()
        gateway.sessions["cs_test_cmd"] = {"id": "cs_test_cmd", "payment_status": "unpaid", "status": "open"}

        out = StringIO()
        with patch(
            "sales.management.commands.reconcile_pending_orders.build_default_registry",
            return_value=build_default_registry(gateway=gateway),
        ):
            call_command("reconcile_pending_orders", "--grace-minutes", "0", "--dry-run", stdout=out)

        text = out.getvalue()
        self.assertIn("DRY RUN", text)
        self.assertIn("Verifiers:   stripe", text)
        self.assertIn("Examined:    1", text)
        self.assertIn("Unpaid:      1", text)
