from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from credits.models import CreditBalance, CreditTransaction
from credits.services.credit_purchase import (
    PURPOSE_CREDIT_PURCHASE,
    complete_credit_purchase,
    create_credit_purchase,
    fail_credit_purchase,
    get_credit_balance,
    max_credits_for,
    validate_credit_pricing,
)
from credits.services.exceptions import CreditPurchaseError, InvalidCreditPricingError
from notifications.models import EmailTemplate, NotificationJob
from payments.services.exceptions import GatewayTimeoutError, PaymentGatewayError
from sales.tests.factories import FakeGateway, make_store

User = get_user_model()


class CreditPricingTests(SimpleTestCase):
    """
    GUARANTEES:
    - 10 credits per currency unit, up to a 50% bonus
    - Minimum purchase 1.00
    """

    def test_max_credits(self):
        self.assertEqual(max_credits_for(Decimal("10.00")), 150)
        self.assertEqual(max_credits_for(Decimal("1.05")), 15)
        self.assertEqual(max_credits_for(Decimal("3.33")), 49)

    def test_valid_pricing_returns_quantized_amount(self):
        self.assertEqual(validate_credit_pricing(amount="10", credits_amount=150), Decimal("10.00"))

    def test_too_many_credits(self):
        with self.assertRaises(InvalidCreditPricingError):
            validate_credit_pricing(amount="10.00", credits_amount=151)

    def test_below_minimum(self):
        with self.assertRaises(InvalidCreditPricingError):
            validate_credit_pricing(amount="0.99", credits_amount=1)

    def test_garbage_input(self):
        with self.assertRaises(InvalidCreditPricingError):
            validate_credit_pricing(amount="ten", credits_amount=1)
        with self.assertRaises(InvalidCreditPricingError):
            validate_credit_pricing(amount="10", credits_amount="lots")
        with self.assertRaises(InvalidCreditPricingError):
            validate_credit_pricing(amount="10", credits_amount=0)


class CreditPurchaseServiceTests(TestCase):
    """
    GUARANTEES:
    - A pending transaction is created and bound to the PaymentIntent
    - Gateway failure marks the transaction failed and re-raises
    - Completion credits the balance exactly once
    - Failure never credits anything
    """

    def setUp(self):
        self.store = make_store()
        self.user = User.objects.create_user(username="buyer", email="buyer@example.com", password="pass")
        self.gateway = FakeGateway()

    def purchase(self, amount="10.00", credits=120):
        return create_credit_purchase(
            user=self.user, store=self.store, amount=amount, credits_amount=credits, gateway=self.gateway
        )

    def test_create_binds_intent(self):
        tx, intent = self.purchase()

        self.assertEqual(tx.status, CreditTransaction.STATUS_PENDING)
        self.assertEqual(tx.stripe_payment_intent_id, intent["id"])

        sent = self.gateway.created_intents[0]
        self.assertEqual(sent["amount"], 1000)
        self.assertEqual(sent["metadata"]["purpose"], PURPOSE_CREDIT_PURCHASE)
        self.assertEqual(sent["metadata"]["transaction_id"], str(tx.id))
        self.assertEqual(sent["idempotency_key"], f"credit-purchase-{tx.id}")

    def test_gateway_failure_marks_failed(self):
        self.gateway.fail_with = PaymentGatewayError("card_declined")

        with self.assertRaises(PaymentGatewayError):
            self.purchase()

        tx = CreditTransaction.objects.get()
        self.assertEqual(tx.status, CreditTransaction.STATUS_FAILED)
        self.assertIn("card_declined", tx.failure_reason)

    def test_invalid_pricing_creates_nothing(self):
        with self.assertRaises(InvalidCreditPricingError):
            self.purchase(credits=1000)
        self.assertFalse(CreditTransaction.objects.exists())

    def test_complete_is_exactly_once(self):
        tx, intent = self.purchase()

        self.assertTrue(complete_credit_purchase(intent_id=intent["id"]))
        self.assertFalse(complete_credit_purchase(intent_id=intent["id"]))

        self.assertEqual(get_credit_balance(user=self.user, store=self.store), 120)
        self.assertEqual(
            NotificationJob.objects.filter(template_identifier=EmailTemplate.CREDIT_PURCHASE).count(), 1
        )

    def test_balances_accumulate(self):
        _, first = self.purchase(credits=100)
        _, second = self.purchase(amount="5.00", credits=50)

        complete_credit_purchase(intent_id=first["id"])
        complete_credit_purchase(intent_id=second["id"])

        self.assertEqual(CreditBalance.objects.get(user=self.user, store=self.store).balance, 150)

    def test_complete_falls_back_to_transaction_id(self):
        tx = CreditTransaction.objects.create(
            user=self.user, store=self.store, amount="10.00", credits_amount=10
        )

        self.assertTrue(complete_credit_purchase(intent_id="pi_test_late", transaction_id=str(tx.id)))

        tx.refresh_from_db()
        self.assertEqual(tx.stripe_payment_intent_id, "pi_test_late")

    def test_unknown_intent_raises(self):
        with self.assertRaises(CreditPurchaseError):
            complete_credit_purchase(intent_id="pi_test_nobody")

    def test_declined_then_retried_purchase_completes_once(self):
        tx, intent = self.purchase()

        self.assertTrue(fail_credit_purchase(intent_id=intent["id"], reason="declined"))
        self.assertTrue(complete_credit_purchase(intent_id=intent["id"]))
        self.assertFalse(complete_credit_purchase(intent_id=intent["id"]))

        tx.refresh_from_db()
        self.assertEqual(tx.status, CreditTransaction.STATUS_COMPLETED)
        self.assertEqual(tx.failure_reason, "")
        self.assertEqual(get_credit_balance(user=self.user, store=self.store), 120)
        self.assertEqual(
            NotificationJob.objects.filter(template_identifier=EmailTemplate.CREDIT_PURCHASE).count(), 1
        )

    def test_completed_purchase_cannot_fail(self):
        _, intent = self.purchase()
        complete_credit_purchase(intent_id=intent["id"])

        self.assertFalse(fail_credit_purchase(intent_id=intent["id"], reason="late failure"))


class CreditApiTests(TestCase):
    def setUp(self):
        self.store = make_store()
        self.user = User.objects.create_user(username="buyer", email="buyer@example.com", password="pass")
        self.client = APIClient()
        self.client.force_authenticate(self.user)

        self.gateway = FakeGateway()
        patcher = patch("credits.views.credits.get_gateway", return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_purchase_returns_client_secret(self):
        res = self.client.post(
            reverse("credits:credit-purchase"),
            {"store_id": str(self.store.id), "amount": "10.00", "credits_amount": 150},
            format="json",
        )

        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["client_secret"], "pi_test_1_secret_x")
        self.assertEqual(res.data["publishable_key"], "pk_test_dummy")
        self.assertEqual(res.data["transaction"]["status"], CreditTransaction.STATUS_PENDING)

    def test_purchase_rejects_bonus_abuse(self):
        res = self.client.post(
            reverse("credits:credit-purchase"),
            {"store_id": str(self.store.id), "amount": "10.00", "credits_amount": 500},
            format="json",
        )
        self.assertEqual(res.status_code, 400)

    def test_purchase_gateway_errors(self):
        payload = {"store_id": str(self.store.id), "amount": "10.00", "credits_amount": 100}

        self.gateway.fail_with = GatewayTimeoutError("timeout")
        self.assertEqual(self.client.post(reverse("credits:credit-purchase"), payload, format="json").status_code, 504)

        self.gateway.fail_with = PaymentGatewayError("boom")
        self.assertEqual(self.client.post(reverse("credits:credit-purchase"), payload, format="json").status_code, 502)

    def test_purchase_requires_auth(self):
        res = APIClient().post(reverse("credits:credit-purchase"), {}, format="json")
        self.assertEqual(res.status_code, 401)

    def test_balance(self):
        CreditBalance.objects.create(user=self.user, store=self.store, balance=42)

        res = self.client.get(reverse("credits:credit-balance"), {"store_id": str(self.store.id)})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["balance"], 42)

    def test_balance_with_bad_store_id_is_404(self):
        res = self.client.get(reverse("credits:credit-balance"), {"store_id": "nope"})
        self.assertEqual(res.status_code, 404)

    def test_transactions_only_show_own(self):
        other = User.objects.create_user(username="other", password="pass")
        CreditTransaction.objects.create(user=self.user, store=self.store, amount="5.00", credits_amount=50)
        CreditTransaction.objects.create(user=other, store=self.store, amount="5.00", credits_amount=50)

        res = self.client.get(reverse("credits:credit-transactions"), {"store_id": str(self.store.id)})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.data), 1)

    def test_transactions_limit_bounds(self):
        res = self.client.get(
            reverse("credits:credit-transactions"), {"store_id": str(self.store.id), "limit": "500"}
        )
        self.assertEqual(res.status_code, 400)
