from django.test import SimpleTestCase

from payments.services.exceptions import GatewayTimeoutError
from payments.services.verifiers import (
    StripePaymentVerifier,
    UnsupportedProviderVerifier,
    VerificationOutcome,
    VerifierRegistry,
    build_default_registry,
)
from sales.tests.factories import FakeGateway


class StripePaymentVerifierTests(SimpleTestCase):
    """
    GUARANTEES:
    - cs_ references are checked as checkout sessions, pi_ as intents
    - Timeouts are UNVERIFIED (retry later), never UNPAID
    - Expired sessions / canceled intents are flagged expired
    """

    def setUp(self):
        self.gateway = FakeGateway()
        self.verifier = StripePaymentVerifier(gateway=self.gateway)

    def test_paid_session(self):
        self.gateway.sessions["cs_test_a"] = {"id": "cs_test_a", "payment_status": "paid", "status": "complete"}

        result = self.verifier.verify("cs_test_a")

        self.assertEqual(result.outcome, VerificationOutcome.PAID)
        self.assertTrue(result.is_paid)

    def test_no_payment_required_counts_as_paid(self):
        self.gateway.sessions["cs_test_free"] = {"payment_status": "no_payment_required", "status": "complete"}
        self.assertTrue(self.verifier.verify("cs_test_free").is_paid)

    def test_open_session_is_unpaid_not_expired(self):
        self.gateway.sessions["cs_test_b"] = {"payment_status": "unpaid", "status": "open"}

        result = self.verifier.verify("cs_test_b")

        self.assertEqual(result.outcome, VerificationOutcome.UNPAID)
        self.assertFalse(result.expired)

    def test_expired_session_is_flagged(self):
        self.gateway.sessions["cs_test_c"] = {"payment_status": "unpaid", "status": "expired"}

        result = self.verifier.verify("cs_test_c")

        self.assertEqual(result.outcome, VerificationOutcome.UNPAID)
        self.assertTrue(result.expired)

    def test_succeeded_intent_is_paid(self):
        self.gateway.intents["pi_test_a"] = {"id": "pi_test_a", "status": "succeeded"}
        self.assertTrue(self.verifier.verify("pi_test_a").is_paid)

    def test_canceled_intent_is_expired(self):
        self.gateway.intents["pi_test_b"] = {"id": "pi_test_b", "status": "canceled"}

        result = self.verifier.verify("pi_test_b")

        self.assertFalse(result.is_paid)
        self.assertTrue(result.expired)

    def test_timeout_is_unverified(self):
        self.gateway.fail_with = GatewayTimeoutError("read timeout")

        result = self.verifier.verify("cs_test_a")

        self.assertEqual(result.outcome, VerificationOutcome.UNVERIFIED)
        self.assertFalse(result.is_paid)

    def test_unknown_reference_shape_is_unsupported(self):
        result = self.verifier.verify("ch_legacy_charge")

        self.assertEqual(result.outcome, VerificationOutcome.UNSUPPORTED)
        self.assertEqual(self.gateway.calls, [])


class VerifierRegistryTests(SimpleTestCase):
    def test_unknown_provider_gets_unsupported_verifier(self):
        registry = VerifierRegistry()
        verifier = registry.get("paystack")

        self.assertIsInstance(verifier, UnsupportedProviderVerifier)
        self.assertEqual(verifier.verify("ref").outcome, VerificationOutcome.UNSUPPORTED)

    def test_lookup_is_case_insensitive(self):
        registry = VerifierRegistry()
        verifier = StripePaymentVerifier(gateway=FakeGateway())
        registry.register("Stripe", verifier)

        self.assertIs(registry.get(" stripe "), verifier)
        self.assertEqual(registry.providers(), ["stripe"])

    def test_default_registry_covers_stripe(self):
        registry = build_default_registry(gateway=FakeGateway())
        self.assertIsInstance(registry.get("stripe"), StripePaymentVerifier)
