# payments/services/verifiers.py

"""
PAYMENT VERIFIERS (RECONCILIATION)

Each provider answers one question for a payment reference:
"has this been paid?"

Outcomes:
- PAID: finalize the order
- UNPAID: not paid (expired=True means it never will be)
- UNVERIFIED: could not ask right now (timeout / transient); retry next cycle
- UNSUPPORTED: no verifier for this provider/reference; skip
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from payments.services.events import PAID_SESSION_STATUSES
from payments.services.exceptions import GatewayTimeoutError
from payments.services.stripe_gateway import PROVIDER_STRIPE, get_gateway

logger = logging.getLogger(__name__)


class VerificationOutcome:
    PAID = "paid"
    UNPAID = "unpaid"
    UNVERIFIED = "unverified"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class VerificationResult:
    outcome: str
    expired: bool = False
    gateway_status: str = ""
    detail: str = ""

    @property
    def is_paid(self) -> bool:
        return self.outcome == VerificationOutcome.PAID


class PaymentVerifier(Protocol):
    def verify(self, payment_reference: str, *, stripe_account: Optional[str] = None) -> VerificationResult:
        ...


class StripePaymentVerifier:
    """
    cs_... -> checkout session, pi_... -> payment intent.
    """

    def __init__(self, *, gateway):
        self.gateway = gateway

    def verify(self, payment_reference: str, *, stripe_account: Optional[str] = None) -> VerificationResult:
        ref = (payment_reference or "").strip()

        try:
            if ref.startswith("cs_"):
                return self._verify_session(ref, stripe_account)
            if ref.startswith("pi_"):
                return self._verify_intent(ref, stripe_account)
        except GatewayTimeoutError as exc:
            return VerificationResult(
                outcome=VerificationOutcome.UNVERIFIED, detail=str(exc)
            )

        return VerificationResult(
            outcome=VerificationOutcome.UNSUPPORTED,
            detail=f"Unrecognized Stripe reference: {ref!r}",
        )

    def _verify_session(self, ref: str, stripe_account) -> VerificationResult:
        session = self.gateway.retrieve_checkout_session(ref, stripe_account=stripe_account)
        payment_status = str(session.get("payment_status") or "")
        status = str(session.get("status") or "")

        if payment_status in PAID_SESSION_STATUSES:
            return VerificationResult(outcome=VerificationOutcome.PAID, gateway_status=payment_status)

        return VerificationResult(
            outcome=VerificationOutcome.UNPAID,
            expired=status == "expired",
            gateway_status=f"{status}/{payment_status}",
        )

    def _verify_intent(self, ref: str, stripe_account) -> VerificationResult:
        intent = self.gateway.retrieve_payment_intent(ref, stripe_account=stripe_account)
        status = str(intent.get("status") or "")

        if status == "succeeded":
            return VerificationResult(outcome=VerificationOutcome.PAID, gateway_status=status)

        return VerificationResult(
            outcome=VerificationOutcome.UNPAID,
            expired=status == "canceled",
            gateway_status=status,
        )


class UnsupportedProviderVerifier:
    def __init__(self, provider: str = ""):
        self.provider = provider

    def verify(self, payment_reference: str, *, stripe_account: Optional[str] = None) -> VerificationResult:
        return VerificationResult(
            outcome=VerificationOutcome.UNSUPPORTED,
            detail=f"No verifier for provider {self.provider!r}",
        )


class VerifierRegistry:
    def __init__(self):
        self._verifiers: Dict[str, PaymentVerifier] = {}

    def register(self, provider: str, verifier: PaymentVerifier) -> None:
        self._verifiers[(provider or "").strip().lower()] = verifier

    def get(self, provider: str) -> PaymentVerifier:
        key = (provider or "").strip().lower()
        verifier = self._verifiers.get(key)
        if verifier is None:
            return UnsupportedProviderVerifier(key)
        return verifier

    def providers(self) -> list[str]:
        return sorted(self._verifiers)


def build_default_registry(*, gateway=None) -> VerifierRegistry:
    if gateway is None:
        gateway = get_gateway()

    registry = VerifierRegistry()
    registry.register(PROVIDER_STRIPE, StripePaymentVerifier(gateway=gateway))
    return registry
