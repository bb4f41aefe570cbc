# payments/services/stripe_gateway.py

"""
STRIPE GATEWAY

Thin wrapper around the Stripe SDK.

Guarantees:
- Every outbound call carries the configured api_key explicitly
  (no global stripe.api_key mutation between stores)
- Every outbound call is bounded by PaymentSettings.request_timeout
- Transient failures (timeouts, connection errors, rate limits, 5xx)
  surface as GatewayTimeoutError; everything else as PaymentGatewayError
- Returned objects are plain dicts
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, List, Optional

import stripe

from payments.config import PaymentSettings
from payments.services.exceptions import (
    GatewayNotConfiguredError,
    GatewayTimeoutError,
    MalformedEventError,
    PaymentGatewayError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)


PROVIDER_STRIPE = "stripe"


def _to_plain_dict(obj: Any) -> Dict[str, Any]:
    """
    Convert Stripe objects / mappings into a plain dict.
    """
    if obj is None:
        return {}
    if isinstance(obj, dict) and not isinstance(obj, stripe.StripeObject):
        return obj

    fn = getattr(obj, "to_dict_recursive", None) or getattr(obj, "to_dict", None)
    if callable(fn):
        return fn()

    return dict(obj)


class StripeGateway:
    provider = PROVIDER_STRIPE

    def __init__(self, *, config: PaymentSettings):
        self.config = config

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------
    def _request_options(self, stripe_account: Optional[str] = None) -> dict:
        if not self.config.secret_key:
            raise GatewayNotConfiguredError("Stripe secret key is not configured.")

        opts: dict = {"api_key": self.config.secret_key}
        if stripe_account:
            opts["stripe_account"] = stripe_account
        return opts

    def _call(self, operation: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            logger.warning("Stripe %s transient failure: %s", operation, exc)
            raise GatewayTimeoutError(f"Stripe {operation} unavailable: {exc}") from exc
        except stripe.APIError as exc:
            logger.warning("Stripe %s upstream error: %s", operation, exc)
            raise GatewayTimeoutError(f"Stripe {operation} failed upstream: {exc}") from exc
        except stripe.StripeError as exc:
            logger.error("Stripe %s rejected: %s", operation, exc)
            raise PaymentGatewayError(f"Stripe {operation} rejected: {exc}") from exc

    # -------------------------------------------------
    # Checkout
    # -------------------------------------------------
    def create_coupon(
        self,
        *,
        params: dict,
        stripe_account: Optional[str] = None,
    ) -> Dict[str, Any]:
        coupon = self._call(
            "coupon.create",
            stripe.Coupon.create,
            **params,
            **self._request_options(stripe_account),
        )
        return _to_plain_dict(coupon)

    def create_checkout_session(
        self,
        *,
        line_items: List[dict],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: str = "",
        discount_coupon: Optional[dict] = None,
        stripe_account: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a hosted Checkout session.

        The discount (if any) is a one-off coupon created for this session,
        so Stripe reports the exact discount back in total_details.
        """
        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": line_items,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "payment_intent_data": {"metadata": dict(metadata)},
        }
        if customer_email:
            params["customer_email"] = customer_email

        if discount_coupon:
            coupon = self.create_coupon(
                params=discount_coupon, stripe_account=stripe_account
            )
            params["discounts"] = [{"coupon": coupon["id"]}]

        opts = self._request_options(stripe_account)
        if idempotency_key:
            opts["idempotency_key"] = idempotency_key

        session = self._call(
            "checkout.session.create",
            stripe.checkout.Session.create,
            **params,
            **opts,
        )
        return _to_plain_dict(session)

    def retrieve_checkout_session(
        self, session_id: str, *, stripe_account: Optional[str] = None
    ) -> Dict[str, Any]:
        session = self._call(
            "checkout.session.retrieve",
            stripe.checkout.Session.retrieve,
            session_id,
            **self._request_options(stripe_account),
        )
        return _to_plain_dict(session)

    def list_line_items(
        self, session_id: str, *, stripe_account: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        result = self._call(
            "checkout.session.list_line_items",
            stripe.checkout.Session.list_line_items,
            session_id,
            limit=100,
            expand=["data.price.product"],
            **self._request_options(stripe_account),
        )
        data = _to_plain_dict(result).get("data") or []
        return [_to_plain_dict(row) for row in data]

    # -------------------------------------------------
    # Payment intents
    # -------------------------------------------------
    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        receipt_email: str = "",
        stripe_account: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "amount": int(amount),
            "currency": currency.lower(),
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if receipt_email:
            params["receipt_email"] = receipt_email

        opts = self._request_options(stripe_account)
        if idempotency_key:
            opts["idempotency_key"] = idempotency_key

        intent = self._call(
            "payment_intent.create",
            stripe.PaymentIntent.create,
            **params,
            **opts,
        )
        return _to_plain_dict(intent)

    def retrieve_payment_intent(
        self, intent_id: str, *, stripe_account: Optional[str] = None
    ) -> Dict[str, Any]:
        intent = self._call(
            "payment_intent.retrieve",
            stripe.PaymentIntent.retrieve,
            intent_id,
            **self._request_options(stripe_account),
        )
        return _to_plain_dict(intent)

    # -------------------------------------------------
    # Webhooks
    # -------------------------------------------------
    def verify_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header against the RAW body and
        return the decoded event dict.

        Raises:
        - WebhookSignatureError: missing secret/header or bad signature
        - MalformedEventError: body is not a JSON object
        """
        secret = self.config.webhook_secret
        if not secret:
            raise WebhookSignatureError("Stripe webhook secret is not configured.")
        if not sig_header:
            raise WebhookSignatureError("Missing Stripe-Signature header.")

        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedEventError("Payload is not valid UTF-8.") from exc

        try:
            stripe.WebhookSignature.verify_header(
                text, sig_header, secret, self.config.webhook_tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc

        try:
            event = json.loads(text)
        except ValueError as exc:
            raise MalformedEventError("Payload is not valid JSON.") from exc

        if not isinstance(event, dict):
            raise MalformedEventError("Payload must be a JSON object.")

        return event


_gateway: Optional[StripeGateway] = None
_gateway_lock = threading.Lock()


def configure_sdk(config: PaymentSettings) -> None:
    """
    The SDK keeps its HTTP client and retry count in module globals, so they
    are set here once per process, never per gateway instance.
    """
    stripe.default_http_client = stripe.RequestsClient(timeout=config.request_timeout)
    stripe.max_network_retries = config.max_network_retries


def get_gateway() -> StripeGateway:
    """
    Process-wide gateway built from settings.PAYMENTS.
    """
    global _gateway
    with _gateway_lock:
        if _gateway is None:
            config = PaymentSettings.from_settings()
            configure_sdk(config)
            _gateway = StripeGateway(config=config)
        return _gateway


def reset_gateway() -> None:
    global _gateway
    with _gateway_lock:
        _gateway = None
