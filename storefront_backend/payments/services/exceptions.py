# payments/services/exceptions.py

"""
PAYMENT SERVICE ERRORS

Taxonomy:
- WebhookSignatureError / MalformedEventError: verification errors (HTTP 400,
  never retried by us)
- GatewayTimeoutError: transient dependency error (retry later)
- PaymentGatewayError: any other gateway failure
"""


class PaymentGatewayError(Exception):
    """Base exception for all payment gateway failures."""


class GatewayTimeoutError(PaymentGatewayError):
    """Raised on timeouts, connection errors, rate limits and gateway 5xx."""


class WebhookSignatureError(PaymentGatewayError):
    """Raised when a webhook payload fails signature verification."""


class MalformedEventError(PaymentGatewayError):
    """Raised when a verified payload does not match the expected event schema."""


class GatewayNotConfiguredError(PaymentGatewayError):
    """Raised when a gateway key or secret is missing."""
