# payments/config.py
"""
Payment configuration object.

Built ONCE from Django settings (settings.PAYMENTS) and injected into the
gateway, verifiers and views. Nothing else in the payments code reads
settings or environment variables for keys and secrets.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class PaymentSettings:
    secret_key: str = ""
    publishable_key: str = ""
    webhook_secret: str = ""
    webhook_tolerance: int = 300
    request_timeout: float = 10.0
    max_network_retries: int = 2
    default_currency: str = "USD"
    success_url: str = ""
    cancel_url: str = ""

    @classmethod
    def from_settings(cls) -> "PaymentSettings":
        payments = getattr(settings, "PAYMENTS", {}) or {}
        stripe_cfg = payments.get("STRIPE") or {}

        return cls(
            secret_key=str(stripe_cfg.get("SECRET_KEY") or "").strip(),
            publishable_key=str(stripe_cfg.get("PUBLISHABLE_KEY") or "").strip(),
            webhook_secret=str(stripe_cfg.get("WEBHOOK_SECRET") or "").strip(),
            webhook_tolerance=int(stripe_cfg.get("WEBHOOK_TOLERANCE") or 300),
            request_timeout=float(stripe_cfg.get("REQUEST_TIMEOUT") or 10.0),
            max_network_retries=int(stripe_cfg.get("MAX_NETWORK_RETRIES") or 0),
            default_currency=str(payments.get("DEFAULT_CURRENCY") or "USD").strip().upper(),
            success_url=str(payments.get("SUCCESS_URL") or "").strip(),
            cancel_url=str(payments.get("CANCEL_URL") or "").strip(),
        )
