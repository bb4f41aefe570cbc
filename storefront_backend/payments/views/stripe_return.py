# payments/views/stripe_return.py

"""
BROWSER RETURN AFTER CHECKOUT

GET /api/payments/stripe/return/?session_id=cs_...

The third confirmation signal (after the webhook and the sweep).
Asks Stripe for the session and, if paid, runs the same finalization as
the webhook. Never blocks the redirect: any failure is logged and the
shopper still lands on the storefront.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode, urlparse

from django.conf import settings
from django.shortcuts import redirect
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from payments.services.stripe_gateway import get_gateway
from payments.services.webhook_processor import finalize_checkout_session
from sales.models import Order
from sales.services.order_finalization import SOURCE_RETURN

logger = logging.getLogger(__name__)


def _safe_frontend_base() -> str:
    base = (getattr(settings, "FRONTEND_BASE_URL", "") or "").strip()
    parsed = urlparse(base)
    if not parsed.scheme or not parsed.netloc:
        logger.warning("Invalid FRONTEND_BASE_URL detected")
        return "http://localhost:5173"
    return base.rstrip("/")


def _store_base(order) -> str:
    domain = (getattr(getattr(order, "store", None), "domain", "") or "").strip()
    return domain.rstrip("/") if domain else _safe_frontend_base()


class StripeReturnView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, *args, **kwargs):
        session_id = (request.query_params.get("session_id") or "").strip()

        if not session_id.startswith("cs_"):
            logger.warning("Return without a checkout session id")
            return redirect(_safe_frontend_base() + "/cart")

        order_id = None
        try:
            gateway = get_gateway()
            existing = Order.objects.filter(payment_reference=session_id).select_related("store").first()
            session = gateway.retrieve_checkout_session(
                session_id,
                stripe_account=(existing.store.stripe_account_id or None) if existing else None,
            )
            result = finalize_checkout_session(
                session=session,
                gateway=gateway,
                source=SOURCE_RETURN,
                stripe_account=(existing.store.stripe_account_id or None) if existing else None,
            )
            order_id = result.order_id or None
        except Exception:
            logger.exception("Return finalization failed", extra={"payment_reference": session_id})

        order = (
            Order.objects.filter(id=order_id).select_related("store").first()
            if order_id
            else Order.objects.filter(payment_reference=session_id).select_related("store").first()
        )

        if order is None:
            query = urlencode({"session_id": session_id, "status": "processing"})
            return redirect(f"{_safe_frontend_base()}/order-success?{query}")

        logger.info(
            "Return redirecting to storefront",
            extra={"payment_reference": session_id, "order_id": str(order.id), "status": order.status},
        )
        return redirect(f"{_store_base(order)}/order/{order.id}")
