# payments/views/checkout.py

"""
CHECKOUT (PRELIMINARY ORDER + STRIPE SESSION)

POST /api/payments/checkout/

Online methods:
1) price the cart server-side
2) create the Stripe Checkout session (amounts in minor units)
3) write the pending Order keyed by session.id
   (failure here is logged; the webhook rebuilds the order later)

Offline methods (bank transfer, cash on delivery):
- Order is written processing/paid and confirmed after commit.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.shortcuts import get_object_or_404
from django.urls import reverse
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from payments.config import PaymentSettings
from payments.serializers import (
    CheckoutOrderSerializer,
    CheckoutResponseSerializer,
    CheckoutSerializer,
)
from payments.services.exceptions import GatewayTimeoutError, PaymentGatewayError
from payments.services.line_items import (
    build_checkout_line_items,
    build_discount_coupon_params,
    build_session_metadata,
)
from payments.services.stripe_gateway import get_gateway
from sales.services.exceptions import CheckoutConfigurationError, PricingError
from sales.services.order_materializer import materialize_order
from sales.services.pricing import build_order_quote
from store.models import PaymentMethod, ShippingMethod, Store

logger = logging.getLogger(__name__)


class PublicWriteThrottle(AnonRateThrottle):
    """
    Uses REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['public_write'].
    """

    scope = "public_write"


def _frontend_base() -> str:
    return (getattr(settings, "FRONTEND_BASE_URL", "") or "").rstrip("/")


def _success_url(request, config: PaymentSettings) -> str:
    if config.success_url:
        return config.success_url
    return request.build_absolute_uri(reverse("payments:stripe-return")) + "?session_id={CHECKOUT_SESSION_ID}"


def _cancel_url(store: Store, config: PaymentSettings) -> str:
    if config.cancel_url:
        return config.cancel_url
    base = (store.domain or _frontend_base()).rstrip("/")
    return f"{base}/cart"


class CheckoutView(APIView):
    permission_classes = [AllowAny]
    parser_classes = [JSONParser]
    throttle_classes = [PublicWriteThrottle]

    @extend_schema(
        tags=["Payments"],
        request=CheckoutSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="Validation or pricing error"),
            404: OpenApiResponse(description="Store not found"),
            429: OpenApiResponse(description="Rate limited"),
            502: OpenApiResponse(description="Payment provider error"),
            504: OpenApiResponse(description="Payment provider timeout"),
        },
        description="Price the cart, create a Stripe Checkout session and the pending order.",
    )
    def post(self, request, *args, **kwargs):
        s = CheckoutSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        store = get_object_or_404(Store, id=data["store_id"], is_active=True)

        payment_method = PaymentMethod.objects.filter(
            store=store, code=data["payment_method"], is_active=True
        ).first()
        if payment_method is None:
            return Response({"detail": "Unknown payment method"}, status=status.HTTP_400_BAD_REQUEST)

        shipping_method = None
        if data.get("shipping_method"):
            shipping_method = ShippingMethod.objects.filter(
                store=store, code=data["shipping_method"], is_active=True
            ).first()
            if shipping_method is None:
                return Response({"detail": "Unknown shipping method"}, status=status.HTTP_400_BAD_REQUEST)

        items = [
            {
                "product_id": str(item["product_id"]),
                "quantity": item["quantity"],
                "option_ids": [str(o) for o in item.get("option_ids") or []],
            }
            for item in data["items"]
        ]

        try:
            quote = build_order_quote(
                store=store,
                items=items,
                shipping_method=shipping_method,
                payment_method=payment_method,
                coupon_code=data.get("coupon_code") or None,
            )
        except PricingError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        order_kwargs = dict(
            store=store,
            quote=quote,
            payment_method=payment_method,
            shipping_method=shipping_method,
            customer_id=data.get("customer_id"),
            customer_email=data["customer_email"],
            customer_name=data.get("customer_name") or "",
            customer_phone=data.get("customer_phone") or "",
            shipping_address=data.get("shipping_address") or {},
            billing_address=data.get("billing_address") or {},
            delivery_instructions=data.get("delivery_instructions") or "",
        )

        if not payment_method.is_online:
            try:
                order = materialize_order(**order_kwargs)
            except CheckoutConfigurationError as exc:
                return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

            return Response(
                {
                    "provider": payment_method.provider,
                    "payment_flow": payment_method.payment_flow,
                    "session_id": None,
                    "checkout_url": None,
                    "order": CheckoutOrderSerializer(order).data,
                },
                status=status.HTTP_201_CREATED,
            )

        gateway = get_gateway()
        try:
            session = gateway.create_checkout_session(
                line_items=build_checkout_line_items(quote=quote),
                metadata=build_session_metadata(
                    store=store,
                    payment_method_code=payment_method.code,
                    shipping_method_code=shipping_method.code if shipping_method else "",
                    coupon_code=quote.coupon_code,
                    customer_id=data.get("customer_id"),
                    customer_email=data["customer_email"],
                    customer_name=data.get("customer_name") or "",
                    customer_phone=data.get("customer_phone") or "",
                    shipping_address=data.get("shipping_address") or {},
                    billing_address=data.get("billing_address") or {},
                    delivery_instructions=data.get("delivery_instructions") or "",
                ),
                success_url=_success_url(request, gateway.config),
                cancel_url=_cancel_url(store, gateway.config),
                customer_email=data["customer_email"],
                discount_coupon=build_discount_coupon_params(quote=quote),
                stripe_account=store.stripe_account_id or None,
            )
        except GatewayTimeoutError as exc:
            logger.warning("Checkout session creation timed out", extra={"store_id": str(store.id), "error": str(exc)})
            return Response({"detail": "Payment provider unavailable"}, status=status.HTTP_504_GATEWAY_TIMEOUT)
        except PaymentGatewayError as exc:
            logger.error("Checkout session creation failed", extra={"store_id": str(store.id), "error": str(exc)})
            return Response({"detail": "Payment provider error"}, status=status.HTTP_502_BAD_GATEWAY)

        session_id = session["id"]
        order = None
        try:
            order = materialize_order(payment_reference=session_id, **order_kwargs)
        except Exception:
            # the session exists; the webhook fallback rebuilds the order
            logger.exception(
                "Preliminary order write failed; continuing with session",
                extra={"store_id": str(store.id), "payment_reference": session_id},
            )

        return Response(
            {
                "provider": payment_method.provider,
                "payment_flow": payment_method.payment_flow,
                "session_id": session_id,
                "checkout_url": session.get("url"),
                "order": CheckoutOrderSerializer(order).data if order is not None else None,
            },
            status=status.HTTP_201_CREATED,
        )
