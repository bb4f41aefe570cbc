# payments/views/stripe_webhook.py

"""
STRIPE WEBHOOK

POST /api/payments/stripe/webhook/

Contract with Stripe:
- 200: processed, duplicate/no-op, or ignored event type
- 400: bad signature or malformed payload (Stripe should not retry)
- 500: processing failure; DB work rolled back, Stripe retries

The RAW body is verified. request.data is never touched.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from payments.models import PaymentEvent
from payments.serializers import WebhookAckSerializer
from payments.services.events import parse_event
from payments.services.exceptions import MalformedEventError, WebhookSignatureError
from payments.services.stripe_gateway import get_gateway
from payments.services.webhook_processor import StripeEventProcessor, record_payment_event

logger = logging.getLogger(__name__)


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


def get_event_processor(gateway) -> StripeEventProcessor:
    return StripeEventProcessor(gateway=gateway)


def _audit(event, processing) -> None:
    """Audit failures never change the response Stripe sees."""
    try:
        record_payment_event(event_id=event.id, event_type=event.type, **processing)
    except Exception:
        logger.exception("Failed to record payment event", extra={"event_id": event.id})


class StripeWebhookView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = []
    throttle_classes = [WebhookThrottle]

    @extend_schema(
        tags=["Payments"],
        request=None,
        responses={
            200: WebhookAckSerializer,
            400: OpenApiResponse(description="Invalid signature or payload"),
            500: OpenApiResponse(description="Processing failed; retry"),
        },
        description="Stripe event receiver (signature verified against the raw body).",
    )
    def post(self, request, *args, **kwargs):
        raw_body = request.body or b""
        signature = request.headers.get("Stripe-Signature", "")

        gateway = get_gateway()

        try:
            payload = gateway.verify_event(raw_body, signature)
            event = parse_event(payload)
        except WebhookSignatureError as exc:
            logger.warning("Invalid Stripe signature", extra={"error": str(exc)})
            return Response({"ok": False, "detail": "Invalid signature"}, status=status.HTTP_400_BAD_REQUEST)
        except MalformedEventError as exc:
            logger.warning("Malformed Stripe event", extra={"error": str(exc)})
            return Response({"ok": False, "detail": "Malformed payload"}, status=status.HTTP_400_BAD_REQUEST)

        ctx = {"event_id": event.id, "event_type": event.type, "payment_reference": event.object_id}
        logger.info("Stripe webhook received", extra=ctx)

        try:
            result = get_event_processor(gateway).process(event)
        except Exception as exc:
            logger.exception("Stripe webhook processing failed", extra=ctx)
            _audit(
                event,
                {
                    "result": PaymentEvent.RESULT_FAILED,
                    "payment_reference": event.object_id,
                    "error_message": f"{type(exc).__name__}: {exc}",
                },
            )
            return Response({"ok": False, "detail": "Processing failed"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        _audit(
            event,
            {
                "result": result.result,
                "payment_reference": result.payment_reference or event.object_id,
                "detail": result.detail,
            },
        )
        logger.info("Stripe webhook handled", extra={**ctx, "result": result.result, "detail": result.detail})

        return Response({"ok": True, "result": result.result, "detail": result.detail}, status=status.HTTP_200_OK)
