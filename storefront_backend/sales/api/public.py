# sales/api/public.py

"""
PUBLIC ORDER STATUS

GET /api/sales/orders/by-reference/<payment_reference>/

Used by the storefront success page to poll until the order is paid.
The payment reference (Stripe session id) is an unguessable bearer value.
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from sales.models import Order
from sales.serializers import PublicOrderStatusSerializer


class PublicPollThrottle(AnonRateThrottle):
    """
    Uses REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']['public_poll'].
    """

    scope = "public_poll"


class OrderByReferenceView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [PublicPollThrottle]

    @extend_schema(
        tags=["Public"],
        responses={
            200: PublicOrderStatusSerializer,
            404: OpenApiResponse(description="Order not found"),
            429: OpenApiResponse(description="Rate limited"),
        },
    )
    def get(self, request, payment_reference: str, *args, **kwargs):
        order = get_object_or_404(
            Order.objects.prefetch_related("items"),
            payment_reference=payment_reference,
        )
        return Response(PublicOrderStatusSerializer(order).data)
