# credits/views/credits.py

"""
CREDITS API (AUTHENTICATED)

- POST /api/credits/purchase/        create PaymentIntent + pending transaction
- GET  /api/credits/balance/?store_id=
- GET  /api/credits/transactions/?store_id=&limit=

Completion happens ONLY through the Stripe webhook.
"""

from __future__ import annotations

import logging
import uuid

from django.http import Http404
from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from credits.models import CreditTransaction
from credits.serializers import (
    CreditBalanceSerializer,
    CreditPurchaseResponseSerializer,
    CreditPurchaseSerializer,
    CreditTransactionSerializer,
)
from credits.services.credit_purchase import create_credit_purchase, get_credit_balance
from credits.services.exceptions import InvalidCreditPricingError
from payments.services.exceptions import GatewayTimeoutError, PaymentGatewayError
from payments.services.stripe_gateway import get_gateway
from store.models import Store

logger = logging.getLogger(__name__)

STORE_ID_PARAM = OpenApiParameter("store_id", str, required=True, description="Store UUID")


def _store_from_query(request) -> Store:
    try:
        store_id = uuid.UUID(str(request.query_params.get("store_id") or ""))
    except ValueError:
        raise Http404("Store not found")
    return get_object_or_404(Store, id=store_id, is_active=True)


class CreditPurchaseView(APIView):
    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser]

    @extend_schema(
        tags=["Credits"],
        request=CreditPurchaseSerializer,
        responses={
            201: CreditPurchaseResponseSerializer,
            400: OpenApiResponse(description="Invalid credit pricing"),
            404: OpenApiResponse(description="Store not found"),
            502: OpenApiResponse(description="Payment provider error"),
            504: OpenApiResponse(description="Payment provider timeout"),
        },
    )
    def post(self, request, *args, **kwargs):
        s = CreditPurchaseSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        store = get_object_or_404(Store, id=data["store_id"], is_active=True)
        gateway = get_gateway()

        try:
            tx, intent = create_credit_purchase(
                user=request.user,
                store=store,
                amount=data["amount"],
                credits_amount=data["credits_amount"],
                gateway=gateway,
            )
        except InvalidCreditPricingError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except GatewayTimeoutError:
            return Response({"detail": "Payment provider unavailable"}, status=status.HTTP_504_GATEWAY_TIMEOUT)
        except PaymentGatewayError:
            logger.exception("Credit purchase intent creation failed", extra={"store_id": str(store.id)})
            return Response({"detail": "Payment provider error"}, status=status.HTTP_502_BAD_GATEWAY)

        return Response(
            {
                "transaction": CreditTransactionSerializer(tx).data,
                "client_secret": intent.get("client_secret") or "",
                "publishable_key": gateway.config.publishable_key,
            },
            status=status.HTTP_201_CREATED,
        )


class CreditBalanceView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Credits"],
        parameters=[STORE_ID_PARAM],
        responses={200: CreditBalanceSerializer, 404: OpenApiResponse(description="Store not found")},
    )
    def get(self, request, *args, **kwargs):
        store = _store_from_query(request)
        balance = get_credit_balance(user=request.user, store=store)
        return Response({"store_id": str(store.id), "balance": balance})


class CreditTransactionListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        tags=["Credits"],
        parameters=[
            STORE_ID_PARAM,
            OpenApiParameter("limit", int, required=False, description="1..200 (default 50)"),
        ],
        responses={200: CreditTransactionSerializer(many=True)},
    )
    def get(self, request, *args, **kwargs):
        store = _store_from_query(request)

        try:
            limit = int(request.query_params.get("limit") or 50)
        except ValueError:
            limit = 0
        if limit < 1 or limit > 200:
            return Response({"detail": "Limit must be between 1 and 200"}, status=status.HTTP_400_BAD_REQUEST)

        qs = CreditTransaction.objects.filter(user=request.user, store=store).order_by("-created_at")[:limit]
        return Response(CreditTransactionSerializer(qs, many=True).data)
