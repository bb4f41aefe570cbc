# sales/api/viewsets/order.py

"""
======================================================
PATH: sales/api/viewsets/order.py
======================================================
ORDER VIEWSET (STAFF)

Purpose:
- Order history for the admin UI (list + retrieve, filterable)
- Explicit staff actions that complement automated finalization:
    POST /api/sales/orders/<id>/resend-confirmation/
    POST /api/sales/orders/<id>/send-invoice/
    POST /api/sales/orders/<id>/send-shipment/

Security:
- IsAdminUser (JWT)

Rules:
- All three actions require a paid order (409 otherwise)
- resend-confirmation stamps the claim flag if it was never set, so the
  automated paths do not send a second copy afterwards
======================================================
"""

from __future__ import annotations

import logging

from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from sales.models import Order
from sales.serializers import (
    InvoiceSerializer,
    OrderDetailSerializer,
    OrderListSerializer,
    SendShipmentSerializer,
    ShipmentSerializer,
)
from sales.services.exceptions import InvalidOrderTransitionError
from sales.services.order_notifications import (
    issue_invoice,
    issue_shipment,
    resend_order_confirmation,
)

logger = logging.getLogger(__name__)


class OrderFilter(filters.FilterSet):
    created_from = filters.DateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_to = filters.DateTimeFilter(field_name="created_at", lookup_expr="lt")

    class Meta:
        model = Order
        fields = ["status", "payment_status", "store", "payment_provider", "payment_flow"]


class OrderViewSet(viewsets.ReadOnlyModelViewSet):
    permission_classes = [IsAdminUser]
    filter_backends = [filters.DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_email", "customer_name", "payment_reference"]
    ordering_fields = ["created_at", "total_amount", "paid_at"]
    ordering = ["-created_at"]

    def get_queryset(self):
        qs = Order.objects.select_related("store")
        if self.action != "list":
            qs = qs.prefetch_related("items", "invoices", "shipments")
        return qs

    def get_serializer_class(self):
        if self.action == "list":
            return OrderListSerializer
        return OrderDetailSerializer

    @extend_schema(
        tags=["Sales"],
        request=None,
        responses={
            202: OpenApiResponse(description="Confirmation email queued"),
            409: OpenApiResponse(description="Order is not paid"),
        },
    )
    @action(detail=True, methods=["post"], url_path="resend-confirmation")
    def resend_confirmation(self, request, pk=None):
        order = self.get_object()
        try:
            job = resend_order_confirmation(order=order)
        except InvalidOrderTransitionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        logger.info(
            "Staff resent order confirmation",
            extra={"order_id": str(order.id), "user_id": getattr(request.user, "pk", None)},
        )
        return Response(
            {"detail": "Confirmation email queued", "job_id": str(job.id)},
            status=status.HTTP_202_ACCEPTED,
        )

    @extend_schema(
        tags=["Sales"],
        request=None,
        responses={
            202: InvoiceSerializer,
            409: OpenApiResponse(description="Order is not paid"),
        },
    )
    @action(detail=True, methods=["post"], url_path="send-invoice")
    def send_invoice(self, request, pk=None):
        order = self.get_object()
        try:
            invoice = issue_invoice(order=order)
        except InvalidOrderTransitionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(InvoiceSerializer(invoice).data, status=status.HTTP_202_ACCEPTED)

    @extend_schema(
        tags=["Sales"],
        request=SendShipmentSerializer,
        responses={
            202: ShipmentSerializer,
            409: OpenApiResponse(description="Order is not paid or cannot be shipped"),
        },
    )
    @action(detail=True, methods=["post"], url_path="send-shipment")
    def send_shipment(self, request, pk=None):
        order = self.get_object()

        s = SendShipmentSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            shipment = issue_shipment(order=order, **s.validated_data)
        except InvalidOrderTransitionError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(ShipmentSerializer(shipment).data, status=status.HTTP_202_ACCEPTED)
