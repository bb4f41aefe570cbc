# sales/serializers/order.py

"""
ORDER SERIALIZERS (READ + STAFF COMMANDS)

Orders are never written through serializers: money and status are owned by
the pricing engine and the lifecycle services.
"""

from __future__ import annotations

from rest_framework import serializers

from sales.models import Invoice, Order, OrderItem, Shipment


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product",
            "product_name",
            "product_sku",
            "quantity",
            "unit_price",
            "total_price",
            "selected_options",
        ]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = ["id", "invoice_number", "email_status", "sent_at", "created_at"]
        read_only_fields = fields


class ShipmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Shipment
        fields = [
            "id",
            "shipment_number",
            "carrier",
            "tracking_number",
            "tracking_url",
            "estimated_delivery_date",
            "email_status",
            "sent_at",
            "created_at",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "store",
            "status",
            "payment_status",
            "payment_provider",
            "payment_flow",
            "payment_reference",
            "customer_email",
            "customer_name",
            "total_amount",
            "currency",
            "confirmation_email_sent_at",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class OrderDetailSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    invoices = InvoiceSerializer(many=True, read_only=True)
    shipments = ShipmentSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "store",
            "status",
            "payment_status",
            "payment_provider",
            "payment_flow",
            "payment_reference",
            "payment_method",
            "shipping_method",
            "coupon_code",
            "subtotal_amount",
            "discount_amount",
            "tax_amount",
            "shipping_amount",
            "payment_fee_amount",
            "total_amount",
            "currency",
            "customer",
            "customer_email",
            "customer_name",
            "customer_phone",
            "shipping_address",
            "billing_address",
            "delivery_instructions",
            "tracking_number",
            "confirmation_email_sent_at",
            "paid_at",
            "shipped_at",
            "created_at",
            "updated_at",
            "items",
            "invoices",
            "shipments",
        ]
        read_only_fields = fields


class PublicOrderStatusSerializer(serializers.ModelSerializer):
    """
    Storefront polling after checkout. No customer PII beyond the name.
    """

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "payment_status",
            "subtotal_amount",
            "discount_amount",
            "tax_amount",
            "shipping_amount",
            "payment_fee_amount",
            "total_amount",
            "currency",
            "customer_name",
            "paid_at",
            "created_at",
            "items",
        ]
        read_only_fields = fields


class SendShipmentSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    tracking_url = serializers.URLField(required=False, allow_blank=True, default="")
    carrier = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    estimated_delivery_date = serializers.DateField(required=False, allow_null=True, default=None)


class NotificationJobAckSerializer(serializers.Serializer):
    detail = serializers.CharField()
    job_id = serializers.UUIDField()
