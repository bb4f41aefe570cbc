# payments/serializers.py

"""
PAYMENTS SERIALIZERS

Transport layer only: request/response shapes.
Prices are never accepted from the client; the pricing engine recomputes them.
"""

from __future__ import annotations

from rest_framework import serializers


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=1000)
    option_ids = serializers.ListField(
        child=serializers.UUIDField(), required=False, default=list
    )


class CheckoutSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    items = CheckoutItemSerializer(many=True, allow_empty=False)

    payment_method = serializers.CharField(max_length=64)
    shipping_method = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    coupon_code = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")

    customer_id = serializers.UUIDField(required=False, allow_null=True)
    customer_email = serializers.EmailField()
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(max_length=40, required=False, allow_blank=True, default="")

    shipping_address = serializers.DictField(required=False, default=dict)
    billing_address = serializers.DictField(required=False, default=dict)
    delivery_instructions = serializers.CharField(
        max_length=1000, required=False, allow_blank=True, default=""
    )


class CheckoutOrderSerializer(serializers.Serializer):
    order_id = serializers.UUIDField(source="id")
    order_number = serializers.CharField()
    status = serializers.CharField()
    payment_status = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()


class CheckoutResponseSerializer(serializers.Serializer):
    provider = serializers.CharField()
    payment_flow = serializers.CharField()
    session_id = serializers.CharField(allow_null=True)
    checkout_url = serializers.URLField(allow_null=True)
    order = CheckoutOrderSerializer(allow_null=True)


class WebhookAckSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    result = serializers.CharField(required=False)
    detail = serializers.CharField(required=False)
