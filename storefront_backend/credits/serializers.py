# credits/serializers.py

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from credits.models import CreditTransaction


class CreditPurchaseSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("1.00"))
    credits_amount = serializers.IntegerField(min_value=1)


class CreditTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditTransaction
        fields = [
            "id",
            "store",
            "amount",
            "currency",
            "credits_amount",
            "status",
            "stripe_payment_intent_id",
            "failure_reason",
            "completed_at",
            "created_at",
        ]
        read_only_fields = fields


class CreditPurchaseResponseSerializer(serializers.Serializer):
    transaction = CreditTransactionSerializer()
    client_secret = serializers.CharField()
    publishable_key = serializers.CharField(allow_blank=True)


class CreditBalanceSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    balance = serializers.IntegerField()
