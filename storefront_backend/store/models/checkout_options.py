# store/models/checkout_options.py

"""
Store-configured checkout options.

- PaymentMethod decides the payment *flow* (online gateway vs offline)
- ShippingMethod prices delivery
- Coupon prices discounts

Orders snapshot the codes + the resolved flow/provider at creation time,
so renaming or deleting an option later never changes an existing order.
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class PaymentMethod(models.Model):
    FLOW_ONLINE = "online"
    FLOW_OFFLINE = "offline"

    FLOW_CHOICES = [
        (FLOW_ONLINE, "Online (gateway confirmed)"),
        (FLOW_OFFLINE, "Offline (paid on placement)"),
    ]

    PROVIDER_STRIPE = "stripe"
    PROVIDER_BANK_TRANSFER = "bank_transfer"
    PROVIDER_CASH_ON_DELIVERY = "cash_on_delivery"

    PROVIDER_CHOICES = [
        (PROVIDER_STRIPE, "Stripe"),
        (PROVIDER_BANK_TRANSFER, "Bank transfer"),
        (PROVIDER_CASH_ON_DELIVERY, "Cash on delivery"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.CASCADE,
        related_name="payment_methods",
    )

    code = models.CharField(max_length=64)
    name = models.CharField(max_length=255)

    provider = models.CharField(
        max_length=32, choices=PROVIDER_CHOICES, default=PROVIDER_STRIPE
    )
    payment_flow = models.CharField(
        max_length=16, choices=FLOW_CHOICES, default=FLOW_ONLINE
    )

    fee_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["store", "code"],
                name="uniq_payment_method_code_per_store",
            ),
        ]

    @property
    def is_online(self) -> bool:
        return self.payment_flow == self.FLOW_ONLINE

    def __str__(self):
        return f"{self.name} ({self.payment_flow})"


class ShippingMethod(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.CASCADE,
        related_name="shipping_methods",
    )

    code = models.CharField(max_length=64)
    name = models.CharField(max_length=255)

    flat_rate = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    free_shipping_min_order = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Orders with subtotal >= this amount ship free.",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["store", "code"],
                name="uniq_shipping_method_code_per_store",
            ),
        ]

    def __str__(self):
        return self.name


class Coupon(models.Model):
    TYPE_PERCENTAGE = "percentage"
    TYPE_FIXED = "fixed"

    TYPE_CHOICES = [
        (TYPE_PERCENTAGE, "Percentage"),
        (TYPE_FIXED, "Fixed amount"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.CASCADE,
        related_name="coupons",
    )

    code = models.CharField(max_length=64)
    discount_type = models.CharField(
        max_length=16, choices=TYPE_CHOICES, default=TYPE_PERCENTAGE
    )
    discount_value = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    min_purchase_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]
        constraints = [
            models.UniqueConstraint(
                fields=["store", "code"],
                name="uniq_coupon_code_per_store",
            ),
        ]

    def is_valid_at(self, when=None) -> bool:
        when = when or timezone.now()
        if not self.is_active:
            return False
        if self.valid_from and when < self.valid_from:
            return False
        if self.valid_until and when > self.valid_until:
            return False
        return True

    def __str__(self):
        return self.code
