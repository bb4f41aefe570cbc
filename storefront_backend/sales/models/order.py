# sales/models/order.py

import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone

from store.models import Customer, Store


def generate_order_number(now=None) -> str:
    prefix = (now or timezone.now()).strftime("ORD%Y%m%d")
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


class Order(models.Model):
    """
    One customer purchase attempt.

    Key rules:
    - payment_reference (gateway session / intent id) is the idempotency key.
      It is set once at creation and is unique across all orders.
    - Money fields are server computed:
        total = subtotal + tax + shipping + fee - discount
    - confirmation_email_sent_at is a CLAIM FLAG, not an audit field:
      only the caller whose conditional update stamps it may send the email.
    - status/payment_status change ONLY through conditional updates
      in sales.services.order_finalization / order_lifecycle.
    - payment_provider / payment_flow are snapshots of the PaymentMethod at
      creation; later stages never re-resolve the method by code.
    """

    STATUS_PENDING = "pending"
    STATUS_PROCESSING = "processing"
    STATUS_SHIPPED = "shipped"
    STATUS_DELIVERED = "delivered"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    PAYMENT_PENDING = "pending"
    PAYMENT_PAID = "paid"
    PAYMENT_REFUNDED = "refunded"

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_REFUNDED, "Refunded"),
    ]

    FLOW_ONLINE = "online"
    FLOW_OFFLINE = "offline"

    FLOW_CHOICES = [
        (FLOW_ONLINE, "Online"),
        (FLOW_OFFLINE, "Offline"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        Store,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    order_number = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated public order number",
    )

    status = models.CharField(
        max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING
    )
    payment_status = models.CharField(
        max_length=32, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING
    )

    payment_reference = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway session / intent id. Unique idempotency key (null for offline orders).",
    )
    payment_provider = models.CharField(max_length=32, blank=True, default="")
    payment_flow = models.CharField(
        max_length=16, choices=FLOW_CHOICES, default=FLOW_ONLINE
    )

    # Codes as selected at checkout
    payment_method = models.CharField(max_length=64, blank=True, default="")
    shipping_method = models.CharField(max_length=64, blank=True, default="")
    coupon_code = models.CharField(max_length=64, blank=True, default="")

    # Money fields (server authoritative)
    subtotal_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    tax_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    shipping_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    payment_fee_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    discount_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    currency = models.CharField(max_length=3, default="USD")

    # Customer identity (customer FK is NULL for guests)
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_email = models.EmailField(blank=True, default="")
    customer_name = models.CharField(max_length=200, blank=True, default="")
    customer_phone = models.CharField(max_length=40, blank=True, default="")

    shipping_address = models.JSONField(default=dict, blank=True)
    billing_address = models.JSONField(default=dict, blank=True)
    delivery_instructions = models.TextField(blank=True, default="")

    tracking_number = models.CharField(max_length=128, blank=True, default="")

    confirmation_email_sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="sales_order_created_idx"),
            models.Index(
                fields=["status", "payment_status"], name="sales_order_status_idx"
            ),
            models.Index(
                fields=["store", "created_at"], name="sales_order_store_created_idx"
            ),
            models.Index(
                fields=["store", "status"], name="sales_order_store_status_idx"
            ),
        ]

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = generate_order_number()

        if self.payment_status == self.PAYMENT_PAID and not self.paid_at:
            self.paid_at = timezone.now()

        super().save(*args, **kwargs)

    @property
    def is_online(self) -> bool:
        return self.payment_flow == self.FLOW_ONLINE

    @property
    def computed_total(self) -> Decimal:
        return (
            Decimal(self.subtotal_amount)
            + Decimal(self.tax_amount)
            + Decimal(self.shipping_amount)
            + Decimal(self.payment_fee_amount)
            - Decimal(self.discount_amount)
        ).quantize(Decimal("0.01"))

    def __str__(self):
        return f"{self.order_number} | {self.total_amount} | {self.status}/{self.payment_status}"
