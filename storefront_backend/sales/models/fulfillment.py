# sales/models/fulfillment.py

"""
Fulfillment documents attached to an Order.

- Invoice: issued after payment (auto when store flag auto_invoice_enabled,
  or by staff via send-invoice)
- Shipment: issued when the order ships (auto_ship_enabled or send-shipment)

email_status tracks the notification outcome for operators; the email itself
goes through the notification outbox.
"""

import uuid

from django.db import models
from django.utils import timezone


def _document_number(prefix: str) -> str:
    stamp = timezone.now().strftime("%Y%m%d")
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:6].upper()}"


class Invoice(models.Model):
    EMAIL_PENDING = "pending"
    EMAIL_QUEUED = "queued"
    EMAIL_FAILED = "failed"

    EMAIL_STATUS_CHOICES = [
        (EMAIL_PENDING, "Pending"),
        (EMAIL_QUEUED, "Queued"),
        (EMAIL_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "sales.Order",
        on_delete=models.CASCADE,
        related_name="invoices",
    )

    invoice_number = models.CharField(max_length=64, unique=True, blank=True)

    email_status = models.CharField(
        max_length=16, choices=EMAIL_STATUS_CHOICES, default=EMAIL_PENDING
    )
    sent_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        if not self.invoice_number:
            self.invoice_number = _document_number("INV")
        super().save(*args, **kwargs)

    def __str__(self):
        return self.invoice_number


class Shipment(models.Model):
    EMAIL_PENDING = "pending"
    EMAIL_QUEUED = "queued"
    EMAIL_FAILED = "failed"

    EMAIL_STATUS_CHOICES = [
        (EMAIL_PENDING, "Pending"),
        (EMAIL_QUEUED, "Queued"),
        (EMAIL_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "sales.Order",
        on_delete=models.CASCADE,
        related_name="shipments",
    )

    shipment_number = models.CharField(max_length=64, unique=True, blank=True)

    carrier = models.CharField(max_length=120, blank=True, default="")
    tracking_number = models.CharField(max_length=128, blank=True, default="")
    tracking_url = models.URLField(blank=True, default="")
    estimated_delivery_date = models.DateField(null=True, blank=True)

    email_status = models.CharField(
        max_length=16, choices=EMAIL_STATUS_CHOICES, default=EMAIL_PENDING
    )
    sent_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def save(self, *args, **kwargs):
        if not self.shipment_number:
            self.shipment_number = _document_number("SHIP")
        super().save(*args, **kwargs)

    def __str__(self):
        return self.shipment_number
