# payments/models/payment_event.py

import uuid

from django.db import models


class PaymentEvent(models.Model):
    """
    Audit row per received gateway event.

    NOT an idempotency mechanism: duplicates are absorbed by the Order /
    CreditTransaction state guards. A redelivered event updates its row.
    """

    RESULT_PROCESSED = "processed"
    RESULT_NOOP = "noop"
    RESULT_IGNORED = "ignored"
    RESULT_FAILED = "failed"

    RESULT_CHOICES = [
        (RESULT_PROCESSED, "Processed"),
        (RESULT_NOOP, "No-op"),
        (RESULT_IGNORED, "Ignored"),
        (RESULT_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    provider = models.CharField(max_length=32, default="stripe")
    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=128, db_index=True)
    payment_reference = models.CharField(max_length=255, blank=True, default="", db_index=True)

    processing_result = models.CharField(max_length=16, choices=RESULT_CHOICES)
    detail = models.CharField(max_length=255, blank=True, default="")
    error_message = models.TextField(blank=True, default="")

    deliveries = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.event_type} {self.event_id} ({self.processing_result})"
