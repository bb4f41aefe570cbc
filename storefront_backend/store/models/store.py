# store/models/store.py

import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q


class Store(models.Model):
    """
    Represents a storefront (tenant) selling online.

    Guarantees:
    - Stores are stable master-data
    - code is optional, but if provided it must be unique
    - settings["sales_settings"] holds the store-level fulfillment flags
      that gate best-effort side effects after a payment is confirmed
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)

    # Optional, but if provided must be unique
    code = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Unique store code (optional). If set, must be unique.",
        db_index=True,
    )

    domain = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Public storefront base URL, e.g. https://shop.example.com",
    )

    currency = models.CharField(max_length=3, default="USD")

    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Flat tax rate in percent applied to (subtotal - discount).",
    )

    # Stripe Connect account (blank = platform account)
    stripe_account_id = models.CharField(max_length=255, blank=True, default="")

    settings = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["code"],
                condition=Q(code__isnull=False) & ~Q(code=""),
                name="uniq_store_code_when_present",
            ),
        ]

    def __str__(self):
        c = (self.code or "").strip()
        if c:
            return f"{self.name} ({c})"
        return self.name

    @property
    def sales_settings(self) -> dict:
        raw = (self.settings or {}).get("sales_settings") or {}
        return raw if isinstance(raw, dict) else {}

    def sales_flag(self, name: str) -> bool:
        return bool(self.sales_settings.get(name, False))
