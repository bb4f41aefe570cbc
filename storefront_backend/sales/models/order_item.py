# sales/models/order_item.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class OrderItem(models.Model):
    """
    Line item for Order.

    Immutable snapshot:
    - product name/sku, unit price (options folded in) and the selected
      options are captured at creation and never recomputed
    - created only inside the parent Order's transaction
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "sales.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )

    # Snapshot survives product deletion
    product = models.ForeignKey(
        "products.Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    product_name = models.CharField(max_length=255)
    product_sku = models.CharField(max_length=128, blank=True, default="")

    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Product price + selected option prices",
    )
    total_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="quantity * unit_price (server computed)",
    )

    selected_options = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["order"], name="sales_orderitem_order_idx"),
            models.Index(fields=["product"], name="sales_orderitem_product_idx"),
        ]

    def clean(self):
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError("quantity must be >= 1")

        if self.unit_price is None or Decimal(self.unit_price) < Decimal("0.00"):
            raise ValidationError("unit_price must be >= 0")

        expected = (Decimal(self.quantity) * Decimal(self.unit_price)).quantize(
            Decimal("0.01")
        )
        self.total_price = expected

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Order items are immutable once created.")
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"
