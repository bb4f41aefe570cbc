# notifications/models/email_template.py

import uuid

from django.db import models


class EmailTemplate(models.Model):
    """
    Store-scoped transactional email template.

    Rendered with the Django template engine:
    - subject and html_content may use {{ variable }} placeholders
    - text_content is optional; when blank a plain-text body is derived
      from html_content
    """

    ORDER_SUCCESS = "order_success_email"
    INVOICE = "invoice_email"
    SHIPMENT = "shipment_email"
    CREDIT_PURCHASE = "credit_purchase_email"
    SIGNUP = "signup_email"

    IDENTIFIER_CHOICES = [
        (ORDER_SUCCESS, "Order confirmation"),
        (INVOICE, "Invoice"),
        (SHIPMENT, "Shipment"),
        (CREDIT_PURCHASE, "Credit purchase"),
        (SIGNUP, "Welcome / signup"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.CASCADE,
        related_name="email_templates",
    )

    identifier = models.CharField(max_length=64, choices=IDENTIFIER_CHOICES)
    subject = models.CharField(max_length=255)
    html_content = models.TextField()
    text_content = models.TextField(blank=True, default="")

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["identifier"]
        constraints = [
            models.UniqueConstraint(
                fields=["store", "identifier"],
                name="uniq_email_template_per_store",
            ),
        ]

    def __str__(self):
        return f"{self.identifier} ({self.store_id})"
