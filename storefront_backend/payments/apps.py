# payments/apps.py

"""
PAYMENTS APP CONFIG

Stripe checkout + payment confirmation:
- Checkout session creation (preliminary order)
- Webhook event processing
- Browser return finalization
- Reconciliation verifiers
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
