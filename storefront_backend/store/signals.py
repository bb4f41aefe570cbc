# store/signals.py
"""
Customer lifecycle hooks.

- New Customer + store flag welcome_email_enabled -> queue signup_email
- Best-effort: a notification failure never blocks customer creation
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.utils import timezone

from notifications.models import EmailTemplate
from notifications.services.dispatcher import get_dispatcher
from notifications.services.variables import build_signup_variables
from store.models import Customer

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Customer, dispatch_uid="store.customer_welcome_email")
def queue_welcome_email(sender, instance: Customer, created: bool, raw: bool = False, **kwargs):
    if not created or raw:
        return

    store = instance.store
    if not store.sales_flag("welcome_email_enabled"):
        return

    try:
        get_dispatcher().enqueue(
            store_id=store.id,
            template_identifier=EmailTemplate.SIGNUP,
            recipient_email=instance.email,
            variables=build_signup_variables(
                customer=instance,
                store=store,
                now=timezone.now(),
                base_url=getattr(settings, "FRONTEND_BASE_URL", ""),
            ),
            context={"customer_id": str(instance.id)},
        )
    except Exception:
        logger.exception(
            "Failed to queue welcome email",
            extra={"customer_id": str(instance.id), "store_id": str(store.id)},
        )
