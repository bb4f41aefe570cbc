"""
ORDER LIFECYCLE DOMAIN RULES

This module owns EVERY status change on an Order row.

DESIGN PRINCIPLES:
- Each transition is ONE conditional UPDATE keyed on the pre-transition
  state (compare-and-swap). Never read-then-write.
- Return value is "did I win": True only for the caller whose UPDATE
  affected a row. Losers do nothing further.
- No side effects beyond the row itself (no emails, no documents).

Allowed transitions:
    pending/pending     -> processing/paid     (mark_order_paid)
    pending/pending     -> cancelled/pending   (cancel_pending_order)
    processing/paid     -> shipped/paid        (mark_order_shipped)
    claim flag NULL     -> now                 (claim_confirmation_email)
"""

from __future__ import annotations

from django.utils import timezone

from sales.models import Order
from sales.services.exceptions import InvalidOrderTransitionError

# ============================================================
# CONDITIONAL TRANSITIONS
# ============================================================


def mark_order_paid(*, order_id, now=None) -> bool:
    now = now or timezone.now()
    updated = Order.objects.filter(
        id=order_id,
        status=Order.STATUS_PENDING,
        payment_status=Order.PAYMENT_PENDING,
    ).update(
        status=Order.STATUS_PROCESSING,
        payment_status=Order.PAYMENT_PAID,
        paid_at=now,
        updated_at=now,
    )
    return updated > 0


def claim_confirmation_email(*, order_id, now=None) -> bool:
    now = now or timezone.now()
    updated = Order.objects.filter(
        id=order_id,
        confirmation_email_sent_at__isnull=True,
    ).update(confirmation_email_sent_at=now, updated_at=now)
    return updated > 0


def cancel_pending_order(*, order_id, now=None) -> bool:
    now = now or timezone.now()
    updated = Order.objects.filter(
        id=order_id,
        status=Order.STATUS_PENDING,
        payment_status=Order.PAYMENT_PENDING,
    ).update(status=Order.STATUS_CANCELLED, updated_at=now)
    return updated > 0


def mark_order_shipped(*, order_id, tracking_number: str = "", now=None) -> bool:
    now = now or timezone.now()
    fields = {
        "status": Order.STATUS_SHIPPED,
        "shipped_at": now,
        "updated_at": now,
    }
    if tracking_number:
        fields["tracking_number"] = tracking_number

    updated = Order.objects.filter(
        id=order_id,
        status=Order.STATUS_PROCESSING,
        payment_status=Order.PAYMENT_PAID,
    ).update(**fields)
    return updated > 0


# ============================================================
# GUARDS FOR STAFF ACTIONS
# ============================================================


def ensure_paid(order: Order, *, action: str) -> None:
    if order.payment_status != Order.PAYMENT_PAID:
        raise InvalidOrderTransitionError(
            f"Order {order.order_number} cannot {action}: payment status is "
            f"'{order.payment_status}'"
        )


def ensure_shippable(order: Order) -> None:
    ensure_paid(order, action="ship")
    if order.status not in {Order.STATUS_PROCESSING, Order.STATUS_SHIPPED}:
        raise InvalidOrderTransitionError(
            f"Order {order.order_number} cannot ship from status '{order.status}'"
        )
