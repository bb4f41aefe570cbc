# sales/services/order_finalization.py

"""
ORDER FINALIZATION (SHARED BY ALL CONFIRMATION SIGNALS)

Purpose:
- One function, confirm_order_payment(), used by every path that observes
  a payment: the Stripe webhook, the browser return, the reconciliation
  sweep and offline checkouts.

Guarantees:
- pending -> processing/paid happens at most once (conditional update)
- the confirmation email is queued at most once (claim flag)
- store-gated side effects run only for the claim winner, so exactly once
- safe to call any number of times, concurrently, in any order

Note:
- The claim is attempted whenever the order is paid, not only by the caller
  that flipped the status. A process that crashed between the two steps is
  therefore healed by the next signal, and the claim still guarantees
  a single email.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.utils import timezone

from sales.models import Order
from sales.services.order_lifecycle import cancel_pending_order, mark_order_paid
from sales.services.order_notifications import (
    run_post_confirmation_side_effects,
    send_order_confirmation,
)

logger = logging.getLogger(__name__)

SOURCE_WEBHOOK = "webhook"
SOURCE_RETURN = "browser_return"
SOURCE_SWEEP = "reconciliation"
SOURCE_OFFLINE = "offline_checkout"


@dataclass(frozen=True)
class ConfirmationOutcome:
    order_id: str
    transitioned: bool
    email_claimed: bool
    status: str
    payment_status: str

    @property
    def is_paid(self) -> bool:
        return self.payment_status == Order.PAYMENT_PAID


def confirm_order_payment(*, order: Order, source: str, dispatcher=None, now=None) -> ConfirmationOutcome:
    now = now or timezone.now()
    ctx = {
        "order_id": str(order.id),
        "payment_reference": order.payment_reference or "",
        "source": source,
    }

    transitioned = mark_order_paid(order_id=order.id, now=now)
    order.refresh_from_db()

    if transitioned:
        logger.info("Order marked paid", extra=ctx)

    if order.payment_status != Order.PAYMENT_PAID:
        logger.warning(
            "Payment confirmed for an order that cannot be marked paid",
            extra={**ctx, "status": order.status, "payment_status": order.payment_status},
        )
        return ConfirmationOutcome(
            order_id=str(order.id),
            transitioned=False,
            email_claimed=False,
            status=order.status,
            payment_status=order.payment_status,
        )

    if not transitioned:
        logger.info("Order already paid; confirmation is a no-op", extra=ctx)

    claimed = send_order_confirmation(order=order, dispatcher=dispatcher, now=now)
    if claimed:
        run_post_confirmation_side_effects(order=order, dispatcher=dispatcher, now=now)
        order.refresh_from_db()

    return ConfirmationOutcome(
        order_id=str(order.id),
        transitioned=transitioned,
        email_claimed=claimed,
        status=order.status,
        payment_status=order.payment_status,
    )


def cancel_expired_order(*, order: Order, now=None) -> bool:
    """Checkout session expired: pending orders only. Paid orders are never touched."""
    cancelled = cancel_pending_order(order_id=order.id, now=now)
    if cancelled:
        logger.info(
            "Pending order cancelled after checkout expiry",
            extra={"order_id": str(order.id), "payment_reference": order.payment_reference or ""},
        )
    else:
        logger.info(
            "Checkout expiry ignored; order is not pending",
            extra={"order_id": str(order.id), "payment_reference": order.payment_reference or ""},
        )
    order.refresh_from_db()
    return cancelled
