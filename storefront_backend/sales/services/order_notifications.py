# sales/services/order_notifications.py

"""
ORDER NOTIFICATIONS + FULFILLMENT SIDE EFFECTS

Purpose:
- Queue the customer emails tied to an order (confirmation, invoice, shipment).
- Create the fulfillment documents that go with them (Invoice, Shipment).

Hard rules:
- Emails are queued through the notification outbox, never sent inline.
- The confirmation email is queued ONLY by the caller that won the claim
  (see send_order_confirmation); staff resend is the single explicit bypass.
- Store-gated side effects (auto_invoice_enabled / auto_ship_enabled) are
  best-effort: failures are logged with order context and never propagate.
  Each runs in its own savepoint so a failure cannot poison the caller's
  transaction.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from notifications.models import EmailTemplate
from notifications.services.dispatcher import get_dispatcher
from notifications.services.variables import (
    build_invoice_variables,
    build_order_success_variables,
    build_shipment_variables,
)
from sales.models import Invoice, Order, Shipment
from sales.services.order_lifecycle import (
    claim_confirmation_email,
    ensure_paid,
    ensure_shippable,
    mark_order_shipped,
)

logger = logging.getLogger(__name__)


def _base_url() -> str:
    return getattr(settings, "FRONTEND_BASE_URL", "") or ""


def _order_context(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "payment_reference": order.payment_reference or "",
    }


def _items(order: Order) -> list:
    return list(order.items.all())


# =====================================================
# CONFIRMATION (claim-and-send)
# =====================================================


def queue_order_confirmation(*, order: Order, dispatcher=None, now=None):
    now = now or timezone.now()
    dispatcher = dispatcher or get_dispatcher()
    return dispatcher.enqueue(
        store_id=order.store_id,
        template_identifier=EmailTemplate.ORDER_SUCCESS,
        recipient_email=order.customer_email,
        variables=build_order_success_variables(
            order=order,
            items=_items(order),
            store=order.store,
            now=now,
            base_url=_base_url(),
        ),
        context=_order_context(order),
    )


def send_order_confirmation(*, order: Order, dispatcher=None, now=None) -> bool:
    """
    Claim-and-send.

    Returns True only for the single caller whose conditional UPDATE stamped
    confirmation_email_sent_at. Everyone else gets False and does nothing.

    Claim + enqueue share one savepoint: if queuing fails the claim is
    released, so a later caller can still win it.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            if not claim_confirmation_email(order_id=order.id, now=now):
                logger.info(
                    "Confirmation already claimed; skipping",
                    extra=_order_context(order),
                )
                return False

            queue_order_confirmation(order=order, dispatcher=dispatcher, now=now)
    except Exception:
        logger.exception(
            "Failed to queue order confirmation",
            extra=_order_context(order),
        )
        return False

    order.confirmation_email_sent_at = now
    logger.info("Order confirmation claimed and queued", extra=_order_context(order))
    return True


def resend_order_confirmation(*, order: Order, dispatcher=None, now=None):
    """
    Explicit staff resend. Stamps the claim flag if unset (so no automated
    path sends again), then always queues.
    """
    now = now or timezone.now()
    ensure_paid(order, action="resend its confirmation")

    with transaction.atomic():
        claim_confirmation_email(order_id=order.id, now=now)
        job = queue_order_confirmation(order=order, dispatcher=dispatcher, now=now)

    order.refresh_from_db(fields=["confirmation_email_sent_at"])
    logger.info("Order confirmation resent by staff", extra=_order_context(order))
    return job


# =====================================================
# FULFILLMENT DOCUMENTS
# =====================================================


def issue_invoice(*, order: Order, dispatcher=None, now=None) -> Invoice:
    now = now or timezone.now()
    ensure_paid(order, action="be invoiced")
    dispatcher = dispatcher or get_dispatcher()

    with transaction.atomic():
        invoice = Invoice.objects.filter(order=order).first()
        if invoice is None:
            invoice = Invoice.objects.create(order=order)

        dispatcher.enqueue(
            store_id=order.store_id,
            template_identifier=EmailTemplate.INVOICE,
            recipient_email=order.customer_email,
            variables=build_invoice_variables(
                order=order,
                items=_items(order),
                invoice=invoice,
                store=order.store,
                now=now,
                base_url=_base_url(),
            ),
            context={**_order_context(order), "invoice_number": invoice.invoice_number},
        )

        invoice.email_status = Invoice.EMAIL_QUEUED
        invoice.sent_at = now
        invoice.save(update_fields=["email_status", "sent_at"])

    logger.info(
        "Invoice issued",
        extra={**_order_context(order), "invoice_number": invoice.invoice_number},
    )
    return invoice


def issue_shipment(
    *,
    order: Order,
    dispatcher=None,
    tracking_number: str = "",
    tracking_url: str = "",
    carrier: str = "",
    estimated_delivery_date=None,
    now=None,
) -> Shipment:
    now = now or timezone.now()
    ensure_shippable(order)
    dispatcher = dispatcher or get_dispatcher()

    with transaction.atomic():
        shipment = Shipment.objects.filter(order=order).first()
        if shipment is None:
            shipment = Shipment(order=order)

        shipment.tracking_number = tracking_number or shipment.tracking_number or order.tracking_number
        shipment.tracking_url = tracking_url or shipment.tracking_url
        shipment.carrier = carrier or shipment.carrier
        shipment.estimated_delivery_date = estimated_delivery_date or shipment.estimated_delivery_date
        shipment.save()

        shipped_now = mark_order_shipped(
            order_id=order.id, tracking_number=shipment.tracking_number, now=now
        )
        if not shipped_now and tracking_number:
            # Already shipped: a staff resend may still correct tracking info.
            Order.objects.filter(id=order.id).update(tracking_number=tracking_number, updated_at=now)
        order.refresh_from_db()

        dispatcher.enqueue(
            store_id=order.store_id,
            template_identifier=EmailTemplate.SHIPMENT,
            recipient_email=order.customer_email,
            variables=build_shipment_variables(
                order=order,
                items=_items(order),
                shipment=shipment,
                store=order.store,
                now=now,
                base_url=_base_url(),
            ),
            context={**_order_context(order), "shipment_number": shipment.shipment_number},
        )

        shipment.email_status = Shipment.EMAIL_QUEUED
        shipment.sent_at = now
        shipment.save(update_fields=["email_status", "sent_at"])

    logger.info(
        "Shipment issued",
        extra={**_order_context(order), "shipment_number": shipment.shipment_number},
    )
    return shipment


# =====================================================
# STORE-GATED SIDE EFFECTS (best-effort)
# =====================================================


def run_post_confirmation_side_effects(*, order: Order, dispatcher=None, now=None) -> None:
    store = order.store

    if store.sales_flag("auto_invoice_enabled"):
        try:
            issue_invoice(order=order, dispatcher=dispatcher, now=now)
        except Exception:
            logger.exception("Auto-invoice failed", extra=_order_context(order))

    if store.sales_flag("auto_ship_enabled"):
        try:
            issue_shipment(order=order, dispatcher=dispatcher, now=now)
        except Exception:
            logger.exception("Auto-ship failed", extra=_order_context(order))
