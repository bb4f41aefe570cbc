# payments/services/webhook_processor.py

"""
STRIPE EVENT PROCESSOR

Turns one verified + schema-validated GatewayEvent into state changes.

Rules:
- Every handler is safe to run any number of times (at-least-once delivery).
  Idempotency comes from conditional UPDATEs on Order / CreditTransaction,
  never from remembering event ids.
- DB work for one event runs in ONE transaction: any exception rolls it
  back and propagates, so the view answers 500 and Stripe retries.
- Gateway reads (line items) happen BEFORE the transaction opens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F

from credits.services.credit_purchase import (
    PURPOSE_CREDIT_PURCHASE,
    complete_credit_purchase,
    fail_credit_purchase,
)
from credits.services.exceptions import CreditPurchaseError
from payments.models import PaymentEvent
from payments.services.events import (
    EVENT_INTENT_FAILED,
    EVENT_INTENT_SUCCEEDED,
    EVENT_SESSION_ASYNC_FAILED,
    EVENT_SESSION_ASYNC_SUCCEEDED,
    EVENT_SESSION_COMPLETED,
    EVENT_SESSION_EXPIRED,
    PAID_SESSION_STATUSES,
    GatewayEvent,
)
from sales.models import Order
from sales.services.order_finalization import (
    SOURCE_WEBHOOK,
    cancel_expired_order,
    confirm_order_payment,
)
from sales.services.order_lifecycle import cancel_pending_order
from sales.services.order_reconstruction import reconstruct_order_from_session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingResult:
    result: str
    detail: str = ""
    payment_reference: str = ""
    order_id: str = ""


class StripeEventProcessor:
    def __init__(self, *, gateway, dispatcher=None):
        self.gateway = gateway
        self.dispatcher = dispatcher

        self._handlers = {
            EVENT_SESSION_COMPLETED: self._handle_session_paid,
            EVENT_SESSION_ASYNC_SUCCEEDED: self._handle_session_paid,
            EVENT_SESSION_ASYNC_FAILED: self._handle_session_failed,
            EVENT_SESSION_EXPIRED: self._handle_session_expired,
            EVENT_INTENT_SUCCEEDED: self._handle_intent_succeeded,
            EVENT_INTENT_FAILED: self._handle_intent_failed,
        }

    def process(self, event: GatewayEvent) -> ProcessingResult:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info(
                "Ignoring unhandled Stripe event",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return ProcessingResult(result=PaymentEvent.RESULT_IGNORED, detail="unhandled_event_type")

        return handler(event)

    # -------------------------------------------------
    # Checkout sessions
    # -------------------------------------------------
    def _handle_session_paid(self, event: GatewayEvent) -> ProcessingResult:
        return finalize_checkout_session(
            session=event.object,
            gateway=self.gateway,
            source=SOURCE_WEBHOOK,
            dispatcher=self.dispatcher,
            stripe_account=event.account or None,
            event_id=event.id,
        )

    def _handle_session_expired(self, event: GatewayEvent) -> ProcessingResult:
        ref = event.object_id
        order = Order.objects.filter(payment_reference=ref).first()
        if order is None:
            logger.info(
                "Expired session has no order",
                extra={"event_id": event.id, "payment_reference": ref},
            )
            return ProcessingResult(result=PaymentEvent.RESULT_IGNORED, detail="unknown_session", payment_reference=ref)

        cancelled = cancel_expired_order(order=order)
        return ProcessingResult(
            result=PaymentEvent.RESULT_PROCESSED if cancelled else PaymentEvent.RESULT_NOOP,
            detail="cancelled" if cancelled else f"kept:{order.status}",
            payment_reference=ref,
            order_id=str(order.id),
        )

    def _handle_session_failed(self, event: GatewayEvent) -> ProcessingResult:
        ref = event.object_id
        order = Order.objects.filter(payment_reference=ref).first()
        if order is None:
            return ProcessingResult(result=PaymentEvent.RESULT_IGNORED, detail="unknown_session", payment_reference=ref)

        cancelled = cancel_pending_order(order_id=order.id)
        logger.warning(
            "Async payment failed for checkout session",
            extra={"event_id": event.id, "payment_reference": ref, "order_id": str(order.id), "cancelled": cancelled},
        )
        return ProcessingResult(
            result=PaymentEvent.RESULT_PROCESSED if cancelled else PaymentEvent.RESULT_NOOP,
            detail="payment_failed",
            payment_reference=ref,
            order_id=str(order.id),
        )

    # -------------------------------------------------
    # Payment intents
    # -------------------------------------------------
    def _handle_intent_succeeded(self, event: GatewayEvent) -> ProcessingResult:
        intent_id = event.object_id
        metadata = event.metadata

        if metadata.get("purpose") == PURPOSE_CREDIT_PURCHASE:
            try:
                completed = complete_credit_purchase(
                    intent_id=intent_id,
                    transaction_id=metadata.get("transaction_id") or None,
                    dispatcher=self.dispatcher,
                )
            except CreditPurchaseError as exc:
                logger.error(
                    "Credit purchase event references unknown transaction",
                    extra={"event_id": event.id, "payment_reference": intent_id, "error": str(exc)},
                )
                return ProcessingResult(
                    result=PaymentEvent.RESULT_IGNORED,
                    detail="unknown_credit_transaction",
                    payment_reference=intent_id,
                )
            return ProcessingResult(
                result=PaymentEvent.RESULT_PROCESSED if completed else PaymentEvent.RESULT_NOOP,
                detail="credit_purchase_completed",
                payment_reference=intent_id,
            )

        # intents behind checkout sessions carry no order of their own
        order = Order.objects.filter(payment_reference=intent_id).first()
        if order is None:
            return ProcessingResult(
                result=PaymentEvent.RESULT_IGNORED,
                detail="no_order_for_intent",
                payment_reference=intent_id,
            )

        with transaction.atomic():
            outcome = confirm_order_payment(order=order, source=SOURCE_WEBHOOK, dispatcher=self.dispatcher)

        return ProcessingResult(
            result=PaymentEvent.RESULT_PROCESSED if outcome.transitioned else PaymentEvent.RESULT_NOOP,
            detail="confirmed" if outcome.is_paid else f"not_payable:{outcome.status}",
            payment_reference=intent_id,
            order_id=str(order.id),
        )

    def _handle_intent_failed(self, event: GatewayEvent) -> ProcessingResult:
        intent_id = event.object_id
        metadata = event.metadata

        error = event.object.get("last_payment_error") or {}
        reason = str(error.get("message") or "Payment failed") if isinstance(error, dict) else "Payment failed"

        if metadata.get("purpose") == PURPOSE_CREDIT_PURCHASE:
            failed = fail_credit_purchase(
                intent_id=intent_id,
                transaction_id=metadata.get("transaction_id") or None,
                reason=reason,
            )
            return ProcessingResult(
                result=PaymentEvent.RESULT_PROCESSED if failed else PaymentEvent.RESULT_NOOP,
                detail="credit_purchase_failed",
                payment_reference=intent_id,
            )

        logger.info(
            "Payment attempt failed; order stays pending",
            extra={"event_id": event.id, "payment_reference": intent_id, "reason": reason},
        )
        return ProcessingResult(result=PaymentEvent.RESULT_NOOP, detail="payment_attempt_failed", payment_reference=intent_id)


def record_payment_event(
    *,
    event_id: str,
    event_type: str,
    result: str,
    payment_reference: str = "",
    detail: str = "",
    error_message: str = "",
) -> None:
    """
    Upsert the audit row for an event. Redeliveries bump `deliveries`.
    """
    if not event_id:
        return

    row, created = PaymentEvent.objects.get_or_create(
        event_id=event_id,
        defaults={
            "event_type": event_type,
            "payment_reference": payment_reference,
            "processing_result": result,
            "detail": detail[:255],
            "error_message": error_message,
        },
    )
    if not created:
        PaymentEvent.objects.filter(id=row.id).update(
            processing_result=result,
            payment_reference=payment_reference or row.payment_reference,
            detail=detail[:255],
            error_message=error_message,
            deliveries=F("deliveries") + 1,
        )


def finalize_checkout_session(
    *,
    session: dict,
    gateway,
    source: str,
    dispatcher=None,
    stripe_account=None,
    event_id: str = "",
) -> ProcessingResult:
    """
    Shared by the webhook and the browser return.

    - No order for the session: rebuild it from the gateway's line items
    - Session not paid yet: order stays pending (async payment methods)
    - Paid: conditional pending -> processing/paid, then claim-and-send
    """
    ref = str(session.get("id") or "")
    ctx = {"event_id": event_id, "payment_reference": ref, "source": source}

    order = Order.objects.filter(payment_reference=ref).first()
    line_items = None
    if order is None:
        logger.warning("No preliminary order for session; reconstructing", extra=ctx)
        line_items = gateway.list_line_items(ref, stripe_account=stripe_account)

    created = False
    with transaction.atomic():
        if order is None:
            order, created = reconstruct_order_from_session(session=session, line_items=line_items)

        if session.get("payment_status") not in PAID_SESSION_STATUSES:
            logger.info(
                "Session completed but not yet paid; awaiting async payment",
                extra={**ctx, "order_id": str(order.id)},
            )
            return ProcessingResult(
                result=PaymentEvent.RESULT_PROCESSED if created else PaymentEvent.RESULT_NOOP,
                detail="awaiting_payment",
                payment_reference=ref,
                order_id=str(order.id),
            )

        outcome = confirm_order_payment(order=order, source=source, dispatcher=dispatcher)

    changed = created or outcome.transitioned or outcome.email_claimed
    return ProcessingResult(
        result=PaymentEvent.RESULT_PROCESSED if changed else PaymentEvent.RESULT_NOOP,
        detail="confirmed" if outcome.is_paid else f"not_payable:{outcome.status}",
        payment_reference=ref,
        order_id=str(order.id),
    )
