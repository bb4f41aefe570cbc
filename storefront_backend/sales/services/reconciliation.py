# sales/services/reconciliation.py

"""
RECONCILIATION SWEEP

Safety net for lost webhooks and abandoned browser returns.

Each cycle:
1) select a bounded batch of stale pending online orders (oldest first)
2) ask the provider's verifier whether each one is paid
3) PAID      -> same finalization as the webhook
   UNPAID    -> leave pending (or cancel if the session expired)
   UNVERIFIED-> leave for the next cycle
   UNSUPPORTED -> skip (logged)
4) re-run confirmation (claim + store side effects) for paid orders whose
   claim never happened

One failing order never aborts the batch.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from payments.services.verifiers import VerificationOutcome, build_default_registry
from sales.models import Order
from sales.services.order_finalization import (
    SOURCE_SWEEP,
    cancel_expired_order,
    confirm_order_payment,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_GRACE_MINUTES = 15


@dataclass
class SweepResult:
    examined: int = 0
    confirmed: int = 0
    already_paid: int = 0
    unpaid: int = 0
    expired: int = 0
    unverified: int = 0
    unsupported: int = 0
    errors: int = 0
    healed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _reconciliation_settings() -> dict:
    cfg = getattr(settings, "RECONCILIATION", {}) or {}
    return cfg if isinstance(cfg, dict) else {}


def default_batch_size() -> int:
    return int(_reconciliation_settings().get("BATCH_SIZE") or DEFAULT_BATCH_SIZE)


def default_grace() -> timedelta:
    return timedelta(minutes=int(_reconciliation_settings().get("GRACE_MINUTES") or DEFAULT_GRACE_MINUTES))


def select_due_orders(*, batch_size: int, grace: timedelta, now) -> list[Order]:
    return list(
        Order.objects.filter(
            status=Order.STATUS_PENDING,
            payment_status=Order.PAYMENT_PENDING,
            payment_reference__isnull=False,
            confirmation_email_sent_at__isnull=True,
            created_at__lt=now - grace,
        )
        .exclude(payment_reference="")
        .select_related("store")
        .order_by("created_at")[:batch_size]
    )


def select_unclaimed_paid_orders(*, batch_size: int, grace: timedelta, now) -> list[Order]:
    return list(
        Order.objects.filter(
            payment_status=Order.PAYMENT_PAID,
            confirmation_email_sent_at__isnull=True,
            paid_at__lt=now - grace,
        )
        .exclude(status=Order.STATUS_CANCELLED)
        .select_related("store")
        .order_by("paid_at")[:batch_size]
    )


def reconcile_pending_orders(
    *,
    registry=None,
    batch_size: int | None = None,
    grace: timedelta | None = None,
    dispatcher=None,
    now=None,
    dry_run: bool = False,
) -> SweepResult:
    now = now or timezone.now()
    batch_size = max(1, int(batch_size or default_batch_size()))
    grace = grace if grace is not None else default_grace()
    registry = registry or build_default_registry()

    result = SweepResult()

    for order in select_due_orders(batch_size=batch_size, grace=grace, now=now):
        result.examined += 1
        ctx = {
            "order_id": str(order.id),
            "payment_reference": order.payment_reference,
            "provider": order.payment_provider,
        }

        try:
            verifier = registry.get(order.payment_provider)
            verification = verifier.verify(
                order.payment_reference,
                stripe_account=order.store.stripe_account_id or None,
            )

            if verification.outcome == VerificationOutcome.PAID:
                if dry_run:
                    logger.info("[dry-run] would confirm order", extra=ctx)
                    result.confirmed += 1
                    continue

                with transaction.atomic():
                    outcome = confirm_order_payment(
                        order=order, source=SOURCE_SWEEP, dispatcher=dispatcher, now=now
                    )
                if outcome.transitioned:
                    result.confirmed += 1
                    logger.info("Sweep confirmed order", extra=ctx)
                else:
                    result.already_paid += 1

            elif verification.outcome == VerificationOutcome.UNPAID:
                if verification.expired:
                    if not dry_run:
                        cancel_expired_order(order=order, now=now)
                    result.expired += 1
                else:
                    result.unpaid += 1

            elif verification.outcome == VerificationOutcome.UNVERIFIED:
                result.unverified += 1
                logger.warning(
                    "Payment could not be verified; retrying next cycle",
                    extra={**ctx, "detail": verification.detail},
                )

            else:
                result.unsupported += 1
                logger.info("No verifier for order provider; skipped", extra={**ctx, "detail": verification.detail})

        except Exception:
            result.errors += 1
            logger.exception("Reconciliation failed for order", extra=ctx)

    if not dry_run:
        for order in select_unclaimed_paid_orders(batch_size=batch_size, grace=grace, now=now):
            ctx = {"order_id": str(order.id), "payment_reference": order.payment_reference or ""}
            try:
                with transaction.atomic():
                    outcome = confirm_order_payment(
                        order=order, source=SOURCE_SWEEP, dispatcher=dispatcher, now=now
                    )
            except Exception:
                result.errors += 1
                logger.exception("Reconciliation failed to heal paid order", extra=ctx)
                continue

            if outcome.email_claimed:
                result.healed += 1
                logger.warning("Sweep queued a missing order confirmation", extra=ctx)

    logger.info("Reconciliation sweep finished", extra=result.as_dict())
    return result
