# credits/services/credit_purchase.py

"""
CREDIT PURCHASE FINALIZER

Flow:
1) create_credit_purchase(): validate pricing, create a pending
   CreditTransaction, create a Stripe PaymentIntent, store its id
2) Stripe confirms asynchronously (payment_intent.succeeded / payment_failed)
3) complete_credit_purchase() / fail_credit_purchase()

Guarantees:
- pending -> completed | failed is a conditional UPDATE (exactly once);
  failed -> completed is allowed because Stripe retries a declined intent
- the balance is credited inside the same transaction as the winning UPDATE
- the purchase email is claim-and-send (exactly once)
"""

from __future__ import annotations

import logging
import math
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from credits.models import CreditBalance, CreditTransaction
from credits.services.exceptions import CreditPurchaseError, InvalidCreditPricingError
from notifications.models import EmailTemplate
from notifications.services.dispatcher import get_dispatcher
from notifications.services.variables import build_credit_purchase_variables
from payments.services.amounts import to_gateway_amount
from payments.services.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

PURPOSE_CREDIT_PURCHASE = "credit_purchase"

CREDITS_PER_UNIT = 10
MAX_BONUS_MULTIPLIER = Decimal("1.5")
MIN_PURCHASE_AMOUNT = Decimal("1.00")

COMPLETABLE_STATUSES = (CreditTransaction.STATUS_PENDING, CreditTransaction.STATUS_FAILED)


# =====================================================
# PRICING
# =====================================================


def max_credits_for(amount: Decimal) -> int:
    """Base rate 10 credits per currency unit, plus up to 50% bonus."""
    base = math.floor(amount * CREDITS_PER_UNIT)
    return math.floor(Decimal(base) * MAX_BONUS_MULTIPLIER)


def validate_credit_pricing(*, amount, credits_amount) -> Decimal:
    try:
        amount = Decimal(str(amount)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidCreditPricingError("Amount must be a number.")

    if amount < MIN_PURCHASE_AMOUNT:
        raise InvalidCreditPricingError(f"Amount must be at least {MIN_PURCHASE_AMOUNT}.")

    try:
        credits_amount = int(credits_amount)
    except (ValueError, TypeError):
        raise InvalidCreditPricingError("Credits amount must be an integer.")

    if credits_amount < 1:
        raise InvalidCreditPricingError("Credits amount must be at least 1.")

    if credits_amount > max_credits_for(amount):
        raise InvalidCreditPricingError("Invalid credit amount for the specified price.")

    return amount


def _context(tx: CreditTransaction) -> dict:
    return {
        "credit_transaction_id": str(tx.id),
        "payment_reference": tx.stripe_payment_intent_id or "",
        "store_id": str(tx.store_id),
    }


# =====================================================
# CREATE
# =====================================================


def create_credit_purchase(*, user, store, amount, credits_amount, gateway, currency=None):
    """
    Returns (transaction, payment_intent_dict).

    Raises:
    - InvalidCreditPricingError
    - PaymentGatewayError (transaction is marked failed first)
    """
    amount = validate_credit_pricing(amount=amount, credits_amount=credits_amount)
    currency = (currency or store.currency or "USD").strip().upper()

    tx = CreditTransaction.objects.create(
        user=user,
        store=store,
        amount=amount,
        currency=currency,
        credits_amount=int(credits_amount),
    )

    try:
        intent = gateway.create_payment_intent(
            amount=to_gateway_amount(amount, currency),
            currency=currency,
            metadata={
                "purpose": PURPOSE_CREDIT_PURCHASE,
                "transaction_id": str(tx.id),
                "store_id": str(store.id),
                "user_id": str(user.pk),
                "credits_amount": str(tx.credits_amount),
            },
            receipt_email=getattr(user, "email", "") or "",
            stripe_account=store.stripe_account_id or None,
            idempotency_key=f"credit-purchase-{tx.id}",
        )
    except PaymentGatewayError as exc:
        fail_credit_purchase(transaction_id=tx.id, reason=str(exc))
        raise

    CreditTransaction.objects.filter(id=tx.id).update(
        stripe_payment_intent_id=intent["id"],
        updated_at=timezone.now(),
    )
    tx.refresh_from_db()

    logger.info("Credit purchase created", extra=_context(tx))
    return tx, intent


# =====================================================
# FINALIZE
# =====================================================


def _find_transaction(*, intent_id: str, transaction_id=None) -> CreditTransaction:
    tx = CreditTransaction.objects.filter(stripe_payment_intent_id=intent_id).first()
    if tx is not None:
        return tx

    # intent created but its id was never stored on our row
    if transaction_id:
        CreditTransaction.objects.filter(
            id=transaction_id,
            stripe_payment_intent_id__isnull=True,
        ).update(stripe_payment_intent_id=intent_id, updated_at=timezone.now())
        tx = CreditTransaction.objects.filter(stripe_payment_intent_id=intent_id).first()
        if tx is not None:
            return tx

    raise CreditPurchaseError(f"No credit transaction for payment intent {intent_id}")


def complete_credit_purchase(*, intent_id: str, transaction_id=None, dispatcher=None, now=None) -> bool:
    """
    Returns True only for the caller whose UPDATE completed the transaction.

    A declined attempt leaves the row failed while the intent stays open for
    another payment method, so a later success completes from failed too.
    """
    now = now or timezone.now()
    tx = _find_transaction(intent_id=intent_id, transaction_id=transaction_id)

    with transaction.atomic():
        won = CreditTransaction.objects.filter(
            id=tx.id,
            status__in=COMPLETABLE_STATUSES,
        ).update(
            status=CreditTransaction.STATUS_COMPLETED,
            completed_at=now,
            failure_reason="",
            updated_at=now,
        ) > 0

        if won:
            balance, _ = CreditBalance.objects.get_or_create(user_id=tx.user_id, store_id=tx.store_id)
            CreditBalance.objects.filter(id=balance.id).update(
                balance=F("balance") + tx.credits_amount,
                updated_at=now,
            )

    tx.refresh_from_db()

    if won:
        logger.info("Credit purchase completed", extra=_context(tx))
    else:
        logger.info(
            "Credit purchase completion is a no-op",
            extra={**_context(tx), "status": tx.status},
        )

    if tx.status == CreditTransaction.STATUS_COMPLETED:
        send_credit_confirmation(tx=tx, dispatcher=dispatcher, now=now)

    return won


def fail_credit_purchase(*, intent_id: str = "", transaction_id=None, reason: str = "", now=None) -> bool:
    now = now or timezone.now()

    qs = CreditTransaction.objects.filter(status=CreditTransaction.STATUS_PENDING)
    if intent_id:
        qs = qs.filter(stripe_payment_intent_id=intent_id)
    elif transaction_id:
        qs = qs.filter(id=transaction_id)
    else:
        return False

    failed = qs.update(
        status=CreditTransaction.STATUS_FAILED,
        failure_reason=(reason or "")[:1000],
        updated_at=now,
    ) > 0

    if failed:
        logger.warning(
            "Credit purchase failed",
            extra={"payment_reference": intent_id, "credit_transaction_id": str(transaction_id or ""), "reason": reason},
        )
    return failed


def send_credit_confirmation(*, tx: CreditTransaction, dispatcher=None, now=None) -> bool:
    """
    Claim-and-send for the credit purchase email.
    Errors are logged, never raised: the credits are already granted.
    """
    now = now or timezone.now()
    try:
        with transaction.atomic():
            claimed = CreditTransaction.objects.filter(
                id=tx.id,
                confirmation_email_sent_at__isnull=True,
            ).update(confirmation_email_sent_at=now) > 0
            if not claimed:
                return False

            user = tx.user
            if not getattr(user, "email", ""):
                logger.warning("Credit purchase has no recipient email", extra=_context(tx))
                return False

            (dispatcher or get_dispatcher()).enqueue(
                store_id=tx.store_id,
                template_identifier=EmailTemplate.CREDIT_PURCHASE,
                recipient_email=user.email,
                variables=build_credit_purchase_variables(
                    transaction=tx,
                    balance=get_credit_balance(user=user, store=tx.store),
                    user=user,
                    store=tx.store,
                    now=now,
                ),
                context=_context(tx),
            )
    except Exception:
        logger.exception("Failed to queue credit purchase email", extra=_context(tx))
        return False

    return True


def get_credit_balance(*, user, store) -> int:
    row = CreditBalance.objects.filter(user=user, store=store).values_list("balance", flat=True).first()
    return int(row or 0)
