# sales/services/order_reconstruction.py

"""
FALLBACK ORDER RECONSTRUCTION

Purpose:
- A confirming gateway event arrived but no preliminary Order exists
  (the checkout-time write failed or never ran). Rebuild the Order and its
  items from the gateway's own records: line items + session metadata.

Hard rules:
- Amounts come from what the gateway actually charged, not from current
  catalog prices.
- Unknown / foreign product lines are skipped (logged). Zero surviving
  product lines is fatal to this order only: EmptyOrderError, nothing written.
- The same customer guest-fallback rule as checkout applies.
- Race with a late preliminary write (or a parallel event) is settled by the
  UNIQUE payment_reference: the loser's insert fails inside a savepoint and
  it re-reads the winner. Exactly one Order per reference.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from django.db import IntegrityError, transaction

from payments.services.line_items import (
    LINE_KIND_FEE,
    LINE_KIND_PRODUCT,
    LINE_KIND_SHIPPING,
    LINE_KIND_TAX,
    parse_gateway_lines,
    parse_json_metadata,
)
from payments.services.amounts import from_gateway_amount
from products.models import Product, ProductOption
from sales.models import Order
from sales.services.exceptions import EmptyOrderError, OrderReconstructionError
from sales.services.order_materializer import create_order_with_items, resolve_customer
from sales.services.pricing import OrderQuote, PricedLine, compute_total
from store.models import PaymentMethod, Store

logger = logging.getLogger(__name__)


def _uuid_or_none(value):
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


def _load_store(metadata: dict) -> Store:
    store_uuid = _uuid_or_none(metadata.get("store_id"))
    store = Store.objects.filter(id=store_uuid).first() if store_uuid else None
    if store is None:
        raise OrderReconstructionError(
            f"Session metadata references unknown store: {metadata.get('store_id')!r}"
        )
    return store


def _priced_line_from_gateway(*, store: Store, line, session_id: str) -> PricedLine | None:
    product_uuid = _uuid_or_none(line.product_id)
    product = Product.objects.filter(id=product_uuid, store=store).first() if product_uuid else None

    if product is None or line.quantity <= 0:
        logger.warning(
            "Skipping gateway line with unknown product",
            extra={"payment_reference": session_id, "product_id": line.product_id, "line_name": line.name},
        )
        return None

    option_uuids = [u for u in (_uuid_or_none(o) for o in line.option_ids) if u]
    options = list(
        ProductOption.objects.filter(product=product, id__in=option_uuids).order_by("name")
    ) if option_uuids else []

    return PricedLine(
        product=product,
        product_id=str(product.id),
        product_name=product.name,
        product_sku=product.sku,
        quantity=line.quantity,
        unit_price=line.unit_amount,
        total_price=(line.unit_amount * Decimal(line.quantity)).quantize(Decimal("0.01")),
        selected_options=[
            {"id": str(o.id), "name": o.name, "price": str(o.price)} for o in options
        ],
    )


def build_quote_from_session(*, store: Store, session: dict, line_items) -> OrderQuote:
    currency = str(session.get("currency") or store.currency or "USD").upper()
    session_id = str(session.get("id") or "")
    gateway_lines = parse_gateway_lines(line_items, currency=currency)

    priced = []
    extras = {LINE_KIND_TAX: Decimal("0.00"), LINE_KIND_SHIPPING: Decimal("0.00"), LINE_KIND_FEE: Decimal("0.00")}

    for line in gateway_lines:
        if line.kind == LINE_KIND_PRODUCT:
            pl = _priced_line_from_gateway(store=store, line=line, session_id=session_id)
            if pl is not None:
                priced.append(pl)
        else:
            extras[line.kind] += line.total_amount

    if not priced:
        raise EmptyOrderError(f"No valid items could be reconstructed for session {session_id}")

    total_details = session.get("total_details") or {}
    discount = from_gateway_amount(total_details.get("amount_discount") or 0, currency)

    subtotal = sum((p.total_price for p in priced), Decimal("0.00"))
    tax = extras[LINE_KIND_TAX]
    shipping = extras[LINE_KIND_SHIPPING]
    fee = extras[LINE_KIND_FEE]

    return OrderQuote(
        currency=currency,
        lines=priced,
        subtotal_amount=subtotal,
        discount_amount=discount,
        shipping_amount=shipping,
        tax_amount=tax,
        payment_fee_amount=fee,
        total_amount=compute_total(
            subtotal=subtotal, tax=tax, shipping=shipping, fee=fee, discount=discount
        ),
        coupon=None,
    )


def reconstruct_order_from_session(*, session: dict, line_items) -> tuple[Order, bool]:
    """
    Returns (order, created). created=False means another writer won the race.
    """
    session_id = str(session.get("id") or "").strip()
    if not session_id:
        raise OrderReconstructionError("Session has no id")

    existing = Order.objects.filter(payment_reference=session_id).first()
    if existing is not None:
        return existing, False

    metadata = session.get("metadata") or {}
    store = _load_store(metadata)
    quote = build_quote_from_session(store=store, session=session, line_items=line_items)

    details = session.get("customer_details") or {}
    email = (metadata.get("customer_email") or details.get("email") or session.get("customer_email") or "").strip()
    name = (metadata.get("customer_name") or details.get("name") or "").strip()
    phone = (metadata.get("customer_phone") or details.get("phone") or "").strip()

    payment_method_code = str(metadata.get("payment_method") or "")
    method = PaymentMethod.objects.filter(store=store, code=payment_method_code).first()

    customer = resolve_customer(store=store, customer_id=metadata.get("customer_id"), email=email)

    try:
        with transaction.atomic():
            order = create_order_with_items(
                store=store,
                quote=quote,
                payment_reference=session_id,
                payment_provider=method.provider if method else PaymentMethod.PROVIDER_STRIPE,
                payment_flow=Order.FLOW_ONLINE,
                payment_method_code=payment_method_code,
                shipping_method_code=str(metadata.get("shipping_method") or ""),
                coupon_code=str(metadata.get("coupon_code") or ""),
                customer=customer,
                customer_email=email,
                customer_name=name,
                customer_phone=phone,
                shipping_address=parse_json_metadata(metadata.get("shipping_address")),
                billing_address=parse_json_metadata(metadata.get("billing_address")),
                delivery_instructions=str(metadata.get("delivery_instructions") or ""),
            )
    except IntegrityError:
        winner = Order.objects.filter(payment_reference=session_id).first()
        if winner is None:
            raise
        logger.info(
            "Reconstruction lost race; using existing order",
            extra={"payment_reference": session_id, "order_id": str(winner.id)},
        )
        return winner, False

    logger.warning(
        "Order reconstructed from gateway session",
        extra={
            "payment_reference": session_id,
            "order_id": str(order.id),
            "items": len(quote.lines),
            "total": str(order.total_amount),
        },
    )
    return order, True
