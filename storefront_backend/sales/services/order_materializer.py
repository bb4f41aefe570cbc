# sales/services/order_materializer.py

"""
PRELIMINARY ORDER MATERIALIZER

Purpose:
- Make the Order + OrderItems durable the moment a checkout is placed,
  before any payment confirmation, so every later lookup by
  payment_reference finds it.

Hard rules:
- Money comes from an OrderQuote built by sales.services.pricing
  (server prices only). Nothing here reads client totals.
- Order and all items are written in ONE transaction: no partial orders.
- A customer reference is attached ONLY if it exists in this store AND its
  email matches the order email (trimmed, case-insensitive). Anything else
  is a guest order. A missing identity is recoverable, a wrong one is not.
- Flow is snapshotted from the PaymentMethod:
    online  -> pending / pending (the gateway confirms later)
    offline -> processing / paid, confirmation queued after commit
"""

from __future__ import annotations

import logging
import uuid

from django.db import transaction
from django.utils import timezone

from sales.models import Order, OrderItem
from sales.services.exceptions import CheckoutConfigurationError
from sales.services.order_finalization import SOURCE_OFFLINE, confirm_order_payment
from sales.services.pricing import OrderQuote
from store.models import Customer, PaymentMethod, ShippingMethod, Store

logger = logging.getLogger(__name__)


def _norm_email(value) -> str:
    return str(value or "").strip().lower()


def resolve_customer(*, store: Store, customer_id, email: str) -> Customer | None:
    """
    Returns the Customer to attach, or None (guest order).
    """
    if not customer_id:
        return None

    try:
        customer_uuid = uuid.UUID(str(customer_id))
    except (ValueError, TypeError, AttributeError):
        logger.warning(
            "Invalid customer reference; placing guest order",
            extra={"store_id": str(store.id), "customer_id": str(customer_id)},
        )
        return None

    customer = Customer.objects.filter(id=customer_uuid, store=store).first()
    if customer is None:
        logger.warning(
            "Customer reference not found in store; placing guest order",
            extra={"store_id": str(store.id), "customer_id": str(customer_id)},
        )
        return None

    if _norm_email(customer.email) != _norm_email(email):
        logger.warning(
            "Customer email mismatch; placing guest order",
            extra={"store_id": str(store.id), "customer_id": str(customer_id)},
        )
        return None

    return customer


def create_order_with_items(
    *,
    store: Store,
    quote: OrderQuote,
    payment_reference: str | None,
    payment_provider: str,
    payment_flow: str,
    payment_method_code: str = "",
    shipping_method_code: str = "",
    coupon_code: str | None = None,
    customer: Customer | None = None,
    customer_email: str = "",
    customer_name: str = "",
    customer_phone: str = "",
    shipping_address: dict | None = None,
    billing_address: dict | None = None,
    delivery_instructions: str = "",
) -> Order:
    """
    Write one Order and its items. Callers own the transaction.
    """
    offline = payment_flow == Order.FLOW_OFFLINE

    order = Order.objects.create(
        store=store,
        status=Order.STATUS_PROCESSING if offline else Order.STATUS_PENDING,
        payment_status=Order.PAYMENT_PAID if offline else Order.PAYMENT_PENDING,
        payment_reference=payment_reference or None,
        payment_provider=payment_provider,
        payment_flow=payment_flow,
        payment_method=payment_method_code,
        shipping_method=shipping_method_code,
        coupon_code=quote.coupon_code if coupon_code is None else coupon_code,
        subtotal_amount=quote.subtotal_amount,
        tax_amount=quote.tax_amount,
        shipping_amount=quote.shipping_amount,
        payment_fee_amount=quote.payment_fee_amount,
        discount_amount=quote.discount_amount,
        total_amount=quote.total_amount,
        currency=quote.currency,
        customer=customer,
        customer_email=(customer_email or "").strip(),
        customer_name=(customer_name or "").strip(),
        customer_phone=(customer_phone or "").strip(),
        shipping_address=shipping_address or {},
        billing_address=billing_address or shipping_address or {},
        delivery_instructions=(delivery_instructions or "").strip(),
    )

    for line in quote.lines:
        OrderItem.objects.create(
            order=order,
            product=line.product,
            product_name=line.product_name,
            product_sku=line.product_sku,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
            selected_options=line.selected_options,
        )

    return order


def materialize_order(
    *,
    store: Store,
    quote: OrderQuote,
    payment_method: PaymentMethod,
    shipping_method: ShippingMethod | None = None,
    payment_reference: str | None = None,
    customer_id=None,
    customer_email: str = "",
    customer_name: str = "",
    customer_phone: str = "",
    shipping_address: dict | None = None,
    billing_address: dict | None = None,
    delivery_instructions: str = "",
    dispatcher=None,
) -> Order:
    if payment_method is None or payment_method.store_id != store.id:
        raise CheckoutConfigurationError("Payment method does not belong to this store")

    if payment_method.is_online and not payment_reference:
        raise CheckoutConfigurationError("Online payment flows require a gateway payment reference")

    customer = resolve_customer(store=store, customer_id=customer_id, email=customer_email)

    with transaction.atomic():
        order = create_order_with_items(
            store=store,
            quote=quote,
            payment_reference=payment_reference,
            payment_provider=payment_method.provider,
            payment_flow=payment_method.payment_flow,
            payment_method_code=payment_method.code,
            shipping_method_code=shipping_method.code if shipping_method else "",
            customer=customer,
            customer_email=customer_email,
            customer_name=customer_name,
            customer_phone=customer_phone,
            shipping_address=shipping_address,
            billing_address=billing_address,
            delivery_instructions=delivery_instructions,
        )

        if not payment_method.is_online:
            order_ref = order
            transaction.on_commit(
                lambda: confirm_order_payment(
                    order=order_ref,
                    source=SOURCE_OFFLINE,
                    dispatcher=dispatcher,
                    now=timezone.now(),
                ),
                robust=True,
            )

    logger.info(
        "Order materialized",
        extra={
            "order_id": str(order.id),
            "order_number": order.order_number,
            "payment_reference": order.payment_reference or "",
            "payment_flow": order.payment_flow,
            "total": str(order.total_amount),
        },
    )
    return order
