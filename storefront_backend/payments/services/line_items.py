# payments/services/line_items.py
"""
Checkout session payload builders (outbound) and line-item parsing (inbound).

Outbound (checkout):
- one gateway line per order line, unit price incl. options
- tax / shipping / payment fee as separate one-quantity lines
- discount as a one-off gateway coupon (amount_off)
- every amount normalized with to_gateway_amount()
- enough metadata to rebuild the order if the preliminary write is lost

Inbound (reconstruction):
- parse_gateway_lines() turns the gateway's line items back into
  GatewayLine records, using the metadata stamped here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from payments.services.amounts import from_gateway_amount, to_gateway_amount

logger = logging.getLogger(__name__)

LINE_KIND_PRODUCT = "product"
LINE_KIND_TAX = "tax"
LINE_KIND_SHIPPING = "shipping"
LINE_KIND_FEE = "fee"

LINE_KINDS = {LINE_KIND_PRODUCT, LINE_KIND_TAX, LINE_KIND_SHIPPING, LINE_KIND_FEE}

# Stripe metadata values are capped at 500 characters
METADATA_VALUE_LIMIT = 500


def _dumps(value) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _fit_json_object(value: dict, *, key: str) -> str:
    """
    Drops the longest fields until the JSON fits, so reconstruction always
    gets valid JSON back instead of a cut string that parses as {}.
    """
    kept = dict(value)
    dropped = []
    encoded = _dumps(kept)
    while len(encoded) > METADATA_VALUE_LIMIT and kept:
        longest = max(kept, key=lambda k: len(_dumps({k: kept[k]})))
        kept.pop(longest)
        dropped.append(longest)
        encoded = _dumps(kept)

    if dropped:
        logger.warning(
            "Checkout metadata too long; fields dropped",
            extra={"metadata_key": key, "dropped_fields": dropped},
        )
    return encoded


def _meta_value(value, *, key: str = "") -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        return _fit_json_object(value, key=key)
    if isinstance(value, list):
        value = _dumps(value)

    text = str(value)
    if len(text) > METADATA_VALUE_LIMIT:
        logger.warning(
            "Checkout metadata value truncated",
            extra={"metadata_key": key, "length": len(text)},
        )
    return text[:METADATA_VALUE_LIMIT]


def _price_line(*, name: str, unit_amount: int, quantity: int, currency: str, metadata: dict) -> dict:
    return {
        "quantity": int(quantity),
        "price_data": {
            "currency": currency.lower(),
            "unit_amount": int(unit_amount),
            "product_data": {
                "name": name[:250],
                "metadata": {k: _meta_value(v, key=k) for k, v in metadata.items()},
            },
        },
    }


# =====================================================
# OUTBOUND
# =====================================================


def build_checkout_line_items(*, quote) -> list[dict]:
    currency = quote.currency
    lines = []

    for line in quote.lines:
        option_names = ", ".join(o["name"] for o in line.selected_options)
        name = f"{line.product_name} ({option_names})" if option_names else line.product_name
        lines.append(
            _price_line(
                name=name,
                unit_amount=to_gateway_amount(line.unit_price, currency),
                quantity=line.quantity,
                currency=currency,
                metadata={
                    "line_kind": LINE_KIND_PRODUCT,
                    "product_id": line.product_id,
                    "sku": line.product_sku,
                    "option_ids": ",".join(o["id"] for o in line.selected_options),
                },
            )
        )

    extras = (
        (LINE_KIND_TAX, "Tax", quote.tax_amount),
        (LINE_KIND_SHIPPING, "Shipping", quote.shipping_amount),
        (LINE_KIND_FEE, "Payment fee", quote.payment_fee_amount),
    )
    for kind, label, amount in extras:
        if Decimal(amount) <= 0:
            continue
        lines.append(
            _price_line(
                name=label,
                unit_amount=to_gateway_amount(amount, currency),
                quantity=1,
                currency=currency,
                metadata={"line_kind": kind},
            )
        )

    return lines


def build_discount_coupon_params(*, quote) -> dict | None:
    if Decimal(quote.discount_amount) <= 0:
        return None
    return {
        "amount_off": to_gateway_amount(quote.discount_amount, quote.currency),
        "currency": quote.currency.lower(),
        "duration": "once",
        "max_redemptions": 1,
        "name": f"Discount {quote.coupon_code}".strip()[:40],
    }


def build_session_metadata(
    *,
    store,
    payment_method_code: str,
    shipping_method_code: str,
    coupon_code: str,
    customer_id,
    customer_email: str,
    customer_name: str,
    customer_phone: str,
    shipping_address: dict | None,
    billing_address: dict | None,
    delivery_instructions: str,
) -> dict:
    return {
        k: _meta_value(v, key=k)
        for k, v in {
            "store_id": str(store.id),
            "payment_method": payment_method_code,
            "shipping_method": shipping_method_code,
            "coupon_code": coupon_code,
            "customer_id": str(customer_id or ""),
            "customer_email": customer_email,
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "shipping_address": shipping_address or {},
            "billing_address": billing_address or {},
            "delivery_instructions": delivery_instructions,
        }.items()
    }


# =====================================================
# INBOUND
# =====================================================


@dataclass(frozen=True)
class GatewayLine:
    kind: str
    name: str
    quantity: int
    unit_amount: Decimal
    total_amount: Decimal
    product_id: str = ""
    sku: str = ""
    option_ids: list = field(default_factory=list)


def parse_json_metadata(value) -> dict:
    if isinstance(value, dict):
        return value
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_gateway_lines(line_items, *, currency: str) -> list[GatewayLine]:
    """
    line_items: gateway line items with price.product expanded.
    """
    out = []
    for raw in line_items or []:
        price = raw.get("price") or {}
        product = price.get("product") or {}
        if not isinstance(product, dict):
            product = {}
        metadata = product.get("metadata") or {}

        quantity = int(raw.get("quantity") or 0)
        unit_units = price.get("unit_amount")
        if unit_units is None and quantity:
            unit_units = int(raw.get("amount_subtotal") or 0) // quantity
        total_units = raw.get("amount_subtotal")
        if total_units is None:
            total_units = int(unit_units or 0) * quantity

        kind = metadata.get("line_kind") or LINE_KIND_PRODUCT
        if kind not in LINE_KINDS:
            kind = LINE_KIND_PRODUCT

        option_ids = [o for o in str(metadata.get("option_ids") or "").split(",") if o.strip()]

        out.append(
            GatewayLine(
                kind=kind,
                name=str(product.get("name") or raw.get("description") or ""),
                quantity=quantity,
                unit_amount=from_gateway_amount(unit_units or 0, currency),
                total_amount=from_gateway_amount(total_units or 0, currency),
                product_id=str(metadata.get("product_id") or ""),
                sku=str(metadata.get("sku") or ""),
                option_ids=option_ids,
            )
        )
    return out
