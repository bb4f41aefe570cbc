# notifications/services/variables.py
"""
Template variable builders.

Every builder is a pure function of its inputs: model instances (already
loaded), plain values and an injected `now`. No queries, no clock reads,
no settings lookups, so the output for a given aggregate is deterministic.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.utils.html import escape

TWOPLACES = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "NGN": "₦",
    "JPY": "¥",
}


def format_money(amount, currency: str) -> str:
    value = Decimal(str(amount or "0")).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    code = (currency or "").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{value:,.2f} {code}".strip()


def format_date(value) -> str:
    if value is None:
        return ""
    return value.strftime("%B %d, %Y").replace(" 0", " ")


def format_address(address) -> str:
    if not address or not isinstance(address, dict):
        return ""
    name = address.get("full_name") or address.get("name") or ""
    street = address.get("street") or address.get("line1") or ""
    line2 = address.get("line2") or ""
    city = address.get("city") or ""
    state = address.get("state") or ""
    postal = address.get("postal_code") or address.get("zip") or ""
    country = address.get("country") or ""

    city_line = " ".join(p for p in [f"{city}," if city else "", state, postal] if p).strip(" ,")
    parts = [name, street, line2, city_line, country]
    return ", ".join(p.strip() for p in parts if p and p.strip())


def format_items_html(items, currency: str) -> str:
    rows = []
    for item in items:
        options = item.selected_options or []
        option_text = ""
        if options:
            names = ", ".join(escape(o.get("name", "")) for o in options)
            option_text = f"<br><small>{names}</small>"
        rows.append(
            "<tr>"
            f"<td>{escape(item.product_name)}{option_text}</td>"
            f"<td style=\"text-align:center\">{int(item.quantity)}</td>"
            f"<td style=\"text-align:right\">{format_money(item.unit_price, currency)}</td>"
            f"<td style=\"text-align:right\">{format_money(item.total_price, currency)}</td>"
            "</tr>"
        )
    return (
        "<table style=\"width:100%;border-collapse:collapse\">"
        "<thead><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
    )


def _store_url(store, fallback_base_url: str) -> str:
    return (getattr(store, "domain", "") or fallback_base_url or "").rstrip("/")


def _split_name(full_name: str) -> tuple[str, str]:
    full_name = (full_name or "").strip()
    if not full_name:
        return "", ""
    first, _, last = full_name.partition(" ")
    return first, last.strip()


# =====================================================
# BUILDERS
# =====================================================


def build_signup_variables(*, customer, store, now, base_url: str = "") -> dict:
    store_url = _store_url(store, base_url)
    return {
        "customer_name": customer.full_name or customer.email,
        "customer_first_name": customer.first_name or customer.email,
        "customer_email": customer.email,
        "store_name": getattr(store, "name", "") or "Our Store",
        "store_url": store_url,
        "login_url": f"{store_url}/login",
        "signup_date": format_date(now),
        "current_year": now.year,
    }


def build_order_success_variables(*, order, items, store, now, base_url: str = "") -> dict:
    store_url = _store_url(store, base_url)
    currency = order.currency
    first_name, _ = _split_name(order.customer_name)

    return {
        "customer_name": order.customer_name or order.customer_email,
        "customer_first_name": first_name or order.customer_name or "there",
        "customer_email": order.customer_email,
        "store_name": getattr(store, "name", "") or "Our Store",
        "store_url": store_url,
        "order_number": order.order_number,
        "order_date": format_date(order.created_at or now),
        "order_status": order.get_status_display(),
        "order_subtotal": format_money(order.subtotal_amount, currency),
        "order_discount": format_money(order.discount_amount, currency),
        "order_tax": format_money(order.tax_amount, currency),
        "order_shipping": format_money(order.shipping_amount, currency),
        "order_fee": format_money(order.payment_fee_amount, currency),
        "order_total": format_money(order.total_amount, currency),
        "coupon_code": order.coupon_code,
        "items_html": format_items_html(items, currency),
        "items_count": len(items),
        "shipping_address": format_address(order.shipping_address),
        "billing_address": format_address(order.billing_address),
        "shipping_method": order.shipping_method,
        "payment_method": order.payment_method or "Credit Card",
        "delivery_instructions": order.delivery_instructions,
        "order_details_url": f"{store_url}/order/{order.id}",
        "current_year": now.year,
    }


def build_invoice_variables(*, order, items, invoice, store, now, base_url: str = "") -> dict:
    variables = build_order_success_variables(
        order=order, items=items, store=store, now=now, base_url=base_url
    )
    variables.update(
        {
            "invoice_number": invoice.invoice_number,
            "invoice_date": format_date(invoice.created_at or now),
        }
    )
    return variables


def build_shipment_variables(*, order, items, shipment, store, now, base_url: str = "") -> dict:
    variables = build_order_success_variables(
        order=order, items=items, store=store, now=now, base_url=base_url
    )
    variables.update(
        {
            "shipment_number": shipment.shipment_number,
            "tracking_number": shipment.tracking_number or order.tracking_number or "Not provided",
            "tracking_url": shipment.tracking_url,
            "carrier": shipment.carrier,
            "estimated_delivery": format_date(shipment.estimated_delivery_date) or "TBD",
        }
    )
    return variables


def build_credit_purchase_variables(*, transaction, balance, user, store, now) -> dict:
    first_name = getattr(user, "first_name", "") or ""
    last_name = getattr(user, "last_name", "") or ""
    full_name = f"{first_name} {last_name}".strip()
    email = getattr(user, "email", "") or ""

    return {
        "customer_name": full_name or email,
        "customer_first_name": first_name or email,
        "customer_email": email,
        "store_name": getattr(store, "name", "") or "Our Store",
        "credits_purchased": str(transaction.credits_amount),
        "amount": format_money(transaction.amount, transaction.currency),
        "transaction_id": str(transaction.id),
        "balance": str(balance) if balance is not None else "N/A",
        "purchase_date": format_date(transaction.completed_at or now),
        "payment_method": "Credit Card",
        "current_year": now.year,
    }
