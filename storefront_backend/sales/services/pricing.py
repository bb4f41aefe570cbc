# sales/services/pricing.py

"""
ORDER PRICING ENGINE (PURE READS, NO WRITES)

Purpose:
- Turn a cart (product ids, quantities, option ids) into a priced quote
  using ONLY server-side prices.

Hard rules:
- Client-provided prices / totals are never read.
- Unit price = product.unit_price + sum(active selected option prices).
- discount: valid store coupon, capped at subtotal, min purchase respected
- shipping: method flat rate, free at/above free_shipping_min_order
- tax: store.tax_rate % of (subtotal - discount)
- fee: payment method fee_amount
- total = subtotal + tax + shipping + fee - discount (2dp exact)

Strict vs lenient:
- strict=True (checkout): any unknown product raises PricingError
- strict=False (rebuild paths): unknown lines are skipped and logged;
  zero surviving lines still raises EmptyOrderError
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from django.utils import timezone

from products.models import Product, ProductOption
from sales.services.exceptions import EmptyOrderError, InvalidCouponError, PricingError
from store.models import Coupon, PaymentMethod, ShippingMethod, Store

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def _money(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0.00")
    return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _to_int_qty(value) -> int:
    if isinstance(value, bool):
        raise ValueError("quantity must be a whole integer unit")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValueError("quantity must be a whole integer unit")


def _valid_uuids(values) -> list:
    out = []
    for v in values or []:
        try:
            out.append(uuid.UUID(str(v)))
        except (ValueError, TypeError, AttributeError):
            continue
    return out


# =====================================================
# QUOTE TYPES
# =====================================================


@dataclass(frozen=True)
class PricedLine:
    product: Product | None
    product_id: str
    product_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    selected_options: list = field(default_factory=list)


@dataclass(frozen=True)
class OrderQuote:
    currency: str
    lines: list
    subtotal_amount: Decimal
    discount_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    payment_fee_amount: Decimal
    total_amount: Decimal
    coupon: Coupon | None = None

    @property
    def coupon_code(self) -> str:
        return self.coupon.code if self.coupon else ""


def compute_total(*, subtotal, tax, shipping, fee, discount) -> Decimal:
    return _money(
        _money(subtotal) + _money(tax) + _money(shipping) + _money(fee) - _money(discount)
    )


# =====================================================
# COMPONENTS
# =====================================================


def price_line(*, store: Store, product_id, quantity, option_ids=None) -> PricedLine:
    try:
        qty = _to_int_qty(quantity)
    except ValueError as exc:
        raise PricingError(str(exc)) from exc
    if qty <= 0:
        raise PricingError("quantity must be >= 1")

    try:
        product_uuid = uuid.UUID(str(product_id))
    except (ValueError, TypeError, AttributeError) as exc:
        raise PricingError(f"Invalid product id: {product_id!r}") from exc

    product = Product.objects.filter(
        id=product_uuid, store=store, is_active=True
    ).first()
    if product is None:
        raise PricingError(f"Unknown or inactive product: {product_id}")

    option_ids = _valid_uuids(option_ids)
    options = []
    if option_ids:
        options = list(
            ProductOption.objects.filter(
                product=product, id__in=option_ids, is_active=True
            ).order_by("name")
        )

    unit_price = _money(product.unit_price) + sum(
        (_money(o.price) for o in options), Decimal("0.00")
    )
    unit_price = _money(unit_price)

    return PricedLine(
        product=product,
        product_id=str(product.id),
        product_name=product.name,
        product_sku=product.sku,
        quantity=qty,
        unit_price=unit_price,
        total_price=_money(unit_price * Decimal(qty)),
        selected_options=[
            {"id": str(o.id), "name": o.name, "price": str(_money(o.price))}
            for o in options
        ],
    )


def resolve_coupon(*, store: Store, code: str | None, subtotal: Decimal, now=None):
    code = (code or "").strip()
    if not code:
        return None

    coupon = Coupon.objects.filter(store=store, code__iexact=code).first()
    if coupon is None or not coupon.is_valid_at(now or timezone.now()):
        raise InvalidCouponError(f"Coupon '{code}' is not valid")

    if _money(subtotal) < _money(coupon.min_purchase_amount):
        raise InvalidCouponError(
            f"Coupon '{code}' requires a minimum purchase of {_money(coupon.min_purchase_amount)}"
        )
    return coupon


def compute_discount(*, coupon: Coupon | None, subtotal: Decimal) -> Decimal:
    if coupon is None:
        return Decimal("0.00")

    subtotal = _money(subtotal)
    if coupon.discount_type == Coupon.TYPE_PERCENTAGE:
        discount = _money(subtotal * _money(coupon.discount_value) / HUNDRED)
    else:
        discount = _money(coupon.discount_value)

    return min(discount, subtotal)


def compute_shipping(*, shipping_method: ShippingMethod | None, subtotal: Decimal) -> Decimal:
    if shipping_method is None:
        return Decimal("0.00")

    threshold = shipping_method.free_shipping_min_order
    if threshold is not None and _money(subtotal) >= _money(threshold):
        return Decimal("0.00")
    return _money(shipping_method.flat_rate)


def compute_tax(*, store: Store, subtotal: Decimal, discount: Decimal) -> Decimal:
    taxable = max(_money(subtotal) - _money(discount), Decimal("0.00"))
    return _money(taxable * _money(store.tax_rate) / HUNDRED)


# =====================================================
# PUBLIC API
# =====================================================


def build_order_quote(
    *,
    store: Store,
    items,
    shipping_method: ShippingMethod | None = None,
    payment_method: PaymentMethod | None = None,
    coupon_code: str | None = None,
    strict: bool = True,
    now=None,
) -> OrderQuote:
    """
    items: iterable of {"product_id", "quantity", "option_ids"?}
    """
    lines = []
    for idx, raw in enumerate(items or []):
        try:
            line = price_line(
                store=store,
                product_id=raw.get("product_id"),
                quantity=raw.get("quantity"),
                option_ids=raw.get("option_ids"),
            )
        except PricingError:
            if strict:
                raise
            logger.warning(
                "Skipping unpriceable cart line",
                extra={"store_id": str(store.id), "line_index": idx, "product_id": raw.get("product_id")},
            )
            continue
        lines.append(line)

    if not lines:
        raise EmptyOrderError("Order has no valid items")

    subtotal = _money(sum((l.total_price for l in lines), Decimal("0.00")))

    coupon = resolve_coupon(store=store, code=coupon_code, subtotal=subtotal, now=now)
    discount = compute_discount(coupon=coupon, subtotal=subtotal)
    shipping = compute_shipping(shipping_method=shipping_method, subtotal=subtotal)
    tax = compute_tax(store=store, subtotal=subtotal, discount=discount)
    fee = _money(payment_method.fee_amount) if payment_method is not None else Decimal("0.00")

    return OrderQuote(
        currency=(store.currency or "USD").upper(),
        lines=lines,
        subtotal_amount=subtotal,
        discount_amount=discount,
        shipping_amount=shipping,
        tax_amount=tax,
        payment_fee_amount=fee,
        total_amount=compute_total(
            subtotal=subtotal, tax=tax, shipping=shipping, fee=fee, discount=discount
        ),
        coupon=coupon,
    )
