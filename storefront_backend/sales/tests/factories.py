# sales/tests/factories.py

"""
Shared builders + fake collaborators for the payment / order test suites.

- FakeGateway keeps the REAL webhook signature check (StripeGateway.verify_event)
  but answers every outbound call from in-memory dicts.
- FakeNotificationService records sends and can be told to fail N times.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from decimal import Decimal

from payments.config import PaymentSettings
from payments.services.exceptions import GatewayTimeoutError
from payments.services.stripe_gateway import StripeGateway
from notifications.services.exceptions import NotificationError
from notifications.services.service import SendResult
from products.models import Product, ProductOption
from sales.services.order_materializer import create_order_with_items
from sales.services.pricing import build_order_quote
from store.models import PaymentMethod, ShippingMethod, Store

WEBHOOK_SECRET = "whsec_test_secret"


# =====================================================
# MODEL BUILDERS
# =====================================================


def make_store(**overrides) -> Store:
    data = {
        "name": "Test Store",
        "domain": "https://shop.example.com",
        "currency": "USD",
        "tax_rate": Decimal("0.00"),
    }
    data.update(overrides)
    return Store.objects.create(**data)


def make_product(store, *, sku="SKU-1", name="Widget", unit_price="10.00", **extra) -> Product:
    return Product.objects.create(store=store, sku=sku, name=name, unit_price=Decimal(unit_price), **extra)


def make_option(product, *, name="Gift wrap", price="2.50", **extra) -> ProductOption:
    return ProductOption.objects.create(product=product, name=name, price=Decimal(price), **extra)


def make_payment_method(
    store,
    *,
    code="card",
    provider=PaymentMethod.PROVIDER_STRIPE,
    flow=PaymentMethod.FLOW_ONLINE,
    fee="0.00",
) -> PaymentMethod:
    return PaymentMethod.objects.create(
        store=store,
        code=code,
        name=code.title(),
        provider=provider,
        payment_flow=flow,
        fee_amount=Decimal(fee),
    )


def make_shipping_method(store, *, code="standard", flat_rate="5.00", free_over=None) -> ShippingMethod:
    return ShippingMethod.objects.create(
        store=store,
        code=code,
        name=code.title(),
        flat_rate=Decimal(flat_rate),
        free_shipping_min_order=Decimal(free_over) if free_over is not None else None,
    )


def make_order(
    store,
    products,
    *,
    reference="cs_test_order_1",
    provider=PaymentMethod.PROVIDER_STRIPE,
    flow=PaymentMethod.FLOW_ONLINE,
    email="buyer@example.com",
    name="Ada Buyer",
    shipping_method=None,
    payment_method=None,
):
    """
    products: list of (product, quantity)
    """
    quote = build_order_quote(
        store=store,
        items=[{"product_id": str(p.id), "quantity": q} for p, q in products],
        shipping_method=shipping_method,
        payment_method=payment_method,
    )
    return create_order_with_items(
        store=store,
        quote=quote,
        payment_reference=reference,
        payment_provider=provider,
        payment_flow=flow,
        payment_method_code=payment_method.code if payment_method else "card",
        customer_email=email,
        customer_name=name,
        shipping_address={"full_name": name, "street": "1 Main St", "city": "Springfield", "country": "US"},
    )


# =====================================================
# STRIPE PAYLOADS
# =====================================================


def sign_payload(payload: str, *, secret=WEBHOOK_SECRET, timestamp=None) -> str:
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def session_object(session_id, *, store, payment_status="paid", status="complete", **extra) -> dict:
    obj = {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": payment_status,
        "status": status,
        "currency": store.currency.lower(),
        "amount_total": 0,
        "customer_email": "buyer@example.com",
        "metadata": {"store_id": str(store.id)},
        "total_details": {"amount_discount": 0},
    }
    obj.update(extra)
    return obj


def event_payload(event_type, obj, *, event_id="evt_test_1", account=None) -> str:
    data = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "livemode": False,
        "data": {"object": obj},
    }
    if account:
        data["account"] = account
    return json.dumps(data)


def gateway_line(*, name, unit_amount, quantity=1, kind="product", product_id="", sku="", option_ids="") -> dict:
    return {
        "object": "item",
        "description": name,
        "quantity": quantity,
        "amount_subtotal": unit_amount * quantity,
        "price": {
            "unit_amount": unit_amount,
            "product": {
                "name": name,
                "metadata": {"line_kind": kind, "product_id": product_id, "sku": sku, "option_ids": option_ids},
            },
        },
    }


# =====================================================
# FAKES
# =====================================================


class FakeGateway(StripeGateway):
    def __init__(self, config: PaymentSettings | None = None):
        # same config the real gateway gets; no SDK calls
        self.config = config or PaymentSettings.from_settings()
        self.sessions: dict = {}
        self.line_items: dict = {}
        self.intents: dict = {}
        self.created_sessions: list = []
        self.created_intents: list = []
        self.fail_with: Exception | None = None
        self.calls: list = []

    def _maybe_fail(self, name):
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def create_checkout_session(self, **kwargs):
        self._maybe_fail("create_checkout_session")
        session_id = f"cs_test_{len(self.created_sessions) + 1}"
        self.created_sessions.append(kwargs)
        session = {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}", "payment_status": "unpaid", "status": "open"}
        self.sessions[session_id] = session
        return session

    def retrieve_checkout_session(self, session_id, *, stripe_account=None):
        self._maybe_fail("retrieve_checkout_session")
        if session_id not in self.sessions:
            raise GatewayTimeoutError(f"unknown session {session_id}")
        return self.sessions[session_id]

    def list_line_items(self, session_id, *, stripe_account=None):
        self._maybe_fail("list_line_items")
        return self.line_items.get(session_id, [])

    def create_payment_intent(self, **kwargs):
        self._maybe_fail("create_payment_intent")
        intent_id = f"pi_test_{len(self.created_intents) + 1}"
        self.created_intents.append(kwargs)
        intent = {"id": intent_id, "client_secret": f"{intent_id}_secret_x", "status": "requires_payment_method"}
        self.intents[intent_id] = intent
        return intent

    def retrieve_payment_intent(self, intent_id, *, stripe_account=None):
        self._maybe_fail("retrieve_payment_intent")
        return self.intents[intent_id]


class FakeNotificationService:
    def __init__(self, *, fail_times: int = 0, error: Exception | None = None):
        self.sent: list = []
        self.fail_times = fail_times
        self.error = error or NotificationError("smtp down")

    def send(self, store_id, template_identifier, recipient_email, variables, attachments=None):
        if self.fail_times > 0:
            self.fail_times -= 1
            raise self.error
        self.sent.append(
            {
                "store_id": store_id,
                "template": template_identifier,
                "recipient": recipient_email,
                "variables": variables,
            }
        )
        return SendResult(success=True, message_id=f"<msg-{len(self.sent)}@test>")
