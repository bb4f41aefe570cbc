# payments/services/events.py

"""
GATEWAY EVENT SCHEMAS

A verified webhook payload is a tagged union keyed by "type".
Each handled type validates its data.object against its own serializer;
unknown types only need a valid envelope (they are acknowledged + ignored).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rest_framework import serializers

from payments.services.exceptions import MalformedEventError

EVENT_SESSION_COMPLETED = "checkout.session.completed"
EVENT_SESSION_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
EVENT_SESSION_ASYNC_FAILED = "checkout.session.async_payment_failed"
EVENT_SESSION_EXPIRED = "checkout.session.expired"
EVENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_INTENT_FAILED = "payment_intent.payment_failed"

# checkout.session.payment_status values that mean "money captured"
PAID_SESSION_STATUSES = {"paid", "no_payment_required"}


class MetadataField(serializers.DictField):
    child = serializers.CharField(allow_blank=True)


class CheckoutSessionSerializer(serializers.Serializer):
    id = serializers.RegexField(r"^cs_[A-Za-z0-9_]+$")
    payment_status = serializers.CharField()
    status = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    currency = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    amount_total = serializers.IntegerField(required=False, allow_null=True)
    payment_intent = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    customer_email = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    metadata = MetadataField(required=False, default=dict)


class PaymentIntentSerializer(serializers.Serializer):
    id = serializers.RegexField(r"^pi_[A-Za-z0-9_]+$")
    status = serializers.CharField()
    amount = serializers.IntegerField(min_value=0)
    currency = serializers.CharField()
    metadata = MetadataField(required=False, default=dict)
    last_payment_error = serializers.JSONField(required=False, allow_null=True)


EVENT_SCHEMAS = {
    EVENT_SESSION_COMPLETED: CheckoutSessionSerializer,
    EVENT_SESSION_ASYNC_SUCCEEDED: CheckoutSessionSerializer,
    EVENT_SESSION_ASYNC_FAILED: CheckoutSessionSerializer,
    EVENT_SESSION_EXPIRED: CheckoutSessionSerializer,
    EVENT_INTENT_SUCCEEDED: PaymentIntentSerializer,
    EVENT_INTENT_FAILED: PaymentIntentSerializer,
}


class _DataSerializer(serializers.Serializer):
    object = serializers.DictField()


class EventEnvelopeSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = serializers.CharField()
    account = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    livemode = serializers.BooleanField(required=False, default=False)
    data = _DataSerializer()


@dataclass(frozen=True)
class GatewayEvent:
    id: str
    type: str
    object: dict = field(default_factory=dict)
    account: str = ""
    livemode: bool = False

    @property
    def object_id(self) -> str:
        return str(self.object.get("id") or "")

    @property
    def metadata(self) -> dict:
        return self.object.get("metadata") or {}


def _first_error(errors) -> str:
    if isinstance(errors, dict):
        for key, value in errors.items():
            return f"{key}: {_first_error(value)}"
    if isinstance(errors, list) and errors:
        return _first_error(errors[0])
    return str(errors)


def parse_event(payload: dict) -> GatewayEvent:
    envelope = EventEnvelopeSerializer(data=payload)
    if not envelope.is_valid():
        raise MalformedEventError(f"Invalid event envelope ({_first_error(envelope.errors)})")

    event_type = envelope.validated_data["type"]
    # raw object: reconstruction needs fields the schemas do not name
    obj = payload["data"]["object"]

    schema = EVENT_SCHEMAS.get(event_type)
    if schema is not None:
        checked = schema(data=obj)
        if not checked.is_valid():
            raise MalformedEventError(
                f"Invalid {event_type} payload ({_first_error(checked.errors)})"
            )

    return GatewayEvent(
        id=envelope.validated_data["id"],
        type=event_type,
        object=obj,
        account=envelope.validated_data.get("account") or "",
        livemode=envelope.validated_data.get("livemode", False),
    )
