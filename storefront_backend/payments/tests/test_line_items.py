import json
import uuid
from types import SimpleNamespace

from django.test import SimpleTestCase

from payments.services.line_items import (
    METADATA_VALUE_LIMIT,
    build_session_metadata,
    parse_json_metadata,
)


class SessionMetadataTests(SimpleTestCase):
    """
    GUARANTEES:
    - Every metadata value fits the gateway's 500 character limit
    - Oversized addresses stay valid JSON (longest fields dropped, logged)
    - Oversized free text is truncated and logged
    """

    def metadata(self, **overrides):
        data = {
            "store": SimpleNamespace(id=uuid.uuid4()),
            "payment_method_code": "card",
            "shipping_method_code": "standard",
            "coupon_code": "",
            "customer_id": None,
            "customer_email": "buyer@example.com",
            "customer_name": "Ada Buyer",
            "customer_phone": "",
            "shipping_address": {"street": "1 Main St", "city": "Springfield"},
            "billing_address": None,
            "delivery_instructions": "",
        }
        data.update(overrides)
        return build_session_metadata(**data)

    def test_small_address_round_trips(self):
        meta = self.metadata()

        self.assertEqual(
            parse_json_metadata(meta["shipping_address"]),
            {"street": "1 Main St", "city": "Springfield"},
        )

    def test_oversized_address_keeps_valid_json(self):
        address = {"street": "1 Main St", "city": "Springfield", "notes": "x" * 600}

        with self.assertLogs("payments.services.line_items", level="WARNING") as logs:
            meta = self.metadata(shipping_address=address)

        self.assertLessEqual(len(meta["shipping_address"]), METADATA_VALUE_LIMIT)
        self.assertEqual(
            json.loads(meta["shipping_address"]),
            {"street": "1 Main St", "city": "Springfield"},
        )
        self.assertIn("fields dropped", logs.output[0])

    def test_long_delivery_instructions_are_truncated_with_warning(self):
        with self.assertLogs("payments.services.line_items", level="WARNING"):
            meta = self.metadata(delivery_instructions="y" * 700)

        self.assertEqual(len(meta["delivery_instructions"]), METADATA_VALUE_LIMIT)
