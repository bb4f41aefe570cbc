"""
======================================================
PATH: payments/migrations/0001_initial.py
======================================================
MIGRATION: CREATE PaymentEvent (gateway event audit log)
"""

from __future__ import annotations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider", models.CharField(default="stripe", max_length=32)),
                ("event_id", models.CharField(max_length=255, unique=True)),
                ("event_type", models.CharField(db_index=True, max_length=128)),
                ("payment_reference", models.CharField(blank=True, db_index=True, default="", max_length=255)),
                (
                    "processing_result",
                    models.CharField(
                        choices=[
                            ("processed", "Processed"),
                            ("noop", "No-op"),
                            ("ignored", "Ignored"),
                            ("failed", "Failed"),
                        ],
                        max_length=16,
                    ),
                ),
                ("detail", models.CharField(blank=True, default="", max_length=255)),
                ("error_message", models.TextField(blank=True, default="")),
                ("deliveries", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["-created_at"]},
        ),
    ]
