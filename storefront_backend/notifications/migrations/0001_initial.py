"""
======================================================
PATH: notifications/migrations/0001_initial.py
======================================================
MIGRATION: CREATE EmailTemplate, EmailSendLog, NotificationJob (outbox)
"""

from __future__ import annotations

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("store", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="EmailTemplate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "identifier",
                    models.CharField(
                        choices=[
                            ("order_success_email", "Order confirmation"),
                            ("invoice_email", "Invoice"),
                            ("shipment_email", "Shipment"),
                            ("credit_purchase_email", "Credit purchase"),
                            ("signup_email", "Welcome / signup"),
                        ],
                        max_length=64,
                    ),
                ),
                ("subject", models.CharField(max_length=255)),
                ("html_content", models.TextField()),
                ("text_content", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "store",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="email_templates",
                        to="store.store",
                    ),
                ),
            ],
            options={"ordering": ["identifier"]},
        ),
        migrations.AddConstraint(
            model_name="emailtemplate",
            constraint=models.UniqueConstraint(fields=("store", "identifier"), name="uniq_email_template_per_store"),
        ),
        migrations.CreateModel(
            name="EmailSendLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("template_identifier", models.CharField(db_index=True, max_length=64)),
                ("recipient_email", models.EmailField(max_length=254)),
                ("subject", models.CharField(blank=True, default="", max_length=255)),
                ("status", models.CharField(choices=[("sent", "Sent"), ("failed", "Failed")], max_length=16)),
                ("message_id", models.CharField(blank=True, default="", max_length=255)),
                ("error_message", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "store",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="email_send_logs",
                        to="store.store",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"]},
        ),
        migrations.AddIndex(
            model_name="emailsendlog",
            index=models.Index(fields=["store", "created_at"], name="notif_sendlog_store_idx"),
        ),
        migrations.AddIndex(
            model_name="emailsendlog",
            index=models.Index(fields=["status"], name="notif_sendlog_status_idx"),
        ),
        migrations.CreateModel(
            name="NotificationJob",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("template_identifier", models.CharField(max_length=64)),
                ("recipient_email", models.EmailField(max_length=254)),
                ("variables", models.JSONField(blank=True, default=dict)),
                ("attachments", models.JSONField(blank=True, default=list)),
                ("context", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("queued", "Queued"),
                            ("sending", "Sending"),
                            ("retry", "Retry scheduled"),
                            ("sent", "Sent"),
                            ("dead", "Dead letter"),
                        ],
                        default="queued",
                        max_length=16,
                    ),
                ),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("next_attempt_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_error", models.TextField(blank=True, default="")),
                ("message_id", models.CharField(blank=True, default="", max_length=255)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "store",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="notification_jobs",
                        to="store.store",
                    ),
                ),
            ],
            options={"ordering": ["created_at"]},
        ),
        migrations.AddIndex(
            model_name="notificationjob",
            index=models.Index(fields=["status", "next_attempt_at"], name="notif_job_due_idx"),
        ),
    ]
