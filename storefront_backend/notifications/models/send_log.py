# notifications/models/send_log.py

import uuid

from django.db import models


class EmailSendLog(models.Model):
    """
    Append-only delivery log. One row per delivery attempt, success or not.
    This is what operators look at when a customer says "I never got it".
    """

    STATUS_SENT = "sent"
    STATUS_FAILED = "failed"

    STATUS_CHOICES = [
        (STATUS_SENT, "Sent"),
        (STATUS_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="email_send_logs",
    )

    template_identifier = models.CharField(max_length=64, db_index=True)
    recipient_email = models.EmailField()
    subject = models.CharField(max_length=255, blank=True, default="")

    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    message_id = models.CharField(max_length=255, blank=True, default="")
    error_message = models.TextField(blank=True, default="")

    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["store", "created_at"], name="notif_sendlog_store_idx"),
            models.Index(fields=["status"], name="notif_sendlog_status_idx"),
        ]

    def __str__(self):
        return f"{self.template_identifier} -> {self.recipient_email} [{self.status}]"
