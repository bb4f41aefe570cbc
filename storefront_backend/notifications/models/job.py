# notifications/models/job.py

import uuid

from django.db import models
from django.utils import timezone


class NotificationJob(models.Model):
    """
    Notification outbox row.

    Lifecycle:
        queued -> sending -> sent
                          -> retry -> sending ... (exponential backoff)
                          -> dead  (attempts exhausted: dead letter)

    Hard rules:
    - queued/retry -> sending is a conditional update (one deliverer per job)
    - jobs are written inside the caller's transaction and only delivered
      after it commits
    """

    STATUS_QUEUED = "queued"
    STATUS_SENDING = "sending"
    STATUS_RETRY = "retry"
    STATUS_SENT = "sent"
    STATUS_DEAD = "dead"

    STATUS_CHOICES = [
        (STATUS_QUEUED, "Queued"),
        (STATUS_SENDING, "Sending"),
        (STATUS_RETRY, "Retry scheduled"),
        (STATUS_SENT, "Sent"),
        (STATUS_DEAD, "Dead letter"),
    ]

    DELIVERABLE_STATUSES = (STATUS_QUEUED, STATUS_RETRY)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    store = models.ForeignKey(
        "store.Store",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notification_jobs",
    )

    template_identifier = models.CharField(max_length=64)
    recipient_email = models.EmailField()
    variables = models.JSONField(default=dict, blank=True)
    attachments = models.JSONField(default=list, blank=True)

    # Free-form correlation data for logs (order id, credit transaction id...)
    context = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=16, choices=STATUS_CHOICES, default=STATUS_QUEUED
    )
    attempts = models.PositiveIntegerField(default=0)
    next_attempt_at = models.DateTimeField(default=timezone.now)
    last_error = models.TextField(blank=True, default="")

    message_id = models.CharField(max_length=255, blank=True, default="")
    sent_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["status", "next_attempt_at"], name="notif_job_due_idx"),
        ]

    def __str__(self):
        return f"{self.template_identifier} -> {self.recipient_email} [{self.status}]"
