# notifications/services/dispatcher.py
"""
NOTIFICATION DISPATCHER (OUTBOX)

Purpose:
- Decouple customer emails from the finalization path.

Flow:
    enqueue()  -> NotificationJob(queued) written in the caller's transaction
               -> transaction.on_commit: worker.submit(job_id)
    deliver()  -> claim (queued|retry -> sending, conditional update)
               -> EmailNotificationService.send()
               -> sent | retry (exponential backoff) | dead (attempts exhausted)

Hard rules:
- A job is delivered by at most one worker at a time (conditional claim).
- Delivery errors never propagate to the code that enqueued the job.
- Rolled-back transactions never send: the job row and the on_commit hook
  vanish together.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from notifications.models import NotificationJob
from notifications.services.exceptions import TemplateNotFoundError
from notifications.services.service import EmailNotificationService
from notifications.services.worker import BackgroundWorker, InlineWorker

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_BASE_SECONDS = 60
DEFAULT_STALE_SENDING_MINUTES = 15


@dataclass
class DrainResult:
    examined: int = 0
    sent: int = 0
    retried: int = 0
    dead: int = 0
    skipped: int = 0
    requeued_stale: int = 0


class NotificationDispatcher:
    def __init__(
        self,
        *,
        service=None,
        inline: bool = False,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_seconds: int = DEFAULT_RETRY_BASE_SECONDS,
        stale_sending_minutes: int = DEFAULT_STALE_SENDING_MINUTES,
    ):
        self.service = service or EmailNotificationService()
        self.max_attempts = max(1, int(max_attempts))
        self.retry_base_seconds = max(1, int(retry_base_seconds))
        self.stale_sending_minutes = max(1, int(stale_sending_minutes))
        self.worker = InlineWorker(self.deliver) if inline else BackgroundWorker(self.deliver)

    # =====================================================
    # ENQUEUE
    # =====================================================

    def enqueue(
        self,
        *,
        store_id,
        template_identifier: str,
        recipient_email: str,
        variables: dict,
        attachments: list | None = None,
        context: dict | None = None,
    ) -> NotificationJob:
        job = NotificationJob.objects.create(
            store_id=store_id,
            template_identifier=template_identifier,
            recipient_email=(recipient_email or "").strip(),
            variables=variables or {},
            attachments=attachments or [],
            context=context or {},
        )
        logger.info(
            "Notification queued",
            extra={"job_id": str(job.id), "template": template_identifier, **(context or {})},
        )

        job_id = job.id
        transaction.on_commit(lambda: self.worker.submit(job_id))
        return job

    # =====================================================
    # DELIVERY
    # =====================================================

    def backoff(self, attempts: int) -> timedelta:
        return timedelta(seconds=self.retry_base_seconds * (2 ** max(attempts - 1, 0)))

    def deliver(self, job_id, *, now=None) -> str | None:
        """
        Deliver one job. Returns the resulting status, or None when another
        worker owns the job (or it is not due yet).
        """
        now = now or timezone.now()

        claimed = NotificationJob.objects.filter(
            id=job_id,
            status__in=NotificationJob.DELIVERABLE_STATUSES,
            next_attempt_at__lte=now,
        ).update(
            status=NotificationJob.STATUS_SENDING,
            attempts=F("attempts") + 1,
            updated_at=now,
        )
        if not claimed:
            return None

        job = NotificationJob.objects.get(id=job_id)

        try:
            result = self.service.send(
                job.store_id,
                job.template_identifier,
                job.recipient_email,
                job.variables,
                attachments=job.attachments or None,
            )
        except Exception as exc:
            return self._record_failure(job, exc, now=now)

        NotificationJob.objects.filter(
            id=job.id, status=NotificationJob.STATUS_SENDING
        ).update(
            status=NotificationJob.STATUS_SENT,
            sent_at=now,
            message_id=getattr(result, "message_id", "") or "",
            last_error="",
            updated_at=now,
        )
        logger.info(
            "Notification delivered",
            extra={"job_id": str(job.id), "template": job.template_identifier, **(job.context or {})},
        )
        return NotificationJob.STATUS_SENT

    def _record_failure(self, job: NotificationJob, exc: Exception, *, now) -> str:
        permanent = isinstance(exc, TemplateNotFoundError)

        if permanent or job.attempts >= self.max_attempts:
            NotificationJob.objects.filter(
                id=job.id, status=NotificationJob.STATUS_SENDING
            ).update(
                status=NotificationJob.STATUS_DEAD,
                last_error=str(exc),
                updated_at=now,
            )
            logger.error(
                "Notification moved to dead letter",
                extra={
                    "job_id": str(job.id),
                    "template": job.template_identifier,
                    "attempts": job.attempts,
                    "error": str(exc),
                    **(job.context or {}),
                },
            )
            return NotificationJob.STATUS_DEAD

        NotificationJob.objects.filter(
            id=job.id, status=NotificationJob.STATUS_SENDING
        ).update(
            status=NotificationJob.STATUS_RETRY,
            next_attempt_at=now + self.backoff(job.attempts),
            last_error=str(exc),
            updated_at=now,
        )
        logger.warning(
            "Notification delivery failed; retry scheduled",
            extra={
                "job_id": str(job.id),
                "template": job.template_identifier,
                "attempts": job.attempts,
                "error": str(exc),
                **(job.context or {}),
            },
        )
        return NotificationJob.STATUS_RETRY

    # =====================================================
    # MAINTENANCE (process_notifications command)
    # =====================================================

    def requeue_stale(self, *, now=None) -> int:
        now = now or timezone.now()
        cutoff = now - timedelta(minutes=self.stale_sending_minutes)
        return NotificationJob.objects.filter(
            status=NotificationJob.STATUS_SENDING,
            updated_at__lt=cutoff,
        ).update(
            status=NotificationJob.STATUS_RETRY,
            next_attempt_at=now,
            updated_at=now,
        )

    def process_due(self, *, now=None, limit: int = 100) -> DrainResult:
        now = now or timezone.now()
        result = DrainResult()
        result.requeued_stale = self.requeue_stale(now=now)

        due_ids = list(
            NotificationJob.objects.filter(
                status__in=NotificationJob.DELIVERABLE_STATUSES,
                next_attempt_at__lte=now,
            )
            .order_by("next_attempt_at")
            .values_list("id", flat=True)[: max(1, int(limit))]
        )

        for job_id in due_ids:
            result.examined += 1
            outcome = self.deliver(job_id, now=now)
            if outcome == NotificationJob.STATUS_SENT:
                result.sent += 1
            elif outcome == NotificationJob.STATUS_RETRY:
                result.retried += 1
            elif outcome == NotificationJob.STATUS_DEAD:
                result.dead += 1
            else:
                result.skipped += 1

        return result


# =====================================================
# PROCESS-WIDE INSTANCE
# =====================================================

_dispatcher: NotificationDispatcher | None = None
_dispatcher_lock = threading.Lock()


def build_dispatcher_from_settings(*, inline: bool | None = None) -> NotificationDispatcher:
    """inline=True delivers in the calling thread (one-shot management commands)."""
    cfg = getattr(settings, "NOTIFICATIONS", {}) or {}
    if inline is None:
        inline = bool(cfg.get("DELIVER_INLINE", False))
    return NotificationDispatcher(
        inline=inline,
        max_attempts=cfg.get("MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        retry_base_seconds=cfg.get("RETRY_BASE_SECONDS", DEFAULT_RETRY_BASE_SECONDS),
        stale_sending_minutes=cfg.get("STALE_SENDING_MINUTES", DEFAULT_STALE_SENDING_MINUTES),
    )


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = build_dispatcher_from_settings()
        return _dispatcher
