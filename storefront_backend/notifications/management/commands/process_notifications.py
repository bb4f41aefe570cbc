# notifications/management/commands/process_notifications.py

from __future__ import annotations

import time

from django.core.management.base import BaseCommand

from notifications.models import NotificationJob
from notifications.services.dispatcher import build_dispatcher_from_settings


class Command(BaseCommand):
    help = (
        "Deliver due notification jobs (queued / retry), requeue stale 'sending' jobs "
        "and report dead letters."
    )

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=100, help="Max jobs per pass (default 100)")
        parser.add_argument("--loop", action="store_true", help="Keep running on a fixed interval")
        parser.add_argument(
            "--interval",
            type=int,
            default=60,
            help="Seconds between passes in --loop mode (default 60)",
        )

    def _run_once(self, dispatcher, limit: int) -> None:
        result = dispatcher.process_due(limit=limit)

        self.stdout.write(self.style.MIGRATE_HEADING("Process notifications"))
        self.stdout.write(f"Stale 'sending' requeued: {result.requeued_stale}")
        self.stdout.write(f"Examined: {result.examined}")
        self.stdout.write(self.style.SUCCESS(f"Sent:     {result.sent}"))
        if result.retried:
            self.stdout.write(self.style.WARNING(f"Retried:  {result.retried}"))
        if result.dead:
            self.stdout.write(self.style.ERROR(f"Dead:     {result.dead}"))
        if result.skipped:
            self.stdout.write(f"Skipped:  {result.skipped}")

        dead_total = NotificationJob.objects.filter(status=NotificationJob.STATUS_DEAD).count()
        if dead_total:
            self.stdout.write(
                self.style.WARNING(f"Dead-letter jobs awaiting operator action: {dead_total}")
            )

    def handle(self, *args, **options):
        limit = max(1, int(options.get("limit") or 100))
        interval = options.get("interval") or 60

        dispatcher = build_dispatcher_from_settings()

        if not options.get("loop"):
            self._run_once(dispatcher, limit)
            return

        self.stdout.write(f"Looping every {interval}s (Ctrl+C to stop)")
        try:
            while True:
                self._run_once(dispatcher, limit)
                time.sleep(max(1, int(interval)))
        except KeyboardInterrupt:
            self.stdout.write("Stopped.")
