# sales/management/commands/reconcile_pending_orders.py

from __future__ import annotations

import time
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand

from notifications.services.dispatcher import build_dispatcher_from_settings
from payments.services.verifiers import build_default_registry
from sales.services.reconciliation import (
    default_batch_size,
    default_grace,
    reconcile_pending_orders,
)


class Command(BaseCommand):
    help = (
        "Verify stale pending online orders with their payment provider and finalize "
        "the ones that were paid (safety net for lost webhooks)."
    )

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, help="Max orders per pass (default: RECONCILIATION_BATCH_SIZE)")
        parser.add_argument(
            "--grace-minutes",
            type=int,
            help="Only orders older than this (default: RECONCILIATION_GRACE_MINUTES)",
        )
        parser.add_argument("--dry-run", action="store_true", help="Verify only; write nothing")
        parser.add_argument("--loop", action="store_true", help="Keep running on a fixed interval")
        parser.add_argument(
            "--interval",
            type=int,
            help="Seconds between passes in --loop mode (default: RECONCILIATION_INTERVAL_SECONDS)",
        )

    def _run_once(self, *, registry, dispatcher, limit, grace, dry_run) -> None:
        result = reconcile_pending_orders(
            registry=registry,
            batch_size=limit,
            grace=grace,
            dispatcher=dispatcher,
            dry_run=dry_run,
        )

        self.stdout.write(self.style.MIGRATE_HEADING("Reconcile pending orders"))
        self.stdout.write(f"Verifiers:   {', '.join(registry.providers()) or 'none'}")
        if dry_run:
            self.stdout.write("DRY RUN: no database changes were saved.")
        self.stdout.write(f"Examined:    {result.examined}")
        self.stdout.write(self.style.SUCCESS(f"Confirmed:   {result.confirmed}"))
        self.stdout.write(f"Already paid: {result.already_paid}")
        self.stdout.write(f"Unpaid:      {result.unpaid}")
        self.stdout.write(f"Expired:     {result.expired}")
        if result.unverified:
            self.stdout.write(self.style.WARNING(f"Unverified:  {result.unverified}"))
        if result.unsupported:
            self.stdout.write(f"Unsupported: {result.unsupported}")
        if result.healed:
            self.stdout.write(self.style.WARNING(f"Confirmations re-queued: {result.healed}"))
        if result.errors:
            self.stdout.write(self.style.ERROR(f"Errors:      {result.errors}"))

    def handle(self, *args, **options):
        cfg = getattr(settings, "RECONCILIATION", {}) or {}

        limit = max(1, int(options.get("limit") or default_batch_size()))
        grace_minutes = options.get("grace_minutes")
        grace = timedelta(minutes=max(0, grace_minutes)) if grace_minutes is not None else default_grace()
        interval = max(1, int(options.get("interval") or cfg.get("INTERVAL_SECONDS") or 300))
        dry_run = bool(options.get("dry_run"))
        loop = bool(options.get("loop"))

        registry = build_default_registry()
        dispatcher = build_dispatcher_from_settings(inline=not loop)

        kwargs = dict(registry=registry, dispatcher=dispatcher, limit=limit, grace=grace, dry_run=dry_run)

        if not loop:
            self._run_once(**kwargs)
            return

        self.stdout.write(f"Looping every {interval}s (Ctrl+C to stop)")
        try:
            while True:
                self._run_once(**kwargs)
                time.sleep(interval)
        except KeyboardInterrupt:
            self.stdout.write("Stopped.")
