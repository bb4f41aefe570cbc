# notifications/management/commands/seed_email_templates.py

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from notifications.services.defaults import seed_default_templates
from store.models import Store


class Command(BaseCommand):
    help = "Install default transactional email templates for one store (or all stores)."

    def add_arguments(self, parser):
        parser.add_argument("--store-id", dest="store_id", help="Store UUID (default: all active stores)")
        parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Replace existing templates with the defaults.",
        )

    def handle(self, *args, **options):
        store_id = options.get("store_id")
        overwrite = bool(options.get("overwrite"))

        try:
            stores = Store.objects.filter(id=store_id) if store_id else Store.objects.filter(is_active=True)
            found = stores.exists()
        except ValidationError:
            raise CommandError(f"Invalid store id: {store_id}")
        if not found:
            raise CommandError("No matching store found.")

        self.stdout.write(self.style.MIGRATE_HEADING("Seed email templates"))

        for store in stores:
            created, updated = seed_default_templates(store=store, overwrite=overwrite)
            self.stdout.write(
                self.style.SUCCESS(f"{store}: created={created} updated={updated}")
            )
