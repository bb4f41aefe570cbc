# store/apps.py

from django.apps import AppConfig


class StoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "store"
    verbose_name = "Stores"

    def ready(self):
        from store import signals  # noqa: F401
