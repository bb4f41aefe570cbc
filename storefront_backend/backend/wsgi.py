"""
WSGI entrypoint (gunicorn backend.wsgi:application).

Production must export DJANGO_SETTINGS_MODULE=backend.settings.prod; the dev
module is only a local fallback.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
