"""
PATH: notifications/models/__init__.py

Notifications models export surface.
"""

from .email_template import EmailTemplate
from .job import NotificationJob
from .send_log import EmailSendLog

__all__ = [
    "EmailTemplate",
    "EmailSendLog",
    "NotificationJob",
]
