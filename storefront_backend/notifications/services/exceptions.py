# notifications/services/exceptions.py

"""
NOTIFICATION SERVICE ERRORS
"""


class NotificationError(Exception):
    """Raised when a notification cannot be rendered or delivered."""


class TemplateNotFoundError(NotificationError):
    """Raised when no active template exists for (store, identifier)."""
