# notifications/services/service.py
"""
EMAIL NOTIFICATION SERVICE (LEAF COLLABORATOR)

Contract:
    send(store_id, template_identifier, recipient_email, variables, attachments=None)
        -> SendResult(success=True, message_id=...)
        or raises NotificationError

Guarantees:
- Every outcome (sent / failed) writes one EmailSendLog row
- Rendering uses the Django template engine; variables are autoescaped in HTML
- Delivery uses Django's mail framework (EMAIL_BACKEND decides transport)

This service does not retry. Retry and dead-letter live in the dispatcher.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from email.utils import make_msgid

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import Context, Template, TemplateSyntaxError
from django.utils.html import strip_tags

from notifications.models import EmailSendLog, EmailTemplate
from notifications.services.exceptions import NotificationError, TemplateNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str = ""


def _from_email() -> str:
    return (
        getattr(settings, "DEFAULT_FROM_EMAIL", "")
        or getattr(settings, "SERVER_EMAIL", "")
        or "no-reply@localhost"
    )


def _render(source: str, variables: dict, *, autoescape: bool = True) -> str:
    return Template(source or "").render(Context(variables or {}, autoescape=autoescape))


class EmailNotificationService:
    def _load_template(self, *, store_id, template_identifier: str) -> EmailTemplate:
        template = EmailTemplate.objects.filter(
            store_id=store_id,
            identifier=template_identifier,
            is_active=True,
        ).first()
        if template is None:
            raise TemplateNotFoundError(
                f"No active template '{template_identifier}' for store {store_id}"
            )
        return template

    def _log(
        self,
        *,
        store_id,
        template_identifier,
        recipient_email,
        subject,
        status,
        message_id="",
        error="",
        metadata=None,
    ):
        EmailSendLog.objects.create(
            store_id=store_id,
            template_identifier=template_identifier,
            recipient_email=recipient_email,
            subject=(subject or "")[:255],
            status=status,
            message_id=message_id,
            error_message=error,
            metadata=metadata or {},
        )

    def send(
        self,
        store_id,
        template_identifier: str,
        recipient_email: str,
        variables: dict,
        attachments: list | None = None,
    ) -> SendResult:
        recipient_email = (recipient_email or "").strip()
        subject = ""
        metadata = {"attachments": len(attachments or [])}

        try:
            if not recipient_email:
                raise NotificationError("recipient_email is required")

            template = self._load_template(
                store_id=store_id, template_identifier=template_identifier
            )

            try:
                subject = _render(template.subject, variables, autoescape=False).strip()
                html_body = _render(template.html_content, variables)
                if template.text_content:
                    text_body = _render(template.text_content, variables, autoescape=False)
                else:
                    text_body = strip_tags(html_body)
            except TemplateSyntaxError as exc:
                raise NotificationError(f"Template '{template_identifier}' failed to render: {exc}") from exc

            message_id = make_msgid(domain="storefront")
            msg = EmailMultiAlternatives(
                subject=subject,
                body=text_body,
                from_email=_from_email(),
                to=[recipient_email],
                headers={"Message-ID": message_id},
            )
            msg.attach_alternative(html_body, "text/html")

            for att in attachments or []:
                msg.attach(
                    att.get("filename") or "attachment",
                    base64.b64decode(att.get("content") or ""),
                    att.get("mimetype") or "application/octet-stream",
                )

            try:
                msg.send(fail_silently=False)
            except Exception as exc:
                raise NotificationError(f"Email transport failed: {exc}") from exc

        except NotificationError as exc:
            logger.warning(
                "Email send failed",
                extra={
                    "store_id": str(store_id),
                    "template": template_identifier,
                    "recipient": recipient_email,
                    "error": str(exc),
                },
            )
            self._log(
                store_id=store_id,
                template_identifier=template_identifier,
                recipient_email=recipient_email or "unknown@invalid",
                subject=subject,
                status=EmailSendLog.STATUS_FAILED,
                error=str(exc),
                metadata=metadata,
            )
            raise

        self._log(
            store_id=store_id,
            template_identifier=template_identifier,
            recipient_email=recipient_email,
            subject=subject,
            status=EmailSendLog.STATUS_SENT,
            message_id=message_id,
            metadata=metadata,
        )
        logger.info(
            "Email sent",
            extra={
                "store_id": str(store_id),
                "template": template_identifier,
                "recipient": recipient_email,
                "message_id": message_id,
            },
        )
        return SendResult(success=True, message_id=message_id)
