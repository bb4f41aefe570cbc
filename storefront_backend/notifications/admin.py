# notifications/admin.py

from django.contrib import admin
from django.utils import timezone

from notifications.models import EmailSendLog, EmailTemplate, NotificationJob


@admin.register(EmailTemplate)
class EmailTemplateAdmin(admin.ModelAdmin):
    list_display = ("identifier", "store", "subject", "is_active", "updated_at")
    list_filter = ("identifier", "is_active", "store")
    search_fields = ("identifier", "subject")


@admin.register(EmailSendLog)
class EmailSendLogAdmin(admin.ModelAdmin):
    """Read-only delivery log."""

    list_display = (
        "template_identifier",
        "recipient_email",
        "status",
        "message_id",
        "created_at",
    )
    list_filter = ("status", "template_identifier", "store")
    search_fields = ("recipient_email", "message_id")
    readonly_fields = [f.name for f in EmailSendLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.action(description="Requeue selected jobs for delivery")
def requeue_jobs(modeladmin, request, queryset):
    updated = queryset.filter(
        status__in=[NotificationJob.STATUS_DEAD, NotificationJob.STATUS_RETRY]
    ).update(status=NotificationJob.STATUS_RETRY, attempts=0, next_attempt_at=timezone.now())
    modeladmin.message_user(request, f"{updated} job(s) requeued; run process_notifications to deliver.")


@admin.register(NotificationJob)
class NotificationJobAdmin(admin.ModelAdmin):
    list_display = (
        "template_identifier",
        "recipient_email",
        "status",
        "attempts",
        "next_attempt_at",
        "created_at",
    )
    list_filter = ("status", "template_identifier")
    search_fields = ("recipient_email", "last_error")
    readonly_fields = ("attempts", "last_error", "message_id", "sent_at", "created_at", "updated_at")
    actions = [requeue_jobs]
