"""App config for the notifications module."""
from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Notifications"

    dispatcher = None

    def ready(self):
        from notifications.dispatch import NotificationDispatcher
        from notifications.tasks import deliver_push_notification, send_notification_email

        self.dispatcher = NotificationDispatcher(
            push_task=deliver_push_notification,
            email_task=send_notification_email,
        )
