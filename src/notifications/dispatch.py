"""Fan-out of a notification to the in-app list, Web Push and email.

One :class:`NotificationDispatcher` is built when the app registry is
ready (see ``NotificationsConfig.ready``) and shared by every caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import transaction

from notifications.models import Notification, NotificationPreferences

logger = logging.getLogger("ravito")


@dataclass(frozen=True)
class DispatchResult:
    notification: Notification
    push_queued: bool
    email_queued: bool
    sms_sent: bool = False

    @property
    def channels(self) -> dict:
        return {
            "database": True,
            "push": self.push_queued,
            "email": self.email_queued,
            "sms": self.sms_sent,
        }


class NotificationDispatcher:
    """Store a notification and queue its external deliveries.

    *push_task* and *email_task* are Celery tasks (anything with a
    ``delay(notification_id)`` method). They are queued after the current
    transaction commits so a worker never reads an uncommitted row.
    """

    def __init__(self, *, push_task, email_task):
        self.push_task = push_task
        self.email_task = email_task

    def preferences_for(self, user) -> NotificationPreferences:
        prefs, _ = NotificationPreferences.objects.get_or_create(user=user)
        return prefs

    def send(self, user, notification_type, title, message, data=None, channels=None) -> DispatchResult | None:
        """Deliver one notification to *user*.

        *channels* may switch ``push`` or ``email`` off for this call; it
        never enables a channel the user disabled.

        Returns ``None`` when the user turned this kind of notification off.
        """
        prefs = self.preferences_for(user)
        if not prefs.allows(notification_type):
            logger.info(
                "Notification '%s' suppressed by preferences of user %s",
                notification_type, user.pk,
            )
            return None

        channels = channels or {}
        notification = Notification.objects.create(
            user=user,
            type=notification_type,
            title=title,
            message=message,
            data=data or {},
        )

        push = prefs.push_enabled and channels.get("push", True)
        email = prefs.email_enabled and channels.get("email", True) and bool(user.email)
        notification_id = str(notification.pk)
        if push:
            transaction.on_commit(lambda: self.push_task.delay(notification_id))
        if email:
            transaction.on_commit(lambda: self.email_task.delay(notification_id))

        result = DispatchResult(notification=notification, push_queued=push, email_queued=email)
        logger.info(
            "Notification dispatched",
            extra={"notification_id": notification_id, "type": notification_type, "channels": result.channels},
        )
        return result
