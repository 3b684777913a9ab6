"""Celery tasks delivering notifications outside the application."""
import json
import logging
from smtplib import SMTPException

from celery import shared_task
from django.conf import settings
from django.utils import timezone
from pywebpush import WebPushException, webpush

logger = logging.getLogger("ravito")

EXPIRED_SUBSCRIPTION_STATUSES = (404, 410)


def _push_payload(notification) -> str:
    return json.dumps({
        "title": notification.title,
        "body": notification.message,
        "type": notification.type,
        "notification_id": str(notification.pk),
        "data": notification.data or {},
    })


@shared_task(bind=True, max_retries=3, default_retry_delay=60, name="notifications.tasks.deliver_push_notification")
def deliver_push_notification(self, notification_id, subscription_ids=None):
    """Send a stored notification to the user's Web Push subscriptions.

    Subscriptions the push service reports as gone (404/410) are deleted.
    Any other failure is retried, for the failed subscriptions only.
    """
    from notifications.models import Notification, PushSubscription

    private_key = getattr(settings, "VAPID_PRIVATE_KEY", "")
    if not private_key:
        logger.warning("VAPID_PRIVATE_KEY not configured; push for %s skipped.", notification_id)
        return {"sent": 0, "expired": 0, "failed": 0}

    notification = Notification.objects.filter(pk=notification_id).select_related("user").first()
    if notification is None:
        logger.warning("deliver_push_notification: notification %s no longer exists.", notification_id)
        return {"sent": 0, "expired": 0, "failed": 0}

    subscriptions = PushSubscription.objects.filter(user=notification.user)
    if subscription_ids:
        subscriptions = subscriptions.filter(pk__in=subscription_ids)

    payload = _push_payload(notification)
    claims = {"sub": f"mailto:{settings.VAPID_CLAIMS_EMAIL}"}
    sent, expired, failed = 0, 0, []

    for subscription in subscriptions:
        try:
            webpush(
                subscription_info=subscription.as_subscription_info(),
                data=payload,
                vapid_private_key=private_key,
                vapid_claims=dict(claims),
                ttl=getattr(settings, "WEBPUSH_TTL_SECONDS", 86400),
            )
        except WebPushException as exc:
            status = getattr(exc.response, "status_code", None)
            if status in EXPIRED_SUBSCRIPTION_STATUSES:
                logger.info("Push subscription %s expired (%s); deleting.", subscription.pk, status)
                subscription.delete()
                expired += 1
            else:
                logger.warning("Push to subscription %s failed: %s", subscription.pk, exc)
                failed.append(str(subscription.pk))
            continue
        subscription.last_used_at = timezone.now()
        subscription.save(update_fields=["last_used_at", "updated_at"])
        sent += 1

    if failed:
        if self.request.retries < self.max_retries:
            raise self.retry(kwargs={"notification_id": notification_id, "subscription_ids": failed})
        logger.error("Push for notification %s abandoned for %d subscription(s).", notification_id, len(failed))

    return {"sent": sent, "expired": expired, "failed": len(failed)}


@shared_task(bind=True, max_retries=3, default_retry_delay=120, name="notifications.tasks.send_notification_email")
def send_notification_email(self, notification_id):
    """Email a stored notification to its recipient."""
    from core.email import send_branded_email
    from notifications.models import Notification

    notification = Notification.objects.filter(pk=notification_id).select_related("user").first()
    if notification is None or not notification.user.email:
        return 0

    try:
        return send_branded_email(
            subject=notification.title,
            template_name="notifications/email/notification",
            context={"notification": notification, "user": notification.user},
            recipient_list=[notification.user.email],
        )
    except (SMTPException, OSError) as exc:
        logger.exception("send_notification_email failed for %s", notification_id)
        raise self.retry(exc=exc)
