"""Service functions for the notifications app.

Every read or write is scoped to the requesting user's own rows.
"""
import logging

from django.apps import apps
from django.conf import settings
from django.utils import timezone

from notifications.models import Notification, NotificationPreferences, PushSubscription

logger = logging.getLogger("ravito")


def get_dispatcher():
    return apps.get_app_config("notifications").dispatcher


def notify(user, notification_type, title, message, data=None, channels=None):
    """Send one notification through the shared dispatcher."""
    return get_dispatcher().send(user, notification_type, title, message, data=data, channels=channels)


# ---------------------------------------------------------------------------
# In-app list
# ---------------------------------------------------------------------------

def get_notifications(user, limit=None, since=None):
    """Newest first. *since* keeps only rows created after that instant (polling)."""
    qs = Notification.objects.filter(user=user)
    if since is not None:
        qs = qs.filter(created_at__gt=since)
    limit = limit or getattr(settings, "NOTIFICATION_LIST_LIMIT", 50)
    return qs.order_by("-created_at")[:limit]


def get_unread_count(user) -> int:
    return Notification.objects.filter(user=user, is_read=False).count()


def _own(user, notification_id) -> Notification:
    notification = Notification.objects.filter(user=user, pk=notification_id).first()
    if notification is None:
        raise ValueError("Notification introuvable.")
    return notification


def mark_as_read(user, notification_id) -> Notification:
    notification = _own(user, notification_id)
    notification.mark_as_read()
    return notification


def mark_all_as_read(user) -> int:
    now = timezone.now()
    return Notification.objects.filter(user=user, is_read=False).update(
        is_read=True, read_at=now, updated_at=now,
    )


def delete_notification(user, notification_id) -> None:
    _own(user, notification_id).delete()


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------

def get_preferences(user) -> NotificationPreferences:
    prefs, _ = NotificationPreferences.objects.get_or_create(user=user)
    return prefs


def update_preferences(user, **changes) -> NotificationPreferences:
    allowed = set(NotificationPreferences.CHANNEL_FIELDS) | set(NotificationPreferences.TYPE_FIELDS)
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Preferences inconnues : {', '.join(sorted(unknown))}.")
    for name, value in changes.items():
        if not isinstance(value, bool):
            raise ValueError(f"La preference {name} doit etre un booleen.")

    prefs = get_preferences(user)
    for name, value in changes.items():
        setattr(prefs, name, value)
    if changes:
        prefs.save(update_fields=[*changes.keys(), "updated_at"])
    return prefs


# ---------------------------------------------------------------------------
# Push subscriptions
# ---------------------------------------------------------------------------

def subscribe_push(user, *, endpoint, p256dh_key, auth_key, device_name="") -> PushSubscription:
    if not endpoint or not p256dh_key or not auth_key:
        raise ValueError("Abonnement push incomplet.")
    subscription, created = PushSubscription.objects.update_or_create(
        user=user,
        endpoint=endpoint,
        defaults={
            "p256dh_key": p256dh_key,
            "auth_key": auth_key,
            "device_name": device_name or "",
            "last_used_at": timezone.now(),
        },
    )
    if created:
        logger.info("Push subscription registered for user %s", user.pk)
    return subscription


def unsubscribe_push(user, endpoint) -> bool:
    deleted, _ = PushSubscription.objects.filter(user=user, endpoint=endpoint).delete()
    return bool(deleted)


def get_push_subscriptions(user):
    return PushSubscription.objects.filter(user=user)


# ---------------------------------------------------------------------------
# Domain notifications
# ---------------------------------------------------------------------------

def notify_account_approved(user):
    return notify(
        user,
        Notification.Type.ACCOUNT,
        "Compte approuve",
        "Votre compte a ete approuve. Vous pouvez maintenant utiliser toutes les fonctionnalites.",
        data={"approval_status": "approved"},
    )


def notify_account_rejected(user, reason=""):
    message = "Votre demande d'inscription a ete refusee."
    if reason:
        message = f"{message} Motif : {reason}"
    return notify(
        user,
        Notification.Type.ACCOUNT,
        "Compte refuse",
        message,
        data={"approval_status": "rejected", "reason": reason},
    )


def notify_critical_credit_alerts(user, count, amount):
    return notify(
        user,
        Notification.Type.CREDIT_ALERT,
        "Credits en retard",
        f"{count} client(s) n'ont rien rembourse depuis plus de "
        f"{settings.CREDIT_ALERT_CRITICAL_DAYS} jours ({amount} {settings.CURRENCY} en jeu).",
        data={"count": count, "amount": str(amount)},
    )
