"""Models for the notifications app."""
from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class Notification(TimeStampedModel):
    """An in-app notification addressed to one user.

    Push and email deliveries are queued from the same row; the row itself
    is what the user lists, reads and deletes.
    """

    class Type(models.TextChoices):
        NEW_ORDER = "new_order", "Nouvelle commande"
        ORDER_STATUS = "order_status", "Statut de commande"
        DELIVERY_ASSIGNED = "delivery_assigned", "Livraison assignee"
        DELIVERY_STATUS = "delivery_status", "Statut de livraison"
        PAYMENT = "payment", "Paiement"
        TEAM = "team", "Equipe"
        SUPPORT = "support", "Support"
        PROMOTIONS = "promotions", "Promotions"
        ACCOUNT = "account", "Compte"
        CREDIT_ALERT = "credit_alert", "Alerte credit"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="utilisateur",
    )
    type = models.CharField("type", max_length=30, choices=Type.choices, db_index=True)
    title = models.CharField("titre", max_length=200)
    message = models.TextField("message")
    data = models.JSONField(
        "donnees supplementaires",
        default=dict,
        blank=True,
        help_text="Donnees JSON supplementaires (ex: order_id, organization_id).",
    )
    is_read = models.BooleanField("lu", default=False, db_index=True)
    read_at = models.DateTimeField("lu le", null=True, blank=True)

    class Meta:
        verbose_name = "notification"
        verbose_name_plural = "notifications"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "is_read"], name="notif_user_read_idx"),
        ]

    def __str__(self):
        return f"[{self.get_type_display()}] {self.title}"

    def mark_as_read(self):
        if self.is_read:
            return
        self.is_read = True
        self.read_at = timezone.now()
        self.save(update_fields=["is_read", "read_at", "updated_at"])


class NotificationPreferences(TimeStampedModel):
    """Per-user delivery channels and notification kinds."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notification_preferences",
        verbose_name="utilisateur",
    )
    push_enabled = models.BooleanField("push", default=True)
    email_enabled = models.BooleanField("email", default=True)
    sms_enabled = models.BooleanField("SMS", default=False)
    notify_new_order = models.BooleanField("nouvelles commandes", default=True)
    notify_order_status = models.BooleanField("statut des commandes", default=True)
    notify_delivery_assigned = models.BooleanField("livraisons assignees", default=True)
    notify_delivery_status = models.BooleanField("statut des livraisons", default=True)
    notify_payment = models.BooleanField("paiements", default=True)
    notify_team = models.BooleanField("equipe", default=True)
    notify_support = models.BooleanField("support", default=True)
    notify_promotions = models.BooleanField("promotions", default=False)

    CHANNEL_FIELDS = ("push_enabled", "email_enabled", "sms_enabled")
    TYPE_FIELDS = (
        "notify_new_order",
        "notify_order_status",
        "notify_delivery_assigned",
        "notify_delivery_status",
        "notify_payment",
        "notify_team",
        "notify_support",
        "notify_promotions",
    )

    class Meta:
        verbose_name = "preferences de notification"
        verbose_name_plural = "preferences de notification"

    def __str__(self):
        return f"Preferences de {self.user}"

    def allows(self, notification_type: str) -> bool:
        """Kinds without a ``notify_<type>`` flag are always delivered."""
        return getattr(self, f"notify_{notification_type.replace('-', '_')}", True) is not False


class PushSubscription(TimeStampedModel):
    """A browser Web Push endpoint registered by a user."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="push_subscriptions",
        verbose_name="utilisateur",
    )
    endpoint = models.URLField("endpoint", max_length=500)
    p256dh_key = models.CharField("cle p256dh", max_length=255)
    auth_key = models.CharField("cle auth", max_length=255)
    device_name = models.CharField("appareil", max_length=120, blank=True, default="")
    last_used_at = models.DateTimeField("derniere utilisation", null=True, blank=True)

    class Meta:
        verbose_name = "abonnement push"
        verbose_name_plural = "abonnements push"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["user", "endpoint"], name="uniq_push_subscription_per_user"),
        ]

    def __str__(self):
        return f"{self.user} - {self.device_name or self.endpoint[:40]}"

    def as_subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh_key, "auth": self.auth_key}}
