from unittest.mock import Mock, patch

import pytest
from celery.exceptions import Retry
from django.core import mail
from pywebpush import WebPushException

from notifications import services
from notifications.dispatch import NotificationDispatcher
from notifications.models import Notification, PushSubscription
from notifications.tasks import deliver_push_notification, send_notification_email


@pytest.fixture
def subscription(client_user):
    return PushSubscription.objects.create(
        user=client_user,
        endpoint="https://push.example.com/send/abc",
        p256dh_key="BPk-p256dh",
        auth_key="auth-secret",
        device_name="Android",
    )


@pytest.fixture
def dispatcher():
    return NotificationDispatcher(push_task=Mock(), email_task=Mock())


@pytest.mark.django_db
class TestDispatcher:
    def test_send_stores_and_queues_after_commit(self, client_user, dispatcher, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            result = dispatcher.send(client_user, Notification.Type.NEW_ORDER, "Commande", "Nouvelle commande recue")

        notification_id = str(result.notification.pk)
        dispatcher.push_task.delay.assert_called_once_with(notification_id)
        dispatcher.email_task.delay.assert_called_once_with(notification_id)
        assert result.channels == {"database": True, "push": True, "email": True, "sms": False}

    def test_disabled_type_is_suppressed(self, client_user, dispatcher):
        result = dispatcher.send(client_user, Notification.Type.PROMOTIONS, "Promo", "-20% ce week-end")

        assert result is None
        assert not Notification.objects.filter(user=client_user).exists()

    def test_types_without_flag_are_always_sent(self, client_user, dispatcher):
        services.update_preferences(client_user, notify_payment=False)
        result = dispatcher.send(client_user, Notification.Type.CREDIT_ALERT, "Alerte", "Credits en retard")
        assert result is not None

    def test_channel_override_never_enables_disabled_channel(
        self, client_user, dispatcher, django_capture_on_commit_callbacks,
    ):
        services.update_preferences(client_user, email_enabled=False)

        with django_capture_on_commit_callbacks(execute=True):
            result = dispatcher.send(
                client_user, Notification.Type.TEAM, "Equipe", "Bienvenue", channels={"push": False, "email": True},
            )

        assert result.push_queued is False
        assert result.email_queued is False
        dispatcher.push_task.delay.assert_not_called()
        dispatcher.email_task.delay.assert_not_called()


@pytest.mark.django_db
class TestDeliveryTasks:
    def _notification(self, user):
        return Notification.objects.create(
            user=user, type=Notification.Type.ORDER_STATUS, title="Commande livree", message="Votre commande est livree.",
        )

    def test_push_sent_marks_subscription_used(self, client_user, subscription):
        notification = self._notification(client_user)

        with patch("notifications.tasks.webpush") as webpush:
            result = deliver_push_notification(str(notification.pk))

        assert result == {"sent": 1, "expired": 0, "failed": 0}
        assert webpush.call_args.kwargs["subscription_info"]["endpoint"] == subscription.endpoint
        subscription.refresh_from_db()
        assert subscription.last_used_at is not None

    def test_gone_subscription_is_deleted(self, client_user, subscription):
        notification = self._notification(client_user)
        gone = WebPushException("gone", response=Mock(status_code=410))

        with patch("notifications.tasks.webpush", side_effect=gone):
            result = deliver_push_notification(str(notification.pk))

        assert result["expired"] == 1
        assert not PushSubscription.objects.filter(pk=subscription.pk).exists()

    def test_transient_failure_retries_failed_subscriptions_only(self, client_user, subscription):
        healthy = PushSubscription.objects.create(
            user=client_user, endpoint="https://push.example.com/send/ok", p256dh_key="k", auth_key="a",
        )
        notification = self._notification(client_user)

        def flaky(subscription_info, **kwargs):
            if subscription_info["endpoint"] == subscription.endpoint:
                raise WebPushException("boom", response=Mock(status_code=500))

        with patch("notifications.tasks.webpush", side_effect=flaky), \
                patch.object(deliver_push_notification, "retry", side_effect=Retry()) as retry:
            with pytest.raises(Retry):
                deliver_push_notification(str(notification.pk))

        retry.assert_called_once_with(
            kwargs={"notification_id": str(notification.pk), "subscription_ids": [str(subscription.pk)]},
        )
        assert PushSubscription.objects.filter(pk=subscription.pk).exists()
        healthy.refresh_from_db()
        assert healthy.last_used_at is not None

    def test_push_for_missing_notification(self):
        result = deliver_push_notification("00000000-0000-0000-0000-000000000000")
        assert result == {"sent": 0, "expired": 0, "failed": 0}

    def test_email_task_sends_branded_mail(self, client_user):
        notification = self._notification(client_user)

        sent = send_notification_email(str(notification.pk))

        assert sent == 1
        assert mail.outbox[0].subject == "[RAVITO] Commande livree"
        assert "Votre commande est livree." in mail.outbox[0].body


@pytest.mark.django_db
class TestInbox:
    def test_list_read_and_delete_are_scoped_to_owner(self, client_user, supplier_user):
        mine = services.notify(client_user, Notification.Type.SUPPORT, "Support", "Ticket ouvert").notification
        services.notify(client_user, Notification.Type.SUPPORT, "Support", "Ticket ferme")

        assert services.get_unread_count(client_user) == 2
        with pytest.raises(ValueError):
            services.mark_as_read(supplier_user, mine.pk)
        with pytest.raises(ValueError):
            services.delete_notification(supplier_user, mine.pk)

        services.mark_as_read(client_user, mine.pk)
        assert services.get_unread_count(client_user) == 1
        assert services.mark_all_as_read(client_user) == 1
        services.delete_notification(client_user, mine.pk)
        assert len(services.get_notifications(client_user)) == 1

    def test_preferences_validation(self, client_user):
        with pytest.raises(ValueError):
            services.update_preferences(client_user, notify_everything=True)
        with pytest.raises(ValueError):
            services.update_preferences(client_user, push_enabled="oui")

        prefs = services.update_preferences(client_user, notify_promotions=True)
        assert prefs.notify_promotions is True

    def test_subscribe_push_is_idempotent(self, client_user):
        first = services.subscribe_push(
            client_user, endpoint="https://push.example.com/x", p256dh_key="k1", auth_key="a1",
        )
        second = services.subscribe_push(
            client_user, endpoint="https://push.example.com/x", p256dh_key="k2", auth_key="a2",
        )

        assert first.pk == second.pk
        assert second.p256dh_key == "k2"
        assert services.unsubscribe_push(client_user, "https://push.example.com/x") is True
        assert services.unsubscribe_push(client_user, "https://push.example.com/x") is False

    def test_incomplete_subscription(self, client_user):
        with pytest.raises(ValueError):
            services.subscribe_push(client_user, endpoint="https://push.example.com/y", p256dh_key="", auth_key="a")
