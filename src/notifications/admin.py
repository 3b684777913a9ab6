"""Admin configuration for the notifications app."""
from django.contrib import admin

from notifications.models import Notification, NotificationPreferences, PushSubscription


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("title", "user", "type", "is_read", "created_at")
    list_filter = ("type", "is_read", "created_at")
    search_fields = ("title", "message", "user__email")
    readonly_fields = ("id", "created_at", "updated_at", "read_at")
    raw_id_fields = ("user",)
    date_hierarchy = "created_at"
    list_select_related = ("user",)


@admin.register(NotificationPreferences)
class NotificationPreferencesAdmin(admin.ModelAdmin):
    list_display = ("user", "push_enabled", "email_enabled", "sms_enabled")
    list_filter = ("push_enabled", "email_enabled")
    raw_id_fields = ("user",)


@admin.register(PushSubscription)
class PushSubscriptionAdmin(admin.ModelAdmin):
    list_display = ("user", "device_name", "last_used_at", "created_at")
    search_fields = ("user__email", "device_name", "endpoint")
    raw_id_fields = ("user",)
