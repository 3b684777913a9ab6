"""App config for the accounts module."""
from django.apps import AppConfig


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"
    verbose_name = "Comptes"

    session_provider = None

    def ready(self):
        from django.conf import settings
        from django.core.cache import cache

        from accounts.session import SessionProvider, load_profile_from_db

        self.session_provider = SessionProvider(
            loader=load_profile_from_db,
            cache=cache,
            timeout=getattr(settings, "SESSION_PROFILE_TIMEOUT_SECONDS", 10),
            cache_ttl=getattr(settings, "SESSION_CACHE_TTL_SECONDS", 7 * 24 * 3600),
        )
