"""Session provider: online profile load with a cached fallback.

A single :class:`SessionProvider` is built when the accounts app is ready
and shared by every consumer (see ``AccountsConfig.ready``). Consumers
reach it through ``apps.get_app_config("accounts").session_provider``.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from django.db import DatabaseError, close_old_connections
from django.utils import timezone

logger = logging.getLogger("ravito")

CACHE_KEY = "session:profile:{user_id}"


class SessionUnavailable(Exception):
    """Neither the online profile nor a cached snapshot could be loaded."""


@dataclass(frozen=True)
class Session:
    user_id: str
    profile: dict
    source: str
    loaded_at: datetime = field(default_factory=timezone.now)

    @property
    def is_offline(self) -> bool:
        return self.source == "cache"


def load_profile_from_db(user_id) -> dict:
    """Default loader: serialize the user row and its organization."""
    from accounts.models import User
    from organizations.services import get_user_organization

    try:
        user = User.objects.get(pk=user_id, is_active=True)
        organization = get_user_organization(user)
        return {
            "id": str(user.pk),
            "email": user.email,
            "name": user.name,
            "phone": user.phone,
            "role": user.role,
            "business_name": user.business_name,
            "is_approved": user.is_approved,
            "approval_status": user.approval_status,
            "organization": (
                {"id": str(organization.pk), "name": organization.name, "type": organization.type}
                if organization else None
            ),
        }
    finally:
        # Runs in a worker thread which owns its own connection.
        close_old_connections()


class SessionProvider:
    """Resolve the current user's profile: online first, then cache, else fail."""

    def __init__(
        self,
        *,
        loader: Callable[[object], dict],
        cache,
        timeout: float = 10,
        cache_ttl: int = 7 * 24 * 3600,
    ):
        self._loader = loader
        self._cache = cache
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="session-loader")

    def _cache_key(self, user_id) -> str:
        return CACHE_KEY.format(user_id=user_id)

    def _load_online(self, user_id) -> dict:
        future = self._executor.submit(self._loader, user_id)
        return future.result(timeout=self.timeout)

    def load(self, user_id) -> Session:
        try:
            profile = self._load_online(user_id)
        except FutureTimeout:
            logger.warning("Profile load timed out after %ss for %s", self.timeout, user_id)
        except (DatabaseError, ConnectionError) as exc:
            logger.warning("Profile load failed for %s: %s", user_id, exc)
        else:
            self._cache.set(self._cache_key(user_id), profile, self.cache_ttl)
            return Session(user_id=str(user_id), profile=profile, source="online")

        cached = self._cache.get(self._cache_key(user_id))
        if cached is not None:
            logger.warning("Serving cached session for %s", user_id)
            return Session(user_id=str(user_id), profile=cached, source="cache")

        raise SessionUnavailable(
            "Impossible de charger votre profil. Verifiez votre connexion et reessayez."
        )

    def forget(self, user_id) -> None:
        self._cache.delete(self._cache_key(user_id))

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
