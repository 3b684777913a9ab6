import threading
import uuid

import pytest
from django.core import mail
from django.core.cache import cache
from django.db import DatabaseError

from accounts.models import User
from accounts.services import approve_user, provision_registration, reject_user
from accounts.session import SessionProvider, SessionUnavailable
from notifications.models import Notification
from organizations.models import Organization, OrganizationMember
from organizations.services import add_member, get_user_organization


@pytest.mark.django_db
class TestProvisionRegistration:
    def test_creates_profile_and_client_organization(self):
        user_id = uuid.uuid4()
        result = provision_registration(
            user_id=user_id, email="chr@test.com", name="Maquis Chez Tanti", role="client",
        )

        assert result["success"] is True
        assert result["profileCreated"] is True
        assert result["organizationCreated"] is True
        user = User.objects.get(pk=user_id)
        assert user.approval_status == User.ApprovalStatus.PENDING
        organization = get_user_organization(user)
        assert organization.name == "Maquis Chez Tanti (Client)"
        assert organization.members.get(user=user).role == OrganizationMember.Role.OWNER

    def test_supplier_organization_uses_business_name(self):
        user_id = uuid.uuid4()
        provision_registration(
            user_id=user_id, email="d@test.com", name="Kouame", role="supplier",
            business_name="Depot du Plateau",
        )
        assert Organization.objects.get(owner_id=user_id).name == "Depot du Plateau"

    def test_second_call_creates_nothing(self):
        user_id = uuid.uuid4()
        provision_registration(user_id=user_id, email="x@test.com", name="X", role="client")

        result = provision_registration(user_id=user_id, email="x@test.com", name="X", role="client")

        assert result["profileCreated"] is False
        assert result["organizationCreated"] is False
        assert Organization.objects.filter(owner_id=user_id).count() == 1

    def test_sales_rep_gets_no_organization(self):
        user_id = uuid.uuid4()
        result = provision_registration(user_id=user_id, email="c@test.com", name="C", role="sales_rep")
        assert result["organizationCreated"] is False

    def test_invalid_role(self):
        with pytest.raises(ValueError):
            provision_registration(user_id=uuid.uuid4(), email="y@test.com", name="Y", role="boss")


@pytest.mark.django_db
class TestApproval:
    @pytest.fixture
    def pending(self, db):
        return User.objects.create_user(
            email="pending@test.com", password="testpass123", name="En Attente", role=User.Role.CLIENT,
        )

    def test_approve_notifies_after_commit(self, pending, admin_user, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            approve_user(pending, actor=admin_user)

        pending.refresh_from_db()
        assert pending.is_approved is True
        assert pending.approved_at is not None
        notification = Notification.objects.get(user=pending)
        assert notification.type == Notification.Type.ACCOUNT
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ["pending@test.com"]

    def test_approve_twice(self, pending, admin_user):
        approve_user(pending, actor=admin_user)
        with pytest.raises(ValueError):
            approve_user(pending, actor=admin_user)

    def test_reject_requires_reason(self, pending, admin_user):
        with pytest.raises(ValueError):
            reject_user(pending, actor=admin_user, reason="  ")

    def test_reject_keeps_reason(self, pending, admin_user, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            reject_user(pending, actor=admin_user, reason="Documents manquants")

        pending.refresh_from_db()
        assert pending.approval_status == User.ApprovalStatus.REJECTED
        assert pending.rejection_reason == "Documents manquants"
        assert "Documents manquants" in Notification.objects.get(user=pending).message


@pytest.mark.django_db
class TestMembers:
    def test_member_limit(self, organization):
        organization.max_members = 2
        organization.save()
        first = User.objects.create_user(email="m1@test.com", password="x", name="M1")
        second = User.objects.create_user(email="m2@test.com", password="x", name="M2")

        add_member(organization, first)
        with pytest.raises(ValueError):
            add_member(organization, second)

    def test_adding_existing_member_is_a_no_op(self, organization, client_user):
        member = add_member(organization, client_user)
        assert member.role == OrganizationMember.Role.OWNER


class TestSessionProvider:
    PROFILE = {"id": "u-1", "name": "Awa"}

    def _provider(self, loader, timeout=1):
        return SessionProvider(loader=loader, cache=cache, timeout=timeout, cache_ttl=60)

    def test_online_load_refreshes_cache(self):
        provider = self._provider(lambda user_id: dict(self.PROFILE))

        session = provider.load("u-1")

        assert session.source == "online"
        assert session.is_offline is False
        assert cache.get("session:profile:u-1") == self.PROFILE
        provider.shutdown()

    def test_falls_back_to_cache_on_database_error(self):
        cache.set("session:profile:u-1", self.PROFILE, 60)

        def broken(user_id):
            raise DatabaseError("connexion perdue")

        session = self._provider(broken).load("u-1")

        assert session.is_offline is True
        assert session.profile == self.PROFILE

    def test_unavailable_without_cache(self):
        def broken(user_id):
            raise ConnectionError("hors ligne")

        with pytest.raises(SessionUnavailable):
            self._provider(broken).load("u-1")

    def test_timeout_falls_back_to_cache(self):
        cache.set("session:profile:u-1", self.PROFILE, 60)
        release = threading.Event()

        def slow(user_id):
            release.wait(5)
            return {"id": user_id}

        provider = self._provider(slow, timeout=0.05)
        try:
            session = provider.load("u-1")
        finally:
            release.set()
            provider.shutdown()

        assert session.source == "cache"

    def test_forget_drops_snapshot(self):
        provider = self._provider(lambda user_id: dict(self.PROFILE))
        provider.load("u-1")

        provider.forget("u-1")

        assert cache.get("session:profile:u-1") is None
