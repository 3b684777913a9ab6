"""Business logic for the organizations app."""
from __future__ import annotations

import logging
from typing import Any

from django.db import transaction

from organizations.models import AuditLog, Organization, OrganizationMember

logger = logging.getLogger("ravito")


def create_audit_log(
    actor,
    organization: Organization | None,
    action: str,
    entity_type: str,
    entity_id,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> AuditLog:
    """Create and return a new :class:`~organizations.models.AuditLog` entry."""
    return AuditLog.objects.create(
        actor=actor,
        organization=organization,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=before,
        after_json=after,
    )


def get_user_organization(user) -> Organization | None:
    """Return the active organization the *user* works in, or None.

    Owned organizations win over plain memberships.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    membership = (
        OrganizationMember.objects
        .filter(user=user, is_active=True, organization__is_active=True)
        .select_related("organization")
        .order_by("-role", "joined_at")  # "owner" sorts before "member"
        .first()
    )
    if membership:
        return membership.organization
    return None


@transaction.atomic
def add_member(organization: Organization, user, role=OrganizationMember.Role.MEMBER) -> OrganizationMember:
    """Attach *user* to *organization*, enforcing ``max_members``."""
    organization = Organization.objects.select_for_update().get(pk=organization.pk)
    existing = OrganizationMember.objects.filter(organization=organization, user=user).first()
    if existing:
        if not existing.is_active:
            existing.is_active = True
            existing.save(update_fields=["is_active"])
        return existing

    active_count = OrganizationMember.objects.filter(organization=organization, is_active=True).count()
    if active_count >= organization.max_members:
        raise ValueError(
            f"Nombre maximum de membres atteint ({organization.max_members})."
        )

    member = OrganizationMember.objects.create(organization=organization, user=user, role=role)
    logger.info("Member %s added to organization %s", user.pk, organization.pk)
    return member
