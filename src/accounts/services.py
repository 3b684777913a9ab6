"""Account-related services: post-signup provisioning and approvals."""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from accounts.models import User
from organizations.models import Organization, OrganizationMember

logger = logging.getLogger("ravito")


def _organization_name(name: str, role: str, business_name: str | None) -> str:
    if role == User.Role.CLIENT:
        return f"{name} (Client)"
    if role == User.Role.SUPPLIER:
        return (business_name or "").strip() or name
    return f"{name} (Admin)"


def provision_registration(
    *,
    user_id,
    email: str,
    name: str,
    role: str,
    business_name: str | None = None,
) -> dict:
    """Ensure the profile and its organization exist after signup.

    Safe to call several times: every step checks for an existing row
    before creating one.

    Returns
    -------
    dict
        ``{"success", "message", "profileCreated", "organizationCreated"}``
    """
    from django.conf import settings

    if role not in User.Role.values:
        raise ValueError(f"Role invalide : {role}.")
    if not (name or "").strip():
        raise ValueError("Le nom est obligatoire.")

    profile_created = False
    organization_created = False

    with transaction.atomic():
        user = User.objects.select_for_update().filter(pk=user_id).first()
        if user is None:
            is_admin = role == User.Role.ADMIN
            user = User.objects.create_user(
                id=user_id,
                email=email,
                password=None,
                name=name.strip(),
                role=role,
                business_name=business_name or "",
                is_approved=is_admin,
                approval_status=(
                    User.ApprovalStatus.APPROVED if is_admin else User.ApprovalStatus.PENDING
                ),
                approved_at=timezone.now() if is_admin else None,
            )
            profile_created = True

        needs_organization = user.role in (
            User.Role.CLIENT, User.Role.SUPPLIER, User.Role.ADMIN,
        )
        if needs_organization and not Organization.objects.filter(owner=user).exists():
            organization = Organization.objects.create(
                name=_organization_name(user.name, user.role, business_name or user.business_name),
                type=user.role,
                owner=user,
                max_members=getattr(settings, "ORGANIZATION_MAX_MEMBERS", 5),
            )
            OrganizationMember.objects.create(
                organization=organization,
                user=user,
                role=OrganizationMember.Role.OWNER,
            )
            organization_created = True

    if profile_created or organization_created:
        logger.info(
            "Registration provisioned for %s (profile=%s, organization=%s)",
            user.pk, profile_created, organization_created,
        )
        message = "Profil et organisation initialises."
    else:
        message = "Profil et organisation deja existants."

    return {
        "success": True,
        "message": message,
        "profileCreated": profile_created,
        "organizationCreated": organization_created,
    }


@transaction.atomic
def approve_user(user: User, actor: User) -> User:
    """Approve a pending account and notify its owner."""
    from notifications.services import notify_account_approved

    user = User.objects.select_for_update().get(pk=user.pk)
    if user.approval_status == User.ApprovalStatus.APPROVED:
        raise ValueError("Ce compte est deja approuve.")

    user.is_approved = True
    user.approval_status = User.ApprovalStatus.APPROVED
    user.approved_at = timezone.now()
    user.rejection_reason = ""
    user.save(update_fields=["is_approved", "approval_status", "approved_at", "rejection_reason"])

    logger.info("Account %s approved by %s", user.pk, actor.pk)
    if user.role in (User.Role.CLIENT, User.Role.SUPPLIER):
        transaction.on_commit(lambda: notify_account_approved(user))
    return user


@transaction.atomic
def reject_user(user: User, actor: User, reason: str) -> User:
    """Reject a pending account with a mandatory reason."""
    from notifications.services import notify_account_rejected

    reason = (reason or "").strip()
    if not reason:
        raise ValueError("Le motif de rejet est obligatoire.")

    user = User.objects.select_for_update().get(pk=user.pk)
    user.is_approved = False
    user.approval_status = User.ApprovalStatus.REJECTED
    user.rejection_reason = reason
    user.save(update_fields=["is_approved", "approval_status", "rejection_reason"])

    logger.info("Account %s rejected by %s", user.pk, actor.pk)
    transaction.on_commit(lambda: notify_account_rejected(user, reason))
    return user
