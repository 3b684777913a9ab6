"""Models for the organizations app."""
import uuid

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class Organization(TimeStampedModel):
    """Establishment (CHR), depot or admin workspace owning daily data."""

    class Type(models.TextChoices):
        CLIENT = "client", "Client (CHR)"
        SUPPLIER = "supplier", "Fournisseur (Depot)"
        ADMIN = "admin", "Administration"

    name = models.CharField("nom", max_length=255)
    type = models.CharField("type", max_length=20, choices=Type.choices, db_index=True)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owned_organizations",
        verbose_name="proprietaire",
    )
    max_members = models.PositiveIntegerField("membres maximum", default=5)
    is_active = models.BooleanField("active", default=True)

    class Meta:
        verbose_name = "organisation"
        verbose_name_plural = "organisations"
        ordering = ["name"]

    def __str__(self):
        return self.name


class OrganizationMember(models.Model):
    """Links a user to an organization."""

    class Role(models.TextChoices):
        OWNER = "owner", "Proprietaire"
        MEMBER = "member", "Membre"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="members",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="organization_memberships",
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.MEMBER)
    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [("organization", "user")]
        verbose_name = "Membre d'organisation"
        verbose_name_plural = "Membres d'organisation"

    def __str__(self):
        return f"{self.user} - {self.organization}"


class AuditLog(models.Model):
    """Immutable log of every significant action in the system."""

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    organization = models.ForeignKey(
        Organization,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=100, db_index=True)
    entity_id = models.CharField(max_length=255)
    before_json = models.JSONField(null=True, blank=True)
    after_json = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Journal d'audit"
        verbose_name_plural = "Journaux d'audit"
        indexes = [
            models.Index(fields=["organization", "created_at"], name="audit_org_created_idx"),
            models.Index(fields=["entity_type", "created_at"], name="audit_entity_created_idx"),
        ]

    def __str__(self):
        return f"[{self.created_at}] {self.action} on {self.entity_type} #{self.entity_id}"
