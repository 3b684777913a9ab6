import uuid

from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.db import models
from django.utils import timezone


class UserManager(BaseUserManager):
    """Custom manager for the User model that uses email as the unique identifier."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("L'adresse e-mail est obligatoire.")
        email = self.normalize_email(email)
        extra_fields.setdefault("is_active", True)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", User.Role.ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_approved", True)
        extra_fields.setdefault("approval_status", User.ApprovalStatus.APPROVED)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Le superutilisateur doit avoir is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Le superutilisateur doit avoir is_superuser=True.")

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Platform account (profile) for every RAVITO actor.

    Uses email as the unique identifier instead of a username.
    ``client`` accounts are CHR establishments, ``supplier`` accounts are
    depots. Accounts brought in by a commercial keep a link to the
    sales representative that registered them.
    """

    class Role(models.TextChoices):
        CLIENT = "client", "Client (CHR)"
        SUPPLIER = "supplier", "Fournisseur (Depot)"
        ADMIN = "admin", "Administrateur"
        SALES_REP = "sales_rep", "Commercial"

    class ApprovalStatus(models.TextChoices):
        PENDING = "pending", "En attente"
        APPROVED = "approved", "Approuve"
        REJECTED = "rejected", "Rejete"

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    email = models.EmailField(
        "adresse e-mail",
        unique=True,
        error_messages={
            "unique": "Un utilisateur avec cette adresse e-mail existe deja.",
        },
    )
    name = models.CharField("nom", max_length=255)
    phone = models.CharField("telephone", max_length=30, blank=True, default="")
    address = models.TextField("adresse", blank=True, default="")
    role = models.CharField(
        "role",
        max_length=20,
        choices=Role.choices,
        default=Role.CLIENT,
        db_index=True,
    )
    business_name = models.CharField(
        "raison commerciale", max_length=255, blank=True, default="",
    )
    is_approved = models.BooleanField("approuve", default=False)
    approval_status = models.CharField(
        "statut d'approbation",
        max_length=20,
        choices=ApprovalStatus.choices,
        default=ApprovalStatus.PENDING,
        db_index=True,
    )
    approved_at = models.DateTimeField("approuve le", null=True, blank=True)
    rejection_reason = models.TextField("motif de rejet", blank=True, default="")
    registered_by_sales_rep = models.ForeignKey(
        "commissions.SalesRepresentative",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="registered_profiles",
        verbose_name="inscrit par le commercial",
    )
    is_active = models.BooleanField("actif", default=True, db_index=True)
    is_staff = models.BooleanField("membre du personnel", default=False)
    date_joined = models.DateTimeField("date d'inscription", default=timezone.now, db_index=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    class Meta:
        verbose_name = "utilisateur"
        verbose_name_plural = "utilisateurs"
        ordering = ["name"]

    def __str__(self):
        return self.name or self.email

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name.split(" ")[0] if self.name else self.email

    # ------------------------------------------------------------------
    # Role helper properties
    # ------------------------------------------------------------------

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN

    @property
    def is_client(self):
        return self.role == self.Role.CLIENT

    @property
    def is_supplier(self):
        return self.role == self.Role.SUPPLIER

    @property
    def is_sales_rep(self):
        return self.role == self.Role.SALES_REP

    @property
    def is_establishment(self):
        return self.role in (self.Role.CLIENT, self.Role.SUPPLIER)

    @property
    def role_display(self):
        return self.get_role_display()
