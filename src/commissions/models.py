"""Models for the commercial commissions module."""
from __future__ import annotations

from dataclasses import fields
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from commissions.engine import CommissionSettings
from core.models import TimeStampedModel


def _money(verbose_name, default):
    return models.DecimalField(
        verbose_name,
        max_digits=14,
        decimal_places=2,
        default=Decimal(default),
        validators=[MinValueValidator(Decimal("0"))],
    )


def _rate(verbose_name, default):
    return models.DecimalField(
        verbose_name,
        max_digits=5,
        decimal_places=2,
        default=Decimal(default),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )


# ---------------------------------------------------------------------------
# SalesRepresentative
# ---------------------------------------------------------------------------

class SalesRepresentative(TimeStampedModel):
    """A field agent who registers CHR and depots on the platform."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sales_representative",
        verbose_name="utilisateur",
    )
    name = models.CharField("nom", max_length=255)
    phone = models.CharField("telephone", max_length=30, blank=True, default="")
    email = models.EmailField("email", blank=True, default="")
    zone = models.CharField("zone", max_length=120, blank=True, default="")
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "commercial"
        verbose_name_plural = "commerciaux"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


# ---------------------------------------------------------------------------
# SalesObjective
# ---------------------------------------------------------------------------

class SalesObjective(TimeStampedModel):
    """Monthly activation targets of one representative."""

    sales_rep = models.ForeignKey(
        SalesRepresentative,
        on_delete=models.CASCADE,
        related_name="objectives",
        verbose_name="commercial",
    )
    period_year = models.PositiveSmallIntegerField("annee")
    period_month = models.PositiveSmallIntegerField(
        "mois", validators=[MinValueValidator(1), MaxValueValidator(12)],
    )
    objective_chr = models.PositiveIntegerField("objectif CHR", default=0)
    objective_depots = models.PositiveIntegerField("objectif depots", default=0)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="cree par",
    )

    class Meta:
        verbose_name = "objectif commercial"
        verbose_name_plural = "objectifs commerciaux"
        ordering = ["-period_year", "-period_month"]
        constraints = [
            models.UniqueConstraint(
                fields=["sales_rep", "period_year", "period_month"],
                name="uniq_objective_per_rep_period",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.sales_rep} {self.period_year}-{self.period_month:02d}"


# ---------------------------------------------------------------------------
# SalesCommissionSettings
# ---------------------------------------------------------------------------

class SalesCommissionSettings(TimeStampedModel):
    """Platform-wide commission parameters. A single row is expected."""

    chr_activation_threshold = _money("seuil d'activation CHR (FCFA)", "50000")
    depot_activation_deliveries = models.PositiveIntegerField("livraisons pour activer un depot", default=10)
    prime_per_chr_activated = _money("prime par CHR active", "5000")
    prime_per_depot_activated = _money("prime par depot active", "8000")
    bonus_chr_objective = _money("bonus objectif CHR", "20000")
    bonus_depot_objective = _money("bonus objectif depots", "15000")
    bonus_combined = _money("bonus combine", "10000")
    bonus_best_of_month = _money("bonus meilleur du mois", "25000")
    overshoot_tier1_threshold = models.PositiveIntegerField("seuil depassement palier 1 (%)", default=110)
    overshoot_tier1_bonus = _money("bonus depassement palier 1", "5000")
    overshoot_tier2_threshold = models.PositiveIntegerField("seuil depassement palier 2 (%)", default=120)
    overshoot_tier2_bonus = _money("bonus depassement palier 2", "12000")
    ca_commission_enabled = models.BooleanField("commission sur CA", default=False)
    ca_tier1_max = _money("plafond tranche 1", "500000")
    ca_tier1_rate = _rate("taux tranche 1 (%)", "1")
    ca_tier2_max = _money("plafond tranche 2", "1000000")
    ca_tier2_rate = _rate("taux tranche 2 (%)", "1.5")
    ca_tier3_max = _money("plafond tranche 3", "2000000")
    ca_tier3_rate = _rate("taux tranche 3 (%)", "2")
    ca_tier4_rate = _rate("taux tranche 4 (%)", "2.5")
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="modifie par",
    )

    class Meta:
        verbose_name = "parametres de commission"
        verbose_name_plural = "parametres de commission"

    def __str__(self) -> str:
        return "Parametres de commission"

    @classmethod
    def load(cls) -> "SalesCommissionSettings | None":
        return cls.objects.order_by("created_at").first()

    def to_snapshot(self) -> CommissionSettings:
        return CommissionSettings(**{f.name: getattr(self, f.name) for f in fields(CommissionSettings)})

    def apply_snapshot(self, snapshot: CommissionSettings) -> list[str]:
        """Copy *snapshot* onto the row; returns the names of the fields written."""
        names = [f.name for f in fields(CommissionSettings)]
        for name in names:
            setattr(self, name, getattr(snapshot, name))
        return names


# ---------------------------------------------------------------------------
# SalesCommissionPayment
# ---------------------------------------------------------------------------

class SalesCommissionPayment(TimeStampedModel):
    """Frozen commission figures for one representative and month."""

    class Status(models.TextChoices):
        PENDING = "pending", "En attente"
        VALIDATED = "validated", "Validee"
        PAID = "paid", "Payee"

    period_year = models.PositiveSmallIntegerField("annee")
    period_month = models.PositiveSmallIntegerField("mois")
    sales_rep = models.ForeignKey(
        SalesRepresentative,
        on_delete=models.PROTECT,
        related_name="commission_payments",
        verbose_name="commercial",
    )
    chr_activated = models.PositiveIntegerField("CHR actives", default=0)
    depot_activated = models.PositiveIntegerField("depots actives", default=0)
    prime_inscriptions = _money("primes inscriptions", "0")
    bonus_objectives = _money("bonus objectifs", "0")
    bonus_overshoot = _money("bonus depassement", "0")
    bonus_special = _money("bonus special", "0")
    commission_ca = _money("commission CA", "0")
    total_amount = _money("montant total", "0")
    status = models.CharField(
        "statut",
        max_length=10,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    validated_at = models.DateTimeField("validee le", null=True, blank=True)
    validated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="validee par",
    )
    paid_at = models.DateTimeField("payee le", null=True, blank=True)
    paid_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="payee par",
    )

    class Meta:
        verbose_name = "paiement de commission"
        verbose_name_plural = "paiements de commission"
        ordering = ["-period_year", "-period_month", "sales_rep__name"]
        constraints = [
            models.UniqueConstraint(
                fields=["period_year", "period_month", "sales_rep"],
                name="uniq_commission_payment_per_rep_period",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.sales_rep} {self.period_year}-{self.period_month:02d} ({self.get_status_display()})"

    @property
    def is_locked(self) -> bool:
        """Validated and paid rows are the system of record."""
        return self.status != self.Status.PENDING
