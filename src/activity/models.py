"""Models for the activity app (daily reconciliation sheets)."""
from decimal import Decimal

from django.conf import settings
from django.db import models

from catalog.models import CrateType
from core.models import TimeStampedModel


# ---------------------------------------------------------------------------
# DailySheet
# ---------------------------------------------------------------------------

class DailySheet(TimeStampedModel):
    """One establishment's stock, packaging and cash record for one day."""

    class Status(models.TextChoices):
        OPEN = "open", "Ouverte"
        CLOSED = "closed", "Cloturee"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="daily_sheets",
        verbose_name="organisation",
    )
    sheet_date = models.DateField("date", db_index=True)
    status = models.CharField(
        "statut",
        max_length=10,
        choices=Status.choices,
        default=Status.OPEN,
        db_index=True,
    )
    opening_cash = models.DecimalField(
        "fond de caisse", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    closing_cash = models.DecimalField(
        "caisse comptee", max_digits=14, decimal_places=2, null=True, blank=True,
    )
    theoretical_revenue = models.DecimalField(
        "CA theorique", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    expenses_total = models.DecimalField(
        "total depenses", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    cash_difference = models.DecimalField(
        "ecart de caisse", max_digits=14, decimal_places=2, null=True, blank=True,
    )
    credit_sales = models.DecimalField(
        "credits accordes", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    credit_payments = models.DecimalField(
        "reglements credits", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    credit_balance_eod = models.DecimalField(
        "solde credit fin de journee", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    notes = models.TextField("notes", blank=True, default="")
    closed_at = models.DateTimeField("cloturee le", null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="closed_daily_sheets",
        verbose_name="cloturee par",
    )

    class Meta:
        verbose_name = "feuille journaliere"
        verbose_name_plural = "feuilles journalieres"
        ordering = ["-sheet_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "sheet_date"],
                name="uniq_daily_sheet_per_org_date",
            ),
        ]

    def __str__(self):
        return f"{self.organization} - {self.sheet_date} ({self.get_status_display()})"

    @property
    def is_closed(self):
        return self.status == self.Status.CLOSED


# ---------------------------------------------------------------------------
# DailyStockLine
# ---------------------------------------------------------------------------

class DailyStockLine(TimeStampedModel):
    """Stock movement of one product over the day."""

    daily_sheet = models.ForeignKey(
        DailySheet,
        on_delete=models.CASCADE,
        related_name="stock_lines",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="daily_stock_lines",
    )
    initial_stock = models.IntegerField("stock initial", default=0)
    ravito_supply = models.IntegerField("appro RAVITO", default=0)
    external_supply = models.IntegerField("appro externe", default=0)
    final_stock = models.IntegerField("stock final", null=True, blank=True)

    class Meta:
        verbose_name = "ligne de stock"
        verbose_name_plural = "lignes de stock"
        unique_together = [["daily_sheet", "product"]]
        ordering = ["product__name"]

    def __str__(self):
        return f"{self.product} ({self.daily_sheet.sheet_date})"


# ---------------------------------------------------------------------------
# DailyPackaging
# ---------------------------------------------------------------------------

class DailyPackaging(TimeStampedModel):
    """Crate count for one crate type over the day."""

    daily_sheet = models.ForeignKey(
        DailySheet,
        on_delete=models.CASCADE,
        related_name="packaging",
    )
    crate_type = models.CharField("type de casier", max_length=10, choices=CrateType.choices)
    qty_full_start = models.IntegerField("pleins debut", default=0)
    qty_empty_start = models.IntegerField("vides debut", default=0)
    qty_received = models.IntegerField("recus", default=0)
    qty_returned = models.IntegerField("rendus", default=0)
    qty_consignes_paid = models.IntegerField("consignes payees", default=0)
    qty_full_end = models.IntegerField("pleins fin", null=True, blank=True)
    qty_empty_end = models.IntegerField("vides fin", null=True, blank=True)
    notes = models.TextField("observations", blank=True, default="")

    class Meta:
        verbose_name = "emballage journalier"
        verbose_name_plural = "emballages journaliers"
        unique_together = [["daily_sheet", "crate_type"]]
        ordering = ["crate_type"]

    def __str__(self):
        return f"{self.crate_type} ({self.daily_sheet.sheet_date})"


# ---------------------------------------------------------------------------
# DailyExpense
# ---------------------------------------------------------------------------

class DailyExpense(TimeStampedModel):
    """A cash expense paid out of the register during the day."""

    class Category(models.TextChoices):
        FOOD = "food", "Alimentation"
        TRANSPORT = "transport", "Transport"
        UTILITIES = "utilities", "Charges"
        OTHER = "other", "Autre"

    daily_sheet = models.ForeignKey(
        DailySheet,
        on_delete=models.CASCADE,
        related_name="expenses",
    )
    label = models.CharField("libelle", max_length=255)
    amount = models.DecimalField("montant", max_digits=14, decimal_places=2)
    category = models.CharField(
        "categorie", max_length=20, choices=Category.choices, default=Category.OTHER,
    )

    class Meta:
        verbose_name = "depense journaliere"
        verbose_name_plural = "depenses journalieres"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.label} - {self.amount}"
