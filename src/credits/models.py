"""Models for the credits app (customer tabs kept by an establishment)."""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


# ---------------------------------------------------------------------------
# CreditCustomer
# ---------------------------------------------------------------------------

class CreditCustomer(TimeStampedModel):
    """A regular customer allowed to consume on credit."""

    class Status(models.TextChoices):
        ACTIVE = "active", "Actif"
        FROZEN = "frozen", "Gele"
        DISABLED = "disabled", "Desactive"

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="credit_customers",
        verbose_name="organisation",
    )
    name = models.CharField("nom", max_length=255)
    phone = models.CharField("telephone", max_length=30, blank=True, default="")
    address = models.CharField("adresse", max_length=255, blank=True, default="")
    notes = models.TextField("notes", blank=True, default="")
    credit_limit = models.DecimalField(
        "plafond de credit",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="0 = pas de plafond.",
    )
    current_balance = models.DecimalField(
        "solde",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Positif = le client doit de l'argent.",
    )
    total_credited = models.DecimalField(
        "total credite", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    total_paid = models.DecimalField(
        "total rembourse", max_digits=14, decimal_places=2, default=Decimal("0.00"),
    )
    status = models.CharField(
        "statut",
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    last_payment_date = models.DateTimeField("dernier paiement", null=True, blank=True)
    freeze_reason = models.TextField("motif du gel", blank=True, default="")
    frozen_at = models.DateTimeField("gele le", null=True, blank=True)
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "client credit"
        verbose_name_plural = "clients credit"
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def has_limit(self):
        return self.credit_limit > 0

    @property
    def available_credit(self):
        """Remaining credit, ``None`` when the customer has no limit."""
        if not self.has_limit:
            return None
        return self.credit_limit - self.current_balance

    @property
    def recovery_rate(self):
        if self.total_credited <= 0:
            return Decimal("0")
        return self.total_paid * 100 / self.total_credited


# ---------------------------------------------------------------------------
# CreditTransaction
# ---------------------------------------------------------------------------

class CreditTransaction(TimeStampedModel):
    """A consumption on credit or a repayment, immutable once recorded."""

    class Type(models.TextChoices):
        CONSUMPTION = "consumption", "Consommation"
        PAYMENT = "payment", "Paiement"

    class PaymentMethod(models.TextChoices):
        CASH = "cash", "Especes"
        MOBILE_MONEY = "mobile_money", "Mobile Money"
        TRANSFER = "transfer", "Virement"

    customer = models.ForeignKey(
        CreditCustomer,
        on_delete=models.CASCADE,
        related_name="transactions",
        verbose_name="client",
    )
    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="credit_transactions",
        verbose_name="organisation",
    )
    daily_sheet = models.ForeignKey(
        "activity.DailySheet",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_transactions",
        verbose_name="feuille journaliere",
    )
    transaction_type = models.CharField(
        "type", max_length=15, choices=Type.choices, db_index=True,
    )
    amount = models.DecimalField("montant", max_digits=14, decimal_places=2)
    payment_method = models.CharField(
        "mode de paiement",
        max_length=20,
        choices=PaymentMethod.choices,
        blank=True,
        default="",
    )
    transaction_date = models.DateField("date", default=timezone.localdate, db_index=True)
    notes = models.TextField("notes", blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="credit_transactions",
        verbose_name="cree par",
    )

    class Meta:
        verbose_name = "transaction credit"
        verbose_name_plural = "transactions credit"
        ordering = ["-transaction_date", "-created_at"]

    def __str__(self):
        return f"{self.get_transaction_type_display()} - {self.amount} ({self.customer})"


# ---------------------------------------------------------------------------
# CreditTransactionItem
# ---------------------------------------------------------------------------

class CreditTransactionItem(TimeStampedModel):
    """A product line of a consumption."""

    transaction = models.ForeignKey(
        CreditTransaction,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="credit_items",
    )
    product_name = models.CharField("produit", max_length=255)
    quantity = models.PositiveIntegerField("quantite")
    unit_price = models.DecimalField("prix unitaire", max_digits=14, decimal_places=2)
    subtotal = models.DecimalField("sous-total", max_digits=14, decimal_places=2)

    class Meta:
        verbose_name = "ligne de consommation"
        verbose_name_plural = "lignes de consommation"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.product_name} x{self.quantity}"
