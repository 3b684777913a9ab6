"""Models for the orders app."""
from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import TimeStampedModel


class Order(TimeStampedModel):
    """A marketplace order placed by a CHR client and fulfilled by a depot."""

    class Status(models.TextChoices):
        PENDING = "pending", "En attente"
        ACCEPTED = "accepted", "Acceptee"
        DELIVERING = "delivering", "En livraison"
        DELIVERED = "delivered", "Livree"
        CANCELLED = "cancelled", "Annulee"

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_orders",
        verbose_name="client",
    )
    supplier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="supplier_orders",
        verbose_name="fournisseur",
        null=True,
        blank=True,
    )
    status = models.CharField(
        "statut",
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    total_amount = models.DecimalField(
        "montant total",
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    delivered_at = models.DateTimeField("livree le", null=True, blank=True, db_index=True)

    class Meta:
        verbose_name = "commande"
        verbose_name_plural = "commandes"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"], name="order_client_status_idx"),
            models.Index(fields=["supplier", "status"], name="order_supplier_status_idx"),
        ]

    def __str__(self):
        return f"Commande {str(self.pk)[:8]} ({self.get_status_display()})"


class OrderItem(models.Model):
    """A product line of an order."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField("quantite")
    unit_price = models.DecimalField("prix unitaire", max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = "ligne de commande"
        verbose_name_plural = "lignes de commande"

    def __str__(self):
        return f"{self.quantity} x {self.product}"

    @property
    def line_total(self):
        return self.unit_price * self.quantity
