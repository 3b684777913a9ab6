"""Models for the catalog app."""
from decimal import Decimal

from django.db import models

from core.models import TimeStampedModel


class CrateType(models.TextChoices):
    """Returnable crate formats tracked in daily packaging counts."""

    B33 = "B33", "Casier 33cl"
    B65 = "B65", "Casier 65cl"
    B100 = "B100", "Casier 1L"
    B50V = "B50V", "Casier 50cl verre"
    B100V = "B100V", "Casier 1L verre"
    NONE = "NONE", "Sans consigne"


# Crate types that are counted on the daily packaging sheet.
RETURNABLE_CRATE_TYPES = [c for c in CrateType.values if c != CrateType.NONE]


# ---------------------------------------------------------------------------
# Product
# ---------------------------------------------------------------------------

class Product(TimeStampedModel):
    """Beverage reference from the platform catalog."""

    class Category(models.TextChoices):
        BEER = "beer", "Biere"
        SODA = "soda", "Soda"
        WATER = "water", "Eau"
        WINE = "wine", "Vin"
        SPIRITS = "spirits", "Spiritueux"
        OTHER = "other", "Autre"

    name = models.CharField("nom", max_length=255)
    reference = models.CharField("reference", max_length=50, unique=True)
    category = models.CharField(
        "categorie", max_length=20, choices=Category.choices, default=Category.BEER,
    )
    crate_type = models.CharField(
        "type de casier", max_length=10, choices=CrateType.choices, default=CrateType.NONE,
    )
    unit_price = models.DecimalField(
        "prix unitaire de reference",
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "produit"
        verbose_name_plural = "produits"
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.reference})"


# ---------------------------------------------------------------------------
# EstablishmentProduct
# ---------------------------------------------------------------------------

class EstablishmentProduct(TimeStampedModel):
    """A product sold by one establishment, with its own selling price."""

    organization = models.ForeignKey(
        "organizations.Organization",
        on_delete=models.CASCADE,
        related_name="establishment_products",
        verbose_name="organisation",
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="establishment_products",
        verbose_name="produit",
    )
    selling_price = models.DecimalField("prix de vente", max_digits=12, decimal_places=2)
    min_stock_alert = models.PositiveIntegerField(
        "seuil d'alerte stock",
        default=0,
        help_text="0 = pas d'alerte.",
    )
    is_active = models.BooleanField("actif", default=True)

    class Meta:
        verbose_name = "produit de l'etablissement"
        verbose_name_plural = "produits de l'etablissement"
        unique_together = [["organization", "product"]]
        ordering = ["product__name"]

    def __str__(self):
        return f"{self.product.name} @ {self.organization}"
