"""Service functions for the catalog app."""
import logging
from decimal import Decimal

from catalog.models import EstablishmentProduct

logger = logging.getLogger("ravito")


def get_establishment_products(organization, include_inactive=False):
    """Return the establishment's products with their catalog rows joined."""
    qs = EstablishmentProduct.objects.filter(organization=organization).select_related("product")
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs.order_by("product__name")


def upsert_establishment_product(
    organization,
    product,
    selling_price,
    min_stock_alert=0,
    is_active=True,
):
    """Create or update the (organization, product) selling configuration."""
    selling_price = Decimal(str(selling_price))
    if selling_price < 0:
        raise ValueError("Le prix de vente ne peut pas etre negatif.")
    if int(min_stock_alert) < 0:
        raise ValueError("Le seuil d'alerte ne peut pas etre negatif.")

    row, created = EstablishmentProduct.objects.update_or_create(
        organization=organization,
        product=product,
        defaults={
            "selling_price": selling_price,
            "min_stock_alert": int(min_stock_alert),
            "is_active": is_active,
        },
    )
    logger.info(
        "Establishment product %s %s for organization %s (price=%s)",
        product.pk, "created" if created else "updated", organization.pk, selling_price,
    )
    return row
