from decimal import Decimal

import pytest

from catalog.models import EstablishmentProduct
from catalog.services import get_establishment_products, upsert_establishment_product


@pytest.mark.django_db
class TestEstablishmentProducts:
    def test_upsert_creates_then_updates(self, organization, beer):
        created = upsert_establishment_product(organization, beer, "1100", min_stock_alert=6)
        updated = upsert_establishment_product(organization, beer, Decimal("1200"))

        assert created.pk == updated.pk
        assert updated.selling_price == Decimal("1200")
        assert updated.min_stock_alert == 0
        assert EstablishmentProduct.objects.filter(organization=organization).count() == 1

    def test_negative_values_rejected(self, organization, beer):
        with pytest.raises(ValueError):
            upsert_establishment_product(organization, beer, "-1")
        with pytest.raises(ValueError):
            upsert_establishment_product(organization, beer, "100", min_stock_alert=-2)

    def test_inactive_products_hidden_by_default(self, organization, establishment_products, soda):
        upsert_establishment_product(organization, soda, "500", is_active=False)

        names = [row.product.name for row in get_establishment_products(organization)]

        assert names == ["Flag 65cl"]
        assert get_establishment_products(organization, include_inactive=True).count() == 2
