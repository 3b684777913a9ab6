from decimal import Decimal

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from accounts.models import User
from catalog.models import CrateType, EstablishmentProduct, Product
from commissions.models import SalesCommissionSettings, SalesRepresentative
from organizations.models import Organization, OrganizationMember


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        name="Admin Ravito",
        role=User.Role.ADMIN,
        is_approved=True,
        approval_status=User.ApprovalStatus.APPROVED,
    )


@pytest.fixture
def client_user(db):
    return User.objects.create_user(
        email="maquis@test.com",
        password="testpass123",
        name="Maquis Le Baobab",
        role=User.Role.CLIENT,
        is_approved=True,
        approval_status=User.ApprovalStatus.APPROVED,
    )


@pytest.fixture
def supplier_user(db):
    return User.objects.create_user(
        email="depot@test.com",
        password="testpass123",
        name="Depot Central",
        role=User.Role.SUPPLIER,
        business_name="Depot Central SARL",
        is_approved=True,
        approval_status=User.ApprovalStatus.APPROVED,
    )


@pytest.fixture
def organization(client_user):
    org = Organization.objects.create(
        name="Maquis Le Baobab (Client)",
        type=Organization.Type.CLIENT,
        owner=client_user,
    )
    OrganizationMember.objects.create(
        organization=org,
        user=client_user,
        role=OrganizationMember.Role.OWNER,
    )
    return org


@pytest.fixture
def sales_rep_user(db):
    return User.objects.create_user(
        email="commercial@test.com",
        password="testpass123",
        name="Awa Kone",
        role=User.Role.SALES_REP,
        is_approved=True,
        approval_status=User.ApprovalStatus.APPROVED,
    )


@pytest.fixture
def sales_rep(sales_rep_user):
    return SalesRepresentative.objects.create(
        user=sales_rep_user,
        name="Awa Kone",
        phone="+2250700000000",
        zone="Cocody",
    )


@pytest.fixture
def commission_settings(db):
    return SalesCommissionSettings.objects.create()


@pytest.fixture
def beer(db):
    return Product.objects.create(
        name="Flag 65cl",
        reference="FLAG-65",
        category=Product.Category.BEER,
        crate_type=CrateType.B65,
        unit_price=Decimal("600"),
    )


@pytest.fixture
def soda(db):
    return Product.objects.create(
        name="Coca-Cola 33cl",
        reference="COCA-33",
        category=Product.Category.SODA,
        crate_type=CrateType.B33,
        unit_price=Decimal("350"),
    )


@pytest.fixture
def establishment_products(organization, beer, soda):
    return [
        EstablishmentProduct.objects.create(
            organization=organization,
            product=beer,
            selling_price=Decimal("1000"),
            min_stock_alert=5,
        ),
        EstablishmentProduct.objects.create(
            organization=organization,
            product=soda,
            selling_price=Decimal("500"),
        ),
    ]


@pytest.fixture
def api_client():
    return APIClient()
