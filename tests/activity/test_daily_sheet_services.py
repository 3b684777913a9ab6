from datetime import date, datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from activity import services
from activity.models import DailyExpense, DailyPackaging, DailySheet
from catalog.models import CrateType
from credits.services import add_consumption, add_credit_customer, add_payment
from orders.models import Order, OrderItem
from organizations.models import AuditLog

DAY_1 = date(2024, 3, 10)
DAY_2 = date(2024, 3, 11)


@pytest.fixture
def sheet(organization, establishment_products):
    return services.get_or_create_daily_sheet(organization, DAY_1)


def _line(sheet, product):
    return sheet.stock_lines.get(product=product)


def _packaging(sheet, crate_type):
    return sheet.packaging.get(crate_type=crate_type)


@pytest.mark.django_db
class TestOpening:
    def test_first_sheet_starts_empty(self, sheet, establishment_products):
        assert sheet.status == DailySheet.Status.OPEN
        assert sheet.opening_cash == Decimal("0")
        assert sheet.stock_lines.count() == len(establishment_products)
        assert all(line.initial_stock == 0 for line in sheet.stock_lines.all())
        assert sheet.packaging.count() == 5
        assert not sheet.packaging.filter(crate_type=CrateType.NONE).exists()

    def test_same_day_returns_same_sheet(self, organization, sheet):
        again = services.get_or_create_daily_sheet(organization, DAY_1)
        assert again.pk == sheet.pk
        assert DailySheet.objects.filter(organization=organization).count() == 1

    def test_carryover_from_previous_day(self, organization, sheet, beer, soda, admin_user):
        services.update_stock_line(_line(sheet, beer), external_supply=20, final_stock=12)
        soda_line = _line(sheet, soda)
        soda_line.initial_stock = 4
        soda_line.save()
        services.update_stock_line(soda_line, external_supply=3)
        services.update_packaging(
            _packaging(sheet, CrateType.B65), qty_full_start=6, qty_full_end=8, qty_empty_end=4,
        )
        services.update_packaging(_packaging(sheet, CrateType.B33), qty_received=5)
        services.close_daily_sheet(sheet, Decimal("15000"), actor=admin_user)

        next_sheet = services.get_or_create_daily_sheet(organization, DAY_2)

        assert next_sheet.opening_cash == Decimal("15000")
        assert _line(next_sheet, beer).initial_stock == 12
        # not counted: theoretical level 4 + 3
        assert _line(next_sheet, soda).initial_stock == 7
        b65 = _packaging(next_sheet, CrateType.B65)
        assert (b65.qty_full_start, b65.qty_empty_start) == (8, 4)
        assert _packaging(next_sheet, CrateType.B33).qty_full_start == 5

    def test_open_previous_sheet_does_not_carry_cash(self, organization, sheet):
        next_sheet = services.get_or_create_daily_sheet(organization, DAY_2)
        assert next_sheet.opening_cash == Decimal("0")


@pytest.mark.django_db
class TestEntries:
    def test_negative_counts_rejected(self, sheet, beer):
        with pytest.raises(ValueError):
            services.update_stock_line(_line(sheet, beer), final_stock=-1)

    def test_start_quantities_only_on_first_day(self, organization, sheet):
        services.update_packaging(_packaging(sheet, CrateType.B65), qty_full_start=3)

        next_sheet = services.get_or_create_daily_sheet(organization, DAY_2)
        with pytest.raises(ValueError):
            services.update_packaging(_packaging(next_sheet, CrateType.B65), qty_empty_start=2)

    def test_unknown_packaging_field(self, sheet):
        with pytest.raises(ValueError):
            services.update_packaging(_packaging(sheet, CrateType.B65), crate_type="B33")

    def test_expenses_keep_total_in_sync(self, sheet):
        first = services.add_expense(sheet, "Glace", "1500", DailyExpense.Category.FOOD)
        services.add_expense(sheet, "Transport", "500", DailyExpense.Category.TRANSPORT)
        sheet.refresh_from_db()
        assert sheet.expenses_total == Decimal("2000")

        assert services.delete_expense(first) == Decimal("500")

    def test_expense_validation(self, sheet):
        with pytest.raises(ValueError):
            services.add_expense(sheet, "", "100")
        with pytest.raises(ValueError):
            services.add_expense(sheet, "Glace", "0")
        with pytest.raises(ValueError):
            services.add_expense(sheet, "Glace", "100", category="luxe")

    def test_sync_ravito_deliveries(self, organization, sheet, beer, soda, client_user):
        order = Order.objects.create(
            client=client_user,
            status=Order.Status.DELIVERED,
            total_amount=Decimal("7800"),
            delivered_at=timezone.make_aware(datetime(2024, 3, 10, 14, 0)),
        )
        OrderItem.objects.create(order=order, product=beer, quantity=12, unit_price=Decimal("600"))
        OrderItem.objects.create(order=order, product=soda, quantity=2, unit_price=Decimal("300"))
        other_day = Order.objects.create(
            client=client_user,
            status=Order.Status.DELIVERED,
            delivered_at=timezone.make_aware(datetime(2024, 3, 9, 14, 0)),
        )
        OrderItem.objects.create(order=other_day, product=beer, quantity=50, unit_price=Decimal("600"))

        assert services.sync_ravito_deliveries(sheet) == 2
        assert _line(sheet, beer).ravito_supply == 12
        assert _line(sheet, soda).ravito_supply == 2
        assert services.sync_ravito_deliveries(sheet) == 0


@pytest.mark.django_db
class TestClosing:
    def test_close_computes_cash_difference(self, sheet, beer, admin_user):
        line = _line(sheet, beer)
        line.initial_stock = 10
        line.save()
        services.update_stock_line(line, external_supply=20, final_stock=12)
        services.add_expense(sheet, "Glace", "2000")

        closed = services.close_daily_sheet(sheet, Decimal("15000"), actor=admin_user, notes="RAS")

        assert closed.status == DailySheet.Status.CLOSED
        assert closed.theoretical_revenue == Decimal("18000")
        assert closed.expenses_total == Decimal("2000")
        assert closed.cash_difference == Decimal("-1000")
        assert closed.closed_by == admin_user
        assert AuditLog.objects.filter(action="DAILY_SHEET_CLOSED", entity_id=str(closed.pk)).exists()

    def test_credit_activity_counts_in_expected_cash(self, organization, sheet, beer, admin_user):
        customer = add_credit_customer(organization, name="Koffi")
        add_consumption(
            customer, [{"product_name": "Flag", "quantity": 3, "unit_price": "1000"}], admin_user, sheet=sheet,
        )
        add_payment(customer, "1000", "cash", admin_user, sheet=sheet)
        services.update_stock_line(_line(sheet, beer), external_supply=10, final_stock=5)

        closed = services.close_daily_sheet(sheet, Decimal("3000"), actor=admin_user)

        # expected = 0 + 5000 - 0 + (1000 - 3000)
        assert closed.credit_sales == Decimal("3000")
        assert closed.credit_payments == Decimal("1000")
        assert closed.credit_balance_eod == Decimal("2000")
        assert closed.cash_difference == Decimal("0")

    def test_closed_sheet_is_read_only(self, sheet, beer, admin_user):
        services.close_daily_sheet(sheet, Decimal("0"), actor=admin_user)
        sheet.refresh_from_db()

        with pytest.raises(ValueError):
            services.close_daily_sheet(sheet, Decimal("0"), actor=admin_user)
        with pytest.raises(ValueError):
            services.update_stock_line(_line(sheet, beer), final_stock=1)
        with pytest.raises(ValueError):
            services.add_expense(sheet, "Glace", "100")

    def test_negative_closing_cash(self, sheet, admin_user):
        with pytest.raises(ValueError):
            services.close_daily_sheet(sheet, Decimal("-1"), actor=admin_user)


@pytest.mark.django_db
class TestSummary:
    def test_alerts(self, sheet, beer):
        services.update_stock_line(_line(sheet, beer), external_supply=10, final_stock=3)
        services.update_packaging(
            _packaging(sheet, CrateType.B65), qty_full_start=2, qty_empty_start=1, qty_full_end=2, qty_empty_end=0,
        )

        summary = services.get_sheet_summary(sheet)
        calc = summary["calculations"]

        assert calc["total_revenue"] == Decimal("7000")
        assert calc["cash_difference"] is None
        assert [a.product_name for a in calc["stock_alerts"]] == ["Flag 65cl"]
        [alert] = calc["packaging_alerts"]
        assert alert.crate_type == CrateType.B65
        assert alert.difference == -1
        assert "manquant" in alert.message

    def test_one_packaging_row_per_returnable_crate(self, sheet):
        assert set(DailyPackaging.objects.filter(daily_sheet=sheet).values_list("crate_type", flat=True)) == {
            "B33", "B65", "B100", "B50V", "B100V",
        }
