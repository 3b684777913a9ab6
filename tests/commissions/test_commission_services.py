from datetime import datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from accounts.models import User
from commissions import services
from commissions.engine import ConfigurationMissing, Period
from commissions.models import SalesCommissionPayment, SalesCommissionSettings, SalesRepresentative
from commissions.settings_schema import SettingsValidationError
from commissions.tasks import save_previous_month_commissions
from orders.models import Order

MARCH_2024 = Period(2024, 3)


def _registered(rep, email, role=User.Role.CLIENT, joined=None):
    return User.objects.create_user(
        email=email,
        password="testpass123",
        name=email.split("@")[0],
        role=role,
        registered_by_sales_rep=rep,
        date_joined=joined or timezone.make_aware(datetime(2024, 3, 5, 10, 0)),
    )


def _delivered(client, amount, supplier=None):
    return Order.objects.create(
        client=client,
        supplier=supplier,
        status=Order.Status.DELIVERED,
        total_amount=Decimal(amount),
        delivered_at=timezone.now(),
    )


@pytest.fixture
def depot_owner(db):
    return User.objects.create_user(
        email="buyer@test.com", password="testpass123", name="Buyer", role=User.Role.CLIENT,
    )


@pytest.mark.django_db
class TestActivity:
    def test_chr_activation_uses_cumulative_revenue(self, sales_rep, commission_settings):
        active = _registered(sales_rep, "actif@test.com")
        _delivered(active, "30000")
        _delivered(active, "25000")
        inactive = _registered(sales_rep, "inactif@test.com")
        _delivered(inactive, "49999")

        stats = services.build_activity_stats(sales_rep, MARCH_2024, commission_settings.to_snapshot())

        assert stats.chr_registered == 2
        assert stats.chr_activated == 1
        assert stats.total_ca == Decimal("104999")

    def test_depot_activation_counts_deliveries(self, sales_rep, commission_settings, depot_owner):
        depot = _registered(sales_rep, "depot-a@test.com", role=User.Role.SUPPLIER)
        for _ in range(10):
            _delivered(depot_owner, "1000", supplier=depot)
        _registered(sales_rep, "depot-b@test.com", role=User.Role.SUPPLIER)

        stats = services.build_activity_stats(sales_rep, MARCH_2024, commission_settings.to_snapshot())

        assert stats.depot_registered == 2
        assert stats.depot_activated == 1

    def test_weekly_stats_put_late_days_in_last_week(self, sales_rep):
        _registered(sales_rep, "s1@test.com", joined=timezone.make_aware(datetime(2024, 3, 1, 9)))
        _registered(sales_rep, "s3@test.com", joined=timezone.make_aware(datetime(2024, 3, 15, 9)))
        _registered(sales_rep, "s4@test.com", joined=timezone.make_aware(datetime(2024, 3, 30, 9)))

        weeks = services.get_weekly_stats(sales_rep, MARCH_2024)

        assert [w["registrations"] for w in weeks] == [1, 0, 1, 1]
        assert weeks[3]["week_label"] == "S4"

    def test_ranking_orders_by_registrations(self, sales_rep):
        other = SalesRepresentative.objects.create(name="Yao Koffi")
        _registered(other, "o1@test.com")
        _registered(other, "o2@test.com")
        _registered(sales_rep, "r1@test.com")

        ranking = services.get_sales_rep_ranking(MARCH_2024)

        assert [row["sales_rep_name"] for row in ranking] == ["Yao Koffi", "Awa Kone"]
        assert [row["rank"] for row in ranking] == [1, 2]

    def test_activity_stats_require_settings(self, sales_rep):
        with pytest.raises(ConfigurationMissing):
            services.get_commercial_activity_stats(sales_rep, MARCH_2024)

    def test_activity_stats_percentages(self, sales_rep, commission_settings, admin_user):
        client = _registered(sales_rep, "pct@test.com")
        _delivered(client, "60000")
        _registered(sales_rep, "pct2@test.com")
        services.upsert_objective(sales_rep, MARCH_2024, 2, 0, actor=admin_user)

        stats = services.get_commercial_activity_stats(
            sales_rep, MARCH_2024, today=datetime(2024, 3, 21).date(),
        )

        assert stats["chr_activated"] == 1
        assert stats["percent_objective_chr"] == 50
        assert stats["percent_objective_depots"] == 0
        assert stats["chr_remaining"] == 1
        assert stats["activation_rate"] == 50
        assert stats["days_left_in_month"] == 10
        assert stats["current_rank"] == 1


@pytest.mark.django_db
class TestCalculateCommissions:
    def test_best_of_month_goes_to_highest_total(self, sales_rep, commission_settings):
        runner_up = SalesRepresentative.objects.create(name="Bamba Ali")
        for i in range(2):
            _delivered(_registered(sales_rep, f"top{i}@test.com"), "50000")
        _delivered(_registered(runner_up, "low@test.com"), "50000")

        result = services.calculate_commissions(MARCH_2024)
        by_rep = {c["sales_rep_id"]: c for c in result["calculations"]}

        best = by_rep[str(sales_rep.pk)]
        assert result["best_sales_rep_id"] == str(sales_rep.pk)
        assert best["bonus_special"] == Decimal("25000")
        assert best["total_amount"] == Decimal("10000") + Decimal("25000")
        assert by_rep[str(runner_up.pk)]["bonus_special"] == Decimal("0")
        assert result["total_amount"] == Decimal("35000") + Decimal("5000")

    def test_no_best_of_month_when_everyone_is_at_zero(self, sales_rep, commission_settings):
        result = services.calculate_commissions(MARCH_2024)
        assert result["best_sales_rep_id"] is None
        assert result["total_amount"] == Decimal("0")

    def test_estimation_for_one_rep(self, sales_rep, commission_settings, admin_user):
        for i in range(3):
            _delivered(_registered(sales_rep, f"e{i}@test.com"), "50000")
        services.upsert_objective(sales_rep, MARCH_2024, 3, 0, actor=admin_user)

        estimation = services.calculate_commission_estimation(sales_rep, MARCH_2024)

        assert estimation.prime_chr_total == Decimal("15000")
        assert estimation.bonus_chr_objective == Decimal("20000")
        assert estimation.total_estimated == Decimal("35000")

    def test_upsert_objective_replaces_existing(self, sales_rep, admin_user):
        services.upsert_objective(sales_rep, MARCH_2024, 5, 2, actor=admin_user)
        objective = services.upsert_objective(sales_rep, MARCH_2024, 8, 3, actor=admin_user)

        assert services.get_objectives_by_period(MARCH_2024).count() == 1
        assert (objective.objective_chr, objective.objective_depots) == (8, 3)

    def test_delete_unknown_objective(self):
        with pytest.raises(ValueError):
            services.delete_objective("00000000-0000-0000-0000-000000000000")


@pytest.mark.django_db
class TestPaymentLifecycle:
    def test_save_validate_pay(self, sales_rep, commission_settings, admin_user):
        _delivered(_registered(sales_rep, "p@test.com"), "50000")

        assert services.save_commission_payments(MARCH_2024, actor=admin_user) == {
            "created": 1, "updated": 0, "skipped": 0,
        }
        payment = SalesCommissionPayment.objects.get(sales_rep=sales_rep)
        assert payment.status == SalesCommissionPayment.Status.PENDING
        assert payment.total_amount == Decimal("30000")

        assert services.save_commission_payments(MARCH_2024)["updated"] == 1
        assert services.validate_payments(MARCH_2024, actor=admin_user) == 1
        assert services.save_commission_payments(MARCH_2024)["skipped"] == 1
        assert services.mark_payments_as_paid(MARCH_2024, actor=admin_user) == 1

        payment.refresh_from_db()
        assert payment.status == SalesCommissionPayment.Status.PAID
        assert payment.validated_by == admin_user
        assert payment.paid_at is not None

    def test_pay_requires_validation_first(self, sales_rep, commission_settings, admin_user):
        services.save_commission_payments(MARCH_2024)
        assert services.mark_payments_as_paid(MARCH_2024, actor=admin_user) == 0

    def test_locked_rows_keep_their_figures(self, sales_rep, commission_settings, admin_user):
        services.save_commission_payments(MARCH_2024)
        services.validate_payments(MARCH_2024, actor=admin_user)
        _delivered(_registered(sales_rep, "late@test.com"), "90000")

        services.save_commission_payments(MARCH_2024)

        payment = SalesCommissionPayment.objects.get(sales_rep=sales_rep)
        assert payment.total_amount == Decimal("0")

    def test_csv_export(self, sales_rep, commission_settings):
        services.save_commission_payments(MARCH_2024)

        response = services.export_commission_payments_csv(MARCH_2024)

        assert response["Content-Type"].startswith("text/csv")
        body = response.content.decode("utf-8-sig")
        assert body.splitlines()[0].startswith("Commercial;")
        assert "Awa Kone" in body

    def test_monthly_task_runs_on_first_day_only(self, sales_rep, commission_settings):
        assert save_previous_month_commissions(today="2024-04-02") == "skipped"

        result = save_previous_month_commissions(today="2024-04-01")

        assert result["created"] == 1
        payment = SalesCommissionPayment.objects.get()
        assert (payment.period_year, payment.period_month) == (2024, 3)

    def test_monthly_task_without_settings(self, sales_rep):
        assert save_previous_month_commissions(today="2024-04-01") == "no settings"


@pytest.mark.django_db
class TestSettings:
    def test_first_update_creates_row(self, admin_user):
        snapshot = services.update_commission_settings({"bonus_combined": "12000"}, actor=admin_user)

        assert snapshot.bonus_combined == Decimal("12000")
        row = SalesCommissionSettings.load()
        assert row.bonus_combined == Decimal("12000")
        assert row.prime_per_chr_activated == Decimal("5000")
        assert row.updated_by == admin_user

    def test_invalid_update_saves_nothing(self, commission_settings, admin_user):
        with pytest.raises(SettingsValidationError):
            services.update_commission_settings(
                {"bonus_combined": "1", "ca_tier4_rate": "101"}, actor=admin_user,
            )
        commission_settings.refresh_from_db()
        assert commission_settings.bonus_combined == Decimal("10000")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "1e20"])
    def test_unstorable_amount_keeps_settings_readable(self, commission_settings, admin_user, value):
        with pytest.raises(SettingsValidationError) as exc_info:
            services.update_commission_settings({"bonus_combined": value}, actor=admin_user)

        assert "bonus_combined" in exc_info.value.errors
        assert SalesCommissionSettings.load().bonus_combined == Decimal("10000")
        assert services.get_commission_settings().bonus_combined == Decimal("10000")

    def test_dashboard_kpis(self, sales_rep):
        buyer = _registered(sales_rep, "k1@test.com")
        _delivered(buyer, "12000.40")
        _registered(sales_rep, "k2@test.com")
        _registered(sales_rep, "k3@test.com", role=User.Role.SUPPLIER)

        kpis = services.get_dashboard_kpis()

        assert kpis["total_registered"] == 3
        assert kpis["chr_registered"] == 2
        assert kpis["depots_registered"] == 1
        assert kpis["total_ca"] == Decimal("12000")
        assert kpis["active_rate"] == Decimal("50.0")
