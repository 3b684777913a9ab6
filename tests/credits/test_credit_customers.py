from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone

from credits import services
from credits.models import CreditCustomer, CreditTransaction
from credits.tasks import notify_critical_credit_alerts
from notifications.models import Notification

BEERS = [{"product_name": "Flag 65cl", "quantity": 2, "unit_price": "1000"}]


@pytest.fixture
def customer(organization):
    return services.add_credit_customer(
        organization, name="Koffi Yao", phone="+2250102030405", credit_limit="10000",
    )


def _age(customer, days, *, paid=True):
    """Pretend the last payment (or the creation) happened *days* ago."""
    moment = timezone.now() - timedelta(days=days)
    field = "last_payment_date" if paid else "created_at"
    CreditCustomer.objects.filter(pk=customer.pk).update(**{field: moment})


@pytest.mark.django_db
class TestCustomers:
    def test_name_required(self, organization):
        with pytest.raises(ValueError):
            services.add_credit_customer(organization, name="  ")

    def test_update_rejects_unknown_fields(self, customer):
        with pytest.raises(ValueError):
            services.update_credit_customer_info(customer, current_balance="0")

    def test_delete_is_soft(self, organization, customer):
        services.delete_credit_customer(customer)
        assert not services.get_credit_customers(organization).exists()
        assert services.get_credit_customers(organization, include_inactive=True).count() == 1


@pytest.mark.django_db
class TestLedger:
    def test_consumption_raises_balance(self, customer, client_user, beer):
        tx = services.add_consumption(
            customer,
            [{"product_id": beer.pk, "product_name": "Flag 65cl", "quantity": 3, "unit_price": "1000"}],
            client_user,
        )

        customer.refresh_from_db()
        assert tx.amount == Decimal("3000")
        assert tx.items.get().subtotal == Decimal("3000")
        assert customer.current_balance == Decimal("3000")
        assert customer.total_credited == Decimal("3000")
        assert customer.available_credit == Decimal("7000")

    def test_credit_limit(self, customer, client_user):
        services.add_consumption(customer, [{"product_name": "Casier", "quantity": 9, "unit_price": "1000"}], client_user)
        with pytest.raises(ValueError):
            services.add_consumption(customer, BEERS, client_user)

    def test_no_limit_when_zero(self, organization, client_user):
        unlimited = services.add_credit_customer(organization, name="Sans plafond")
        services.add_consumption(
            unlimited, [{"product_name": "Casier", "quantity": 100, "unit_price": "9000"}], client_user,
        )
        unlimited.refresh_from_db()
        assert unlimited.current_balance == Decimal("900000")

    def test_invalid_items(self, customer, client_user):
        with pytest.raises(ValueError):
            services.add_consumption(customer, [], client_user)
        with pytest.raises(ValueError):
            services.add_consumption(customer, [{"product_name": "X", "quantity": 0, "unit_price": "1"}], client_user)

    def test_payment(self, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)

        tx = services.add_payment(customer, "1500", CreditTransaction.PaymentMethod.MOBILE_MONEY, client_user)

        customer.refresh_from_db()
        assert tx.transaction_type == CreditTransaction.Type.PAYMENT
        assert customer.current_balance == Decimal("500")
        assert customer.total_paid == Decimal("1500")
        assert customer.last_payment_date is not None

    def test_overpayment_rejected(self, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        with pytest.raises(ValueError):
            services.add_payment(customer, "2001", "cash", client_user)

    def test_unknown_payment_method(self, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        with pytest.raises(ValueError):
            services.add_payment(customer, "100", "cheque", client_user)

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "abc"])
    def test_non_numeric_payment_rejected(self, customer, client_user, amount):
        with pytest.raises(ValueError):
            services.add_payment(customer, amount, "cash", client_user)


@pytest.mark.django_db
class TestFreeze:
    def test_freeze_full_caps_limit_at_balance(self, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)

        frozen = services.freeze_customer(customer, "freeze_full", "Retards", actor=client_user)

        assert frozen.status == CreditCustomer.Status.FROZEN
        assert frozen.credit_limit == Decimal("2000")
        with pytest.raises(ValueError):
            services.add_consumption(frozen, BEERS, client_user)
        # frozen customers may still repay
        services.add_payment(frozen, "2000", "cash", client_user)

    def test_reduce_limit_keeps_customer_active(self, customer):
        reduced = services.freeze_customer(customer, "reduce_limit", "Prudence", new_limit="3000")
        assert reduced.status == CreditCustomer.Status.ACTIVE
        assert reduced.credit_limit == Decimal("3000")

    def test_reduce_limit_needs_amount(self, customer):
        with pytest.raises(ValueError):
            services.freeze_customer(customer, "reduce_limit", "Prudence")

    def test_disable_then_unfreeze(self, customer, client_user):
        services.freeze_customer(customer, "disable", "Impayes")

        restored = services.unfreeze_customer(customer, new_limit="5000")

        assert restored.status == CreditCustomer.Status.ACTIVE
        assert restored.freeze_reason == ""
        assert restored.credit_limit == Decimal("5000")
        services.add_consumption(restored, BEERS, client_user)

    def test_unknown_action(self, customer):
        with pytest.raises(ValueError):
            services.freeze_customer(customer, "ban", "?")

    def test_payment_and_unfreeze_are_logged(self, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        services.freeze_customer(customer, "disable", "Impayes")

        with patch("credits.services.logger") as logger:
            services.add_payment(customer, "500", "cash", client_user)
            services.unfreeze_customer(customer)

        messages = [c.args[0] for c in logger.info.call_args_list]
        assert messages == ["Credit payment recorded", "Credit customer unfrozen"]
        assert logger.info.call_args_list[0].kwargs["extra"]["amount"] == "500"


@pytest.mark.django_db
class TestAlertsAndStats:
    def test_alert_levels(self, organization, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        late = services.add_credit_customer(organization, name="Retardataire")
        services.add_consumption(late, BEERS, client_user)
        settled = services.add_credit_customer(organization, name="A jour")
        services.add_consumption(settled, BEERS, client_user)
        services.add_payment(settled, "2000", "cash", client_user)

        _age(customer, 16)
        _age(late, 31, paid=False)
        _age(settled, 60)

        alerts = services.get_credit_alerts(organization)

        assert [(a["name"], a["alert_level"]) for a in alerts] == [
            ("Retardataire", "critical"),
            ("Koffi Yao", "warning"),
        ]
        assert services.critical_alert_summary(organization) == {"count": 1, "amount": Decimal("2000")}

    def test_no_alert_for_recent_debt(self, organization, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        assert services.get_credit_alerts(organization) == []
        assert services.critical_alert_summary(organization) is None

    def test_monthly_stats(self, organization, customer, client_user):
        today = timezone.localdate()
        services.add_consumption(customer, BEERS, client_user)
        services.add_payment(customer, "500", "cash", client_user)

        stats = services.get_monthly_credit_stats(organization, today.year, today.month)

        assert stats["total_credited"] == Decimal("2000")
        assert stats["total_paid"] == Decimal("500")
        assert stats["recovery_rate"] == Decimal("25.0")
        assert stats["end_balance"] == Decimal("1500")
        assert stats["top_debtors"][0]["name"] == "Koffi Yao"

    def test_annual_stats_months(self, organization, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        CreditTransaction.objects.update(transaction_date=date(2023, 6, 15))

        stats = services.get_annual_credit_stats(organization, 2023)

        assert stats["total_credited"] == Decimal("2000")
        assert stats["monthly_data"][5]["credited"] == Decimal("2000")
        assert stats["monthly_data"][5]["month_name"] == "Juin"
        assert stats["previous_year_comparison"] is None

    def test_critical_alert_task_notifies_owner(self, organization, customer, client_user):
        services.add_consumption(customer, BEERS, client_user)
        _age(customer, 45, paid=False)

        assert notify_critical_credit_alerts() == "1 organizations notified"

        notification = Notification.objects.get(user=client_user)
        assert notification.type == Notification.Type.CREDIT_ALERT
        assert notification.data["count"] == 1
