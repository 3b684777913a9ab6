from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from commissions.engine import (
    ActivityStats,
    CommissionSettings,
    ConfigurationMissing,
    Period,
    ca_rate,
    estimate_checked,
    estimate_commission,
    round_amount,
)

MARCH_2024 = Period(2024, 3)


def _stats(**overrides):
    values = dict(
        chr_registered=10,
        depot_registered=5,
        chr_activated=8,
        depot_activated=3,
        objective_chr=8,
        objective_depots=3,
        total_ca=Decimal("0"),
    )
    values.update(overrides)
    return ActivityStats(**values)


class TestEstimateCommission:
    def test_reference_scenario(self):
        result = estimate_commission(_stats(), CommissionSettings(), MARCH_2024)

        assert result.prime_chr_total == Decimal("40000")
        assert result.prime_depot_total == Decimal("24000")
        assert result.prime_inscriptions_total == Decimal("64000")
        assert result.bonus_chr_objective == Decimal("20000")
        assert result.bonus_depot_objective == Decimal("15000")
        assert result.bonus_combined == Decimal("10000")
        assert result.bonus_objectives_total == Decimal("45000")
        assert result.bonus_overshoot == Decimal("0")
        assert result.commission_ca == Decimal("0")
        assert result.total_estimated == Decimal("109000")
        assert result.estimated_payment_date == date(2024, 4, 5)

    def test_total_is_sum_of_components(self):
        settings = replace(CommissionSettings(), ca_commission_enabled=True)
        result = estimate_commission(
            _stats(chr_activated=9, depot_activated=4, total_ca=Decimal("750000")),
            settings,
            MARCH_2024,
        )
        assert result.total_estimated == (
            result.prime_inscriptions_total
            + result.bonus_objectives_total
            + result.bonus_overshoot
            + result.commission_ca
        )

    def test_zero_objective_never_pays_objective_or_overshoot(self):
        result = estimate_commission(
            _stats(objective_chr=0, objective_depots=3, chr_activated=10),
            CommissionSettings(),
            MARCH_2024,
        )
        assert result.bonus_chr_objective == Decimal("0")
        assert result.bonus_depot_objective == Decimal("15000")
        assert result.bonus_combined == Decimal("0")
        assert result.bonus_overshoot == Decimal("0")

    def test_only_one_objective_reached(self):
        result = estimate_commission(
            _stats(chr_activated=8, depot_activated=2),
            CommissionSettings(),
            MARCH_2024,
        )
        assert result.bonus_chr_objective == Decimal("20000")
        assert result.bonus_depot_objective == Decimal("0")
        assert result.bonus_combined == Decimal("0")
        assert result.bonus_objectives_total == Decimal("20000")

    @pytest.mark.parametrize(
        "chr_activated, depot_activated, expected",
        [
            (5, 5, Decimal("0")),        # 100%
            (6, 5, Decimal("5000")),     # 110%
            (7, 5, Decimal("12000")),    # 120%
            (8, 5, Decimal("12000")),    # 130%
        ],
    )
    def test_overshoot_pays_highest_tier_only(self, chr_activated, depot_activated, expected):
        stats = _stats(
            chr_registered=10,
            depot_registered=10,
            chr_activated=chr_activated,
            depot_activated=depot_activated,
            objective_chr=5,
            objective_depots=5,
        )
        result = estimate_commission(stats, CommissionSettings(), MARCH_2024)
        assert result.bonus_overshoot == expected

    def test_overshoot_is_monotonic(self):
        settings = CommissionSettings()
        previous = Decimal("0")
        for activated in range(0, 30):
            stats = _stats(
                chr_registered=30,
                chr_activated=activated,
                depot_activated=0,
                objective_chr=10,
                objective_depots=1,
            )
            bonus = estimate_commission(stats, settings, MARCH_2024).bonus_overshoot
            assert bonus >= previous
            previous = bonus
        assert previous == Decimal("12000")

    def test_ca_commission_uses_single_bracket_rate(self):
        settings = replace(CommissionSettings(), ca_commission_enabled=True)
        result = estimate_commission(_stats(total_ca=Decimal("600000")), settings, MARCH_2024)
        # 600 000 falls in tier 2: the whole amount at 1.5%.
        assert result.commission_ca == Decimal("9000")

    def test_ca_bracket_bounds_are_inclusive(self):
        settings = CommissionSettings()
        assert ca_rate(Decimal("500000"), settings) == Decimal("1")
        assert ca_rate(Decimal("500001"), settings) == Decimal("1.5")
        assert ca_rate(Decimal("2000000"), settings) == Decimal("2")
        assert ca_rate(Decimal("2000001"), settings) == Decimal("2.5")

    def test_ca_commission_disabled(self):
        result = estimate_commission(_stats(total_ca=Decimal("3000000")), CommissionSettings(), MARCH_2024)
        assert result.commission_ca == Decimal("0")

    def test_amounts_round_half_up(self):
        settings = replace(CommissionSettings(), prime_per_chr_activated=Decimal("2500.5"))
        result = estimate_commission(
            _stats(chr_activated=1, depot_activated=0, objective_chr=0, objective_depots=0),
            settings,
            MARCH_2024,
        )
        assert result.prime_chr_total == Decimal("2501")
        assert round_amount(Decimal("0.5")) == Decimal("1")
        assert round_amount(Decimal("1.49")) == Decimal("1")

    def test_same_inputs_same_result(self):
        stats = _stats()
        settings = CommissionSettings()
        assert estimate_commission(stats, settings, MARCH_2024) == estimate_commission(stats, settings, MARCH_2024)

    def test_missing_settings(self):
        with pytest.raises(ConfigurationMissing):
            estimate_commission(_stats(), None, MARCH_2024)

    def test_checked_estimate_rejects_impossible_counts(self):
        with pytest.raises(ValueError):
            estimate_checked(_stats(chr_registered=2, chr_activated=3), CommissionSettings(), MARCH_2024)
        with pytest.raises(ValueError):
            estimate_checked(_stats(total_ca=Decimal("-1")), CommissionSettings(), MARCH_2024)


class TestPeriod:
    def test_payment_date_is_fifth_of_next_month(self):
        assert Period(2024, 3).payment_date() == date(2024, 4, 5)
        assert Period(2024, 12).payment_date() == date(2025, 1, 5)

    def test_invalid_month(self):
        with pytest.raises(ValueError):
            Period(2024, 13)

    def test_days_left(self):
        period = Period(2024, 3)
        assert period.days_left(date(2024, 3, 10)) == 21
        assert period.days_left(date(2024, 3, 31)) == 0
        assert period.days_left(date(2024, 4, 2)) == 0
        assert period.days_left(date(2024, 2, 20)) == 31

    def test_navigation_and_label(self):
        assert Period(2024, 1).previous() == Period(2023, 12)
        assert Period(2024, 12).next() == Period(2025, 1)
        assert str(Period(2024, 3)) == "2024-03"
        assert Period(2024, 3).label == "Mars 2024"
        assert Period(2024, 2).days == 29
