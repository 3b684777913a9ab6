from decimal import Decimal

import pytest

from commissions.engine import CommissionSettings
from commissions.settings_schema import (
    CommissionSettingsUpdate,
    SettingsValidationError,
    merge_settings,
)


class TestMergeSettings:
    def test_partial_update_keeps_other_fields(self):
        current = CommissionSettings()
        update = CommissionSettingsUpdate.from_mapping({"prime_per_chr_activated": "6000"})

        merged = merge_settings(current, update)

        assert merged.prime_per_chr_activated == Decimal("6000")
        assert merged.prime_per_depot_activated == current.prime_per_depot_activated
        assert merged.bonus_best_of_month == current.bonus_best_of_month
        assert current.prime_per_chr_activated == Decimal("5000")

    def test_none_values_are_ignored(self):
        update = CommissionSettingsUpdate.from_mapping({"bonus_combined": None})
        assert update.changes() == {}

    def test_boolean_coercion(self):
        update = CommissionSettingsUpdate.from_mapping({"ca_commission_enabled": "true"})
        assert merge_settings(CommissionSettings(), update).ca_commission_enabled is True

    def test_unknown_field(self):
        with pytest.raises(SettingsValidationError) as exc_info:
            CommissionSettingsUpdate.from_mapping({"prime_secrete": 10})
        assert "prime_secrete" in exc_info.value.errors

    def test_malformed_value(self):
        with pytest.raises(SettingsValidationError) as exc_info:
            CommissionSettingsUpdate.from_mapping({"overshoot_tier1_threshold": "110.5"})
        assert "overshoot_tier1_threshold" in exc_info.value.errors

    @pytest.mark.parametrize(
        "field, value",
        [
            ("ca_tier1_rate", "150"),
            ("prime_per_chr_activated", "-1"),
            ("overshoot_tier1_threshold", 5000),
            ("bonus_combined", "1e20"),
            ("depot_activation_deliveries", "1e12"),
            ("prime_per_chr_activated", "5000.005"),
            ("ca_tier1_rate", "1.125"),
        ],
    )
    def test_out_of_range_rejected(self, field, value):
        update = CommissionSettingsUpdate.from_mapping({field: value})
        with pytest.raises(SettingsValidationError) as exc_info:
            merge_settings(CommissionSettings(), update)
        assert field in exc_info.value.errors

    def test_tier_bounds_must_increase(self):
        update = CommissionSettingsUpdate.from_mapping({"ca_tier2_max": "400000"})
        with pytest.raises(SettingsValidationError):
            merge_settings(CommissionSettings(), update)

    def test_overshoot_tiers_ordered(self):
        update = CommissionSettingsUpdate.from_mapping({"overshoot_tier2_threshold": 105})
        with pytest.raises(SettingsValidationError) as exc_info:
            merge_settings(CommissionSettings(), update)
        assert "overshoot_tier2_threshold" in exc_info.value.errors

    @pytest.mark.parametrize(
        "field, value",
        [
            ("prime_per_chr_activated", "NaN"),
            ("bonus_combined", "Infinity"),
            ("ca_tier1_rate", "-Infinity"),
            ("overshoot_tier1_threshold", "Infinity"),
            ("depot_activation_deliveries", "sNaN"),
        ],
    )
    def test_non_finite_values_rejected(self, field, value):
        with pytest.raises(SettingsValidationError) as exc_info:
            CommissionSettingsUpdate.from_mapping({field: value})
        assert field in exc_info.value.errors

    def test_largest_storable_amount_is_accepted(self):
        update = CommissionSettingsUpdate.from_mapping({"bonus_combined": "999999999999.99"})
        assert merge_settings(CommissionSettings(), update).bonus_combined == Decimal("999999999999.99")
