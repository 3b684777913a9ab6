"""Partial updates of the commission settings.

An update names only the fields it changes. :func:`merge_settings` applies
it onto the current snapshot and checks every resulting value before the
new snapshot is accepted.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from decimal import Decimal, InvalidOperation
from typing import Optional

from commissions.engine import CommissionSettings

MONEY_FIELDS = (
    "chr_activation_threshold",
    "prime_per_chr_activated",
    "prime_per_depot_activated",
    "bonus_chr_objective",
    "bonus_depot_objective",
    "bonus_combined",
    "bonus_best_of_month",
    "overshoot_tier1_bonus",
    "overshoot_tier2_bonus",
    "ca_tier1_max",
    "ca_tier2_max",
    "ca_tier3_max",
)
RATE_FIELDS = ("ca_tier1_rate", "ca_tier2_rate", "ca_tier3_rate", "ca_tier4_rate")
THRESHOLD_FIELDS = ("overshoot_tier1_threshold", "overshoot_tier2_threshold")
COUNT_FIELDS = ("depot_activation_deliveries",)
BOOL_FIELDS = ("ca_commission_enabled",)

MAX_RATE = Decimal("100")
MAX_THRESHOLD = 1000
MAX_DELIVERIES = 10_000
# Money columns hold 14 digits with 2 decimal places.
MAX_AMOUNT = Decimal(10) ** 12
DECIMAL_PLACES = 2


class SettingsValidationError(ValueError):
    """Raised when a settings update is rejected. ``errors`` maps field to message."""

    def __init__(self, errors: dict):
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


@dataclass(frozen=True)
class CommissionSettingsUpdate:
    chr_activation_threshold: Optional[Decimal] = None
    depot_activation_deliveries: Optional[int] = None
    prime_per_chr_activated: Optional[Decimal] = None
    prime_per_depot_activated: Optional[Decimal] = None
    bonus_chr_objective: Optional[Decimal] = None
    bonus_depot_objective: Optional[Decimal] = None
    bonus_combined: Optional[Decimal] = None
    bonus_best_of_month: Optional[Decimal] = None
    overshoot_tier1_threshold: Optional[int] = None
    overshoot_tier1_bonus: Optional[Decimal] = None
    overshoot_tier2_threshold: Optional[int] = None
    overshoot_tier2_bonus: Optional[Decimal] = None
    ca_commission_enabled: Optional[bool] = None
    ca_tier1_max: Optional[Decimal] = None
    ca_tier1_rate: Optional[Decimal] = None
    ca_tier2_max: Optional[Decimal] = None
    ca_tier2_rate: Optional[Decimal] = None
    ca_tier3_max: Optional[Decimal] = None
    ca_tier3_rate: Optional[Decimal] = None
    ca_tier4_rate: Optional[Decimal] = None

    @classmethod
    def from_mapping(cls, data: dict) -> "CommissionSettingsUpdate":
        """Build an update from a plain mapping, coercing each value to its field type."""
        known = {f.name for f in fields(cls)}
        errors = {name: "Champ inconnu." for name in data if name not in known}

        values = {}
        for name, raw in data.items():
            if name not in known or raw is None:
                continue
            try:
                values[name] = _coerce(name, raw)
            except (InvalidOperation, TypeError, ValueError):
                errors[name] = "Valeur invalide."
        if errors:
            raise SettingsValidationError(errors)
        return cls(**values)

    def changes(self) -> dict:
        """Only the fields this update sets."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


def _finite_decimal(name, raw):
    if isinstance(raw, bool):
        raise ValueError(name)
    value = Decimal(str(raw))
    if not value.is_finite():
        raise ValueError(name)
    return value


def _coerce(name, raw):
    if name in BOOL_FIELDS:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.lower() in ("true", "false", "1", "0"):
            return raw.lower() in ("true", "1")
        raise ValueError(name)
    value = _finite_decimal(name, raw)
    if name in THRESHOLD_FIELDS or name in COUNT_FIELDS:
        if value != value.to_integral_value():
            raise ValueError(name)
        return int(value)
    return value


def _too_precise(value: Decimal) -> bool:
    return value.as_tuple().exponent < -DECIMAL_PLACES


def validate_settings(settings: CommissionSettings) -> None:
    """Check each field's range and the cross-field orderings."""
    errors = {}
    for name in MONEY_FIELDS:
        value = getattr(settings, name)
        if value < 0:
            errors[name] = "Le montant doit etre positif ou nul."
        elif value >= MAX_AMOUNT:
            errors[name] = "Le montant est trop eleve."
        elif _too_precise(value):
            errors[name] = "Le montant accepte au plus 2 decimales."
    for name in RATE_FIELDS:
        value = getattr(settings, name)
        if not 0 <= value <= MAX_RATE:
            errors[name] = "Le taux doit etre compris entre 0 et 100."
        elif _too_precise(value):
            errors[name] = "Le taux accepte au plus 2 decimales."
    for name in THRESHOLD_FIELDS:
        if not 0 <= getattr(settings, name) <= MAX_THRESHOLD:
            errors[name] = f"Le seuil doit etre compris entre 0 et {MAX_THRESHOLD}."
    if not 0 <= settings.depot_activation_deliveries <= MAX_DELIVERIES:
        errors["depot_activation_deliveries"] = (
            f"Le nombre de livraisons doit etre compris entre 0 et {MAX_DELIVERIES}."
        )

    if not (settings.ca_tier1_max < settings.ca_tier2_max < settings.ca_tier3_max):
        errors.setdefault("ca_tier2_max", "Les plafonds de tranches CA doivent etre strictement croissants.")
    if settings.overshoot_tier2_threshold < settings.overshoot_tier1_threshold:
        errors.setdefault(
            "overshoot_tier2_threshold",
            "Le seuil de depassement palier 2 doit etre superieur ou egal au palier 1.",
        )
    if errors:
        raise SettingsValidationError(errors)


def merge_settings(current: CommissionSettings, update: CommissionSettingsUpdate) -> CommissionSettings:
    """Apply *update* onto *current* and return the validated new snapshot.

    Raises
    ------
    SettingsValidationError
        If any resulting field is out of range. *current* is never modified.
    """
    merged = replace(current, **update.changes())
    validate_settings(merged)
    return merged
