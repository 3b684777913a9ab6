"""Commission estimation engine for commercial sales representatives.

Core rules:
- Primes are paid per *activated* registration (CHR by cumulative revenue,
  depot by cumulative delivery count).
- Objective bonuses are additive: reaching both objectives pays the CHR
  bonus, the depot bonus and the combined bonus.
- Overshoot pays the highest tier reached only, and only when both
  objectives are set.
- CA commission applies the rate of the bracket the whole revenue falls
  into (marginal lookup, not progressive).

Every monetary component is rounded half-up to a whole franc when it is
computed. Nothing here touches the database: :func:`estimate_commission`
is a pure function of its three arguments.
"""
from __future__ import annotations

import calendar
from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from core.periods import MONTH_NAMES, next_month, previous_month, validate_month

ZERO = Decimal("0")
DEFAULT_PAYMENT_DAY = 5


class ConfigurationMissing(Exception):
    """Raised when no commission settings are available."""


def round_amount(value) -> Decimal:
    """Round to the nearest whole currency unit, halves away from zero."""
    return Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Period
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Period:
    """A calendar month, the unit over which commissions are computed."""

    year: int
    month: int

    def __post_init__(self):
        validate_month(self.year, self.month)

    @classmethod
    def current(cls, today: date | None = None) -> "Period":
        today = today or date.today()
        return cls(today.year, today.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def start(self) -> datetime:
        return datetime.combine(self.first_day, time.min)

    @property
    def end(self) -> datetime:
        return datetime.combine(self.last_day, time.max)

    @property
    def days(self) -> int:
        return self.last_day.day

    @property
    def label(self) -> str:
        return f"{MONTH_NAMES[self.month - 1]} {self.year}"

    def previous(self) -> "Period":
        return Period(*previous_month(self.year, self.month))

    def next(self) -> "Period":
        return Period(*next_month(self.year, self.month))

    def payment_date(self, day: int = DEFAULT_PAYMENT_DAY) -> date:
        """Payment day of the following month. No business-day adjustment."""
        following = self.next()
        return date(following.year, following.month, day)

    def days_left(self, today: date | None = None) -> int:
        """Days remaining after *today*: 0 for past months, the full month for future ones."""
        today = today or date.today()
        if today > self.last_day:
            return 0
        if today < self.first_day:
            return self.days
        return (self.last_day - today).days

    def __str__(self):
        return f"{self.year}-{self.month:02d}"


# ---------------------------------------------------------------------------
# Inputs / outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CommissionSettings:
    """Immutable snapshot of the platform commission settings."""

    chr_activation_threshold: Decimal = Decimal("50000")
    depot_activation_deliveries: int = 10
    prime_per_chr_activated: Decimal = Decimal("5000")
    prime_per_depot_activated: Decimal = Decimal("8000")
    bonus_chr_objective: Decimal = Decimal("20000")
    bonus_depot_objective: Decimal = Decimal("15000")
    bonus_combined: Decimal = Decimal("10000")
    bonus_best_of_month: Decimal = Decimal("25000")
    overshoot_tier1_threshold: int = 110
    overshoot_tier1_bonus: Decimal = Decimal("5000")
    overshoot_tier2_threshold: int = 120
    overshoot_tier2_bonus: Decimal = Decimal("12000")
    ca_commission_enabled: bool = False
    ca_tier1_max: Decimal = Decimal("500000")
    ca_tier1_rate: Decimal = Decimal("1")
    ca_tier2_max: Decimal = Decimal("1000000")
    ca_tier2_rate: Decimal = Decimal("1.5")
    ca_tier3_max: Decimal = Decimal("2000000")
    ca_tier3_rate: Decimal = Decimal("2")
    ca_tier4_rate: Decimal = Decimal("2.5")

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ActivityStats:
    """Activity figures of one representative for one period."""

    chr_registered: int = 0
    depot_registered: int = 0
    chr_activated: int = 0
    depot_activated: int = 0
    total_ca: Decimal = ZERO
    objective_chr: int = 0
    objective_depots: int = 0


@dataclass(frozen=True)
class CommissionEstimation:
    chr_activated: int
    prime_per_chr: Decimal
    prime_chr_total: Decimal
    depot_activated: int
    prime_per_depot: Decimal
    prime_depot_total: Decimal
    prime_inscriptions_total: Decimal
    bonus_chr_objective: Decimal
    bonus_depot_objective: Decimal
    bonus_combined: Decimal
    bonus_objectives_total: Decimal
    bonus_overshoot: Decimal
    commission_ca: Decimal
    total_estimated: Decimal
    estimated_payment_date: date

    def as_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Algorithm
# ---------------------------------------------------------------------------

def ca_rate(total_ca, settings: CommissionSettings) -> Decimal:
    """Rate of the bracket *total_ca* falls into. Bracket upper bounds are inclusive."""
    ca = Decimal(str(total_ca))
    if ca > settings.ca_tier3_max:
        return Decimal(str(settings.ca_tier4_rate))
    if ca > settings.ca_tier2_max:
        return Decimal(str(settings.ca_tier3_rate))
    if ca > settings.ca_tier1_max:
        return Decimal(str(settings.ca_tier2_rate))
    return Decimal(str(settings.ca_tier1_rate))


def overshoot_bonus(stats: ActivityStats, settings: CommissionSettings) -> Decimal:
    if stats.objective_chr <= 0 or stats.objective_depots <= 0:
        return ZERO
    total_objective = stats.objective_chr + stats.objective_depots
    total_realized = stats.chr_activated + stats.depot_activated
    # percent >= threshold, kept in integers
    if total_realized * 100 >= settings.overshoot_tier2_threshold * total_objective:
        return round_amount(settings.overshoot_tier2_bonus)
    if total_realized * 100 >= settings.overshoot_tier1_threshold * total_objective:
        return round_amount(settings.overshoot_tier1_bonus)
    return ZERO


def estimate_commission(
    stats: ActivityStats,
    settings: CommissionSettings | None,
    period: Period,
    payment_day: int = DEFAULT_PAYMENT_DAY,
) -> CommissionEstimation:
    """Compute every commission component for one representative and period.

    Parameters
    ----------
    stats : ActivityStats
        Activated counts, revenue and objectives. Not validated here; see
        :func:`estimate_checked`.
    settings : CommissionSettings or None
        The platform settings snapshot.
    period : Period
        The month being paid.

    Raises
    ------
    ConfigurationMissing
        If *settings* is ``None``.
    """
    if settings is None:
        raise ConfigurationMissing("Parametres de commission introuvables.")

    # 1. registration primes
    prime_chr_total = round_amount(stats.chr_activated * Decimal(str(settings.prime_per_chr_activated)))
    prime_depot_total = round_amount(stats.depot_activated * Decimal(str(settings.prime_per_depot_activated)))
    prime_inscriptions_total = prime_chr_total + prime_depot_total

    # 2. objective bonuses
    chr_reached = stats.objective_chr > 0 and stats.chr_activated >= stats.objective_chr
    depot_reached = stats.objective_depots > 0 and stats.depot_activated >= stats.objective_depots
    bonus_chr = bonus_depot = bonus_combined = ZERO
    if chr_reached:
        bonus_chr = round_amount(settings.bonus_chr_objective)
    if depot_reached:
        bonus_depot = round_amount(settings.bonus_depot_objective)
    if chr_reached and depot_reached:
        bonus_combined = round_amount(settings.bonus_combined)
    bonus_objectives_total = bonus_chr + bonus_depot + bonus_combined

    # 3. overshoot
    bonus_overshoot = overshoot_bonus(stats, settings)

    # 4. CA commission
    commission_ca = ZERO
    if settings.ca_commission_enabled:
        commission_ca = round_amount(
            Decimal(str(stats.total_ca)) * ca_rate(stats.total_ca, settings) / Decimal("100")
        )

    # 5. total
    total = prime_inscriptions_total + bonus_objectives_total + bonus_overshoot + commission_ca

    return CommissionEstimation(
        chr_activated=stats.chr_activated,
        prime_per_chr=round_amount(settings.prime_per_chr_activated),
        prime_chr_total=prime_chr_total,
        depot_activated=stats.depot_activated,
        prime_per_depot=round_amount(settings.prime_per_depot_activated),
        prime_depot_total=prime_depot_total,
        prime_inscriptions_total=prime_inscriptions_total,
        bonus_chr_objective=bonus_chr,
        bonus_depot_objective=bonus_depot,
        bonus_combined=bonus_combined,
        bonus_objectives_total=bonus_objectives_total,
        bonus_overshoot=bonus_overshoot,
        commission_ca=commission_ca,
        total_estimated=total,
        # 6. payment date
        estimated_payment_date=period.payment_date(payment_day),
    )


def validate_stats(stats: ActivityStats) -> ActivityStats:
    """Reject counts that cannot happen. Returns *stats* unchanged when valid."""
    counts = {
        "chr_registered": stats.chr_registered,
        "depot_registered": stats.depot_registered,
        "chr_activated": stats.chr_activated,
        "depot_activated": stats.depot_activated,
        "objective_chr": stats.objective_chr,
        "objective_depots": stats.objective_depots,
    }
    negative = [name for name, value in counts.items() if value < 0]
    if negative:
        raise ValueError(f"Valeurs negatives interdites : {', '.join(negative)}.")
    if Decimal(str(stats.total_ca)) < 0:
        raise ValueError("Le chiffre d'affaires ne peut pas etre negatif.")
    if stats.chr_activated > stats.chr_registered:
        raise ValueError("Plus de CHR actives que de CHR inscrits.")
    if stats.depot_activated > stats.depot_registered:
        raise ValueError("Plus de depots actives que de depots inscrits.")
    return stats


def estimate_checked(stats, settings, period, payment_day=DEFAULT_PAYMENT_DAY) -> CommissionEstimation:
    """:func:`estimate_commission` preceded by :func:`validate_stats`."""
    return estimate_commission(validate_stats(stats), settings, period, payment_day)
