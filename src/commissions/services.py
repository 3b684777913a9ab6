"""Service functions for the commissions app.

Activity figures are recomputed from delivered orders on every call: a
registration's activation is never stored as a flag. Persisted payments
are the only durable output and move forward only
(pending -> validated -> paid).
"""
from __future__ import annotations

import logging
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings as django_settings
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from accounts.models import User
from commissions.engine import (
    ActivityStats,
    CommissionSettings,
    ConfigurationMissing,
    Period,
    estimate_commission,
)
from commissions.models import (
    SalesCommissionPayment,
    SalesCommissionSettings,
    SalesObjective,
    SalesRepresentative,
)
from commissions.settings_schema import CommissionSettingsUpdate, merge_settings
from orders.models import Order

logger = logging.getLogger("ravito")

ZERO = Decimal("0")
WEEKS_PER_PERIOD = 4
PAYMENT_HISTORY_LIMIT = 12


def _payment_day() -> int:
    return getattr(django_settings, "COMMISSION_PAYMENT_DAY", 5)


def _percent(part, whole) -> int:
    """Whole-number percentage, 0 when *whole* is 0."""
    if not whole:
        return 0
    value = Decimal(part) * 100 / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def get_commission_settings() -> CommissionSettings | None:
    row = SalesCommissionSettings.load()
    return row.to_snapshot() if row else None


def require_commission_settings() -> CommissionSettings:
    snapshot = get_commission_settings()
    if snapshot is None:
        raise ConfigurationMissing("Parametres de commission introuvables.")
    return snapshot


@transaction.atomic
def update_commission_settings(changes, actor) -> CommissionSettings:
    """Merge *changes* into the stored settings after validating every field.

    *changes* is a :class:`CommissionSettingsUpdate` or a plain mapping of
    field names to new values. The settings row is created with its
    defaults the first time it is updated.

    Raises
    ------
    SettingsValidationError
        If a field is unknown, malformed or out of range. Nothing is saved.
    """
    if not isinstance(changes, CommissionSettingsUpdate):
        changes = CommissionSettingsUpdate.from_mapping(dict(changes))

    row = SalesCommissionSettings.objects.select_for_update().order_by("created_at").first()
    if row is None:
        row = SalesCommissionSettings.objects.create()
        logger.info("Commission settings created with defaults")

    merged = merge_settings(row.to_snapshot(), changes)
    written = row.apply_snapshot(merged)
    row.updated_by = actor
    row.save(update_fields=[*written, "updated_by", "updated_at"])

    logger.info(
        "Commission settings updated",
        extra={"actor_id": str(getattr(actor, "pk", "")), "fields": sorted(changes.changes())},
    )
    return merged


# ---------------------------------------------------------------------------
# Sales representatives
# ---------------------------------------------------------------------------

def get_sales_rep_for_user(user) -> SalesRepresentative | None:
    return SalesRepresentative.objects.filter(user=user, is_active=True).first()


def get_active_sales_reps():
    return SalesRepresentative.objects.filter(is_active=True).order_by("name", "created_at")


def _revenue_by_client(client_ids) -> dict:
    if not client_ids:
        return {}
    rows = (
        Order.objects
        .filter(client_id__in=client_ids, status=Order.Status.DELIVERED)
        .values("client_id")
        .annotate(ca=Sum("total_amount"))
    )
    return {row["client_id"]: row["ca"] or ZERO for row in rows}


def _deliveries_by_supplier(supplier_ids) -> dict:
    if not supplier_ids:
        return {}
    rows = (
        Order.objects
        .filter(supplier_id__in=supplier_ids, status=Order.Status.DELIVERED)
        .values("supplier_id")
        .annotate(n=Count("id"))
    )
    return {row["supplier_id"]: row["n"] for row in rows}


def _registration_activity(rep, snapshot: CommissionSettings) -> dict:
    """Registered/activated counts and CHR revenue for all of *rep*'s registrations."""
    profiles = list(
        User.objects
        .filter(registered_by_sales_rep=rep, role__in=[User.Role.CLIENT, User.Role.SUPPLIER])
        .values_list("id", "role")
    )
    chr_ids = [pk for pk, role in profiles if role == User.Role.CLIENT]
    depot_ids = [pk for pk, role in profiles if role == User.Role.SUPPLIER]

    revenue = _revenue_by_client(chr_ids)
    deliveries = _deliveries_by_supplier(depot_ids)

    return {
        "chr_registered": len(chr_ids),
        "depot_registered": len(depot_ids),
        "chr_activated": sum(
            1 for pk in chr_ids if revenue.get(pk, ZERO) >= snapshot.chr_activation_threshold
        ),
        "depot_activated": sum(
            1 for pk in depot_ids if deliveries.get(pk, 0) >= snapshot.depot_activation_deliveries
        ),
        "total_ca": sum(revenue.values(), ZERO).quantize(Decimal("1"), rounding=ROUND_HALF_UP),
    }


def _objective_for(rep, period: Period) -> SalesObjective | None:
    return SalesObjective.objects.filter(
        sales_rep=rep, period_year=period.year, period_month=period.month,
    ).first()


def build_activity_stats(rep, period: Period, snapshot: CommissionSettings) -> ActivityStats:
    activity = _registration_activity(rep, snapshot)
    objective = _objective_for(rep, period)
    return ActivityStats(
        **activity,
        objective_chr=objective.objective_chr if objective else 0,
        objective_depots=objective.objective_depots if objective else 0,
    )


# ---------------------------------------------------------------------------
# Activity stats, ranking, weekly breakdown
# ---------------------------------------------------------------------------

def _registrations_in(period: Period):
    return User.objects.filter(
        registered_by_sales_rep__isnull=False,
        date_joined__date__gte=period.first_day,
        date_joined__date__lte=period.last_day,
    )


def get_weekly_stats(rep, period: Period) -> list[dict]:
    """Registrations per week S1-S4. Days 29 to 31 count in S4."""
    counts = Counter()
    for joined in _registrations_in(period).filter(registered_by_sales_rep=rep).values_list("date_joined", flat=True):
        day = timezone.localtime(joined).day if timezone.is_aware(joined) else joined.day
        counts[min((day + 6) // 7, WEEKS_PER_PERIOD)] += 1
    return [
        {"week_number": week, "week_label": f"S{week}", "registrations": counts.get(week, 0)}
        for week in range(1, WEEKS_PER_PERIOD + 1)
    ]


def get_sales_rep_ranking(period: Period) -> list[dict]:
    """Active representatives ranked by registrations made inside the period."""
    counts = Counter(_registrations_in(period).values_list("registered_by_sales_rep_id", flat=True))
    ranking = [
        {
            "sales_rep_id": str(rep.pk),
            "sales_rep_name": rep.name,
            "total_registered": counts.get(rep.pk, 0),
        }
        for rep in get_active_sales_reps()
    ]
    ranking.sort(key=lambda row: row["total_registered"], reverse=True)
    for index, row in enumerate(ranking, start=1):
        row["rank"] = index
    return ranking


def get_commercial_activity_stats(rep, period: Period, today=None) -> dict:
    """Full activity view of one representative for one period.

    Raises
    ------
    ConfigurationMissing
        If the commission settings do not exist.
    """
    snapshot = require_commission_settings()
    stats = build_activity_stats(rep, period, snapshot)
    ranking = get_sales_rep_ranking(period)
    current_rank = next(
        (row["rank"] for row in ranking if row["sales_rep_id"] == str(rep.pk)), 0,
    )
    total_registered = stats.chr_registered + stats.depot_registered
    total_activated = stats.chr_activated + stats.depot_activated

    return {
        "total_registered": total_registered,
        "chr_registered": stats.chr_registered,
        "depot_registered": stats.depot_registered,
        "chr_activated": stats.chr_activated,
        "depot_activated": stats.depot_activated,
        "total_ca": stats.total_ca,
        "objective_chr": stats.objective_chr,
        "objective_depots": stats.objective_depots,
        "percent_objective_chr": _percent(stats.chr_activated, stats.objective_chr),
        "percent_objective_depots": _percent(stats.depot_activated, stats.objective_depots),
        "days_left_in_month": period.days_left(today or timezone.localdate()),
        "chr_remaining": max(0, stats.objective_chr - stats.chr_activated),
        "depot_remaining": max(0, stats.objective_depots - stats.depot_activated),
        "activation_rate": _percent(total_activated, total_registered),
        "weekly_stats": get_weekly_stats(rep, period),
        "ranking": ranking,
        "current_rank": current_rank,
    }


def get_registered_clients(rep) -> list[dict]:
    """Everyone *rep* registered, newest first, with activation progress."""
    snapshot = require_commission_settings()
    profiles = list(
        User.objects
        .filter(registered_by_sales_rep=rep, role__in=[User.Role.CLIENT, User.Role.SUPPLIER])
        .order_by("-date_joined")
    )
    revenue = _revenue_by_client([p.pk for p in profiles if p.role == User.Role.CLIENT])
    deliveries = _deliveries_by_supplier([p.pk for p in profiles if p.role == User.Role.SUPPLIER])

    clients = []
    for profile in profiles:
        total_ca = ZERO
        total_deliveries = 0
        if profile.role == User.Role.CLIENT:
            total_ca = revenue.get(profile.pk, ZERO)
            is_activated = total_ca >= snapshot.chr_activation_threshold
            progress = min(100, _percent(total_ca, snapshot.chr_activation_threshold)) \
                if snapshot.chr_activation_threshold else 100
        else:
            total_deliveries = deliveries.get(profile.pk, 0)
            is_activated = total_deliveries >= snapshot.depot_activation_deliveries
            progress = min(100, _percent(total_deliveries, snapshot.depot_activation_deliveries)) \
                if snapshot.depot_activation_deliveries else 100
        clients.append({
            "id": str(profile.pk),
            "name": profile.name,
            "role": profile.role,
            "address": profile.address,
            "registered_at": profile.date_joined,
            "total_ca": total_ca,
            "total_deliveries": total_deliveries,
            "is_activated": is_activated,
            "activation_progress": progress,
        })
    return clients


# ---------------------------------------------------------------------------
# Admin dashboard
# ---------------------------------------------------------------------------

def get_dashboard_kpis() -> dict:
    """Platform-wide registration figures. Not filtered by period."""
    registered = User.objects.filter(registered_by_sales_rep__isnull=False)
    chr_ids = list(registered.filter(role=User.Role.CLIENT).values_list("id", flat=True))
    depots_registered = registered.filter(role=User.Role.SUPPLIER).count()

    revenue = _revenue_by_client(chr_ids)
    active_clients = sum(1 for pk in chr_ids if pk in revenue)
    active_rate = Decimal("0.0")
    if chr_ids:
        active_rate = (Decimal(active_clients) * 100 / len(chr_ids)).quantize(
            Decimal("0.1"), rounding=ROUND_HALF_UP,
        )

    return {
        "total_registered": registered.count(),
        "depots_registered": depots_registered,
        "chr_registered": len(chr_ids),
        "total_ca": sum(revenue.values(), ZERO).quantize(Decimal("1"), rounding=ROUND_HALF_UP),
        "active_rate": active_rate,
    }


def get_sales_reps_with_metrics(period: Period) -> list[dict]:
    snapshot = require_commission_settings()
    objectives = {obj.sales_rep_id: obj for obj in get_objectives_by_period(period)}

    rows = []
    for rep in get_active_sales_reps():
        activity = _registration_activity(rep, snapshot)
        objective = objectives.get(rep.pk)
        rows.append({
            "id": str(rep.pk),
            "name": rep.name,
            "phone": rep.phone,
            "email": rep.email,
            "zone": rep.zone,
            "total_registered": activity["chr_registered"] + activity["depot_registered"],
            **activity,
            "objective_chr": objective.objective_chr if objective else None,
            "objective_depots": objective.objective_depots if objective else None,
            "percent_objective_chr": _percent(activity["chr_activated"], objective.objective_chr) if objective else None,
            "percent_objective_depots": (
                _percent(activity["depot_activated"], objective.objective_depots) if objective else None
            ),
        })
    return rows


# ---------------------------------------------------------------------------
# Estimation and period calculation
# ---------------------------------------------------------------------------

def calculate_commission_estimation(rep, period: Period):
    snapshot = require_commission_settings()
    stats = build_activity_stats(rep, period, snapshot)
    return estimate_commission(stats, snapshot, period, _payment_day())


def calculate_commissions(period: Period) -> dict:
    """Commission of every active representative for *period*.

    The representative with the strictly highest total above zero also
    receives the best-of-month bonus; on a tie the first one (by name) wins.
    """
    snapshot = require_commission_settings()
    calculations = []
    for rep in get_active_sales_reps():
        estimation = estimate_commission(
            build_activity_stats(rep, period, snapshot), snapshot, period, _payment_day(),
        )
        calculations.append({
            "sales_rep_id": str(rep.pk),
            "sales_rep_name": rep.name,
            "chr_activated": estimation.chr_activated,
            "depot_activated": estimation.depot_activated,
            "prime_inscriptions": estimation.prime_inscriptions_total,
            "bonus_objectives": estimation.bonus_objectives_total,
            "bonus_overshoot": estimation.bonus_overshoot,
            "bonus_special": ZERO,
            "commission_ca": estimation.commission_ca,
            "total_amount": estimation.total_estimated,
        })

    best = None
    for calc in calculations:
        if calc["total_amount"] > (best["total_amount"] if best else ZERO):
            best = calc
    if best is not None:
        bonus = Decimal(str(snapshot.bonus_best_of_month)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        best["bonus_special"] = bonus
        best["total_amount"] += bonus

    return {
        "period": period,
        "calculations": calculations,
        "total_amount": sum((c["total_amount"] for c in calculations), ZERO),
        "best_sales_rep_id": best["sales_rep_id"] if best else None,
    }


# ---------------------------------------------------------------------------
# Objectives
# ---------------------------------------------------------------------------

def get_objectives_by_period(period: Period):
    return SalesObjective.objects.filter(
        period_year=period.year, period_month=period.month,
    ).select_related("sales_rep")


def upsert_objective(rep, period: Period, objective_chr, objective_depots, actor) -> SalesObjective:
    if int(objective_chr) < 0 or int(objective_depots) < 0:
        raise ValueError("Les objectifs doivent etre positifs ou nuls.")
    objective, _created = SalesObjective.objects.update_or_create(
        sales_rep=rep,
        period_year=period.year,
        period_month=period.month,
        defaults={
            "objective_chr": int(objective_chr),
            "objective_depots": int(objective_depots),
            "created_by": actor,
        },
    )
    return objective


def delete_objective(objective_id) -> None:
    deleted, _ = SalesObjective.objects.filter(pk=objective_id).delete()
    if not deleted:
        raise ValueError("Objectif introuvable.")


# ---------------------------------------------------------------------------
# Payment lifecycle
# ---------------------------------------------------------------------------

@transaction.atomic
def save_commission_payments(period: Period, actor=None) -> dict:
    """Freeze the current calculation as pending payments.

    Validated and paid rows are left untouched: once validated, the stored
    figures are the system of record.
    """
    result = calculate_commissions(period)
    existing = {
        str(p.sales_rep_id): p
        for p in SalesCommissionPayment.objects.select_for_update().filter(
            period_year=period.year, period_month=period.month,
        )
    }
    created = updated = skipped = 0
    for calc in result["calculations"]:
        values = {
            "chr_activated": calc["chr_activated"],
            "depot_activated": calc["depot_activated"],
            "prime_inscriptions": calc["prime_inscriptions"],
            "bonus_objectives": calc["bonus_objectives"],
            "bonus_overshoot": calc["bonus_overshoot"],
            "bonus_special": calc["bonus_special"],
            "commission_ca": calc["commission_ca"],
            "total_amount": calc["total_amount"],
        }
        payment = existing.get(calc["sales_rep_id"])
        if payment is None:
            SalesCommissionPayment.objects.create(
                period_year=period.year,
                period_month=period.month,
                sales_rep_id=calc["sales_rep_id"],
                status=SalesCommissionPayment.Status.PENDING,
                **values,
            )
            created += 1
        elif payment.is_locked:
            skipped += 1
        else:
            for field, value in values.items():
                setattr(payment, field, value)
            payment.save(update_fields=[*values.keys(), "updated_at"])
            updated += 1

    logger.info(
        "Commission payments saved for %s: %d created, %d updated, %d locked",
        period, created, updated, skipped,
        extra={"actor_id": str(getattr(actor, "pk", ""))},
    )
    return {"created": created, "updated": updated, "skipped": skipped}


def validate_payments(period: Period, actor) -> int:
    """pending -> validated for every payment of the period."""
    count = SalesCommissionPayment.objects.filter(
        period_year=period.year,
        period_month=period.month,
        status=SalesCommissionPayment.Status.PENDING,
    ).update(
        status=SalesCommissionPayment.Status.VALIDATED,
        validated_at=timezone.now(),
        validated_by=actor,
        updated_at=timezone.now(),
    )
    logger.info("%d commission payments validated for %s", count, period)
    return count


def mark_payments_as_paid(period: Period, actor) -> int:
    """validated -> paid for every payment of the period."""
    count = SalesCommissionPayment.objects.filter(
        period_year=period.year,
        period_month=period.month,
        status=SalesCommissionPayment.Status.VALIDATED,
    ).update(
        status=SalesCommissionPayment.Status.PAID,
        paid_at=timezone.now(),
        paid_by=actor,
        updated_at=timezone.now(),
    )
    logger.info("%d commission payments marked paid for %s", count, period)
    return count


def get_payments_by_period(period: Period):
    return SalesCommissionPayment.objects.filter(
        period_year=period.year, period_month=period.month,
    ).select_related("sales_rep")


def get_payment_history(rep):
    return SalesCommissionPayment.objects.filter(sales_rep=rep).order_by(
        "-period_year", "-period_month",
    )[:PAYMENT_HISTORY_LIMIT]


def export_commission_payments_csv(period: Period):
    from core.export import queryset_to_csv_response

    columns = [
        (lambda p: p.sales_rep.name, "Commercial"),
        ("chr_activated", "CHR actives"),
        ("depot_activated", "Depots actives"),
        ("prime_inscriptions", "Primes inscriptions"),
        ("bonus_objectives", "Bonus objectifs"),
        ("bonus_overshoot", "Bonus depassement"),
        ("bonus_special", "Bonus special"),
        ("commission_ca", "Commission CA"),
        ("total_amount", "Total"),
        (lambda p: p.get_status_display(), "Statut"),
    ]
    return queryset_to_csv_response(
        get_payments_by_period(period),
        columns,
        f"commissions_{period.year}_{period.month:02d}",
    )
