"""Monthly and annual closure reports built from closed daily sheets.

These functions encapsulate the aggregation logic so that API views and
document exports share one source of figures.
"""
import logging
from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Count, Q, Sum, Value
from django.db.models.functions import Coalesce

from activity import calculations
from activity.models import DailyExpense, DailySheet, DailyStockLine
from core.periods import MONTH_NAMES, days_in_month, month_date_range, previous_month, validate_month

logger = logging.getLogger("ravito")

ZERO = Decimal("0.00")
TOP_PRODUCTS_LIMIT = 10


def _rate(numerator, denominator) -> Decimal:
    """Percentage rounded to one decimal, 0 when the denominator is 0."""
    if not denominator:
        return Decimal("0.0")
    value = Decimal(numerator) * Decimal("100") / Decimal(denominator)
    return value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def _average(total, count) -> Decimal:
    if not count:
        return ZERO
    return (Decimal(total) / Decimal(count)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _closed_sheets(organization, date_from, date_to):
    return DailySheet.objects.filter(
        organization=organization,
        status=DailySheet.Status.CLOSED,
        sheet_date__gte=date_from,
        sheet_date__lte=date_to,
    )


# ---------------------------------------------------------------------------
# Monthly
# ---------------------------------------------------------------------------

def monthly_kpis(organization, year, month) -> dict:
    date_from, date_to = month_date_range(year, month)
    total_days = days_in_month(year, month)
    agg = _closed_sheets(organization, date_from, date_to).aggregate(
        days_worked=Count("id"),
        total_revenue=Coalesce(Sum("theoretical_revenue"), Value(ZERO)),
        total_expenses=Coalesce(Sum("expenses_total"), Value(ZERO)),
        total_cash_difference=Coalesce(Sum("cash_difference"), Value(ZERO)),
        negative_days=Count("id", filter=Q(cash_difference__lt=0)),
        positive_days=Count("id", filter=Q(cash_difference__gt=0)),
    )
    days_worked = agg["days_worked"]
    return {
        "days_worked": days_worked,
        "total_revenue": agg["total_revenue"],
        "avg_daily_revenue": _average(agg["total_revenue"], days_worked),
        "total_expenses": agg["total_expenses"],
        "total_cash_difference": agg["total_cash_difference"],
        "avg_cash_difference": _average(agg["total_cash_difference"], days_worked),
        "negative_days": agg["negative_days"],
        "positive_days": agg["positive_days"],
        "days_incomplete": total_days - days_worked,
        "completion_rate": _rate(days_worked, total_days),
    }


def expenses_by_category(organization, date_from, date_to) -> list:
    rows = (
        DailyExpense.objects
        .filter(
            daily_sheet__organization=organization,
            daily_sheet__status=DailySheet.Status.CLOSED,
            daily_sheet__sheet_date__gte=date_from,
            daily_sheet__sheet_date__lte=date_to,
        )
        .values("category")
        .annotate(total=Sum("amount"))
        .order_by("-total")
    )
    labels = dict(DailyExpense.Category.choices)
    return [
        {"category": row["category"], "label": labels.get(row["category"], row["category"]), "total": row["total"]}
        for row in rows
    ]


def top_products(organization, date_from, date_to, limit=TOP_PRODUCTS_LIMIT) -> list:
    """Products ranked by quantity sold over the counted stock lines."""
    from catalog.models import EstablishmentProduct

    prices = dict(
        EstablishmentProduct.objects
        .filter(organization=organization)
        .values_list("product_id", "selling_price")
    )
    lines = (
        DailyStockLine.objects
        .filter(
            daily_sheet__organization=organization,
            daily_sheet__status=DailySheet.Status.CLOSED,
            daily_sheet__sheet_date__gte=date_from,
            daily_sheet__sheet_date__lte=date_to,
            final_stock__isnull=False,
        )
        .select_related("product")
    )
    totals = defaultdict(lambda: {"name": "", "qty_sold": 0, "revenue": ZERO})
    for line in lines:
        entry = totals[line.product_id]
        entry["name"] = line.product.name
        entry["qty_sold"] += calculations.sales_qty(line)
        entry["revenue"] += calculations.line_revenue(line, prices.get(line.product_id, ZERO))

    ranked = sorted(
        ({"product_id": str(pid), **values} for pid, values in totals.items()),
        key=lambda row: row["qty_sold"],
        reverse=True,
    )
    return ranked[:limit]


def get_monthly_report(organization, year, month) -> dict:
    year, month = validate_month(year, month)
    date_from, date_to = month_date_range(year, month)
    prev_year, prev_month = previous_month(year, month)
    sheets = list(_closed_sheets(organization, date_from, date_to).order_by("-sheet_date"))

    return {
        "year": year,
        "month": month,
        "month_name": MONTH_NAMES[month - 1],
        "kpis": monthly_kpis(organization, year, month),
        "previous_month_kpis": monthly_kpis(organization, prev_year, prev_month),
        "expenses_by_category": expenses_by_category(organization, date_from, date_to),
        "top_products": top_products(organization, date_from, date_to),
        "daily_revenue": [
            {"date": s.sheet_date, "revenue": s.theoretical_revenue}
            for s in sorted(sheets, key=lambda s: s.sheet_date)
        ],
        "daily_sheets": sheets,
    }


# ---------------------------------------------------------------------------
# Annual
# ---------------------------------------------------------------------------

def get_annual_report(organization, year) -> dict:
    year, _ = validate_month(year, 1)
    monthly = []
    for month in range(1, 13):
        kpis = monthly_kpis(organization, year, month)
        monthly.append({
            "month": month,
            "month_name": MONTH_NAMES[month - 1],
            "revenue": kpis["total_revenue"],
            "expenses": kpis["total_expenses"],
            "margin": kpis["total_revenue"] - kpis["total_expenses"],
            "cash_difference": kpis["total_cash_difference"],
            "days_worked": kpis["days_worked"],
        })

    with_data = [m for m in monthly if m["days_worked"] > 0]
    total_revenue = sum((m["revenue"] for m in monthly), ZERO)
    total_expenses = sum((m["expenses"] for m in monthly), ZERO)
    total_cash_difference = sum((m["cash_difference"] for m in monthly), ZERO)
    total_days_worked = sum(m["days_worked"] for m in monthly)
    days_in_year = sum(days_in_month(year, m) for m in range(1, 13))
    gross_margin = total_revenue - total_expenses

    best = max(with_data, key=lambda m: m["revenue"], default=None)
    worst = min(with_data, key=lambda m: m["revenue"], default=None)

    def _month_ref(row):
        if row is None:
            return None
        return {"month": row["month"], "month_name": row["month_name"], "revenue": row["revenue"]}

    kpis = {
        "total_revenue": total_revenue,
        "avg_monthly_revenue": _average(total_revenue, len(with_data)),
        "best_month": _month_ref(best),
        "worst_month": _month_ref(worst),
        "total_expenses": total_expenses,
        "avg_monthly_expenses": _average(total_expenses, len(with_data)),
        "expenses_ratio": _rate(total_expenses, total_revenue),
        "total_cash_difference": total_cash_difference,
        "avg_monthly_cash_difference": _average(total_cash_difference, len(with_data)),
        "negative_months": sum(1 for m in with_data if m["cash_difference"] < 0),
        "positive_months": sum(1 for m in with_data if m["cash_difference"] > 0),
        "gross_margin": gross_margin,
        "margin_rate": _rate(gross_margin, total_revenue),
        "total_days_worked": total_days_worked,
        "completion_rate": _rate(total_days_worked, days_in_year),
        "months_with_data": len(with_data),
    }

    date_from, _ = month_date_range(year, 1)
    _, date_to = month_date_range(year, 12)
    return {
        "year": year,
        "kpis": kpis,
        "monthly_data": monthly,
        "expenses_by_category": expenses_by_category(organization, date_from, date_to),
        "top_products": top_products(organization, date_from, date_to),
    }
