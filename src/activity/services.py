"""
Business logic for daily sheets: carryover, entry updates and closing.

All write operations refuse to touch a closed sheet. Closing locks the
sheet row so two concurrent closings cannot both succeed.
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from activity import calculations
from activity.models import DailyExpense, DailyPackaging, DailySheet, DailyStockLine
from catalog.models import RETURNABLE_CRATE_TYPES
from catalog.services import get_establishment_products
from organizations.models import Organization
from organizations.services import create_audit_log

logger = logging.getLogger("ravito")

ZERO = Decimal("0.00")

EDITABLE_PACKAGING_FIELDS = (
    "qty_received",
    "qty_returned",
    "qty_consignes_paid",
    "qty_full_end",
    "qty_empty_end",
    "notes",
)
FIRST_DAY_PACKAGING_FIELDS = ("qty_full_start", "qty_empty_start")


def _ensure_open(sheet: DailySheet) -> None:
    if sheet.status == DailySheet.Status.CLOSED:
        raise ValueError("Cette feuille journaliere est deja cloturee.")


def _non_negative(value, label: str) -> int:
    value = int(value)
    if value < 0:
        raise ValueError(f"{label} ne peut pas etre negatif.")
    return value


# ---------------------------------------------------------------------------
# Sheet creation with carryover
# ---------------------------------------------------------------------------

def _carried_stock(line: DailyStockLine) -> int:
    if line.final_stock is not None:
        return line.final_stock
    # Not counted that evening: carry the theoretical level.
    return line.initial_stock + calculations.total_supply(line)


def get_or_create_daily_sheet(organization: Organization, sheet_date: date, actor=None) -> DailySheet:
    """Return the sheet for *sheet_date*, opening it with carryover if needed.

    Carryover rules
    ---------------
    - ``opening_cash`` = ``closing_cash`` of the latest earlier closed sheet.
    - One stock line per active establishment product; ``initial_stock`` =
      the previous sheet's final count (theoretical level when not counted).
    - One packaging row per returnable crate type; start quantities = the
      previous sheet's end quantities.
    """
    existing = DailySheet.objects.filter(organization=organization, sheet_date=sheet_date).first()
    if existing:
        return existing

    with transaction.atomic():
        # Serialize sheet creation per organization.
        Organization.objects.select_for_update().get(pk=organization.pk)
        existing = DailySheet.objects.filter(organization=organization, sheet_date=sheet_date).first()
        if existing:
            return existing

        previous = (
            DailySheet.objects
            .filter(organization=organization, sheet_date__lt=sheet_date)
            .order_by("-sheet_date")
            .first()
        )
        last_closed = (
            DailySheet.objects
            .filter(
                organization=organization,
                sheet_date__lt=sheet_date,
                status=DailySheet.Status.CLOSED,
                closing_cash__isnull=False,
            )
            .order_by("-sheet_date")
            .first()
        )

        sheet = DailySheet.objects.create(
            organization=organization,
            sheet_date=sheet_date,
            opening_cash=last_closed.closing_cash if last_closed else ZERO,
        )

        previous_lines = {}
        previous_packaging = {}
        if previous is not None:
            previous_lines = {line.product_id: line for line in previous.stock_lines.all()}
            previous_packaging = {row.crate_type: row for row in previous.packaging.all()}

        DailyStockLine.objects.bulk_create([
            DailyStockLine(
                daily_sheet=sheet,
                product_id=ep.product_id,
                initial_stock=(
                    _carried_stock(previous_lines[ep.product_id])
                    if ep.product_id in previous_lines else 0
                ),
            )
            for ep in get_establishment_products(organization)
        ])

        packaging_rows = []
        for crate_type in RETURNABLE_CRATE_TYPES:
            prev = previous_packaging.get(crate_type)
            full_start = empty_start = 0
            if prev is not None:
                full_start = (
                    prev.qty_full_end if prev.qty_full_end is not None
                    else calculations.theoretical_full_end(prev)
                )
                empty_start = (
                    prev.qty_empty_end if prev.qty_empty_end is not None
                    else prev.qty_empty_start
                )
            packaging_rows.append(DailyPackaging(
                daily_sheet=sheet,
                crate_type=crate_type,
                qty_full_start=full_start,
                qty_empty_start=empty_start,
            ))
        DailyPackaging.objects.bulk_create(packaging_rows)

    logger.info(
        "Daily sheet %s opened for organization %s on %s (opening_cash=%s)",
        sheet.pk, organization.pk, sheet_date, sheet.opening_cash,
    )
    return sheet


# ---------------------------------------------------------------------------
# RAVITO deliveries
# ---------------------------------------------------------------------------

@transaction.atomic
def sync_ravito_deliveries(sheet: DailySheet) -> int:
    """Set ``ravito_supply`` from orders delivered to the establishment that day.

    Returns the number of stock lines whose supply changed.
    """
    from orders.models import Order, OrderItem

    sheet = DailySheet.objects.select_for_update().select_related("organization").get(pk=sheet.pk)
    _ensure_open(sheet)

    delivered = (
        OrderItem.objects
        .filter(
            order__client_id=sheet.organization.owner_id,
            order__status=Order.Status.DELIVERED,
            order__delivered_at__date=sheet.sheet_date,
        )
        .values("product_id")
        .annotate(qty=Sum("quantity"))
    )
    quantities = {row["product_id"]: row["qty"] or 0 for row in delivered}

    updated = 0
    lines = {line.product_id: line for line in sheet.stock_lines.all()}
    for product_id, line in lines.items():
        qty = quantities.get(product_id, 0)
        if line.ravito_supply != qty:
            line.ravito_supply = qty
            line.save(update_fields=["ravito_supply", "updated_at"])
            updated += 1

    # Delivered products not yet configured on the sheet get their own line.
    for product_id, qty in quantities.items():
        if product_id not in lines and qty:
            DailyStockLine.objects.create(daily_sheet=sheet, product_id=product_id, ravito_supply=qty)
            updated += 1

    logger.info("RAVITO deliveries synced on sheet %s: %d line(s) updated", sheet.pk, updated)
    return updated


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

def update_stock_line(line: DailyStockLine, external_supply=None, final_stock=None) -> DailyStockLine:
    _ensure_open(line.daily_sheet)
    update_fields = ["updated_at"]
    if external_supply is not None:
        line.external_supply = _non_negative(external_supply, "L'approvisionnement externe")
        update_fields.append("external_supply")
    if final_stock is not None:
        line.final_stock = _non_negative(final_stock, "Le stock final")
        update_fields.append("final_stock")
    line.save(update_fields=update_fields)
    return line


def update_packaging(packaging: DailyPackaging, **fields) -> DailyPackaging:
    """Update packaging counts. Start quantities are editable on the first sheet only."""
    sheet = packaging.daily_sheet
    _ensure_open(sheet)

    unknown = set(fields) - set(EDITABLE_PACKAGING_FIELDS) - set(FIRST_DAY_PACKAGING_FIELDS)
    if unknown:
        raise ValueError(f"Champ(s) non modifiable(s) : {', '.join(sorted(unknown))}.")

    if any(name in fields for name in FIRST_DAY_PACKAGING_FIELDS):
        has_previous = DailySheet.objects.filter(
            organization_id=sheet.organization_id,
            sheet_date__lt=sheet.sheet_date,
        ).exists()
        if has_previous:
            raise ValueError(
                "Les quantites de debut sont reportees de la veille et ne sont modifiables que le premier jour."
            )

    update_fields = ["updated_at"]
    for name, value in fields.items():
        if name == "notes":
            packaging.notes = value or ""
        elif value is None and name in ("qty_full_end", "qty_empty_end"):
            setattr(packaging, name, None)
        else:
            setattr(packaging, name, _non_negative(value, "La quantite"))
        update_fields.append(name)
    packaging.save(update_fields=update_fields)
    return packaging


def _refresh_expenses_total(sheet: DailySheet) -> Decimal:
    total = sheet.expenses.aggregate(total=Coalesce(Sum("amount"), ZERO))["total"]
    DailySheet.objects.filter(pk=sheet.pk).update(expenses_total=total)
    sheet.expenses_total = total
    return total


@transaction.atomic
def add_expense(sheet: DailySheet, label: str, amount, category=DailyExpense.Category.OTHER) -> DailyExpense:
    _ensure_open(sheet)
    label = (label or "").strip()
    if not label:
        raise ValueError("Le libelle de la depense est obligatoire.")
    amount = Decimal(str(amount))
    if amount <= 0:
        raise ValueError("Le montant de la depense doit etre positif.")
    if category not in DailyExpense.Category.values:
        raise ValueError(f"Categorie de depense invalide : {category}.")

    expense = DailyExpense.objects.create(daily_sheet=sheet, label=label, amount=amount, category=category)
    _refresh_expenses_total(sheet)
    return expense


@transaction.atomic
def delete_expense(expense: DailyExpense) -> Decimal:
    sheet = expense.daily_sheet
    _ensure_open(sheet)
    expense.delete()
    return _refresh_expenses_total(sheet)


# ---------------------------------------------------------------------------
# Credit figures of the day
# ---------------------------------------------------------------------------

def daily_credit_figures(sheet: DailySheet) -> dict:
    """Credit sales, repayments and end-of-day outstanding balance for the sheet's day."""
    from credits.models import CreditCustomer, CreditTransaction

    day_tx = CreditTransaction.objects.filter(
        organization_id=sheet.organization_id,
        transaction_date=sheet.sheet_date,
    )
    credit_sales = day_tx.filter(
        transaction_type=CreditTransaction.Type.CONSUMPTION,
    ).aggregate(total=Coalesce(Sum("amount"), ZERO))["total"]
    credit_payments = day_tx.filter(
        transaction_type=CreditTransaction.Type.PAYMENT,
    ).aggregate(total=Coalesce(Sum("amount"), ZERO))["total"]
    balance_eod = CreditCustomer.objects.filter(
        organization_id=sheet.organization_id,
        is_active=True,
    ).aggregate(total=Coalesce(Sum("current_balance"), ZERO))["total"]
    return {
        "credit_sales": credit_sales,
        "credit_payments": credit_payments,
        "credit_balance_eod": balance_eod,
    }


def _price_maps(organization_id):
    from catalog.models import EstablishmentProduct

    prices, min_stocks, names = {}, {}, {}
    rows = EstablishmentProduct.objects.filter(organization_id=organization_id).select_related("product")
    for ep in rows:
        prices[ep.product_id] = ep.selling_price
        min_stocks[ep.product_id] = ep.min_stock_alert
        names[ep.product_id] = ep.product.name
    return prices, min_stocks, names


# ---------------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------------

def close_daily_sheet(sheet: DailySheet, closing_cash, actor, notes: str = "") -> DailySheet:
    """Close an open daily sheet.

    Computes the theoretical revenue from the counted stock lines, pulls the
    day's credit activity and derives the cash difference::

        expected = opening + revenue - expenses + (credit_payments - credit_sales)
        cash_difference = closing_cash - expected

    Parameters
    ----------
    sheet : DailySheet
        The sheet to close (must be OPEN).
    closing_cash : Decimal
        Cash counted in the register in the evening.
    actor : User
        The user closing the sheet.
    notes : str
        Optional closing notes.

    Raises
    ------
    ValueError
        If the sheet is already closed or ``closing_cash`` is negative.
    """
    closing_cash = Decimal(str(closing_cash))
    if closing_cash < 0:
        raise ValueError("Le montant en caisse ne peut pas etre negatif.")
    _ensure_open(sheet)

    with transaction.atomic():
        # Re-fetch with lock to avoid concurrent closing
        sheet = DailySheet.objects.select_for_update().get(pk=sheet.pk)
        _ensure_open(sheet)

        prices, _, _ = _price_maps(sheet.organization_id)
        revenue = calculations.theoretical_revenue(sheet.stock_lines.all(), prices)
        expenses_total = _refresh_expenses_total(sheet)
        credit = daily_credit_figures(sheet)
        variation = calculations.credit_variation(credit["credit_payments"], credit["credit_sales"])
        expected = calculations.expected_cash(sheet.opening_cash, revenue, expenses_total, variation)

        sheet.theoretical_revenue = revenue
        sheet.expenses_total = expenses_total
        sheet.credit_sales = credit["credit_sales"]
        sheet.credit_payments = credit["credit_payments"]
        sheet.credit_balance_eod = credit["credit_balance_eod"]
        sheet.closing_cash = closing_cash
        sheet.cash_difference = calculations.cash_difference(closing_cash, expected)
        sheet.notes = notes or sheet.notes
        sheet.status = DailySheet.Status.CLOSED
        sheet.closed_at = timezone.now()
        sheet.closed_by = actor
        sheet.save()

        create_audit_log(
            actor=actor,
            organization=sheet.organization,
            action="DAILY_SHEET_CLOSED",
            entity_type="DailySheet",
            entity_id=sheet.pk,
            after={
                "sheet_date": str(sheet.sheet_date),
                "theoretical_revenue": str(revenue),
                "expenses_total": str(expenses_total),
                "closing_cash": str(closing_cash),
                "cash_difference": str(sheet.cash_difference),
            },
        )

    logger.info(
        "Daily sheet %s closed: revenue=%s expenses=%s difference=%s",
        sheet.pk, sheet.theoretical_revenue, sheet.expenses_total, sheet.cash_difference,
    )
    return sheet


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def get_sheet_summary(sheet: DailySheet) -> dict:
    """The sheet with its lines and the live reconciliation figures.

    For an open sheet the cash difference uses the counted cash when one
    was already entered, else it stays ``None``.
    """
    lines = list(sheet.stock_lines.select_related("product"))
    packaging = list(sheet.packaging.all())
    expenses = list(sheet.expenses.all())
    prices, min_stocks, names = _price_maps(sheet.organization_id)

    if sheet.is_closed:
        revenue = sheet.theoretical_revenue
        expenses_total = sheet.expenses_total
        difference = sheet.cash_difference
    else:
        revenue = calculations.theoretical_revenue(lines, prices)
        expenses_total = sum((e.amount for e in expenses), ZERO)
        difference = None
        if sheet.closing_cash is not None:
            credit = daily_credit_figures(sheet)
            variation = calculations.credit_variation(credit["credit_payments"], credit["credit_sales"])
            difference = calculations.cash_difference(
                sheet.closing_cash,
                calculations.expected_cash(sheet.opening_cash, revenue, expenses_total, variation),
            )

    return {
        "sheet": sheet,
        "stock_lines": lines,
        "packaging": packaging,
        "expenses": expenses,
        "calculations": {
            "total_revenue": revenue,
            "total_expenses": expenses_total,
            "cash_difference": difference,
            "stock_alerts": calculations.stock_alerts(lines, min_stocks, names),
            "packaging_alerts": calculations.packaging_alerts(packaging),
        },
    }
