"""Pure reconciliation arithmetic for daily sheets.

Functions take model instances or any object exposing the same
attributes; nothing here touches the database.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

ZERO = Decimal("0")


@dataclass(frozen=True)
class StockAlert:
    product_id: str
    product_name: str
    current_stock: int
    min_stock: int


@dataclass(frozen=True)
class PackagingAlert:
    crate_type: str
    difference: int
    theoretical_full_end: int
    message: str


# ---------------------------------------------------------------------------
# Stock lines
# ---------------------------------------------------------------------------

def total_supply(line) -> int:
    return (line.ravito_supply or 0) + (line.external_supply or 0)


def sales_qty(line) -> int | None:
    """Units sold: initial + supply - final. ``None`` until the final count is entered."""
    if line.final_stock is None:
        return None
    return (line.initial_stock or 0) + total_supply(line) - line.final_stock


def line_revenue(line, selling_price) -> Decimal:
    """Revenue of one line. Negative sales (count above theory) earn nothing."""
    qty = sales_qty(line)
    if qty is None or qty <= 0:
        return ZERO
    return Decimal(qty) * Decimal(str(selling_price or 0))


def theoretical_revenue(lines: Iterable, prices: Mapping) -> Decimal:
    """Sum of line revenues for lines whose final stock is set.

    *prices* maps ``product_id`` to the establishment selling price.
    """
    total = ZERO
    for line in lines:
        total += line_revenue(line, prices.get(line.product_id, ZERO))
    return total


# ---------------------------------------------------------------------------
# Cash
# ---------------------------------------------------------------------------

def credit_variation(credit_payments, credit_sales) -> Decimal:
    """Cash effect of credit activity: collected repayments minus goods given on credit."""
    return Decimal(str(credit_payments or 0)) - Decimal(str(credit_sales or 0))


def expected_cash(opening_cash, revenue, expenses, credit_var=ZERO) -> Decimal:
    return (
        Decimal(str(opening_cash or 0))
        + Decimal(str(revenue or 0))
        - Decimal(str(expenses or 0))
        + Decimal(str(credit_var or 0))
    )


def cash_difference(closing_cash, expected) -> Decimal:
    """Positive = surplus in the register, negative = shortfall."""
    return Decimal(str(closing_cash)) - Decimal(str(expected))


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------

def packaging_difference(packaging) -> int | None:
    """(full_end + empty_end) - (full_start + empty_start), ``None`` until both ends are counted."""
    if packaging.qty_full_end is None or packaging.qty_empty_end is None:
        return None
    end_total = packaging.qty_full_end + packaging.qty_empty_end
    start_total = (packaging.qty_full_start or 0) + (packaging.qty_empty_start or 0)
    return end_total - start_total


def theoretical_full_end(packaging) -> int:
    return (
        (packaging.qty_full_start or 0)
        + (packaging.qty_received or 0)
        - (packaging.qty_returned or 0)
    )


def packaging_alerts(packaging_rows: Iterable) -> list[PackagingAlert]:
    alerts = []
    for row in packaging_rows:
        difference = packaging_difference(row)
        if not difference:
            continue
        if difference > 0:
            message = f"{difference} casier(s) {row.crate_type} en trop"
        else:
            message = f"{abs(difference)} casier(s) {row.crate_type} manquant(s)"
        alerts.append(PackagingAlert(
            crate_type=row.crate_type,
            difference=difference,
            theoretical_full_end=theoretical_full_end(row),
            message=message,
        ))
    return alerts


# ---------------------------------------------------------------------------
# Stock alerts
# ---------------------------------------------------------------------------

def stock_alerts(lines: Iterable, min_stocks: Mapping, names: Mapping | None = None) -> list[StockAlert]:
    """Lines whose final count fell below the establishment's alert threshold."""
    names = names or {}
    alerts = []
    for line in lines:
        min_stock = min_stocks.get(line.product_id, 0) or 0
        if line.final_stock is None or min_stock <= 0:
            continue
        if line.final_stock < min_stock:
            alerts.append(StockAlert(
                product_id=str(line.product_id),
                product_name=names.get(line.product_id, ""),
                current_stock=line.final_stock,
                min_stock=min_stock,
            ))
    return alerts
