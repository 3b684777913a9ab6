"""Business logic / service functions for the credits app.

All balance-modifying operations use ``select_for_update()`` so that two
cashiers recording for the same customer cannot lose an update.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.periods import MONTH_NAMES, month_date_range, validate_month
from organizations.services import create_audit_log

from .models import CreditCustomer, CreditTransaction, CreditTransactionItem

logger = logging.getLogger("ravito")

ZERO = Decimal("0.00")

ALERT_WARNING = "warning"
ALERT_CRITICAL = "critical"

TOP_DEBTORS_LIMIT = 5
TOP_CUSTOMERS_LIMIT = 10
TOP_CUSTOMERS_MIN_CREDITED = Decimal("10000")
AT_RISK_RECOVERY_RATE = Decimal("80")

FREEZE_FULL = "freeze_full"
REDUCE_LIMIT = "reduce_limit"
DISABLE = "disable"
FREEZE_ACTIONS = (FREEZE_FULL, REDUCE_LIMIT, DISABLE)


def _to_decimal(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Montant invalide : {value}.")
    if not amount.is_finite():
        raise ValueError(f"Montant invalide : {value}.")
    return amount


def _percent(numerator, denominator) -> Decimal:
    if not denominator:
        return Decimal("0.0")
    return (Decimal(numerator) * 100 / Decimal(denominator)).quantize(Decimal("0.1"))


def _lock(customer) -> CreditCustomer:
    return CreditCustomer.objects.select_for_update().get(pk=customer.pk)


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def add_credit_customer(organization, *, name, phone="", address="", credit_limit=0, notes="") -> CreditCustomer:
    name = (name or "").strip()
    if not name:
        raise ValueError("Le nom du client est obligatoire.")
    credit_limit = _to_decimal(credit_limit or 0)
    if credit_limit < 0:
        raise ValueError("Le plafond de credit ne peut pas etre negatif.")
    return CreditCustomer.objects.create(
        organization=organization,
        name=name,
        phone=phone or "",
        address=address or "",
        credit_limit=credit_limit,
        notes=notes or "",
    )


UPDATABLE_CUSTOMER_FIELDS = ("name", "phone", "address", "credit_limit", "notes")


@transaction.atomic
def update_credit_customer_info(customer, **changes) -> CreditCustomer:
    """Update the contact fields and limit. Balances are never editable here."""
    unknown = set(changes) - set(UPDATABLE_CUSTOMER_FIELDS)
    if unknown:
        raise ValueError(f"Champs non modifiables : {', '.join(sorted(unknown))}.")

    locked = _lock(customer)
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise ValueError("Le nom du client est obligatoire.")
        changes["name"] = name
    if "credit_limit" in changes:
        changes["credit_limit"] = _to_decimal(changes["credit_limit"] or 0)
        if changes["credit_limit"] < 0:
            raise ValueError("Le plafond de credit ne peut pas etre negatif.")

    for field, value in changes.items():
        setattr(locked, field, value if value is not None else "")
    locked.save(update_fields=[*changes.keys(), "updated_at"])
    return locked


def delete_credit_customer(customer) -> CreditCustomer:
    """Soft delete: the customer disappears from lists, history is kept."""
    customer.is_active = False
    customer.save(update_fields=["is_active", "updated_at"])
    return customer


def get_credit_customers(organization, include_inactive=False):
    qs = CreditCustomer.objects.filter(organization=organization)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs.order_by("name")


def get_customer_transactions(customer):
    return (
        CreditTransaction.objects
        .filter(customer=customer)
        .prefetch_related("items")
        .order_by("-transaction_date", "-created_at")
    )


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

@transaction.atomic
def add_consumption(customer, items, actor, notes="", sheet=None) -> CreditTransaction:
    """Record goods taken on credit.

    Parameters
    ----------
    customer : CreditCustomer
        The customer taking the goods.
    items : list[dict]
        Each item carries ``product_name``, ``quantity``, ``unit_price`` and
        optionally ``product_id``.
    actor : User
        The user recording the consumption.
    sheet : DailySheet, optional
        The daily sheet the consumption belongs to; its date becomes the
        transaction date.

    Returns
    -------
    CreditTransaction
        The newly created consumption.
    """
    if not items:
        raise ValueError("Au moins un article est requis.")

    locked = _lock(customer)
    if not locked.is_active or locked.status != CreditCustomer.Status.ACTIVE:
        raise ValueError("Ce client ne peut pas prendre de credit (compte gele ou desactive).")

    lines = []
    amount = ZERO
    for item in items:
        quantity = int(item.get("quantity") or 0)
        unit_price = _to_decimal(item.get("unit_price") or 0)
        if quantity <= 0:
            raise ValueError("La quantite doit etre positive.")
        if unit_price < 0:
            raise ValueError("Le prix unitaire ne peut pas etre negatif.")
        subtotal = unit_price * quantity
        amount += subtotal
        lines.append((item, quantity, unit_price, subtotal))

    if locked.credit_limit > 0 and locked.current_balance + amount > locked.credit_limit:
        raise ValueError(
            f"Plafond de credit depasse : solde {locked.current_balance} + {amount} "
            f"> plafond {locked.credit_limit}."
        )

    tx = CreditTransaction.objects.create(
        customer=locked,
        organization_id=locked.organization_id,
        daily_sheet=sheet,
        transaction_type=CreditTransaction.Type.CONSUMPTION,
        amount=amount,
        transaction_date=sheet.sheet_date if sheet else timezone.localdate(),
        notes=notes or "",
        created_by=actor,
    )
    CreditTransactionItem.objects.bulk_create([
        CreditTransactionItem(
            transaction=tx,
            product_id=item.get("product_id"),
            product_name=item.get("product_name") or "",
            quantity=quantity,
            unit_price=unit_price,
            subtotal=subtotal,
        )
        for item, quantity, unit_price, subtotal in lines
    ])

    locked.current_balance += amount
    locked.total_credited += amount
    locked.save(update_fields=["current_balance", "total_credited", "updated_at"])

    logger.info(
        "Credit consumption recorded",
        extra={"customer_id": str(locked.pk), "amount": str(amount)},
    )
    return tx


@transaction.atomic
def add_payment(customer, amount, method, actor, notes="", sheet=None) -> CreditTransaction:
    """Record a repayment. Frozen customers may still pay their debt."""
    amount = _to_decimal(amount)
    if amount <= 0:
        raise ValueError("Le montant du paiement doit etre positif.")
    if method not in CreditTransaction.PaymentMethod.values:
        raise ValueError(f"Mode de paiement invalide : {method}.")

    locked = _lock(customer)
    if amount > locked.current_balance:
        raise ValueError("Le montant rembourse ne peut pas depasser le solde du credit.")

    now = timezone.now()
    tx = CreditTransaction.objects.create(
        customer=locked,
        organization_id=locked.organization_id,
        daily_sheet=sheet,
        transaction_type=CreditTransaction.Type.PAYMENT,
        amount=amount,
        payment_method=method,
        transaction_date=sheet.sheet_date if sheet else timezone.localdate(),
        notes=notes or "",
        created_by=actor,
    )

    locked.current_balance -= amount
    locked.total_paid += amount
    locked.last_payment_date = now
    locked.save(update_fields=["current_balance", "total_paid", "last_payment_date", "updated_at"])

    logger.info(
        "Credit payment recorded",
        extra={"customer_id": str(locked.pk), "amount": str(amount), "method": method},
    )
    return tx


# ---------------------------------------------------------------------------
# Freeze / unfreeze
# ---------------------------------------------------------------------------

@transaction.atomic
def freeze_customer(customer, action, reason, new_limit=None, actor=None) -> CreditCustomer:
    """Restrict a customer's credit.

    ``freeze_full`` caps the limit at the current balance, ``reduce_limit``
    lowers the limit while the customer stays active, ``disable`` blocks
    any new consumption.
    """
    if action not in FREEZE_ACTIONS:
        raise ValueError(f"Action de gel invalide : {action}.")

    locked = _lock(customer)
    before = {"status": locked.status, "credit_limit": str(locked.credit_limit)}

    if action == FREEZE_FULL:
        locked.credit_limit = locked.current_balance
        locked.status = CreditCustomer.Status.FROZEN
    elif action == REDUCE_LIMIT:
        if new_limit is None or _to_decimal(new_limit) < 0:
            raise ValueError("Le nouveau plafond doit etre positif ou nul.")
        locked.credit_limit = _to_decimal(new_limit)
    else:
        locked.status = CreditCustomer.Status.DISABLED

    locked.freeze_reason = reason or ""
    locked.frozen_at = timezone.now()
    locked.save(update_fields=["credit_limit", "status", "freeze_reason", "frozen_at", "updated_at"])

    logger.info(
        "Credit customer restricted",
        extra={"customer_id": str(locked.pk), "action": action, "credit_limit": str(locked.credit_limit)},
    )

    if actor is not None:
        create_audit_log(
            actor=actor,
            organization=locked.organization,
            action=f"credit_{action}",
            entity_type="CreditCustomer",
            entity_id=locked.pk,
            before=before,
            after={"status": locked.status, "credit_limit": str(locked.credit_limit)},
        )
    return locked


@transaction.atomic
def unfreeze_customer(customer, new_limit=None) -> CreditCustomer:
    locked = _lock(customer)
    locked.status = CreditCustomer.Status.ACTIVE
    locked.frozen_at = None
    locked.freeze_reason = ""
    if new_limit is not None:
        new_limit = _to_decimal(new_limit)
        if new_limit < 0:
            raise ValueError("Le plafond de credit ne peut pas etre negatif.")
        locked.credit_limit = new_limit
    locked.save(update_fields=["status", "frozen_at", "freeze_reason", "credit_limit", "updated_at"])

    logger.info(
        "Credit customer unfrozen",
        extra={"customer_id": str(locked.pk), "credit_limit": str(locked.credit_limit)},
    )
    return locked


# ---------------------------------------------------------------------------
# Statistics and alerts
# ---------------------------------------------------------------------------

def get_credit_statistics(organization) -> dict:
    qs = CreditCustomer.objects.filter(organization=organization, is_active=True)
    return {
        "total_credit": qs.aggregate(total=Coalesce(Sum("current_balance"), Value(ZERO)))["total"],
        "customers_with_balance": qs.filter(current_balance__gt=0).count(),
    }


def _alert_level(days_since_payment):
    if days_since_payment >= settings.CREDIT_ALERT_CRITICAL_DAYS:
        return ALERT_CRITICAL
    if days_since_payment >= settings.CREDIT_ALERT_WARNING_DAYS:
        return ALERT_WARNING
    return None


def get_credit_alerts(organization, now=None) -> list:
    """Customers owing money whose last repayment is getting old.

    The age counts from the last payment, or from the customer's creation
    when they never paid. Sorted oldest first.
    """
    now = now or timezone.now()
    alerts = []
    customers = CreditCustomer.objects.filter(
        organization=organization,
        is_active=True,
        current_balance__gt=0,
    )
    for customer in customers:
        reference = customer.last_payment_date or customer.created_at
        days = (now - reference).days
        level = _alert_level(days)
        if level is None:
            continue
        alerts.append({
            "customer_id": str(customer.pk),
            "name": customer.name,
            "phone": customer.phone,
            "current_balance": customer.current_balance,
            "last_payment_date": customer.last_payment_date,
            "days_since_payment": days,
            "alert_level": level,
        })
    alerts.sort(key=lambda a: a["days_since_payment"], reverse=True)
    return alerts


def _credited_and_paid(organization, date_from, date_to):
    agg = CreditTransaction.objects.filter(
        organization=organization,
        transaction_date__gte=date_from,
        transaction_date__lte=date_to,
    ).aggregate(
        credited=Coalesce(Sum("amount", filter=Q(transaction_type=CreditTransaction.Type.CONSUMPTION)), Value(ZERO)),
        paid=Coalesce(Sum("amount", filter=Q(transaction_type=CreditTransaction.Type.PAYMENT)), Value(ZERO)),
    )
    return agg["credited"], agg["paid"]


def _end_balance(organization):
    return get_credit_statistics(organization)["total_credit"]


def get_monthly_credit_stats(organization, year, month) -> dict:
    year, month = validate_month(year, month)
    date_from, date_to = month_date_range(year, month)
    credited, paid = _credited_and_paid(organization, date_from, date_to)

    alerts = get_credit_alerts(organization)
    top_debtors = (
        CreditCustomer.objects
        .filter(organization=organization, is_active=True, current_balance__gt=0)
        .order_by("-current_balance")[:TOP_DEBTORS_LIMIT]
    )
    alert_by_customer = {a["customer_id"]: a for a in alerts}

    return {
        "total_credited": credited,
        "total_paid": paid,
        "end_balance": _end_balance(organization),
        "recovery_rate": _percent(paid, credited),
        "alerts_count": len(alerts),
        "amount_at_risk": sum((a["current_balance"] for a in alerts), ZERO),
        "top_debtors": [
            {
                "id": str(c.pk),
                "name": c.name,
                "balance": c.current_balance,
                "last_payment_date": c.last_payment_date,
                "alert_level": alert_by_customer.get(str(c.pk), {}).get("alert_level"),
            }
            for c in top_debtors
        ],
    }


def _customer_stats(customer) -> dict:
    return {
        "id": str(customer.pk),
        "name": customer.name,
        "total_credited": customer.total_credited,
        "total_paid": customer.total_paid,
        "recovery_rate": _percent(customer.total_paid, customer.total_credited),
        "current_balance": customer.current_balance,
    }


def get_annual_credit_stats(organization, year) -> dict:
    year, _ = validate_month(year, 1)
    date_from, _ = month_date_range(year, 1)
    _, date_to = month_date_range(year, 12)
    credited, paid = _credited_and_paid(organization, date_from, date_to)

    monthly = []
    for month in range(1, 13):
        m_from, m_to = month_date_range(year, month)
        m_credited, m_paid = _credited_and_paid(organization, m_from, m_to)
        monthly.append({
            "month": month,
            "month_name": MONTH_NAMES[month - 1],
            "credited": m_credited,
            "paid": m_paid,
        })

    eligible = [
        _customer_stats(c)
        for c in CreditCustomer.objects.filter(
            organization=organization,
            is_active=True,
            total_credited__gte=TOP_CUSTOMERS_MIN_CREDITED,
        )
    ]
    top_customers = sorted(eligible, key=lambda c: c["recovery_rate"], reverse=True)[:TOP_CUSTOMERS_LIMIT]
    at_risk = sorted(
        (c for c in eligible if c["recovery_rate"] < AT_RISK_RECOVERY_RATE),
        key=lambda c: c["recovery_rate"],
    )[:TOP_CUSTOMERS_LIMIT]

    prev_from, _ = month_date_range(year - 1, 1)
    _, prev_to = month_date_range(year - 1, 12)
    prev_credited, _prev_paid = _credited_and_paid(organization, prev_from, prev_to)
    comparison = None
    if prev_credited > 0:
        comparison = ((credited - prev_credited) * 100 / prev_credited).quantize(Decimal("0.1"))

    return {
        "total_credited": credited,
        "total_paid": paid,
        "end_balance": _end_balance(organization),
        "recovery_rate": _percent(paid, credited),
        "previous_year_comparison": comparison,
        "monthly_data": monthly,
        "top_customers": top_customers,
        "at_risk_customers": at_risk,
    }


def critical_alert_summary(organization) -> dict | None:
    """Count and amount of critical alerts, ``None`` when there are none."""
    critical = [a for a in get_credit_alerts(organization) if a["alert_level"] == ALERT_CRITICAL]
    if not critical:
        return None
    return {
        "count": len(critical),
        "amount": sum((a["current_balance"] for a in critical), ZERO),
    }

