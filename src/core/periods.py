"""Calendar-month helpers shared by reports and commission periods."""
import calendar
from datetime import date

MONTH_NAMES = [
    "Janvier", "Fevrier", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Aout", "Septembre", "Octobre", "Novembre", "Decembre",
]


# Neighbouring months of any valid month are valid too.
MIN_YEAR = 1971
MAX_YEAR = 9998


def validate_month(year, month):
    if not 1 <= int(month) <= 12:
        raise ValueError(f"Mois invalide : {month}.")
    if not MIN_YEAR <= int(year) <= MAX_YEAR:
        raise ValueError(f"Annee invalide : {year}.")
    return int(year), int(month)


def month_date_range(year, month):
    """First and last calendar day of the month."""
    year, month = validate_month(year, month)
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def days_in_month(year, month):
    return calendar.monthrange(int(year), int(month))[1]


def previous_month(year, month):
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_month(year, month):
    if month == 12:
        return year + 1, 1
    return year, month + 1
