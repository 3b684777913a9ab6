"""CSV downloads for admin listings."""
import csv
from decimal import Decimal

from django.http import HttpResponse


def _cell(obj, field):
    value = field(obj) if callable(field) else getattr(obj, field, "")
    if value is None:
        return ""
    if isinstance(value, Decimal):
        # Whole-franc amounts read better without trailing ".00".
        return str(value.quantize(Decimal("1"))) if value == value.to_integral_value() else str(value)
    return str(value)


def queryset_to_csv_response(rows, columns, filename):
    """Render *rows* as a semicolon-separated CSV attachment.

    *columns* is a list of ``(attribute_or_callable, header)`` pairs. The
    file starts with a UTF-8 BOM and uses ``;`` so spreadsheet software
    configured for French locales opens it directly.
    """
    response = HttpResponse(content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = f'attachment; filename="{filename}.csv"'
    response.write("\ufeff")

    writer = csv.writer(response, delimiter=";")
    writer.writerow([header for _, header in columns])
    iterable = rows.iterator() if hasattr(rows, "iterator") else rows
    for obj in iterable:
        writer.writerow([_cell(obj, field) for field, _ in columns])
    return response
