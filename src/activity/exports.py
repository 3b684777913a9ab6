"""PDF and Excel renditions of the monthly closure report."""
import io
import logging

from django.conf import settings
from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from activity.reports import get_monthly_report

logger = logging.getLogger("ravito")

_GRID_STYLE = [
    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ("LEFTPADDING", (0, 0), (-1, -1), 6),
    ("RIGHTPADDING", (0, 0), (-1, -1), 6),
    ("TOPPADDING", (0, 0), (-1, -1), 4),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
]

_HEADER_STYLE = [
    ("BACKGROUND", (0, 0), (-1, 0), colors.Color(0.2, 0.4, 0.6)),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
]


def _money(value):
    return f"{value} {settings.CURRENCY}"


def _kpi_rows(kpis):
    return [
        ["Jours travailles", str(kpis["days_worked"])],
        ["Chiffre d'affaires", _money(kpis["total_revenue"])],
        ["CA moyen / jour", _money(kpis["avg_daily_revenue"])],
        ["Total depenses", _money(kpis["total_expenses"])],
        ["Ecart de caisse cumule", _money(kpis["total_cash_difference"])],
        ["Ecart moyen", _money(kpis["avg_cash_difference"])],
        ["Jours en deficit", str(kpis["negative_days"])],
        ["Jours en excedent", str(kpis["positive_days"])],
        ["Jours non saisis", str(kpis["days_incomplete"])],
        ["Taux de completion", f"{kpis['completion_rate']} %"],
    ]


def export_monthly_report_pdf(organization, year, month) -> bytes:
    """Render the monthly report as an A4 PDF and return the raw bytes."""
    report = get_monthly_report(organization, year, month)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    styles = getSampleStyleSheet()
    elements = []

    elements.append(Paragraph(
        f"Rapport mensuel - {report['month_name']} {report['year']}",
        styles["Title"],
    ))
    elements.append(Paragraph(str(organization), styles["Normal"]))
    elements.append(Spacer(1, 5 * mm))

    info_table = Table(_kpi_rows(report["kpis"]), colWidths=[70 * mm, 80 * mm])
    info_table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), colors.Color(0.9, 0.9, 0.9)),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        *_GRID_STYLE,
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 10 * mm))

    if report["expenses_by_category"]:
        elements.append(Paragraph("Depenses par categorie", styles["Heading2"]))
        data = [["Categorie", "Montant"]]
        for row in report["expenses_by_category"]:
            data.append([row["label"], _money(row["total"])])
        table = Table(data, colWidths=[80 * mm, 70 * mm])
        table.setStyle(TableStyle([*_HEADER_STYLE, *_GRID_STYLE, ("ALIGN", (1, 0), (1, -1), "RIGHT")]))
        elements.append(table)
        elements.append(Spacer(1, 10 * mm))

    if report["top_products"]:
        elements.append(Paragraph("Top produits", styles["Heading2"]))
        data = [["Produit", "Quantite vendue", "CA"]]
        for row in report["top_products"]:
            data.append([row["name"], str(row["qty_sold"]), _money(row["revenue"])])
        table = Table(data, colWidths=[70 * mm, 35 * mm, 45 * mm])
        table.setStyle(TableStyle([*_HEADER_STYLE, *_GRID_STYLE, ("ALIGN", (1, 0), (-1, -1), "RIGHT")]))
        elements.append(table)
        elements.append(Spacer(1, 10 * mm))

    elements.append(Paragraph("Feuilles cloturees", styles["Heading2"]))
    data = [["Date", "CA theorique", "Depenses", "Ecart"]]
    for sheet in report["daily_sheets"]:
        data.append([
            sheet.sheet_date.strftime("%d/%m/%Y"),
            _money(sheet.theoretical_revenue),
            _money(sheet.expenses_total),
            _money(sheet.cash_difference if sheet.cash_difference is not None else "---"),
        ])
    table = Table(data, colWidths=[35 * mm, 40 * mm, 40 * mm, 35 * mm])
    table.setStyle(TableStyle([*_HEADER_STYLE, *_GRID_STYLE, ("ALIGN", (1, 0), (-1, -1), "RIGHT")]))
    elements.append(table)

    doc.build(elements)
    logger.info(
        "Monthly report PDF generated",
        extra={"organization_id": str(organization.pk), "period": f"{year}-{month:02d}"},
    )
    return buffer.getvalue()


def export_monthly_report_xlsx(organization, year, month) -> bytes:
    """Write the monthly report to an XLSX workbook and return the raw bytes."""
    report = get_monthly_report(organization, year, month)

    wb = Workbook()
    ws = wb.active
    ws.title = f"{report['year']}-{report['month']:02d}"
    bold = Font(bold=True)

    ws.append([f"Rapport mensuel - {report['month_name']} {report['year']}"])
    ws["A1"].font = Font(bold=True, size=14)
    ws.append([str(organization)])
    ws.append([])

    ws.append(["Indicateur", "Valeur"])
    kpis = report["kpis"]
    ws.append(["Jours travailles", kpis["days_worked"]])
    ws.append(["Chiffre d'affaires", float(kpis["total_revenue"])])
    ws.append(["CA moyen / jour", float(kpis["avg_daily_revenue"])])
    ws.append(["Total depenses", float(kpis["total_expenses"])])
    ws.append(["Ecart de caisse cumule", float(kpis["total_cash_difference"])])
    ws.append(["Jours en deficit", kpis["negative_days"]])
    ws.append(["Jours en excedent", kpis["positive_days"]])
    ws.append(["Taux de completion (%)", float(kpis["completion_rate"])])
    ws.append([])

    ws.append(["Depenses par categorie"])
    ws.append(["Categorie", "Montant"])
    for row in report["expenses_by_category"]:
        ws.append([row["label"], float(row["total"])])
    ws.append([])

    ws.append(["Top produits"])
    ws.append(["Produit", "Quantite vendue", "CA"])
    for row in report["top_products"]:
        ws.append([row["name"], row["qty_sold"], float(row["revenue"])])
    ws.append([])

    ws.append(["Feuilles cloturees"])
    ws.append(["Date", "CA theorique", "Depenses", "Ecart"])
    for sheet in report["daily_sheets"]:
        ws.append([
            sheet.sheet_date,
            float(sheet.theoretical_revenue),
            float(sheet.expenses_total),
            float(sheet.cash_difference) if sheet.cash_difference is not None else None,
        ])

    for row in ws.iter_rows():
        label = row[0].value
        if label in ("Indicateur", "Categorie", "Produit", "Date"):
            for cell in row:
                cell.font = bold

    ws.column_dimensions["A"].width = 30
    for col in ("B", "C", "D"):
        ws.column_dimensions[col].width = 18

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
