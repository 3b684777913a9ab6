"""ViewSets and endpoints for daily sheets and activity reports."""
from __future__ import annotations

import logging

from django.http import HttpResponse
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from activity import reports, services
from activity.models import DailyExpense, DailyPackaging, DailySheet, DailyStockLine
from api.v1.activity_serializers import (
    CloseDailySheetSerializer,
    DailyExpenseSerializer,
    DailyPackagingSerializer,
    DailySheetSerializer,
    DailyStockLineSerializer,
    DailyStockLineUpdateSerializer,
    OpenDailySheetSerializer,
    serialize_sheet_summary,
)
from api.v1.permissions import IsEstablishment
from api.v1.views import parse_year_month

logger = logging.getLogger("ravito")


class DailySheetViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Daily sheets of the current establishment.

    Sheets are never created directly: ``POST open/`` returns the sheet of
    the given date, creating it with carryover from the previous day.
    """

    serializer_class = DailySheetSerializer
    permission_classes = [IsAuthenticated, IsEstablishment]
    filterset_fields = ["status"]
    ordering_fields = ["sheet_date"]

    def get_queryset(self):
        qs = DailySheet.objects.filter(organization=self.request.organization).select_related("closed_by")
        date_from = self.request.query_params.get("date_from")
        date_to = self.request.query_params.get("date_to")
        if date_from:
            qs = qs.filter(sheet_date__gte=date_from)
        if date_to:
            qs = qs.filter(sheet_date__lte=date_to)
        return qs.order_by("-sheet_date")

    @action(detail=False, methods=["post"])
    def open(self, request):
        serializer = OpenDailySheetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sheet = services.get_or_create_daily_sheet(
            request.organization,
            serializer.validated_data["sheet_date"],
            actor=request.user,
        )
        return Response(serialize_sheet_summary(services.get_sheet_summary(sheet)))

    @action(detail=True, methods=["get"])
    def summary(self, request, pk=None):
        sheet = self.get_object()
        return Response(serialize_sheet_summary(services.get_sheet_summary(sheet)))

    @action(detail=True, methods=["post"], url_path="sync-deliveries")
    def sync_deliveries(self, request, pk=None):
        """Pull the day's delivered RAVITO orders into the stock lines."""
        sheet = self.get_object()
        try:
            updated = services.sync_ravito_deliveries(sheet)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"updated": updated})

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        sheet = self.get_object()
        serializer = CloseDailySheetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            sheet = services.close_daily_sheet(
                sheet,
                closing_cash=serializer.validated_data["closing_cash"],
                actor=request.user,
                notes=serializer.validated_data["notes"],
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DailySheetSerializer(sheet).data)


class DailyStockLineViewSet(mixins.UpdateModelMixin, viewsets.GenericViewSet):
    """PATCH external supply and the evening count of one stock line."""

    serializer_class = DailyStockLineSerializer
    permission_classes = [IsAuthenticated, IsEstablishment]
    http_method_names = ["patch"]

    def get_queryset(self):
        return DailyStockLine.objects.filter(
            daily_sheet__organization=self.request.organization,
        ).select_related("daily_sheet", "product")

    def partial_update(self, request, *args, **kwargs):
        line = self.get_object()
        serializer = DailyStockLineUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            line = services.update_stock_line(line, **serializer.validated_data)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DailyStockLineSerializer(line).data)


class DailyPackagingViewSet(mixins.UpdateModelMixin, viewsets.GenericViewSet):
    """PATCH the crate counts of one packaging row."""

    serializer_class = DailyPackagingSerializer
    permission_classes = [IsAuthenticated, IsEstablishment]
    http_method_names = ["patch"]

    def get_queryset(self):
        return DailyPackaging.objects.filter(
            daily_sheet__organization=self.request.organization,
        ).select_related("daily_sheet")

    def partial_update(self, request, *args, **kwargs):
        packaging = self.get_object()
        serializer = DailyPackagingSerializer(packaging, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        try:
            packaging = services.update_packaging(packaging, **serializer.validated_data)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DailyPackagingSerializer(packaging).data)


class DailyExpenseViewSet(mixins.CreateModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    serializer_class = DailyExpenseSerializer
    permission_classes = [IsAuthenticated, IsEstablishment]

    def get_queryset(self):
        return DailyExpense.objects.filter(
            daily_sheet__organization=self.request.organization,
        ).select_related("daily_sheet")

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        sheet = serializer.validated_data["daily_sheet"]
        if sheet.organization_id != request.organization.pk:
            raise ValidationError({"daily_sheet": "Feuille journaliere introuvable."})
        try:
            expense = services.add_expense(
                sheet,
                label=serializer.validated_data["label"],
                amount=serializer.validated_data["amount"],
                category=serializer.validated_data.get("category", DailyExpense.Category.OTHER),
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DailyExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        expense = self.get_object()
        try:
            total = services.delete_expense(expense)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"expenses_total": total})


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class MonthlyActivityReportView(APIView):
    """GET /api/v1/activity/reports/monthly/?year=&month="""

    permission_classes = [IsAuthenticated, IsEstablishment]

    def get(self, request):
        year, month = parse_year_month(request)
        try:
            report = reports.get_monthly_report(request.organization, year, month)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        report["daily_sheets"] = DailySheetSerializer(report["daily_sheets"], many=True).data
        return Response(report)


class AnnualActivityReportView(APIView):
    """GET /api/v1/activity/reports/annual/?year="""

    permission_classes = [IsAuthenticated, IsEstablishment]

    def get(self, request):
        year, _ = parse_year_month(request, require_month=False)
        try:
            report = reports.get_annual_report(request.organization, year)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(report)


class MonthlyActivityExportView(APIView):
    """
    GET /api/v1/activity/reports/monthly/export/?year=&month=&file=pdf|xlsx

    Downloads the monthly closing report.
    """

    permission_classes = [IsAuthenticated, IsEstablishment]

    CONTENT_TYPES = {
        "pdf": "application/pdf",
        "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    }

    def get(self, request):
        from activity.exports import export_monthly_report_pdf, export_monthly_report_xlsx

        year, month = parse_year_month(request)
        # ``format`` is reserved by DRF content negotiation.
        fmt = request.query_params.get("file", "pdf").lower()
        if fmt not in self.CONTENT_TYPES:
            raise ValidationError({"file": "Format inconnu (pdf ou xlsx)."})

        builder = export_monthly_report_pdf if fmt == "pdf" else export_monthly_report_xlsx
        try:
            content = builder(request.organization, year, month)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        response = HttpResponse(content, content_type=self.CONTENT_TYPES[fmt])
        response["Content-Disposition"] = f'attachment; filename="rapport_{year}_{month:02d}.{fmt}"'
        logger.info("Monthly report %s-%02d exported as %s for %s", year, month, fmt, request.organization.pk)
        return response
