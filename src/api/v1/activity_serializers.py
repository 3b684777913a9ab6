"""Serializers for the daily sheet (activity) API endpoints."""
from __future__ import annotations

from dataclasses import asdict

from rest_framework import serializers

from activity import calculations
from activity.models import DailyExpense, DailyPackaging, DailySheet, DailyStockLine


class DailyStockLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    total_supply = serializers.SerializerMethodField()
    sales_qty = serializers.SerializerMethodField()

    class Meta:
        model = DailyStockLine
        fields = [
            "id", "product", "product_name", "initial_stock", "ravito_supply",
            "external_supply", "final_stock", "total_supply", "sales_qty",
        ]
        read_only_fields = ["id", "product", "initial_stock", "ravito_supply"]

    def get_total_supply(self, obj):
        return calculations.total_supply(obj)

    def get_sales_qty(self, obj):
        return calculations.sales_qty(obj)


class DailyStockLineUpdateSerializer(serializers.Serializer):
    external_supply = serializers.IntegerField(min_value=0, required=False)
    final_stock = serializers.IntegerField(min_value=0, required=False)


class DailyPackagingSerializer(serializers.ModelSerializer):
    difference = serializers.SerializerMethodField()
    theoretical_full_end = serializers.SerializerMethodField()

    class Meta:
        model = DailyPackaging
        fields = [
            "id", "crate_type", "qty_full_start", "qty_empty_start", "qty_received",
            "qty_returned", "qty_consignes_paid", "qty_full_end", "qty_empty_end",
            "notes", "difference", "theoretical_full_end",
        ]
        read_only_fields = ["id", "crate_type"]

    def get_difference(self, obj):
        return calculations.packaging_difference(obj)

    def get_theoretical_full_end(self, obj):
        return calculations.theoretical_full_end(obj)


class DailyExpenseSerializer(serializers.ModelSerializer):
    class Meta:
        model = DailyExpense
        fields = ["id", "daily_sheet", "label", "amount", "category", "created_at"]
        read_only_fields = ["id", "created_at"]


class DailySheetSerializer(serializers.ModelSerializer):
    closed_by_name = serializers.CharField(source="closed_by.name", read_only=True, default=None)

    class Meta:
        model = DailySheet
        fields = [
            "id", "sheet_date", "status", "opening_cash", "closing_cash",
            "theoretical_revenue", "expenses_total", "cash_difference",
            "credit_sales", "credit_payments", "credit_balance_eod",
            "notes", "closed_at", "closed_by", "closed_by_name", "created_at",
        ]
        read_only_fields = fields


class OpenDailySheetSerializer(serializers.Serializer):
    sheet_date = serializers.DateField()


class CloseDailySheetSerializer(serializers.Serializer):
    closing_cash = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


def serialize_sheet_summary(summary: dict) -> dict:
    """JSON shape of :func:`activity.services.get_sheet_summary`."""
    calc = summary["calculations"]
    return {
        "sheet": DailySheetSerializer(summary["sheet"]).data,
        "stock_lines": DailyStockLineSerializer(summary["stock_lines"], many=True).data,
        "packaging": DailyPackagingSerializer(summary["packaging"], many=True).data,
        "expenses": DailyExpenseSerializer(summary["expenses"], many=True).data,
        "calculations": {
            "total_revenue": calc["total_revenue"],
            "total_expenses": calc["total_expenses"],
            "cash_difference": calc["cash_difference"],
            "stock_alerts": [asdict(a) for a in calc["stock_alerts"]],
            "packaging_alerts": [asdict(a) for a in calc["packaging_alerts"]],
        },
    }
