"""Serializers for the commercial commission endpoints."""
from __future__ import annotations

from rest_framework import serializers

from commissions.models import (
    SalesCommissionPayment,
    SalesObjective,
    SalesRepresentative,
)


class SalesRepresentativeSerializer(serializers.ModelSerializer):
    class Meta:
        model = SalesRepresentative
        fields = ["id", "user", "name", "phone", "email", "zone", "is_active", "created_at"]
        read_only_fields = ["id", "created_at"]


class SalesObjectiveSerializer(serializers.ModelSerializer):
    sales_rep_name = serializers.CharField(source="sales_rep.name", read_only=True)

    class Meta:
        model = SalesObjective
        fields = [
            "id", "sales_rep", "sales_rep_name", "period_year", "period_month",
            "objective_chr", "objective_depots", "created_at",
        ]
        read_only_fields = ["id", "created_at"]
        # Saving an existing (rep, period) pair updates it.
        validators = []

    def validate_period_month(self, value):
        if not 1 <= value <= 12:
            raise serializers.ValidationError("Le mois doit etre compris entre 1 et 12.")
        return value


class SalesCommissionPaymentSerializer(serializers.ModelSerializer):
    sales_rep_name = serializers.CharField(source="sales_rep.name", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)

    class Meta:
        model = SalesCommissionPayment
        fields = [
            "id", "period_year", "period_month", "sales_rep", "sales_rep_name",
            "chr_activated", "depot_activated", "prime_inscriptions",
            "bonus_objectives", "bonus_overshoot", "bonus_special",
            "commission_ca", "total_amount", "status", "status_display",
            "validated_at", "validated_by", "paid_at", "paid_by",
        ]
        read_only_fields = fields
