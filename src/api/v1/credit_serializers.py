"""Serializers for the credit-customer ledger endpoints."""
from __future__ import annotations

from rest_framework import serializers

from activity.models import DailySheet
from catalog.models import Product
from credits.models import CreditCustomer, CreditTransaction, CreditTransactionItem
from credits.services import FREEZE_ACTIONS


def _validate_sheet_scope(serializer, sheet):
    """A daily sheet passed in the body must belong to the caller's organization."""
    request = serializer.context.get("request")
    organization = getattr(request, "organization", None)
    if sheet is not None and organization is not None and sheet.organization_id != organization.pk:
        raise serializers.ValidationError("Feuille journaliere introuvable.")
    return sheet


class CreditCustomerSerializer(serializers.ModelSerializer):
    available_credit = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    recovery_rate = serializers.SerializerMethodField()

    class Meta:
        model = CreditCustomer
        fields = [
            "id", "name", "phone", "address", "notes", "credit_limit",
            "current_balance", "total_credited", "total_paid", "available_credit",
            "recovery_rate", "status", "last_payment_date", "freeze_reason",
            "frozen_at", "is_active", "created_at",
        ]
        read_only_fields = [
            "id", "current_balance", "total_credited", "total_paid", "status",
            "last_payment_date", "freeze_reason", "frozen_at", "is_active", "created_at",
        ]

    def get_recovery_rate(self, obj):
        return round(float(obj.recovery_rate), 1)


class CreditTransactionItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditTransactionItem
        fields = ["id", "product", "product_name", "quantity", "unit_price", "subtotal"]


class CreditTransactionSerializer(serializers.ModelSerializer):
    items = CreditTransactionItemSerializer(many=True, read_only=True)
    created_by_name = serializers.CharField(source="created_by.name", read_only=True, default=None)

    class Meta:
        model = CreditTransaction
        fields = [
            "id", "customer", "transaction_type", "amount", "payment_method",
            "transaction_date", "daily_sheet", "notes", "created_by",
            "created_by_name", "items", "created_at",
        ]
        read_only_fields = fields


class ConsumptionItemSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    product_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)

    def validate(self, attrs):
        product = attrs.get("product")
        if not attrs.get("product_name"):
            if product is None:
                raise serializers.ValidationError({"product_name": "Le nom du produit est obligatoire."})
            attrs["product_name"] = product.name
        return attrs


class ConsumptionSerializer(serializers.Serializer):
    items = ConsumptionItemSerializer(many=True, allow_empty=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    daily_sheet = serializers.PrimaryKeyRelatedField(
        queryset=DailySheet.objects.all(), required=False, allow_null=True,
    )

    def validate_daily_sheet(self, value):
        return _validate_sheet_scope(self, value)

    def service_items(self) -> list[dict]:
        """Items in the shape ``credits.services.add_consumption`` expects."""
        return [
            {
                "product_id": item["product"].pk if item.get("product") else None,
                "product_name": item["product_name"],
                "quantity": item["quantity"],
                "unit_price": item["unit_price"],
            }
            for item in self.validated_data["items"]
        ]


class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_method = serializers.ChoiceField(
        choices=CreditTransaction.PaymentMethod.choices,
        default=CreditTransaction.PaymentMethod.CASH,
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    daily_sheet = serializers.PrimaryKeyRelatedField(
        queryset=DailySheet.objects.all(), required=False, allow_null=True,
    )

    def validate_daily_sheet(self, value):
        return _validate_sheet_scope(self, value)


class FreezeSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=FREEZE_ACTIONS)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    new_limit = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)


class UnfreezeSerializer(serializers.Serializer):
    new_limit = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
