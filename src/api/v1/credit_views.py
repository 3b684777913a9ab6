"""ViewSets and endpoints for the credit-customer ledger."""
from __future__ import annotations

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from api.v1.credit_serializers import (
    ConsumptionSerializer,
    CreditCustomerSerializer,
    CreditTransactionSerializer,
    FreezeSerializer,
    PaymentSerializer,
    UnfreezeSerializer,
)
from api.v1.permissions import IsEstablishment
from api.v1.views import parse_year_month
from credits import services

logger = logging.getLogger("ravito")


class CreditCustomerViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    Customers buying on credit at the current establishment.

    DELETE is a soft delete: the customer leaves the list, the ledger stays.
    """

    serializer_class = CreditCustomerSerializer
    permission_classes = [IsAuthenticated, IsEstablishment]
    filterset_fields = ["status"]
    search_fields = ["name", "phone"]
    ordering_fields = ["name", "current_balance", "last_payment_date"]

    def get_queryset(self):
        # Soft-deleted customers stay reachable by id for their history.
        include_inactive = (
            self.action != "list"
            or self.request.query_params.get("include_inactive") in ("1", "true")
        )
        return services.get_credit_customers(self.request.organization, include_inactive=include_inactive)

    def perform_create(self, serializer):
        data = serializer.validated_data
        serializer.instance = services.add_credit_customer(
            self.request.organization,
            name=data["name"],
            phone=data.get("phone", ""),
            address=data.get("address", ""),
            credit_limit=data.get("credit_limit", 0),
            notes=data.get("notes", ""),
        )

    def create(self, request, *args, **kwargs):
        try:
            return super().create(request, *args, **kwargs)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

    def update(self, request, *args, **kwargs):
        customer = self.get_object()
        serializer = self.get_serializer(customer, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        try:
            customer = services.update_credit_customer_info(customer, **serializer.validated_data)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(CreditCustomerSerializer(customer).data)

    def perform_destroy(self, instance):
        services.delete_credit_customer(instance)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"])
    def transactions(self, request, pk=None):
        customer = self.get_object()
        page = self.paginate_queryset(services.get_customer_transactions(customer))
        serializer = CreditTransactionSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=True, methods=["post"])
    def consumption(self, request, pk=None):
        """Record goods taken on credit."""
        customer = self.get_object()
        serializer = ConsumptionSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        try:
            tx = services.add_consumption(
                customer,
                serializer.service_items(),
                actor=request.user,
                notes=serializer.validated_data["notes"],
                sheet=serializer.validated_data.get("daily_sheet"),
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(CreditTransactionSerializer(tx).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def payment(self, request, pk=None):
        """Record a repayment."""
        customer = self.get_object()
        serializer = PaymentSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            tx = services.add_payment(
                customer,
                data["amount"],
                data["payment_method"],
                actor=request.user,
                notes=data["notes"],
                sheet=data.get("daily_sheet"),
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(CreditTransactionSerializer(tx).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def freeze(self, request, pk=None):
        customer = self.get_object()
        serializer = FreezeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            customer = services.freeze_customer(
                customer,
                data["action"],
                data["reason"],
                new_limit=data.get("new_limit"),
                actor=request.user,
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(CreditCustomerSerializer(customer).data)

    @action(detail=True, methods=["post"])
    def unfreeze(self, request, pk=None):
        customer = self.get_object()
        serializer = UnfreezeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            customer = services.unfreeze_customer(customer, new_limit=serializer.validated_data.get("new_limit"))
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(CreditCustomerSerializer(customer).data)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def statistics(self, request):
        return Response(services.get_credit_statistics(request.organization))

    @action(detail=False, methods=["get"])
    def alerts(self, request):
        return Response(services.get_credit_alerts(request.organization))

    @action(detail=False, methods=["get"])
    def monthly(self, request):
        year, month = parse_year_month(request)
        try:
            stats = services.get_monthly_credit_stats(request.organization, year, month)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(stats)

    @action(detail=False, methods=["get"])
    def annual(self, request):
        year, _ = parse_year_month(request, require_month=False)
        try:
            stats = services.get_annual_credit_stats(request.organization, year)
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(stats)
