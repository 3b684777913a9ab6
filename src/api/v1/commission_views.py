"""ViewSets and endpoints for the commercial commission module.

Representatives only ever see their own figures (``/commissions/me/...``);
settings, objectives, the team view and the payment lifecycle are admin
endpoints.
"""
from __future__ import annotations

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.commission_serializers import (
    SalesCommissionPaymentSerializer,
    SalesObjectiveSerializer,
    SalesRepresentativeSerializer,
)
from api.v1.permissions import IsPlatformAdmin, IsSalesRep
from api.v1.views import parse_year_month
from commissions import services
from commissions.engine import CommissionSettings, ConfigurationMissing, Period
from commissions.models import SalesObjective, SalesRepresentative
from commissions.settings_schema import SettingsValidationError

logger = logging.getLogger("ravito")


def _period(request) -> Period:
    try:
        return Period(*parse_year_month(request))
    except ValueError as e:
        raise ValidationError({"detail": str(e)})


def _plain(data) -> dict:
    """Form posts arrive as a QueryDict with list values."""
    return data.dict() if hasattr(data, "dict") else dict(data)


def _missing_settings(exc: ConfigurationMissing) -> Response:
    return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)


# ---------------------------------------------------------------------------
# Sales representative self-service
# ---------------------------------------------------------------------------

class MyCommercialActivityViewSet(viewsets.ViewSet):
    """Figures of the representative linked to the current user."""

    permission_classes = [IsAuthenticated, IsSalesRep]

    @action(detail=False, methods=["get"])
    def stats(self, request):
        try:
            data = services.get_commercial_activity_stats(request.sales_rep, _period(request))
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        return Response(data)

    @action(detail=False, methods=["get"])
    def clients(self, request):
        try:
            clients = services.get_registered_clients(request.sales_rep)
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        return Response(clients)

    @action(detail=False, methods=["get"])
    def estimation(self, request):
        period = _period(request)
        try:
            estimation = services.calculate_commission_estimation(request.sales_rep, period)
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        return Response({"period": str(period), "period_label": period.label, **estimation.as_dict()})

    @action(detail=False, methods=["get"])
    def payments(self, request):
        history = services.get_payment_history(request.sales_rep)
        return Response(SalesCommissionPaymentSerializer(history, many=True).data)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class CommissionSettingsView(APIView):
    """
    GET /api/v1/commissions/settings/ - current settings (defaults when never saved).
    PATCH /api/v1/commissions/settings/ - validated partial update.
    """

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get(self, request):
        snapshot = services.get_commission_settings()
        configured = snapshot is not None
        return Response({
            "configured": configured,
            **(snapshot if configured else CommissionSettings()).as_dict(),
        })

    def patch(self, request):
        try:
            snapshot = services.update_commission_settings(_plain(request.data), actor=request.user)
        except SettingsValidationError as exc:
            return Response(
                {"detail": "Parametres invalides.", "errors": exc.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response({"configured": True, **snapshot.as_dict()})


class SalesRepresentativeViewSet(viewsets.ModelViewSet):
    serializer_class = SalesRepresentativeSerializer
    queryset = SalesRepresentative.objects.order_by("name")
    permission_classes = [IsAuthenticated, IsPlatformAdmin]
    filterset_fields = ["is_active", "zone"]
    search_fields = ["name", "email", "phone"]

    def perform_destroy(self, instance):
        # Payments reference representatives: deactivate instead.
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])

    @action(detail=False, methods=["get"])
    def metrics(self, request):
        """Active representatives with their activity and objectives for the period."""
        try:
            rows = services.get_sales_reps_with_metrics(_period(request))
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        return Response(rows)

    @action(detail=False, methods=["get"])
    def ranking(self, request):
        return Response(services.get_sales_rep_ranking(_period(request)))

    @action(detail=True, methods=["get"])
    def estimation(self, request, pk=None):
        rep = self.get_object()
        period = _period(request)
        try:
            estimation = services.calculate_commission_estimation(rep, period)
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        return Response({"period": str(period), "period_label": period.label, **estimation.as_dict()})


class CommercialDashboardView(APIView):
    """GET /api/v1/commissions/dashboard/ - platform-wide registration KPIs."""

    permission_classes = [IsAuthenticated, IsPlatformAdmin]

    def get(self, request):
        return Response(services.get_dashboard_kpis())


class SalesObjectiveViewSet(
    mixins.ListModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Monthly objectives. POST creates or replaces the (rep, period) objective."""

    serializer_class = SalesObjectiveSerializer
    permission_classes = [IsAuthenticated, IsPlatformAdmin]
    pagination_class = None

    def get_queryset(self):
        if self.action == "list":
            return services.get_objectives_by_period(_period(self.request))
        return SalesObjective.objects.all()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            objective = services.upsert_objective(
                data["sales_rep"],
                Period(data["period_year"], data["period_month"]),
                data.get("objective_chr", 0),
                data.get("objective_depots", 0),
                actor=request.user,
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(SalesObjectiveSerializer(objective).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        try:
            services.delete_objective(kwargs["pk"])
        except ValueError as e:
            return Response({"detail": str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class CommissionPaymentViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Commission payments of one period (``?year=&month=``).

    Lifecycle: ``save`` freezes the current calculation as pending rows,
    ``validate`` moves pending to validated, ``pay`` moves validated to paid.
    """

    serializer_class = SalesCommissionPaymentSerializer
    permission_classes = [IsAuthenticated, IsPlatformAdmin]
    pagination_class = None

    def get_queryset(self):
        return services.get_payments_by_period(_period(self.request))

    @action(detail=False, methods=["get"])
    def calculate(self, request):
        """Live calculation for the period, nothing is stored."""
        try:
            result = services.calculate_commissions(_period(request))
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        result["period"] = str(result["period"])
        return Response(result)

    @action(detail=False, methods=["post"])
    def save(self, request):
        period = _period(request)
        try:
            counts = services.save_commission_payments(period, actor=request.user)
        except ConfigurationMissing as exc:
            return _missing_settings(exc)
        return Response({"period": str(period), **counts})

    @action(detail=False, methods=["post"])
    def validate(self, request):
        period = _period(request)
        count = services.validate_payments(period, actor=request.user)
        return Response({"period": str(period), "validated": count})

    @action(detail=False, methods=["post"])
    def pay(self, request):
        period = _period(request)
        count = services.mark_payments_as_paid(period, actor=request.user)
        return Response({"period": str(period), "paid": count})

    @action(detail=False, methods=["get"])
    def export(self, request):
        return services.export_commission_payments_csv(_period(request))
