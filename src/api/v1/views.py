"""ViewSets and API views for the RAVITO API v1: accounts, catalog and notifications."""
import logging

from django.apps import apps
from django.contrib.auth import get_user_model
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.session import SessionUnavailable
from api.v1.permissions import IsEstablishment, IsPlatformAdmin
from api.v1.serializers import (
    EstablishmentProductSerializer,
    EstablishmentProductWriteSerializer,
    MeSerializer,
    NotificationPreferencesSerializer,
    NotificationSerializer,
    ProductSerializer,
    PushSubscriptionSerializer,
    RejectUserSerializer,
    UserSerializer,
)
from catalog.models import EstablishmentProduct, Product
from notifications import services as notification_services

logger = logging.getLogger("ravito")

User = get_user_model()


def parse_year_month(request, *, require_month=True):
    """Read ``year``/``month`` query params, defaulting to the current month."""
    today = timezone.localdate()
    params = request.query_params
    if request.method == "POST" and "year" not in params:
        params = request.data
    try:
        year = int(params.get("year", today.year))
        month = int(params.get("month", today.month))
    except (TypeError, ValueError):
        raise ValidationError({'detail': 'Parametres year/month invalides.'})
    if require_month and not 1 <= month <= 12:
        raise ValidationError({'month': 'Le mois doit etre compris entre 1 et 12.'})
    return year, month


# ---------------------------------------------------------------------------
# Profile and session
# ---------------------------------------------------------------------------

class MeView(APIView):
    """
    GET /api/v1/auth/me/ - return the authenticated user's profile.
    PATCH /api/v1/auth/me/ - update name, phone, address, business_name.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        serializer = MeSerializer(request.user)
        return Response(serializer.data)

    def patch(self, request):
        serializer = MeSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        # The cached session snapshot is stale now.
        apps.get_app_config("accounts").session_provider.forget(request.user.pk)
        return Response(serializer.data)


class SessionView(APIView):
    """GET /api/v1/auth/session/ - profile with its source (online or cache)."""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        provider = apps.get_app_config("accounts").session_provider
        try:
            session = provider.load(request.user.pk)
        except SessionUnavailable as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response({
            'user_id': session.user_id,
            'profile': session.profile,
            'source': session.source,
            'is_offline': session.is_offline,
            'loaded_at': session.loaded_at,
        })


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------

class UserViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Admin listing of platform accounts with approve/reject actions."""

    serializer_class = UserSerializer
    queryset = User.objects.select_related('registered_by_sales_rep').order_by('-date_joined')
    permission_classes = [IsAuthenticated, IsPlatformAdmin]
    filterset_fields = ['role', 'approval_status', 'is_active']
    search_fields = ['name', 'email', 'business_name', 'phone']
    ordering_fields = ['date_joined', 'name']

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        from accounts.services import approve_user

        user = self.get_object()
        try:
            user = approve_user(user, actor=request.user)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(user).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        from accounts.services import reject_user

        serializer = RejectUserSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = self.get_object()
        try:
            user = reject_user(user, actor=request.user, reason=serializer.validated_data['reason'])
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(user).data)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """Platform catalog, read-only for every authenticated user."""

    serializer_class = ProductSerializer
    queryset = Product.objects.filter(is_active=True)
    permission_classes = [IsAuthenticated]
    filterset_fields = ['category', 'crate_type']
    search_fields = ['name', 'reference']
    pagination_class = None


class EstablishmentProductViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """The establishment's own products ("mes produits").

    POST creates or updates the (organization, product) configuration.
    """

    serializer_class = EstablishmentProductSerializer
    permission_classes = [IsAuthenticated, IsEstablishment]
    pagination_class = None

    def get_queryset(self):
        from catalog.services import get_establishment_products

        include_inactive = self.request.query_params.get('include_inactive') in ('1', 'true')
        return get_establishment_products(self.request.organization, include_inactive=include_inactive)

    def create(self, request, *args, **kwargs):
        from catalog.services import upsert_establishment_product

        serializer = EstablishmentProductWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            row = upsert_establishment_product(request.organization, **serializer.validated_data)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        row = EstablishmentProduct.objects.select_related('product').get(pk=row.pk)
        return Response(EstablishmentProductSerializer(row).data, status=status.HTTP_201_CREATED)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationViewSet(
    mixins.ListModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """
    The user's in-app notifications.

    ``?since=<ISO datetime>`` returns only the notifications created after
    that instant, for polling clients.
    """

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        since = self.request.query_params.get('since')
        since_dt = None
        if since:
            since_dt = parse_datetime(since)
            if since_dt is None:
                raise ValidationError({'since': 'Date invalide (format ISO 8601 attendu).'})
        return notification_services.get_notifications(self.request.user, since=since_dt)

    def destroy(self, request, *args, **kwargs):
        try:
            notification_services.delete_notification(request.user, kwargs['pk'])
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'count': notification_services.get_unread_count(request.user)})

    @action(detail=True, methods=['post'], url_path='mark-read')
    def mark_read(self, request, pk=None):
        """Mark a single notification as read."""
        try:
            notification = notification_services.mark_as_read(request.user, pk)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'], url_path='mark-all-read')
    def mark_all_read(self, request):
        updated = notification_services.mark_all_as_read(request.user)
        return Response({'detail': f'{updated} notification(s) marquee(s) comme lue(s).', 'updated': updated})


class NotificationPreferencesView(APIView):
    """GET/PATCH /api/v1/notifications/preferences/"""

    permission_classes = [IsAuthenticated]

    def get(self, request):
        prefs = notification_services.get_preferences(request.user)
        return Response(NotificationPreferencesSerializer(prefs).data)

    def patch(self, request):
        serializer = NotificationPreferencesSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        try:
            prefs = notification_services.update_preferences(request.user, **serializer.validated_data)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(NotificationPreferencesSerializer(prefs).data)


class PushSubscriptionViewSet(mixins.ListModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Web Push subscriptions of the current user's devices."""

    serializer_class = PushSubscriptionSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = None

    def get_queryset(self):
        return notification_services.get_push_subscriptions(self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            subscription = notification_services.subscribe_push(request.user, **serializer.validated_data)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(PushSubscriptionSerializer(subscription).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'])
    def unsubscribe(self, request):
        endpoint = request.data.get('endpoint')
        if not endpoint:
            raise ValidationError({'endpoint': 'Ce champ est requis.'})
        removed = notification_services.unsubscribe_push(request.user, endpoint)
        if not removed:
            return Response({'detail': 'Abonnement introuvable.'}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
