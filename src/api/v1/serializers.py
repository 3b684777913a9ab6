"""Serializers for the RAVITO API v1: accounts, catalog and notifications."""
from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from catalog.models import EstablishmentProduct, Product
from notifications.models import Notification, NotificationPreferences, PushSubscription

User = get_user_model()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class MeSerializer(serializers.ModelSerializer):
    """Serializer for the authenticated user's own profile (GET/PATCH).

    Role and approval fields are read-only: they only change through the
    admin approval flow.
    """

    organization = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'phone', 'address', 'role',
            'business_name', 'is_approved', 'approval_status',
            'rejection_reason', 'organization',
        ]
        read_only_fields = [
            'id', 'email', 'role', 'is_approved', 'approval_status', 'rejection_reason',
        ]

    def get_organization(self, obj):
        from organizations.services import get_user_organization

        organization = get_user_organization(obj)
        if organization is None:
            return None
        return {'id': str(organization.pk), 'name': organization.name, 'type': organization.type}


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Extends JWT token response to include user profile data."""

    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = MeSerializer(self.user).data
        return data


class RegisterSerializer(serializers.Serializer):
    """Public signup of a CHR establishment or a depot."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    name = serializers.CharField(max_length=255)
    role = serializers.ChoiceField(choices=[User.Role.CLIENT, User.Role.SUPPLIER])
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True, default='')
    address = serializers.CharField(required=False, allow_blank=True, default='')
    business_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Un utilisateur avec cette adresse e-mail existe deja.')
        return value

    def validate_password(self, value):
        from django.contrib.auth.password_validation import validate_password
        from django.core.exceptions import ValidationError as DjangoValidationError
        try:
            validate_password(value)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(list(exc.messages))
        return value

    def validate(self, attrs):
        if attrs['role'] == User.Role.SUPPLIER and not attrs.get('business_name', '').strip():
            raise serializers.ValidationError({'business_name': 'La raison commerciale est obligatoire pour un depot.'})
        return attrs


class PostRegistrationSerializer(serializers.Serializer):
    """Body of the post-registration hook, in the client's camelCase."""

    userId = serializers.UUIDField()
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255)
    role = serializers.ChoiceField(choices=User.Role.choices)
    businessName = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)


class UserSerializer(serializers.ModelSerializer):
    """Read serializer for admin user management."""

    registered_by_sales_rep_name = serializers.CharField(
        source='registered_by_sales_rep.name', read_only=True, default=None,
    )

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'phone', 'address', 'role', 'business_name',
            'is_approved', 'approval_status', 'approved_at', 'rejection_reason',
            'registered_by_sales_rep', 'registered_by_sales_rep_name',
            'is_active', 'date_joined',
        ]
        read_only_fields = fields


class RejectUserSerializer(serializers.Serializer):
    reason = serializers.CharField()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'reference', 'category', 'crate_type', 'unit_price', 'is_active']


class EstablishmentProductSerializer(serializers.ModelSerializer):
    """Read serializer for an establishment's own product configuration."""

    product_name = serializers.CharField(source='product.name', read_only=True)
    product_reference = serializers.CharField(source='product.reference', read_only=True)
    crate_type = serializers.CharField(source='product.crate_type', read_only=True)

    class Meta:
        model = EstablishmentProduct
        fields = [
            'id', 'product', 'product_name', 'product_reference', 'crate_type',
            'selling_price', 'min_stock_alert', 'is_active', 'updated_at',
        ]


class EstablishmentProductWriteSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.filter(is_active=True))
    selling_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    min_stock_alert = serializers.IntegerField(min_value=0, default=0)
    is_active = serializers.BooleanField(default=True)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'data', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class NotificationPreferencesSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationPreferences
        fields = [*NotificationPreferences.CHANNEL_FIELDS, *NotificationPreferences.TYPE_FIELDS]


class PushSubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PushSubscription
        fields = ['id', 'endpoint', 'p256dh_key', 'auth_key', 'device_name', 'last_used_at', 'created_at']
        read_only_fields = ['id', 'last_used_at', 'created_at']
        # The upsert in notifications.services handles duplicates.
        validators = []
