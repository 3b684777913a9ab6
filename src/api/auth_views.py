"""Authentication API views with HttpOnly JWT cookies."""

import logging
from datetime import timedelta
from smtplib import SMTPException

from django.apps import apps
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ImproperlyConfigured
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.middleware import csrf
from django.views.decorators.csrf import ensure_csrf_cookie
from django.utils.decorators import method_decorator
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from rest_framework import permissions, status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from api.v1.serializers import (
    CustomTokenObtainPairSerializer,
    MeSerializer,
    PostRegistrationSerializer,
    RegisterSerializer,
)
from core.email import send_branded_email

logger = logging.getLogger("ravito")


class SafeScopedRateThrottle(ScopedRateThrottle):
    """Scoped throttle that falls back to a strict default if scope config is missing."""

    def get_rate(self):
        try:
            return super().get_rate()
        except ImproperlyConfigured:
            logger.warning("Throttle scope '%s' not configured, applying strict default 5/min.", self.scope)
            return "5/min"


def _cookie_max_age(delta: timedelta) -> int:
    return int(delta.total_seconds())


def _set_auth_cookies(response: Response, *, access: str, refresh: str | None) -> None:
    secure = getattr(settings, "JWT_AUTH_COOKIE_SECURE", not settings.DEBUG)
    samesite = getattr(settings, "JWT_AUTH_COOKIE_SAMESITE", "Lax")
    path = getattr(settings, "JWT_AUTH_COOKIE_PATH", "/")
    domain = getattr(settings, "JWT_AUTH_COOKIE_DOMAIN", None)
    access_cookie = getattr(settings, "JWT_AUTH_COOKIE", "access_token")
    refresh_cookie = getattr(settings, "JWT_AUTH_REFRESH_COOKIE", "refresh_token")

    response.set_cookie(
        key=access_cookie,
        value=access,
        max_age=_cookie_max_age(settings.SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"]),
        httponly=True,
        secure=secure,
        samesite=samesite,
        path=path,
        domain=domain,
    )
    if refresh:
        response.set_cookie(
            key=refresh_cookie,
            value=refresh,
            max_age=_cookie_max_age(settings.SIMPLE_JWT["REFRESH_TOKEN_LIFETIME"]),
            httponly=True,
            secure=secure,
            samesite=samesite,
            path=path,
            domain=domain,
        )


def _clear_auth_cookies(response: Response) -> None:
    path = getattr(settings, "JWT_AUTH_COOKIE_PATH", "/")
    domain = getattr(settings, "JWT_AUTH_COOKIE_DOMAIN", None)
    access_cookie = getattr(settings, "JWT_AUTH_COOKIE", "access_token")
    refresh_cookie = getattr(settings, "JWT_AUTH_REFRESH_COOKIE", "refresh_token")
    response.delete_cookie(access_cookie, path=path, domain=domain)
    response.delete_cookie(refresh_cookie, path=path, domain=domain)


class CookieTokenObtainPairView(TokenObtainPairView):
    """Issue JWT and set HttpOnly auth cookies."""

    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "auth_burst"
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        validated = serializer.validated_data

        access = validated["access"]
        refresh = validated["refresh"]
        user = validated["user"]

        response_data = {"user": user}
        if getattr(settings, "JWT_RETURN_TOKENS_IN_BODY", False):
            response_data.update({"access": access, "refresh": refresh})

        response = Response(response_data, status=status.HTTP_200_OK)
        _set_auth_cookies(response, access=access, refresh=refresh)
        return response


class CookieTokenRefreshView(TokenRefreshView):
    """Refresh access token using body token or HttpOnly refresh cookie."""

    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "auth_sustained"
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        refresh_cookie = getattr(settings, "JWT_AUTH_REFRESH_COOKIE", "refresh_token")
        payload = request.data.copy()
        if not payload.get("refresh"):
            cookie_token = request.COOKIES.get(refresh_cookie)
            if cookie_token:
                payload["refresh"] = cookie_token

        serializer = self.get_serializer(data=payload)
        serializer.is_valid(raise_exception=True)
        validated = serializer.validated_data

        access = validated["access"]
        refresh = validated.get("refresh", payload.get("refresh"))
        response_data = {"detail": "Token refreshed."}
        if getattr(settings, "JWT_RETURN_TOKENS_IN_BODY", False):
            response_data.update({"access": access, "refresh": refresh})

        response = Response(response_data, status=status.HTTP_200_OK)
        _set_auth_cookies(response, access=access, refresh=refresh)
        return response


class LogoutAPIView(APIView):
    """Blacklist the refresh token, clear auth cookies and drop the cached session."""

    permission_classes = [permissions.AllowAny]

    def post(self, request):
        refresh_cookie = getattr(settings, "JWT_AUTH_REFRESH_COOKIE", "refresh_token")
        raw_refresh = request.data.get("refresh") or request.COOKIES.get(refresh_cookie)
        if raw_refresh:
            try:
                RefreshToken(raw_refresh).blacklist()
            except TokenError:
                logger.info("Logout with an invalid or already blacklisted refresh token.")

        if request.user and request.user.is_authenticated:
            apps.get_app_config("accounts").session_provider.forget(request.user.pk)

        response = Response(status=status.HTTP_204_NO_CONTENT)
        _clear_auth_cookies(response)
        return response


class RegisterAPIView(APIView):
    """Create an account, then provision its profile and organization.

    New CHR and depot accounts start in ``pending`` approval; they can log
    in but stay restricted until an admin approves them.
    """

    permission_classes = [permissions.AllowAny]
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "auth_burst"

    def post(self, request):
        from accounts.services import provision_registration

        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        User = get_user_model()
        with transaction.atomic():
            user = User.objects.create_user(
                email=data["email"],
                password=data["password"],
                name=data["name"].strip(),
                role=data["role"],
                phone=data["phone"],
                address=data["address"],
                business_name=data["business_name"],
            )
            result = provision_registration(
                user_id=user.pk,
                email=user.email,
                name=user.name,
                role=user.role,
                business_name=user.business_name,
            )

        logger.info("Account %s registered with role %s", user.pk, user.role)
        return Response({"user": MeSerializer(user).data, **result}, status=status.HTTP_201_CREATED)


class PostRegistrationAPIView(APIView):
    """Idempotent post-signup hook: make sure profile and organization exist.

    Users may only provision themselves; admins may provision anyone.
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        from accounts.services import provision_registration

        serializer = PostRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        is_admin = request.user.role == "admin" or request.user.is_superuser
        if data["userId"] != request.user.pk and not is_admin:
            return Response(
                {"detail": "Vous ne pouvez initialiser que votre propre compte."},
                status=status.HTTP_403_FORBIDDEN,
            )

        try:
            result = provision_registration(
                user_id=data["userId"],
                email=data["email"],
                name=data["name"],
                role=data["role"],
                business_name=data.get("businessName"),
            )
        except ValueError as e:
            return Response({"success": False, "detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(result, status=status.HTTP_200_OK)


@method_decorator(ensure_csrf_cookie, name="dispatch")
class CSRFTokenAPIView(APIView):
    """Return a CSRF token and ensure CSRF cookie is set."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        token = csrf.get_token(request)
        return Response({"csrfToken": token}, status=status.HTTP_200_OK)


class PasswordResetRequestAPIView(APIView):
    """Request a password reset email for an account (idempotent)."""

    permission_classes = [permissions.AllowAny]
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "auth_burst"

    def post(self, request):
        email = (request.data.get("email") or "").strip()
        if not email:
            raise ValidationError({"email": "Ce champ est requis."})

        User = get_user_model()
        user = User.objects.filter(email__iexact=email, is_active=True).first()
        reset_url = None

        if user:
            uid = urlsafe_base64_encode(force_bytes(user.pk))
            token = default_token_generator.make_token(user)

            # Never trust request Origin headers for security-sensitive URLs.
            base = (getattr(settings, "FRONTEND_URL", "") or "http://localhost:3000").rstrip("/")
            reset_url = f"{base}/reset-password?uid={uid}&token={token}"

            greeting = user.get_full_name() or user.email
            try:
                send_branded_email(
                    subject="Reinitialisation de votre mot de passe",
                    template_name="accounts/email/password_reset",
                    context={"greeting": greeting, "reset_url": reset_url},
                    recipient_list=[user.email],
                    fail_silently=False,
                )
            except (SMTPException, OSError) as exc:
                # Do not reveal whether the email exists.
                logger.error("Password reset email failed for %s: %s", email, exc)

        payload = {"detail": "Si un compte correspond a cet email, un lien de reinitialisation a ete envoye."}
        if reset_url:
            logger.debug("Password reset URL generated for %s", email)
        return Response(payload, status=status.HTTP_200_OK)


class PasswordResetConfirmAPIView(APIView):
    """Confirm password reset using uid/token and set a new password."""

    permission_classes = [permissions.AllowAny]
    throttle_classes = [SafeScopedRateThrottle]
    throttle_scope = "auth_burst"

    def post(self, request):
        uid = (request.data.get("uid") or "").strip()
        token = (request.data.get("token") or "").strip()
        pw1 = request.data.get("new_password1") or ""
        pw2 = request.data.get("new_password2") or ""

        if not uid:
            raise ValidationError({"uid": "Ce champ est requis."})
        if not token:
            raise ValidationError({"token": "Ce champ est requis."})
        if not pw1 or not pw2:
            raise ValidationError({"new_password1": "Mot de passe requis.", "new_password2": "Mot de passe requis."})
        if pw1 != pw2:
            raise ValidationError({"new_password2": "Les mots de passe ne correspondent pas."})

        User = get_user_model()
        try:
            user_id = force_str(urlsafe_base64_decode(uid))
            user = User.objects.filter(pk=user_id, is_active=True).first()
        except (ValueError, TypeError, OverflowError, DjangoValidationError):
            user = None

        if not user or not default_token_generator.check_token(user, token):
            raise ValidationError({"detail": "Lien invalide ou expire."})

        try:
            validate_password(pw1, user=user)
        except DjangoValidationError as exc:
            raise ValidationError({"new_password1": list(exc.messages)})

        user.set_password(pw1)
        user.save(update_fields=["password"])
        return Response({"detail": "Mot de passe mis a jour. Vous pouvez vous connecter."}, status=status.HTTP_200_OK)
