"""Authentication backends for the RAVITO API."""

from django.conf import settings
from django.middleware.csrf import CsrfViewMiddleware
from rest_framework import exceptions
from rest_framework.request import Request
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError


class CookieJWTAuthentication(JWTAuthentication):
    """JWT auth reading the ``Authorization`` header first, then the access cookie.

    Mobile and offline-capable clients send the bearer header; the web app
    relies on the HttpOnly cookie set at login, which requires a CSRF token.
    A stale cookie leaves the request anonymous rather than failing it, so
    the refresh endpoint stays reachable.
    """

    def _enforce_csrf(self, request: Request) -> None:
        django_request = request._request
        check = CsrfViewMiddleware(lambda req: None)
        check.process_request(django_request)
        reason = check.process_view(django_request, None, (), {})
        if reason:
            raise exceptions.PermissionDenied(f"Echec CSRF : {reason}")

    def _from_header(self, request: Request):
        header = self.get_header(request)
        if header is None:
            return None
        return self.get_raw_token(header)

    def authenticate(self, request: Request):
        raw_token = self._from_header(request)
        if raw_token is not None:
            # Invalid bearer tokens are a hard 401.
            validated_token = self.get_validated_token(raw_token)
            return self.get_user(validated_token), validated_token

        raw_cookie = request.COOKIES.get(getattr(settings, "JWT_AUTH_COOKIE", "access_token"))
        if not raw_cookie:
            return None
        try:
            validated_token = self.get_validated_token(raw_cookie)
        except (InvalidToken, TokenError):
            return None

        self._enforce_csrf(request)
        user = self.get_user(validated_token)
        if not user.is_active:
            raise exceptions.AuthenticationFailed("Compte desactive.")
        return user, validated_token
