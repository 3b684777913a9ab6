import json

import pytest
from django.conf import settings
from django.core import mail
from django.test import Client


def _login_via_api(client, email: str, password: str):
    return client.post(
        "/api/v1/auth/token/",
        data=json.dumps({"email": email, "password": password}),
        content_type="application/json",
    )


@pytest.mark.django_db
def test_auth_csrf_endpoint_returns_token(client):
    response = client.get("/api/v1/auth/csrf/")

    assert response.status_code == 200
    assert response.json()["csrfToken"]


@pytest.mark.django_db
def test_login_sets_http_only_cookies_and_returns_profile(client, client_user):
    response = _login_via_api(client, client_user.email, "testpass123")

    assert response.status_code == 200
    payload = response.json()
    assert payload["user"]["email"] == client_user.email
    assert payload["user"]["role"] == "client"
    assert "access" not in payload

    assert response.cookies[settings.JWT_AUTH_COOKIE]["httponly"]
    assert response.cookies[settings.JWT_AUTH_REFRESH_COOKIE]["httponly"]


@pytest.mark.django_db
def test_wrong_password_is_rejected(client, client_user):
    assert _login_via_api(client, client_user.email, "mauvais").status_code == 401


@pytest.mark.django_db
def test_cookie_authenticated_post_requires_csrf_header(client_user):
    strict_client = Client(enforce_csrf_checks=True)
    assert _login_via_api(strict_client, client_user.email, "testpass123").status_code == 200

    assert strict_client.post("/api/v1/auth/logout/").status_code == 403

    csrf_token = strict_client.get("/api/v1/auth/csrf/").json()["csrfToken"]
    response = strict_client.post("/api/v1/auth/logout/", HTTP_X_CSRFTOKEN=csrf_token)

    assert response.status_code == 204
    assert response.cookies[settings.JWT_AUTH_COOKIE].value == ""


@pytest.mark.django_db
def test_refresh_uses_refresh_cookie_when_body_missing(client, client_user):
    assert _login_via_api(client, client_user.email, "testpass123").status_code == 200

    response = client.post("/api/v1/auth/token/refresh/", data=json.dumps({}), content_type="application/json")

    assert response.status_code == 200
    assert settings.JWT_AUTH_COOKIE in response.cookies


@pytest.mark.django_db
def test_password_reset_does_not_reveal_unknown_emails(client, client_user):
    known = client.post(
        "/api/v1/auth/password/reset/", data=json.dumps({"email": client_user.email}),
        content_type="application/json",
    )
    unknown = client.post(
        "/api/v1/auth/password/reset/", data=json.dumps({"email": "inconnu@test.com"}),
        content_type="application/json",
    )

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(mail.outbox) == 1
    assert "reset-password?uid=" in mail.outbox[0].body
