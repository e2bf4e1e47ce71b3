"""Login, cookies, token refresh, RBAC and the documentation guard."""

import base64

from app.core.constants import RoleCode
from app.services import auth_service


def _login(client, email, password="secret123"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_login_sets_cookies_and_returns_token(client, db, recce_user):
    response = _login(client, "RECCE@example.com")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Login successful"
    assert body["user"]["email"] == "recce@example.com"
    assert body["user"]["roles"] == ["RECCE"]
    assert body["sessionId"].startswith(f"session_{recce_user.id}_")
    assert auth_service.verify_token(body["token"], "access") is not None

    cookies = response.headers.get_list("set-cookie")
    access = next(c for c in cookies if c.startswith("access_token="))
    session = next(c for c in cookies if c.startswith("session_id="))
    assert "HttpOnly" in access
    assert "Max-Age=900" in access
    assert any(c.startswith("refresh_token=") and "HttpOnly" in c for c in cookies)
    assert "HttpOnly" not in session

    db.refresh(recce_user)
    assert recce_user.login_count == 1
    assert recce_user.last_login is not None


def test_login_failures_share_one_message(client, make_user):
    make_user("Old", "old@example.com", RoleCode.RECCE, is_active=False)

    for email, password in [
        ("nobody@example.com", "secret123"),
        ("old@example.com", "wrong-password"),
        ("old@example.com", "secret123"),
    ]:
        response = _login(client, email, password)
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials"}


def test_inactive_super_admin_can_still_log_in(client, make_user):
    make_user("Root", "root@example.com", RoleCode.SUPER_ADMIN, is_active=False)
    assert _login(client, "root@example.com").status_code == 200


def test_access_cookie_authenticates(client, recce_user):
    _login(client, "recce@example.com")
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 200
    assert response.json()["name"] == "Ravi Recce"


def test_missing_or_bad_token(client):
    assert client.get("/api/v1/auth/me").json() == {"detail": "Not authenticated"}
    response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid or expired token"}


def test_refresh_token_is_not_an_access_token(client, recce_user):
    refresh = auth_service.create_refresh_token(recce_user.id)
    response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {refresh}"})
    assert response.status_code == 401


def test_refresh_from_cookie_and_body(client, recce_user):
    _login(client, "recce@example.com")
    response = client.post("/api/v1/auth/refresh")
    assert response.status_code == 200
    assert response.json()["message"] == "Token refreshed"

    client.cookies.clear()
    assert client.post("/api/v1/auth/refresh").json() == {"detail": "Refresh token missing"}

    token = auth_service.create_refresh_token(recce_user.id)
    response = client.post("/api/v1/auth/refresh", json={"refreshToken": token})
    assert response.status_code == 200

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": "garbage"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid refresh token"}


def test_refresh_refused_for_deactivated_user(client, db, recce_user):
    token = auth_service.create_refresh_token(recce_user.id)
    recce_user.is_active = False
    db.commit()

    response = client.post("/api/v1/auth/refresh", json={"refreshToken": token})
    assert response.status_code == 403


def test_logout_clears_cookies(client, recce_user):
    _login(client, "recce@example.com")
    response = client.post("/api/v1/auth/logout")
    assert response.json() == {"message": "Logout successful"}
    cleared = response.headers.get_list("set-cookie")
    assert {c.split("=", 1)[0] for c in cleared} == {"access_token", "refresh_token", "session_id"}


def test_permission_checks(client, login, recce_user, admin):
    recce_headers = login(recce_user)
    admin_headers = login(admin)

    assert client.get("/api/v1/stores", headers=recce_headers).status_code == 200
    response = client.post("/api/v1/stores", json={"dealerCode": "X"}, headers=recce_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have permission to create stores"

    assert client.get("/api/v1/users", headers=recce_headers).status_code == 403
    assert client.get("/api/v1/users", headers=admin_headers).status_code == 200

    # error logs are SUPER_ADMIN only
    assert client.get("/api/v1/error-logs", headers=admin_headers).status_code == 403


def test_super_admin_bypasses_role_permissions(client, login, super_admin):
    headers = login(super_admin)
    assert client.get("/api/v1/error-logs", headers=headers).status_code == 200
    assert client.get("/api/v1/roles", headers=headers).status_code == 200


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "OK"
    assert client.get("/api/v1/health").json()["status"] == "OK"


def test_api_docs_require_basic_auth(client):
    assert client.get("/docs").status_code == 404
    assert client.get("/api-docs").status_code == 401

    wrong = base64.b64encode(b"docs:nope").decode()
    assert client.get("/api-docs", headers={"Authorization": f"Basic {wrong}"}).status_code == 401

    good = base64.b64encode(b"docs:docs-password").decode()
    response = client.get("/api-docs/openapi.json", headers={"Authorization": f"Basic {good}"})
    assert response.status_code == 200
    assert "/api/v1/stores" in response.json()["paths"]
    assert client.get("/api-docs", headers={"Authorization": f"Basic {good}"}).status_code == 200
