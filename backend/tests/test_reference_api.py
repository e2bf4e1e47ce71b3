"""Users, roles, clients, elements, analytics and error logs."""

from app.core.constants import USER_UPLOAD_COLUMNS
from app.models.error_log import ErrorLog
from app.models.store import StoreStatus
from app.services.client_service import generate_client_code


def test_generate_client_code():
    assert generate_client_code("Acme Paints", "Delhi", 1700000123456) == "ACMDEL123456"
    assert generate_client_code("3M", "N", 42) == "XMXNXX000042"


def test_user_crud(client, login, admin):
    headers = login(admin)

    response = client.post("/api/v1/users", headers=headers, json={
        "name": "Field Person", "email": "Field@Example.com", "password": "secret123", "roles": ["RECCE"],
    })
    assert response.status_code == 201
    user = response.json()
    assert user["email"] == "field@example.com"
    assert [r["code"] for r in user["roles"]] == ["RECCE"]

    duplicate = client.post("/api/v1/users", headers=headers, json={
        "name": "Again", "email": "field@example.com", "password": "secret123",
    })
    assert duplicate.status_code == 400

    listed = client.get("/api/v1/users", headers=headers, params={"search": "field"}).json()
    assert [u["email"] for u in listed["users"]] == ["field@example.com"]

    by_role = client.get("/api/v1/users/role/RECCE", headers=headers).json()
    assert [u["email"] for u in by_role] == ["field@example.com"]

    response = client.put(f"/api/v1/users/{user['id']}", headers=headers, json={"isActive": False})
    assert response.json()["isActive"] is False

    assert client.delete(f"/api/v1/users/{user['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/v1/users/{user['id']}", headers=headers).status_code == 404


def test_user_upload(client, login, admin, xlsx_bytes):
    headers = login(admin)
    sheet = xlsx_bytes(USER_UPLOAD_COLUMNS, [
        ["Ravi", "ravi@example.com", "secret123", "9999999999", "RECCE, INSTALLATION"],
        ["Ravi Again", "RAVI@example.com", "secret123", "", "RECCE"],
        ["Asha", "admin@example.com", "secret123", "", "ADMIN"],
        ["Nobody", "nobody@example.com", "secret123", "", "UNKNOWN"],
        ["Short", "short@example.com", "123", "", "RECCE"],
    ])

    response = client.post(
        "/api/v1/users/upload",
        headers=headers,
        files=[("files", ("users.xlsx", sheet, "application/octet-stream"))],
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User upload completed"
    assert (body["totalProcessed"], body["successCount"], body["errorCount"]) == (5, 1, 4)
    errors = {e["row"]: e["error"] for e in body["errors"]}
    assert errors[3] == "Duplicate in File: ravi@example.com"
    assert errors[4] == "Duplicate in DB: admin@example.com"
    assert errors[6] == "Password must be at least 6 characters"


def test_roles(client, login, admin, super_admin):
    headers = login(admin)

    roles = client.get("/api/v1/roles", headers=headers).json()
    assert {r["code"] for r in roles} >= {"SUPER_ADMIN", "ADMIN", "RECCE", "INSTALLATION"}

    response = client.post("/api/v1/roles", headers=headers, json={
        "name": "Auditor", "code": "auditor", "permissions": {"stores": {"view": True}},
    })
    assert response.status_code == 201
    role = response.json()
    assert role["code"] == "AUDITOR"
    assert role["permissions"]["stores"] == {"view": True, "create": False, "edit": False, "delete": False}

    bad = client.post("/api/v1/roles", headers=headers, json={
        "name": "Bad", "code": "BAD", "permissions": {"spaceships": {"view": True}},
    })
    assert bad.status_code == 422

    # ADMIN may not delete roles; SUPER_ADMIN may
    assert client.delete(f"/api/v1/roles/{role['id']}", headers=headers).status_code == 403
    assert client.delete(f"/api/v1/roles/{role['id']}", headers=login(super_admin)).status_code == 200


def test_role_in_use_cannot_be_deleted(client, login, super_admin, recce_user):
    headers = login(super_admin)
    recce_role = next(r for r in client.get("/api/v1/roles", headers=headers).json() if r["code"] == "RECCE")
    response = client.delete(f"/api/v1/roles/{recce_role['id']}", headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Role is assigned to users and cannot be deleted"


def test_clients_and_elements(client, login, admin):
    headers = login(admin)

    response = client.post("/api/v1/elements", headers=headers, json={"name": "Flex", "standardRate": 55})
    assert response.status_code == 201
    element = response.json()
    duplicate = client.post("/api/v1/elements", headers=headers, json={"name": "FLEX"})
    assert duplicate.status_code == 400
    client.post("/api/v1/elements", headers=headers, json={"name": "Vinyl", "isActive": False})

    active = client.get("/api/v1/elements/all", headers=headers).json()
    assert [e["name"] for e in active] == ["Flex"]

    response = client.post("/api/v1/clients", headers=headers, json={
        "clientName": "Acme Paints",
        "branchName": "Delhi",
        "amount": 1000,
        "elements": [{"elementId": element["id"], "elementName": "Flex", "customRate": 50, "quantity": 2}],
    })
    assert response.status_code == 201
    created = response.json()
    assert created["clientCode"].startswith("ACMDEL")
    assert len(created["clientCode"]) == 12
    assert created["elements"][0]["customRate"] == 50

    listed = client.get("/api/v1/clients", headers=headers, params={"search": "acme"}).json()
    assert [c["clientName"] for c in listed["clients"]] == ["Acme Paints"]

    export = client.get("/api/v1/clients/export", headers=headers)
    assert export.content.startswith(b"PK")


def test_dashboard_for_admin_and_field_user(client, login, admin, recce_user, make_store):
    make_store("d1", city="Pune")
    make_store("d2", city="Pune", recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)
    make_store("d3", recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_APPROVED)

    dashboard = client.get("/api/v1/analytics/dashboard", headers=login(admin)).json()
    assert dashboard["overview"]["totalStores"] == 3
    assert dashboard["recce"]["assigned"] == 1
    assert dashboard["recce"]["approved"] == 1
    assert dashboard["cityDistribution"][0] == {"city": "Pune", "count": 2}

    mine = client.get("/api/v1/analytics/dashboard", headers=login(recce_user)).json()
    assert mine["role"] == "RECCE"
    assert mine["totalAssigned"] == 2


def test_error_logs(client, db, login, super_admin):
    db.add(ErrorLog(
        error_type="ValueError",
        message="boom",
        severity="error",
        status_code="500",
        resolved=False,
    ))
    db.commit()
    headers = login(super_admin)

    body = client.get("/api/v1/error-logs", headers=headers).json()
    assert body["total"] == 1
    error_id = body["errors"][0]["id"]

    response = client.post(f"/api/v1/error-logs/{error_id}/resolve", headers=headers, json={"resolutionNotes": "fixed"})
    assert response.status_code == 200
    assert response.json()["resolved"] is True

    stats = client.get("/api/v1/error-logs/stats", headers=headers).json()
    assert stats["totalErrors"] == 1

    assert client.delete(f"/api/v1/error-logs/{error_id}", headers=headers).status_code == 204


def test_config_status_reports_local_backend(client, login, admin):
    body = client.get("/api/v1/config/status", headers=login(admin)).json()
    assert body["activeBackend"] == "local"
    assert body["storage"]["storageType"] == "local"
    assert body["maxUploadSize"] == 10 * 1024 * 1024
