"""Store endpoints: CRUD, visibility, assignment, the recce/installation flow and reports."""

import json
import uuid
from datetime import date
from io import BytesIO

import pytest
from openpyxl import load_workbook

from app.api.v1.deps import get_storage
from app.core.config import settings
from app.core.constants import ASSIGNMENT_COLUMNS
from app.core.security import hash_password
from app.main import app
from app.models.client import Client, Element
from app.models.store import StoreStatus
from app.models.user import Role, User
from app.services.storage import StorageConfig, StorageService


PNG = "image/png"


def _recce_form(png_bytes, **data):
    form = {
        "notes": "Board faded",
        "reccePhotosData": json.dumps([
            {"width": 10, "height": 8, "unit": "ft", "elements": ["Flex", {"elementName": "Vinyl", "quantity": 2}]},
            {"width": 4, "height": 3},
        ]),
    }
    form.update(data)
    files = [
        ("initialPhoto0", ("front.png", png_bytes, PNG)),
        ("reccePhoto0", ("board.png", png_bytes, PNG)),
        ("reccePhoto1", ("side.png", png_bytes, PNG)),
    ]
    return form, files


def test_create_update_delete_store(client, login, admin):
    headers = login(admin)

    response = client.post("/api/v1/stores", headers=headers, json={
        "dealerCode": " dlr001 ", "storeName": "Sharma Motors", "city": "Mumbai", "district": "Mumbai Suburban",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Store created successfully"
    store = body["store"]
    assert store["dealerCode"] == "dlr001"
    assert store["currentStatus"] == "MANUALLY_ADDED"
    assert store["location"]["city"] == "Mumbai"

    duplicate = client.post("/api/v1/stores", headers=headers, json={"dealerCode": "dlr001"})
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "A store with this Dealer Code already exists"

    missing = client.post("/api/v1/stores", headers=headers, json={"storeName": "No code"})
    assert missing.status_code == 400

    # workflow fields are not editable through PUT
    response = client.put(f"/api/v1/stores/{store['id']}", headers=headers, json={
        "storeName": "Sharma Motors Ltd", "currentStatus": "COMPLETED",
    })
    assert response.status_code == 200
    assert response.json()["store"]["storeName"] == "Sharma Motors Ltd"
    assert response.json()["store"]["currentStatus"] == "MANUALLY_ADDED"

    response = client.delete(f"/api/v1/stores/{store['id']}", headers=headers)
    assert response.json() == {"message": "Store deleted successfully"}
    assert client.get(f"/api/v1/stores/{store['id']}", headers=headers).status_code == 404


def test_list_filters_and_pagination(client, login, admin, make_store):
    make_store("a1", city="Pune", district="Haveli", store_name="Alpha")
    make_store("a2", city="Mumbai", store_name="Beta", current_status=StoreStatus.RECCE_ASSIGNED)
    make_store("a3", city="Mumbai", store_name="Gamma", current_status=StoreStatus.RECCE_SUBMITTED)
    headers = login(admin)

    body = client.get("/api/v1/stores", headers=headers, params={"limit": 2}).json()
    assert body["pagination"] == {"total": 3, "pages": 2, "page": 1, "limit": 2}
    assert len(body["stores"]) == 2

    body = client.get("/api/v1/stores", headers=headers, params={"status": "RECCE_ASSIGNED,RECCE_SUBMITTED"}).json()
    assert {s["dealerCode"] for s in body["stores"]} == {"a2", "a3"}

    body = client.get("/api/v1/stores", headers=headers, params={"status": "ALL", "search": "gAm"}).json()
    assert [s["dealerCode"] for s in body["stores"]] == ["a3"]

    body = client.get("/api/v1/stores", headers=headers, params={"city": "pune"}).json()
    assert [s["dealerCode"] for s in body["stores"]] == ["a1"]

    assert client.get("/api/v1/stores", headers=headers, params={"status": "BOGUS"}).status_code == 400


def test_field_users_only_see_their_stores(client, login, admin, recce_user, make_store):
    mine = make_store("m1", recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)
    other = make_store("o1")
    headers = login(recce_user)

    body = client.get("/api/v1/stores", headers=headers).json()
    assert [s["dealerCode"] for s in body["stores"]] == ["m1"]
    assert client.get(f"/api/v1/stores/{mine.id}", headers=headers).status_code == 200
    assert client.get(f"/api/v1/stores/{other.id}", headers=headers).status_code == 404

    response = client.post(f"/api/v1/stores/{other.id}/recce", headers=headers, data={"notes": "x"})
    assert response.status_code == 404


def test_assign_and_unassign_endpoints(client, login, admin, recce_user, make_store):
    first = make_store("s1")
    second = make_store("s2")
    headers = login(admin)

    response = client.post("/api/v1/stores/assign", headers=headers, json={
        "storeIds": [str(first.id), str(second.id)], "userId": str(recce_user.id), "stage": "RECCE",
    })
    assert response.status_code == 200
    assert response.json()["matchedCount"] == 2
    assert response.json()["modifiedCount"] == 2

    store = client.get(f"/api/v1/stores/{first.id}", headers=headers).json()
    assert store["currentStatus"] == "RECCE_ASSIGNED"
    assert store["workflow"]["recceAssignedTo"]["name"] == "Ravi Recce"
    assert store["workflow"]["recceAssignedBy"]["name"] == "Asha Admin"

    response = client.post("/api/v1/stores/unassign", headers=headers, json={
        "storeIds": [str(first.id)], "stage": "RECCE",
    })
    assert response.json()["modifiedCount"] == 1
    store = client.get(f"/api/v1/stores/{first.id}", headers=headers).json()
    assert store["currentStatus"] == "UPLOADED"
    assert store["workflow"]["recceAssignedTo"] is None

    errors = [
        ({"storeIds": [], "userId": str(recce_user.id), "stage": "RECCE"}, 400, "No stores selected"),
        ({"storeIds": [str(first.id)], "stage": "RECCE"}, 400, "No user selected"),
        ({"storeIds": [str(first.id)], "userId": str(admin.id), "stage": "BOTH"}, 400, "Invalid assignment stage"),
        ({"storeIds": [str(first.id)], "userId": "00000000-0000-0000-0000-000000000000", "stage": "RECCE"},
         404, "User not found"),
    ]
    for payload, status_code, detail in errors:
        response = client.post("/api/v1/stores/assign", headers=headers, json=payload)
        assert response.status_code == status_code
        assert response.json()["detail"] == detail


def test_assignment_needs_edit_permission(client, login, recce_user, make_store):
    store = make_store()
    response = client.post("/api/v1/stores/assign", headers=login(recce_user), json={
        "storeIds": [str(store.id)], "userId": str(recce_user.id), "stage": "RECCE",
    })
    assert response.status_code == 403


def test_full_workflow(client, login, admin, recce_user, installer, make_store, storage, png_bytes):
    store = make_store("dlr001")
    admin_headers = login(admin)
    recce_headers = login(recce_user)
    installer_headers = login(installer)

    client.post("/api/v1/stores/assign", headers=admin_headers, json={
        "storeIds": [str(store.id)], "userId": str(recce_user.id), "stage": "RECCE",
    })

    # recce submission
    form, files = _recce_form(png_bytes)
    response = client.post(f"/api/v1/stores/{store.id}/recce", headers=recce_headers, data=form, files=files)
    assert response.status_code == 200, response.text
    assert response.json()["message"] == "Recce submitted successfully"
    submitted = response.json()["store"]
    assert submitted["currentStatus"] == "RECCE_SUBMITTED"
    assert submitted["storeId"] == "MUMMUMDLR001"
    recce = submitted["recce"]
    assert recce["submittedBy"] == "Ravi Recce"
    assert recce["initialPhotos"][0].startswith("uploads/initial/MUMMUMDLR001/")
    assert recce["reccePhotos"][0]["photo"].startswith("uploads/recce/MUMMUMDLR001/")
    assert recce["reccePhotos"][0]["elements"] == [
        {"elementId": None, "elementName": "Flex", "quantity": 1},
        {"elementId": None, "elementName": "Vinyl", "quantity": 2},
    ]
    assert recce["reccePhotos"][1]["unit"] == "ft"
    assert storage.read_local(recce["reccePhotos"][1]["photo"]) == png_bytes

    # field users cannot review
    review_url = f"/api/v1/stores/{store.id}/recce/review"
    assert client.post(review_url, headers=recce_headers, json={"status": "APPROVED"}).status_code == 403

    # reject, with the admin remark prefixed to the notes
    response = client.post(review_url, headers=admin_headers, json={"status": "REJECTED", "remarks": "redo photo"})
    assert response.status_code == 200
    assert response.json()["message"] == "Recce rejected successfully"
    notes = response.json()["store"]["recce"]["notes"]
    assert notes == f"[Admin]: redo photo | {date.today().strftime('%d/%m/%Y')}\nBoard faded"

    # a second review of the same submission is refused
    response = client.post(review_url, headers=admin_headers, json={"status": "APPROVED"})
    assert response.status_code == 400

    notifications = client.get("/api/v1/notifications", headers=recce_headers).json()
    assert any(n["type"] == "RECCE_REJECTED" for n in notifications["notifications"])

    # resubmit and approve
    form, files = _recce_form(png_bytes, notes="Fixed")
    client.post(f"/api/v1/stores/{store.id}/recce", headers=recce_headers, data=form, files=files)
    admin_notifications = client.get("/api/v1/notifications", headers=admin_headers).json()
    assert admin_notifications["unreadCount"] >= 1
    assert admin_notifications["notifications"][0]["type"] == "RECCE_REVIEW"
    response = client.post(review_url, headers=admin_headers, json={"status": "APPROVED"})
    assert response.json()["store"]["currentStatus"] == "RECCE_APPROVED"

    # installation
    client.post("/api/v1/stores/assign", headers=admin_headers, json={
        "storeIds": [str(store.id)], "userId": str(installer.id), "stage": "INSTALLATION",
    })
    response = client.post(
        f"/api/v1/stores/{store.id}/installation",
        headers=installer_headers,
        data={"installationPhotosData": json.dumps([{"reccePhotoIndex": 1}])},
        files=[("installationPhoto0", ("after.png", png_bytes, PNG))],
    )
    assert response.status_code == 200, response.text
    installed = response.json()["store"]
    assert installed["currentStatus"] == "INSTALLATION_SUBMITTED"
    assert installed["installation"]["submittedBy"] == "Imran Installer"
    assert installed["installation"]["photos"][0]["reccePhotoIndex"] == 1
    assert installed["installation"]["photos"][0]["photo"].startswith("uploads/installation/MUMMUMDLR001/")

    # reports
    for kind in ("recce", "installation"):
        response = client.get(f"/api/v1/stores/{store.id}/ppt/{kind}", headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-disposition"] == f'attachment; filename="{kind}_MUMMUMDLR001.pptx"'
        assert response.content.startswith(b"PK")

        response = client.get(f"/api/v1/stores/{store.id}/pdf/{kind}", headers=admin_headers)
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    response = client.post("/api/v1/stores/pdf/bulk", headers=admin_headers, json={
        "storeIds": [str(store.id)], "type": "installation",
    })
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"

    dashboard = client.get("/api/v1/analytics/dashboard", headers=admin_headers).json()
    assert dashboard["installation"]["submitted"] == 1


def test_recce_rejects_bad_uploads(client, login, recce_user, make_store, png_bytes):
    store = make_store(recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)
    headers = login(recce_user)
    url = f"/api/v1/stores/{store.id}/recce"

    response = client.post(url, headers=headers, data={"notes": "x"},
                           files=[("reccePhoto0", ("doc.pdf", b"%PDF-1.4", "application/pdf"))])
    assert response.status_code == 400
    assert "Only JPEG, PNG and WEBP" in response.json()["detail"]

    response = client.post(url, headers=headers, data={"reccePhotosData": "{not json"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid JSON in reccePhotosData"


def test_oversized_image_is_rejected(client, login, recce_user, make_store, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 10)
    store = make_store(recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)

    response = client.post(
        f"/api/v1/stores/{store.id}/recce",
        headers=login(recce_user),
        files=[("initialPhoto0", ("big.jpg", b"x" * 11, "image/jpeg"))],
    )
    assert response.status_code == 413


def test_recce_without_city_cannot_get_store_id(client, login, recce_user, make_store, png_bytes):
    store = make_store(city=None, recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)
    form, files = _recce_form(png_bytes)

    response = client.post(f"/api/v1/stores/{store.id}/recce", headers=login(recce_user), data=form, files=files)

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot generate Store ID. Missing city or district information."


def test_legacy_single_measurement(client, login, recce_user, make_store, png_bytes):
    store = make_store(recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)

    response = client.post(
        f"/api/v1/stores/{store.id}/recce",
        headers=login(recce_user),
        data={"width": "12", "height": "6"},
        files=[("reccePhoto0", ("board.png", png_bytes, PNG))],
    )

    photos = response.json()["store"]["recce"]["reccePhotos"]
    assert len(photos) == 1
    assert (photos[0]["width"], photos[0]["height"], photos[0]["unit"]) == (12, 6, "ft")


def test_installation_requires_photos(client, login, installer, make_store):
    store = make_store(
        installation_assigned_to=installer.id,
        current_status=StoreStatus.INSTALLATION_ASSIGNED,
        recce_photos=[{"photo": "uploads/recce/x/a.png"}],
    )
    response = client.post(f"/api/v1/stores/{store.id}/installation", headers=login(installer), data={})
    assert response.status_code == 400
    assert response.json()["detail"] == "At least one installation photo is required"


def test_report_errors(client, login, admin, make_store):
    store = make_store()
    headers = login(admin)

    response = client.get(f"/api/v1/stores/{store.id}/ppt/recce", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "No recce data found for this store"
    response = client.get(f"/api/v1/stores/{store.id}/pdf/installation", headers=headers)
    assert response.json()["detail"] == "No installation data found for this store"

    bulk = [
        ({"storeIds": [], "type": "recce"}, 400, "No stores selected"),
        ({"storeIds": [str(store.id)], "type": "survey"}, 400, "Invalid report type. Use recce or installation."),
        ({"storeIds": [str(store.id)], "type": "recce"}, 404, "No stores with recce data found"),
    ]
    for payload, status_code, detail in bulk:
        response = client.post("/api/v1/stores/ppt/bulk", headers=headers, json=payload)
        assert response.status_code == status_code
        assert response.json()["detail"] == detail


def test_exports(client, login, admin, recce_user, make_store):
    make_store("e1", recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)
    make_store("e2")

    for path in ("/api/v1/stores/export", "/api/v1/stores/export/recce", "/api/v1/stores/template"):
        response = client.get(path, headers=login(admin))
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert response.content.startswith(b"PK")


def test_bulk_assign_from_sheet(client, login, admin, recce_user, installer, make_store, xlsx_bytes):
    make_store("q1", store_id="MUMMUMQ1")
    make_store("q2", store_id="MUMMUMQ2", current_status=StoreStatus.RECCE_SUBMITTED)
    headers = login(admin)
    sheet = xlsx_bytes(ASSIGNMENT_COLUMNS, [["MUMMUMQ1", "", "UPLOADED"], ["MUMMUMQ2", "", "RECCE_SUBMITTED"]])
    upload = [("files", ("assign.xlsx", sheet, "application/octet-stream"))]

    response = client.post(f"/api/v1/users/{recce_user.id}/bulk-assign-stores", headers=headers, files=upload)
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Bulk assignment completed for Ravi Recce"
    assert (body["totalProcessed"], body["successCount"], body["errorCount"]) == (2, 1, 1)
    assert body["errors"][0]["row"] == 3
    assert body["errors"][0]["storeId"] == "MUMMUMQ2"

    # installation assignments need an approved recce
    response = client.post(f"/api/v1/users/{installer.id}/bulk-assign-stores", headers=headers, files=upload)
    errors = response.json()["errors"]
    assert response.json()["successCount"] == 0
    assert errors[1]["error"] == "Recce not approved (current status: RECCE_SUBMITTED)"

    # users without a field role cannot receive assignments
    response = client.post(f"/api/v1/users/{admin.id}/bulk-assign-stores", headers=headers, files=upload)
    assert response.status_code == 400


def test_update_ignores_store_id(client, login, admin, make_store):
    store = make_store("u1", store_id="MUMMUMU1")

    response = client.put(f"/api/v1/stores/{store.id}", headers=login(admin), json={
        "storeId": "HIJACKED", "storeName": "Renamed",
    })

    assert response.status_code == 200
    assert response.json()["store"]["storeName"] == "Renamed"
    assert response.json()["store"]["storeId"] == "MUMMUMU1"


def test_recce_photo_without_measurement_is_kept(client, login, recce_user, make_store, png_bytes):
    store = make_store(recce_assigned_to=recce_user.id, current_status=StoreStatus.RECCE_ASSIGNED)

    response = client.post(
        f"/api/v1/stores/{store.id}/recce",
        headers=login(recce_user),
        data={"notes": "ok"},
        files=[("reccePhoto0", ("board.png", png_bytes, PNG))],
    )

    assert response.status_code == 200, response.text
    photos = response.json()["store"]["recce"]["reccePhotos"]
    assert len(photos) == 1
    assert photos[0]["photo"].startswith("uploads/recce/MUMMUMDLR001/")
    assert (photos[0]["width"], photos[0]["unit"], photos[0]["elements"]) == (None, "ft", [])


class UnreachableFTP:
    def __init__(self, context=None):
        self.context = context

    def connect(self, host, port, timeout=None):
        raise ConnectionRefusedError(111, "Connection refused")


def test_delete_store_when_ftps_is_down(client, login, admin, make_store, tmp_path):
    config = StorageConfig(
        local_root=str(tmp_path / "uploads"),
        storage_type="ftps",
        ftp_host="ftp.example.com",
        ftp_user="branding",
        ftp_password="s3cret",
        base_public_path="/public_html/media",
        base_public_url="https://cdn.example.com/media",
    )
    app.dependency_overrides[get_storage] = lambda: StorageService(config, ftp_factory=UnreachableFTP)
    store = make_store("f1", recce_initial_photos=["https://cdn.example.com/media/initial/MUMMUMF1/front.jpg"])
    headers = login(admin)

    response = client.delete(f"/api/v1/stores/{store.id}", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Store deleted successfully"}
    assert client.get(f"/api/v1/stores/{store.id}", headers=headers).status_code == 404


def test_bulk_assign_with_custom_role(client, db, login, recce_user, make_store, xlsx_bytes):
    coordinator = Role(name="Coordinator", code="COORDINATOR", permissions={"stores": {"view": True, "edit": True}})
    db.add(coordinator)
    user = User(name="Cora Coordinator", email="cora@example.com", password_hash=hash_password("secret123"),
                is_active=True, roles=[coordinator])
    db.add(user)
    db.commit()
    make_store("c1", store_id="MUMMUMC1")
    sheet = xlsx_bytes(ASSIGNMENT_COLUMNS, [["MUMMUMC1", "", "UPLOADED"]])
    upload = [("files", ("assign.xlsx", sheet, "application/octet-stream"))]
    url = f"/api/v1/users/{recce_user.id}/bulk-assign-stores"

    response = client.post(url, headers=login(user), files=upload)
    assert response.status_code == 200
    assert response.json()["successCount"] == 1

    assert client.post(url, headers=login(recce_user), files=upload).status_code == 403


@pytest.fixture
def rfq_client(db):
    vinyl = Element(name="Vinyl", standard_rate=40)
    db.add(vinyl)
    db.flush()
    acme = Client(
        client_code="ACMDEL123456",
        client_name="Acme Paints",
        branch_name="Delhi",
        gst_number="07AAACA1234A1Z5",
        elements=[
            {"elementId": None, "elementName": "Flex", "customRate": 50, "quantity": 2},
            {"elementId": str(vinyl.id), "elementName": "Vinyl", "customRate": 0, "quantity": 3},
        ],
    )
    db.add(acme)
    db.commit()
    return acme


def test_rfq_workbook(client, login, admin, make_store, rfq_client):
    first = make_store("r1", store_id="MUMMUMR1", client_id=rfq_client.id, client_code=rfq_client.client_code)
    second = make_store("r2", store_name="Patel Auto", client_code=rfq_client.client_code)

    response = client.post("/api/v1/stores/rfq", headers=login(admin), json={
        "storeIds": [str(first.id), str(second.id)],
    })

    assert response.status_code == 200
    disposition = response.headers["content-disposition"]
    assert disposition == f'attachment; filename="RFQ_ACMDEL123456_{date.today().isoformat()}.xlsx"'
    ws = load_workbook(BytesIO(response.content)).active
    assert ws.title == "RFQ"
    assert "Acme Paints (Delhi) - GST: 07AAACA1234A1Z5" in ws["A1"].value
    assert ws["A5"].value == "Sl. No."
    assert [c.value for c in ws[6]] == [1, "Flex", "Road", 2, "Sqft", 50, 100]
    assert [c.value for c in ws[7]] == [2, "Vinyl", "Road", 3, "Sqft", 40, 120]
    assert ws["A9"].value == "Total Amount before tax"
    assert ws["G9"].value == pytest.approx(220)
    assert ws["A10"].value == "Taxes/GST @ 18%"
    assert ws["G10"].value == pytest.approx(39.6)
    assert ws["G11"].value == pytest.approx(259.6)
    covered = [row[0].value for row in ws.iter_rows(min_row=13, max_row=15)]
    assert covered[0] == "Stores Covered:"
    assert sorted(covered[1:]) == ["MUMMUMR1 | Sharma Motors | Mumbai", "r2 | Patel Auto | Mumbai"]


def test_rfq_errors(client, db, login, admin, make_store, rfq_client):
    headers = login(admin)
    other = Client(client_code="BETPUN654321", client_name="Beta Tiles", branch_name="Pune", elements=[])
    db.add(other)
    db.commit()
    acme_store = make_store("e1", client_code=rfq_client.client_code)
    beta_store = make_store("e2", client_id=other.id)
    orphan = make_store("e3")

    errors = [
        ([], 400, "No stores selected"),
        ([str(uuid.uuid4())], 404, "No stores found"),
        ([str(orphan.id)], 400, "Client not found for selected stores"),
        ([str(acme_store.id), str(beta_store.id)], 400, "Selected stores belong to different clients"),
    ]
    for store_ids, status_code, detail in errors:
        response = client.post("/api/v1/stores/rfq", headers=headers, json={"storeIds": store_ids})
        assert response.status_code == status_code
        assert response.json()["detail"] == detail
