"""Bulk store import from .xlsx uploads."""

from app.core.constants import STORE_UPLOAD_COLUMNS
from app.models.store import Store, StoreStatus
from app.services import excel_reports
from app.services.spreadsheets import column_value, read_rows
from app.services.store_service import StoreService, board_size


def _row(dealer_code, name="Shop", city="Mumbai", district="Mumbai Suburban"):
    return [1, dealer_code, "V001 - Bright Signs", name, city, district, "Link Road", 10, 8, "Flex", "", "MH", "West"]


def test_import_reports_every_row(db, make_store, xlsx_bytes):
    make_store("D999")
    content = xlsx_bytes(STORE_UPLOAD_COLUMNS, [
        _row("D001"),
        _row(None, name="No code"),
        _row("D001", name="Again"),
        _row("D999"),
        _row("D002", city="", district=""),
    ])

    report = StoreService.import_stores(db, [("stores.xlsx", content)])

    summary = report.summary("Upload completed")
    assert summary["totalProcessed"] == 5
    assert summary["successCount"] == 2
    assert summary["errorCount"] == 3
    assert summary["errors"] == [
        {"row": 3, "error": "Skipped: 'Dealer Code' is missing/empty", "file": "stores.xlsx"},
        {"row": 4, "error": "Duplicate in File: D001", "file": "stores.xlsx"},
        {"row": 5, "error": "Duplicate in DB: D999", "file": "stores.xlsx"},
    ]

    imported = db.query(Store).filter(Store.dealer_code == "D001").one()
    assert imported.current_status == StoreStatus.UPLOADED
    assert imported.store_id == "MUMMUMD001"
    assert imported.board_size == "10 x 8"
    assert imported.board_type == "Flex"
    assert imported.store_code == "V001 - Bright Signs"

    # no city/district: imported, store id left for later
    assert db.query(Store).filter(Store.dealer_code == "D002").one().store_id is None


def test_duplicates_are_detected_across_files(db, xlsx_bytes):
    first = xlsx_bytes(STORE_UPLOAD_COLUMNS, [_row("X1")])
    second = xlsx_bytes(STORE_UPLOAD_COLUMNS, [_row("X1"), _row("X2")])

    report = StoreService.import_stores(db, [("a.xlsx", first), ("b.xlsx", second)])

    assert report.success_count == 2
    assert [(e.file, e.row, e.error) for e in report.errors] == [("b.xlsx", 2, "Duplicate in File: X1")]


def test_unreadable_file_is_reported_but_not_counted(db, xlsx_bytes):
    good = xlsx_bytes(STORE_UPLOAD_COLUMNS, [_row("G1")])

    report = StoreService.import_stores(db, [("notes.txt", b"not a workbook"), ("good.xlsx", good)])

    assert report.processed == 1
    assert report.success_count == 1
    assert report.errors[0].file == "notes.txt"
    assert report.errors[0].row is None
    assert report.errors[0].error.startswith("Parsing Error:")


def test_headers_match_loosely(db, xlsx_bytes):
    content = xlsx_bytes(["dealer code", "CITY", "district", "Dealers Name"], [["L1", "Pune", "Haveli", "Patel Auto"]])

    report = StoreService.import_stores(db, [("loose.xlsx", content)])

    assert report.success_count == 1
    store = db.query(Store).filter(Store.dealer_code == "L1").one()
    assert store.store_id == "PUNHAVL1"
    assert store.store_name == "Patel Auto"


def test_template_round_trips_through_import(db):
    report = StoreService.import_stores(db, [("template.xlsx", excel_reports.store_template())])
    assert report.success_count == 3
    assert report.error_count == 0


def test_read_rows_keeps_sheet_row_numbers(xlsx_bytes):
    content = xlsx_bytes(["Store ID"], [["A"], [None], ["B"]])
    rows = read_rows(content)
    assert [(number, column_value(row, "Store ID")) for number, row in rows] == [(2, "A"), (4, "B")]


def test_board_size():
    assert board_size("10", "8") == "10 x 8"
    assert board_size("10", "") == "10 x ?"
    assert board_size("", "") is None


def test_upload_endpoint(client, login, admin, xlsx_bytes):
    headers = login(admin)
    content = xlsx_bytes(STORE_UPLOAD_COLUMNS, [_row("U1"), _row("U1")])

    response = client.post(
        "/api/v1/stores/upload",
        headers=headers,
        files=[("files", ("stores.xlsx", content, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"))],
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Upload completed"
    assert body["totalProcessed"] == 2
    assert body["successCount"] == 1
    assert body["errors"][0]["error"] == "Duplicate in File: U1"


def test_upload_endpoint_requires_create_permission(client, login, recce_user, xlsx_bytes):
    headers = login(recce_user)
    content = xlsx_bytes(STORE_UPLOAD_COLUMNS, [_row("U1")])

    response = client.post(
        "/api/v1/stores/upload",
        headers=headers,
        files=[("files", ("stores.xlsx", content, "application/octet-stream"))],
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "You do not have permission to create stores"


def test_dealer_codes_are_compared_case_insensitively(db, make_store, xlsx_bytes):
    make_store("DLR9")
    content = xlsx_bytes(STORE_UPLOAD_COLUMNS, [_row("dlr9"), _row("dlr1"), _row("DLR1")])

    report = StoreService.import_stores(db, [("stores.xlsx", content)])

    assert report.success_count == 1
    assert [(e.row, e.error) for e in report.errors] == [
        (2, "Duplicate in DB: dlr9"),
        (4, "Duplicate in File: DLR1"),
    ]
