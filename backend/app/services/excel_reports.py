"""
Excel Reports
Templates and exports produced with openpyxl. Every function returns the
.xlsx file as bytes.
"""

from datetime import datetime
from typing import Iterable

from app.core.constants import STORE_UPLOAD_COLUMNS, USER_UPLOAD_COLUMNS
from app.models.client import Client
from app.models.store import Store
from app.models.user import Role, User
from app.services.client_service import GST_RATE, Rfq
from app.services.spreadsheets import (
    CELL_BORDER,
    HEADER_FONT,
    format_date,
    new_workbook,
    workbook_bytes,
    write_table,
)


STORE_TEMPLATE_SAMPLES = [
    [1, "DLR001", "V001 - Bright Signs", "Sharma Motors", "Mumbai", "Mumbai Suburban",
     "12 Link Road, Andheri West", 10, 8, "Flex", "", "Maharashtra", "West"],
    [2, "DLR002", "V001 - Bright Signs", "Patel Auto", "Pune", "Pune", "45 FC Road, Shivajinagar",
     12, 4, "Sunboard", "", "Maharashtra", "West"],
    [3, "DLR003", "V002 - Metro Displays", "Kumar Traders", "Delhi", "South Delhi", "8 Lajpat Nagar",
     20, 5, "ACP", "", "Delhi", "North"],
]


def _user_name(user) -> str:
    return user.name if user is not None else ""


def store_template() -> bytes:
    """Bulk upload template: the import header row plus sample rows."""
    wb, ws = new_workbook("Stores")
    write_table(ws, STORE_UPLOAD_COLUMNS, STORE_TEMPLATE_SAMPLES,
                widths=[8, 14, 24, 24, 14, 18, 36, 12, 12, 18, 14, 16, 10])
    return workbook_bytes(wb)


def stores_export(stores: Iterable[Store]) -> bytes:
    headers = [
        "Store ID", "Dealer Code", "Store Name", "Client Code", "City", "District", "State", "Zone",
        "Address", "Board Size", "Board Type", "Status", "Recce Assigned To", "Recce Assigned Date",
        "Recce Submitted Date", "Installation Assigned To", "Installation Submitted Date",
    ]
    rows = [
        [
            s.store_id or "", s.dealer_code, s.store_name or "", s.client_code or "", s.city or "",
            s.district or "", s.state or "", s.zone or "", s.address or "", s.board_size or "",
            s.board_type or "", s.current_status.value, _user_name(s.recce_assignee),
            format_date(s.recce_assigned_date), format_date(s.recce_submitted_date),
            _user_name(s.installation_assignee), format_date(s.installation_submitted_date),
        ]
        for s in stores
    ]
    wb, ws = new_workbook("Stores")
    write_table(ws, headers, rows, title=f"Stores Export - {datetime.now().strftime('%d-%b-%Y')}")
    return workbook_bytes(wb)


def recce_tasks_export(stores: Iterable[Store]) -> bytes:
    headers = ["Store Name", "Dealer Code", "City", "Address", "Status", "Recce Assigned To", "Recce Date"]
    rows = [
        [
            s.store_name or "", s.dealer_code, s.city or "", s.address or "", s.current_status.value,
            _user_name(s.recce_assignee), format_date(s.recce_assigned_date),
        ]
        for s in stores
    ]
    wb, ws = new_workbook("Recce Tasks")
    write_table(ws, headers, rows, title="Recce Tasks Report", widths=[28, 14, 16, 40, 22, 22, 14])
    return workbook_bytes(wb)


def installation_tasks_export(stores: Iterable[Store]) -> bytes:
    headers = [
        "Store Name", "Dealer Code", "City", "Address", "Status", "Installation Assigned To", "Installation Date",
    ]
    rows = [
        [
            s.store_name or "", s.dealer_code, s.city or "", s.address or "", s.current_status.value,
            _user_name(s.installation_assignee), format_date(s.installation_assigned_date),
        ]
        for s in stores
    ]
    wb, ws = new_workbook("Installation Tasks")
    write_table(ws, headers, rows, title="Installation Tasks Report", widths=[28, 14, 16, 40, 22, 24, 16])
    return workbook_bytes(wb)


def assignment_template(stores: Iterable[Store]) -> bytes:
    """Store ID / Client Code / Status sheet used by the per-user assignment upload."""
    wb, ws = new_workbook("Assignments")
    write_table(
        ws,
        ["Store ID", "Client Code", "Status"],
        [[s.store_id or "", s.client_code or "", s.current_status.value] for s in stores],
        widths=[22, 16, 24],
    )
    return workbook_bytes(wb)


def users_template() -> bytes:
    wb, ws = new_workbook("Users")
    write_table(
        ws,
        USER_UPLOAD_COLUMNS,
        [
            ["Ravi Kumar", "ravi@example.com", "changeme1", "9876543210", "RECCE"],
            ["Anita Singh", "anita@example.com", "changeme2", "9876501234", "INSTALLATION"],
        ],
        widths=[22, 28, 14, 14, 28],
    )
    return workbook_bytes(wb)


def users_export(users: Iterable[User]) -> bytes:
    headers = ["Name", "Email", "Mobile", "Roles", "Active", "Login Count", "Last Login", "Created"]
    rows = [
        [
            u.name, u.email, u.mobile or "", ", ".join(u.role_codes), "Yes" if u.is_active else "No",
            u.login_count or 0, format_date(u.last_login), format_date(u.created_at),
        ]
        for u in users
    ]
    wb, ws = new_workbook("Users")
    write_table(ws, headers, rows, title="Users")
    return workbook_bytes(wb)


def roles_export(roles: Iterable[Role]) -> bytes:
    headers = ["Name", "Code", "Module", "View", "Create", "Edit", "Delete"]
    rows = []
    for role in roles:
        for module, actions in sorted((role.permissions or {}).items()):
            rows.append([
                role.name, role.code, module,
                *["Yes" if actions.get(action) else "No" for action in ("view", "create", "edit", "delete")],
            ])
    wb, ws = new_workbook("Roles")
    write_table(ws, headers, rows, title="Roles & Permissions")
    return workbook_bytes(wb)


def clients_export(clients: Iterable[Client]) -> bytes:
    headers = ["Client Code", "Client Name", "Branch", "Amount", "GST Number", "Elements", "Active"]
    rows = [
        [
            c.client_code, c.client_name, c.branch_name, c.amount, c.gst_number or "",
            ", ".join(line.get("elementName", "") for line in (c.elements or [])),
            "Yes" if c.is_active else "No",
        ]
        for c in clients
    ]
    wb, ws = new_workbook("Clients")
    write_table(ws, headers, rows, title="Clients")
    return workbook_bytes(wb)


RFQ_HEADERS = ["Sl. No.", "Description", "Transport Mode", "Quantity", "UOM/Sqft/Km", "Unit Price", "Amount"]

RFQ_TERMS = [
    "Billing will be done only on basis of acceptance of this Quotation.",
    "Delivery deadline: as per requirement of material.",
    "Payment terms: due 30-35 days after submission of invoices and supporting documents.",
    "All materials must match the approved specifications.",
    "All rates include sampling, production, installation, packaging and transportation at all locations.",
    "In case of a missed deadline the company may reject the delivery and payment.",
]


def rfq_workbook(rfq: Rfq) -> bytes:
    """
    Request for quotation: title block with RFQ number, date and client,
    element line items, totals with GST, the covered stores and terms.
    """
    client = rfq.client
    title = (
        f"Request for Quotation (RFQ)\n"
        f"RFQ NO.: {rfq.number}   Date: {rfq.issued_on.strftime('%d/%m/%Y')}\n"
        f"{client.client_name} ({client.branch_name}) - GST: {client.gst_number or 'N/A'}"
    )
    rows = [
        [index, line.description, "Road", line.quantity, "Sqft", line.rate, line.amount]
        for index, line in enumerate(rfq.lines, start=1)
    ]
    wb, ws = new_workbook("RFQ")
    write_table(ws, RFQ_HEADERS, rows, title=title, widths=[10, 30, 15, 12, 15, 15, 15])

    row = ws.max_row + 2
    for label, value in (
        ("Total Amount before tax", rfq.subtotal),
        (f"Taxes/GST @ {GST_RATE * 100:g}%", rfq.tax),
        ("Total Amount after tax", rfq.total),
    ):
        ws.merge_cells(f"A{row}:F{row}")
        ws[f"A{row}"] = label
        ws[f"A{row}"].font = HEADER_FONT
        ws[f"G{row}"] = value
        ws[f"G{row}"].border = CELL_BORDER
        row += 1

    row += 1
    ws[f"A{row}"] = "Stores Covered:"
    ws[f"A{row}"].font = HEADER_FONT
    for store in rfq.stores:
        row += 1
        ws.merge_cells(f"A{row}:G{row}")
        ws[f"A{row}"] = " | ".join(
            part for part in (store.store_id or store.dealer_code, store.store_name, store.city) if part
        )

    row += 2
    ws[f"A{row}"] = "Terms & Conditions:"
    ws[f"A{row}"].font = HEADER_FONT
    for term in RFQ_TERMS:
        row += 1
        ws.merge_cells(f"A{row}:G{row}")
        ws[f"A{row}"] = term

    return workbook_bytes(wb)
