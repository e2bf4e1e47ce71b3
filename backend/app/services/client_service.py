"""
Client & Element Service
"""

import logging
import math
import re
import time
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.constants import MAX_PAGE_SIZE
from app.core.exceptions import DuplicateError, NotFoundError, ValidationError
from app.models.client import Client, Element
from app.models.store import Store
from app.schemas.client import ClientCreate, ClientUpdate, ElementCreate, ElementUpdate


logger = logging.getLogger("clients")


def _paginate(query, page: int, limit: int, order_by) -> Tuple[list, dict]:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    total = query.count()
    items = query.order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    return items, {
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
        "page": page,
        "limit": limit,
    }


# ============================================================================
# Elements
# ============================================================================

def _element_name_taken(db: Session, name: str, exclude_id: Optional[UUID] = None) -> bool:
    query = db.query(Element.id).filter(func.lower(Element.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Element.id != exclude_id)
    return query.first() is not None


def get_element(db: Session, element_id: UUID) -> Element:
    element = db.query(Element).filter(Element.id == element_id).first()
    if element is None:
        raise NotFoundError("Element not found")
    return element


def list_elements(db: Session, page: int = 1, limit: int = 10, search: Optional[str] = None):
    query = db.query(Element)
    if search:
        query = query.filter(Element.name.ilike(f"%{search.strip()}%"))
    return _paginate(query, page, limit, Element.name)


def active_elements(db: Session) -> List[Element]:
    return db.query(Element).filter(Element.is_active.is_(True)).order_by(Element.name).all()


def create_element(db: Session, data: ElementCreate) -> Element:
    if _element_name_taken(db, data.name):
        raise DuplicateError("Element with this name already exists")
    element = Element(name=data.name.strip(), standard_rate=data.standard_rate, is_active=data.is_active)
    db.add(element)
    db.commit()
    db.refresh(element)
    logger.info(f"ELEMENT_CREATED | name={element.name}")
    return element


def update_element(db: Session, element: Element, data: ElementUpdate) -> Element:
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name"):
        if _element_name_taken(db, changes["name"], exclude_id=element.id):
            raise DuplicateError("Element with this name already exists")
        changes["name"] = changes["name"].strip()
    for field, value in changes.items():
        if value is not None:
            setattr(element, field, value)
    db.commit()
    db.refresh(element)
    return element


def delete_element(db: Session, element: Element) -> None:
    db.delete(element)
    db.commit()


# ============================================================================
# Clients
# ============================================================================

def _code_part(text: str) -> str:
    letters = re.sub(r"[^A-Z]", "X", text.strip().upper()[:3])
    return letters.ljust(3, "X")


def generate_client_code(client_name: str, branch_name: str, now_ms: Optional[int] = None) -> str:
    """
    3 letters of client + 3 letters of branch (non-letters become X) +
    last 6 digits of the epoch-millisecond clock.

    Example:
        generate_client_code("Acme Paints", "Delhi", 1700000123456) == "ACMDEL123456"
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{_code_part(client_name)}{_code_part(branch_name)}{now_ms % 1_000_000:06d}"


def get_client(db: Session, client_id: UUID) -> Client:
    client = db.query(Client).filter(Client.id == client_id).first()
    if client is None:
        raise NotFoundError("Client not found")
    return client


def list_clients(db: Session, page: int = 1, limit: int = 10, search: Optional[str] = None):
    query = db.query(Client)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Client.client_name.ilike(pattern),
            Client.client_code.ilike(pattern),
            Client.branch_name.ilike(pattern),
        ))
    return _paginate(query, page, limit, Client.client_name)


def create_client(db: Session, data: ClientCreate) -> Client:
    code = generate_client_code(data.client_name, data.branch_name)
    while db.query(Client.id).filter(Client.client_code == code).first():
        time.sleep(0.001)
        code = generate_client_code(data.client_name, data.branch_name)

    values = data.model_dump(exclude={"elements"})
    client = Client(
        **values,
        client_code=code,
        elements=[element.model_dump(by_alias=True) for element in data.elements],
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info(f"CLIENT_CREATED | code={client.client_code} | name={client.client_name}")
    return client


def update_client(db: Session, client: Client, data: ClientUpdate) -> Client:
    changes = data.model_dump(exclude_unset=True, exclude={"elements"})
    for field, value in changes.items():
        if value is not None:
            setattr(client, field, value)
    if data.elements is not None:
        client.elements = [element.model_dump(by_alias=True) for element in data.elements]
    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, client: Client) -> None:
    db.delete(client)
    db.commit()
    logger.info(f"CLIENT_DELETED | code={client.client_code}")


# ============================================================================
# RFQ
# ============================================================================

GST_RATE = 0.18


@dataclass
class RfqLine:
    description: str
    quantity: float
    rate: float

    @property
    def amount(self) -> float:
        return round(self.quantity * self.rate, 2)


@dataclass
class Rfq:
    number: str
    issued_on: date
    client: Client
    stores: List[Store]
    lines: List[RfqLine] = field(default_factory=list)

    @property
    def subtotal(self) -> float:
        return round(sum(line.amount for line in self.lines), 2)

    @property
    def tax(self) -> float:
        return round(self.subtotal * GST_RATE, 2)

    @property
    def total(self) -> float:
        return round(self.subtotal + self.tax, 2)


def _store_client(db: Session, store: Store) -> Optional[Client]:
    if store.client is not None:
        return store.client
    if store.client_code:
        return db.query(Client).filter(Client.client_code == store.client_code.upper()).first()
    return None


def rfq_lines(db: Session, client: Client) -> List[RfqLine]:
    """
    One line per client element. The client's custom rate wins; a zero
    custom rate falls back to the catalogue standard rate, matched by
    element id and then by name.
    """
    catalogue = db.query(Element).all()
    by_id = {str(e.id): e.standard_rate for e in catalogue}
    by_name = {e.name.strip().lower(): e.standard_rate for e in catalogue}

    lines = []
    for item in client.elements or []:
        name = item.get("elementName") or ""
        rate = float(item.get("customRate") or 0)
        if not rate:
            rate = by_id.get(str(item.get("elementId")), by_name.get(name.strip().lower(), 0.0)) or 0.0
        lines.append(RfqLine(description=name, quantity=float(item.get("quantity") or 0), rate=rate))
    return lines


def build_rfq(db: Session, stores: Sequence[Store], now_ms: Optional[int] = None,
              today: Optional[date] = None) -> Rfq:
    """
    Request for quotation covering the selected stores.

    Raises:
        NotFoundError: no stores
        ValidationError: the stores have no client, or more than one
    """
    if not stores:
        raise NotFoundError("No stores found")

    clients = {}
    for store in stores:
        client = _store_client(db, store)
        if client is None:
            raise ValidationError("Client not found for selected stores")
        clients[client.id] = client
    if len(clients) > 1:
        raise ValidationError("Selected stores belong to different clients")
    client = next(iter(clients.values()))

    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    rfq = Rfq(
        number=f"RFQ-{now_ms}",
        issued_on=today or date.today(),
        client=client,
        stores=list(stores),
        lines=rfq_lines(db, client),
    )
    logger.info(
        f"RFQ_GENERATED | number={rfq.number} | client={client.client_code} | stores={len(rfq.stores)} "
        f"| total={rfq.total}"
    )
    return rfq
