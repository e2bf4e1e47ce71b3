"""Pytest configuration and shared fixtures."""

import os
from io import BytesIO

import pytest

# Set required environment variables for testing BEFORE importing app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SWAGGER_USERNAME", "docs")
os.environ.setdefault("SWAGGER_PASSWORD", "docs-password")

from fastapi.testclient import TestClient
from openpyxl import Workbook
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_storage
from app.core.constants import RoleCode
from app.core.permissions import principal_from_user
from app.core.security import hash_password
from app.db.session import get_db
from app.main import app
from app.models import Base
from app.models.store import Store, StoreStatus
from app.models.user import User
from app.services import user_service
from app.services.storage import StorageConfig, StorageService


PASSWORD = "secret123"


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    user_service.ensure_default_roles(session)
    yield session
    session.close()


@pytest.fixture
def storage(tmp_path) -> StorageService:
    return StorageService(StorageConfig(local_root=str(tmp_path / "uploads")))


@pytest.fixture
def client(db, session_factory, storage):
    """FastAPI test client wired to the test database and storage."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides = {}


@pytest.fixture
def make_user(db):
    """Create a user holding the given role codes."""

    def factory(name: str, email: str, *roles: RoleCode, password: str = PASSWORD, is_active: bool = True) -> User:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            is_active=is_active,
            roles=[user_service.get_role_by_code(db, role.value) for role in roles],
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def super_admin(make_user) -> User:
    return make_user("Root", "root@example.com", RoleCode.SUPER_ADMIN)


@pytest.fixture
def admin(make_user) -> User:
    return make_user("Asha Admin", "admin@example.com", RoleCode.ADMIN)


@pytest.fixture
def recce_user(make_user) -> User:
    return make_user("Ravi Recce", "recce@example.com", RoleCode.RECCE)


@pytest.fixture
def installer(make_user) -> User:
    return make_user("Imran Installer", "install@example.com", RoleCode.INSTALLATION)


@pytest.fixture
def admin_principal(admin):
    return principal_from_user(admin)


@pytest.fixture
def make_store(db):
    """Create a store; keyword arguments override the defaults."""

    def factory(dealer_code: str = "dlr001", **values) -> Store:
        data = {
            "store_name": "Sharma Motors",
            "city": "Mumbai",
            "district": "Mumbai Suburban",
            "current_status": StoreStatus.UPLOADED,
        }
        data.update(values)
        store = Store(dealer_code=dealer_code, **data)
        db.add(store)
        db.commit()
        db.refresh(store)
        return store

    return factory


@pytest.fixture
def login(client):
    """Log in through the API and return Bearer headers.

    Cookies set by the login response are dropped so every request in a
    test authenticates only through the headers it passes.
    """

    def do_login(user: User, password: str = PASSWORD) -> dict:
        response = client.post("/api/v1/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return do_login


@pytest.fixture
def xlsx_bytes():
    """Build an .xlsx workbook from a header row and data rows."""

    def build(headers, rows) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.append(list(headers))
        for row in rows:
            ws.append(list(row))
        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    return build


@pytest.fixture
def png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (64, 48), color=(234, 179, 8)).save(buffer, format="PNG")
    return buffer.getvalue()
