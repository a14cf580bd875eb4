# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import tempfile
import uuid
from decimal import Decimal
from typing import Generator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "test-secret-key-almacen-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="almacen-uploads-"))
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ["EMAILS_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""

from app.main import app
from app.api.deps import get_notifier
from app.core.rate_limiter import get_rate_limiter
from app.core.security import get_password_hash
from app.db.session import Base
from app.db.session_async import AsyncSessionLocal
from app.domain.enums import UserRole
from app.domain.rut import check_digit
from app.models.category import Category
from app.models.customer import Customer
from app.models.product import Product
from app.models.supplier import Supplier
from app.models.user import User
from app.services.notification_service import Notifier

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

sync_engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

PASSWORDS = {
    UserRole.admin: "Admin1234",
    UserRole.supervisor: "Supervisor1234",
    UserRole.usuario: "Usuario1234",
}


class RecordingNotifier(Notifier):
    """Notifier que registra los eventos en vez de encolar correos."""

    def __init__(self) -> None:
        super().__init__(alert_recipients=["alertas@test.local"], report_recipients=["reportes@test.local"])
        self.events: list[tuple[str, list[str], dict]] = []

    def _dispatch(self, event, recipients, subject, message, **context) -> int:
        recipients = [r for r in recipients if r]
        self.events.append((event, recipients, context))
        return len(recipients)

    @property
    def names(self) -> list[str]:
        return [event for event, _, _ in self.events]


# ---------- Fixtures ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Crea las tablas en SQLite una sola vez por sesión de tests."""
    Base.metadata.drop_all(bind=sync_engine)
    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    get_rate_limiter().reset()
    yield


@pytest.fixture(autouse=True)
def notifier() -> Generator[RecordingNotifier, None, None]:
    recorder = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_notifier, None)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()


# --- Usuarios por rol ---

def _make_user(db_session: Session, rol: UserRole) -> User:
    user = User(
        nombre="Test",
        apellido=rol.value.capitalize(),
        email=f"{rol.value}-{uuid.uuid4().hex[:8]}@test.local",
        hashed_password=get_password_hash(PASSWORDS[rol]),
        rol=rol,
        activo=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db_session: Session) -> User:
    return _make_user(db_session, UserRole.admin)


@pytest.fixture(scope="function")
def supervisor_user(db_session: Session) -> User:
    return _make_user(db_session, UserRole.supervisor)


@pytest.fixture(scope="function")
def normal_user(db_session: Session) -> User:
    return _make_user(db_session, UserRole.usuario)


async def login(client: httpx.AsyncClient, user: User) -> str:
    resp = await client.post(
        "/api/auth/login",
        data={"username": user.email, "password": PASSWORDS[user.rol]},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


@pytest_asyncio.fixture(scope="function")
async def admin_token(client: httpx.AsyncClient, admin_user: User) -> str:
    return await login(client, admin_user)


@pytest_asyncio.fixture(scope="function")
async def supervisor_token(client: httpx.AsyncClient, supervisor_user: User) -> str:
    return await login(client, supervisor_user)


@pytest_asyncio.fixture(scope="function")
async def user_token(client: httpx.AsyncClient, normal_user: User) -> str:
    return await login(client, normal_user)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# --- Datos maestros (async, confirmados) ---

@pytest_asyncio.fixture(scope="function")
async def operator(async_db_session: AsyncSession) -> User:
    user = User(
        nombre="Operador",
        apellido="Bodega",
        email=f"operador-{uuid.uuid4().hex[:8]}@test.local",
        hashed_password=get_password_hash("Operador1234"),
        rol=UserRole.supervisor,
    )
    async_db_session.add(user)
    await async_db_session.commit()
    return user


@pytest_asyncio.fixture(scope="function")
async def category(async_db_session: AsyncSession) -> Category:
    cat = Category(nombre=f"Cat-{uuid.uuid4().hex[:8]}", orden=1)
    async_db_session.add(cat)
    await async_db_session.commit()
    return cat


@pytest_asyncio.fixture(scope="function")
async def supplier(async_db_session: AsyncSession) -> Supplier:
    sup = Supplier(rut="76086428-5", razon_social="Distribuidora Central SpA", email="ventas@central.cl")
    async_db_session.add(sup)
    await async_db_session.commit()
    return sup


@pytest.fixture(scope="function")
def make_product(async_db_session: AsyncSession, category: Category):
    async def _make(stock: int = 0, stock_minimo: int = 0, precio: str = "100", **overrides) -> Product:
        fields = {
            "codigo": f"P-{uuid.uuid4().hex[:8]}",
            "nombre": "Producto de prueba",
            "categoria_id": category.id,
            "precio_compra": Decimal(precio),
            "precio_venta": Decimal(precio),
            "stock": stock,
            "stock_minimo": stock_minimo,
        }
        fields.update(overrides)
        product = Product(**fields)
        async_db_session.add(product)
        await async_db_session.commit()
        return product

    return _make


@pytest.fixture(scope="function")
def make_customer(async_db_session: AsyncSession):
    counter = iter(range(10_000_000, 99_999_999, 7919))

    async def _make(limite_mensual: int = 0, **overrides) -> Customer:
        body = str(next(counter))
        fields = {
            "rut": f"{body}-{check_digit(body)}",
            "nombre": "Carla",
            "apellido": "Rojas",
            "email": f"cliente-{body}@test.local",
            "departamento": "Finanzas",
            "limite_mensual": limite_mensual,
        }
        fields.update(overrides)
        customer = Customer(**fields)
        async_db_session.add(customer)
        await async_db_session.commit()
        return customer

    return _make
