"""Seed script para poblar una base de desarrollo con datos de almacén."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal

import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when running as a script.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from app.core.config import settings
from app.db.session_async import AsyncSessionLocal
from app.domain.enums import UserRole
from app.domain.rut import check_digit
from app.models.category import Category
from app.models.customer import Customer
from app.models.product import Product
from app.models.supplier import Supplier
from app.schemas.user import UserCreate
from app.services import user_service
from app.services.ledger_service import InventoryLedger
from app.services.notification_service import Notifier


def _rut(body: str) -> str:
    return f"{body}-{check_digit(body)}"


@dataclass(frozen=True, slots=True)
class DevUser:
    email: str
    nombre: str
    apellido: str
    password: str
    rol: UserRole


DEV_USERS: tuple[DevUser, ...] = (
    DevUser("admin.dev@almacen.local", "Ana", "Admin", "AdminDev123!", UserRole.admin),
    DevUser("supervisor.dev@almacen.local", "Sergio", "Supervisor", "SuperDev123!", UserRole.supervisor),
    DevUser("bodega.dev@almacen.local", "Beatriz", "Bodega", "UserDev123!", UserRole.usuario),
)

CATEGORIES = (
    ("Oficina", "#1E88E5"),
    ("Aseo", "#43A047"),
    ("Computación", "#8E24AA"),
)

SUPPLIERS = (
    (_rut("76086428"), "Distribuidora Central SpA", "ventas@central.cl"),
    (_rut("77123456"), "Papelera del Sur Ltda", "contacto@papeleradelsur.cl"),
)

CUSTOMERS = (
    (_rut("12345678"), "Carla", "Rojas", "carla.rojas@almacen.local", "Finanzas", 200000),
    (_rut("15987654"), "Diego", "Muñoz", "diego.munoz@almacen.local", "Operaciones", 0),
)

# codigo, nombre, categoria, precio_compra, precio_venta, stock_inicial, stock_minimo
PRODUCTS = (
    ("OF-001", "Resma carta 500 hojas", "Oficina", "3200", "4500", 120, 20),
    ("OF-002", "Lápiz pasta azul (caja 50)", "Oficina", "5900", "7990", 15, 10),
    ("AS-001", "Detergente 5L", "Aseo", "6500", "8900", 30, 5),
    ("CO-001", "Mouse óptico USB", "Computación", "4500", "6990", 8, 10),
)


async def seed_dev_data() -> None:
    logger = logging.getLogger("seed_dev_data")
    logger.info("Seeding development data into %s", settings.ASYNC_DATABASE_URL)

    async with AsyncSessionLocal() as session:
        admin = None
        for dev_user in DEV_USERS:
            user = await user_service.get_by_email(session, dev_user.email)
            if user is None:
                user = await user_service.create_user(
                    session,
                    UserCreate(
                        nombre=dev_user.nombre,
                        apellido=dev_user.apellido,
                        email=dev_user.email,
                        password=dev_user.password,
                        rol=dev_user.rol,
                    ),
                )
                logger.debug("Created user %s", dev_user.email)
            if dev_user.rol is UserRole.admin:
                admin = user

        categories: dict[str, Category] = {}
        for orden, (nombre, color) in enumerate(CATEGORIES, start=1):
            category = (await session.execute(select(Category).where(Category.nombre == nombre))).scalar_one_or_none()
            if category is None:
                category = Category(nombre=nombre, color=color, orden=orden)
                session.add(category)
            categories[nombre] = category

        suppliers: list[Supplier] = []
        for rut, razon_social, email in SUPPLIERS:
            supplier = (await session.execute(select(Supplier).where(Supplier.rut == rut))).scalar_one_or_none()
            if supplier is None:
                supplier = Supplier(rut=rut, razon_social=razon_social, email=email)
                session.add(supplier)
            suppliers.append(supplier)

        for rut, nombre, apellido, email, departamento, limite in CUSTOMERS:
            exists = (await session.execute(select(Customer.id).where(Customer.rut == rut))).first()
            if exists is None:
                session.add(
                    Customer(
                        rut=rut,
                        nombre=nombre,
                        apellido=apellido,
                        email=email,
                        departamento=departamento,
                        limite_mensual=limite,
                    )
                )
        await session.flush()

        # sin correos durante el seed
        ledger = InventoryLedger(session, Notifier(alert_recipients=[], report_recipients=[]))
        created = 0
        for codigo, nombre, categoria, compra, venta, stock, minimo in PRODUCTS:
            exists = (await session.execute(select(Product.id).where(Product.codigo == codigo))).first()
            if exists is not None:
                continue
            product = Product(
                codigo=codigo,
                nombre=nombre,
                categoria_id=categories[categoria].id,
                proveedor_id=suppliers[created % len(suppliers)].id,
                precio_compra=Decimal(compra),
                precio_venta=Decimal(venta),
                stock=0,
                stock_minimo=minimo,
            )
            session.add(product)
            await session.flush()
            await ledger.stage_initial_stock(product, stock, admin)
            created += 1

        await session.commit()

    logger.info("Seed completed: %s products created", created)


async def main() -> None:
    await seed_dev_data()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
