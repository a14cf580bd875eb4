# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi

from app.api.error_handlers import register_exception_handlers
from app.api.routers import (
    auth,
    categories,
    customers,
    movements,
    products,
    suppliers,
    users,
)
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.core.metrics import export_metrics
from app.initial_data import create_initial_admin_user
from app.middleware import (
    ObservabilityMiddleware,
    PayloadLimitMiddleware,
    SecurityHeadersMiddleware,
)
from app.services.upload_service import ensure_upload_dirs

# registra todos los mappers antes de resolver relationships por nombre
from app.models import category, customer, movement, product, supplier, user  # noqa: F401

setup_logging()
logger = get_logger("app.main")


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_upload_dirs()
    await create_initial_admin_user()
    logger.info("Aplicación iniciada", extra={"project": settings.PROJECT_NAME})
    yield
    logger.info("Aplicación detenida")


# --- Metadatos de la API para la documentación ---
TAGS_METADATA = [
    {"name": "auth", "description": "Autenticación, tokens y perfil del usuario."},
    {"name": "usuarios", "description": "Administración de usuarios y roles."},
    {"name": "movimientos", "description": "Registro, anulación y estadísticas de movimientos de stock."},
    {"name": "productos", "description": "Catálogo de productos e historial de stock."},
    {"name": "clientes", "description": "Clientes internos y su límite de consumo mensual."},
    {"name": "categorias", "description": "Categorías de productos."},
    {"name": "proveedores", "description": "Proveedores."},
]

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description=(
        "API de gestión de inventario de almacén.\n\n"
        "- **Movimientos**: entradas, salidas, ajustes y devoluciones con stock consistente.\n"
        "- **Anulaciones**: los movimientos se anulan con un movimiento de compensación.\n"
        "- **Clientes**: límite de consumo mensual por cliente.\n"
        "- **Reportes**: estadísticas por tipo y reporte diario por correo.\n\n"
        "Usa el botón **Authorize** para probar los endpoints protegidos."
    ),
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "tryItOutEnabled": True,
    },
)

# --- Middlewares ---
app.add_middleware(PayloadLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

register_exception_handlers(app)

# --- Routers ---
for module in (auth, users, movements, products, customers, categories, suppliers):
    app.include_router(module.router, prefix=settings.API_V1_STR)


# --- Configuración personalizada de OpenAPI ---
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=TAGS_METADATA,
    )

    comps = openapi_schema.setdefault("components", {}).setdefault("securitySchemes", {})
    comps["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": "Pega tu access token aquí. Formato: `Bearer <token>`",
    }
    openapi_schema["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


@app.get("/metrics", include_in_schema=False)
def metrics():
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


# --- Endpoint raíz ---
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
