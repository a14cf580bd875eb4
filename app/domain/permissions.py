# app/domain/permissions.py
from app.domain.enums import UserRole

_MASTER_DATA = ("productos", "categorias", "proveedores", "clientes")

ROLE_PERMISSIONS: dict[UserRole, tuple[str, ...]] = {
    UserRole.admin: (
        "ver_usuarios", "crear_usuarios", "editar_usuarios", "eliminar_usuarios",
        *(f"{action}_{entity}" for entity in _MASTER_DATA for action in ("ver", "crear", "editar", "eliminar")),
        "ver_movimientos", "crear_movimientos", "anular_movimientos",
        "exportar_reportes",
    ),
    UserRole.supervisor: (
        *(f"{action}_{entity}" for entity in _MASTER_DATA for action in ("ver", "crear", "editar")),
        "ver_movimientos", "crear_movimientos", "anular_movimientos",
        "exportar_reportes",
    ),
    UserRole.usuario: (
        *(f"ver_{entity}" for entity in _MASTER_DATA),
        "ver_movimientos", "crear_movimientos",
    ),
}


def permissions_for(role: UserRole | str) -> list[str]:
    return list(ROLE_PERMISSIONS.get(UserRole(role), ()))


def scopes_for(role: UserRole | str) -> list[str]:
    """Scopes OAuth2 del token: los permisos del rol más ``admin`` para administradores."""
    scopes = ["users:me", *permissions_for(role)]
    if UserRole(role) is UserRole.admin:
        scopes.append("admin")
    return scopes
