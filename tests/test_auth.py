import pytest
from jose import jwt

from app.core.config import settings
from conftest import PASSWORDS, auth, login


async def _login(client, email, password):
    return await client.post(
        "/api/auth/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


@pytest.mark.asyncio
async def test_login_returns_tokens_with_role_scopes(client, supervisor_user):
    resp = await _login(client, supervisor_user.email, PASSWORDS[supervisor_user.rol])

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    assert data["user"]["rol"] == "supervisor"
    assert data["user"]["ultimo_login"] is not None
    assert "anular_movimientos" in data["user"]["permisos"]

    claims = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    assert claims["rol"] == "supervisor"
    assert "crear_movimientos" in claims["scopes"]
    assert "admin" not in claims["scopes"]


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(client, normal_user):
    resp = await _login(client, normal_user.email.upper(), PASSWORDS[normal_user.rol])
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_login_with_wrong_password(client, normal_user):
    resp = await _login(client, normal_user.email, "incorrecta")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Email o contraseña incorrectos"


@pytest.mark.asyncio
async def test_login_of_inactive_user_is_forbidden(client, db_session, normal_user):
    normal_user.activo = False
    db_session.commit()

    resp = await _login(client, normal_user.email, PASSWORDS[normal_user.rol])

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Usuario inactivo"


@pytest.mark.asyncio
async def test_login_is_rate_limited(client, normal_user):
    for _ in range(settings.RATE_LIMIT_LOGIN_PER_MINUTE):
        await _login(client, normal_user.email, "incorrecta")

    resp = await _login(client, normal_user.email, PASSWORDS[normal_user.rol])

    assert resp.status_code == 429
    assert "Retry-After" in resp.headers


@pytest.mark.asyncio
async def test_refresh_issues_new_access_token(client, normal_user):
    tokens = (await _login(client, normal_user.email, PASSWORDS[normal_user.rol])).json()

    resp = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert resp.status_code == 200
    profile = await client.get("/api/auth/perfil", headers=auth(resp.json()["access_token"]))
    assert profile.json()["email"] == normal_user.email


@pytest.mark.asyncio
async def test_refresh_rejects_access_tokens_and_garbage(client, user_token):
    as_refresh = await client.post("/api/auth/refresh", json={"refresh_token": user_token})
    garbage = await client.post("/api/auth/refresh", json={"refresh_token": "no-es-un-token"})

    assert as_refresh.status_code == 401
    assert garbage.status_code == 401


@pytest.mark.asyncio
async def test_refresh_of_deactivated_user(client, db_session, normal_user):
    tokens = (await _login(client, normal_user.email, PASSWORDS[normal_user.rol])).json()
    normal_user.activo = False
    db_session.commit()

    resp = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_profile_requires_token(client):
    resp = await client.get("/api/auth/perfil")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_profile_rejects_invalid_token(client):
    resp = await client.get("/api/auth/perfil", headers=auth("abc.def.ghi"))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "No se pudieron validar las credenciales"


@pytest.mark.asyncio
async def test_change_password(client, normal_user, user_token):
    headers = auth(user_token)
    current = PASSWORDS[normal_user.rol]

    wrong = await client.post(
        "/api/auth/cambiar-password",
        json={"password_actual": "otra-clave", "password_nueva": "NuevaClave123"},
        headers=headers,
    )
    assert wrong.status_code == 422

    same = await client.post(
        "/api/auth/cambiar-password",
        json={"password_actual": current, "password_nueva": current},
        headers=headers,
    )
    assert same.status_code == 422

    ok = await client.post(
        "/api/auth/cambiar-password",
        json={"password_actual": current, "password_nueva": "NuevaClave123"},
        headers=headers,
    )
    assert ok.status_code == 204

    assert (await _login(client, normal_user.email, current)).status_code == 401
    assert (await _login(client, normal_user.email, "NuevaClave123")).status_code == 200


@pytest.mark.asyncio
async def test_update_theme(client, user_token):
    resp = await client.patch("/api/auth/tema", json={"tema": "dark"}, headers=auth(user_token))

    assert resp.status_code == 200
    assert resp.json()["tema_preferido"] == "dark"

    invalid = await client.patch("/api/auth/tema", json={"tema": "sepia"}, headers=auth(user_token))
    assert invalid.status_code == 422


@pytest.mark.asyncio
async def test_deactivated_user_token_is_rejected(client, db_session, normal_user):
    token = await login(client, normal_user)
    normal_user.activo = False
    db_session.commit()

    resp = await client.get("/api/auth/perfil", headers=auth(token))

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Usuario inactivo"
