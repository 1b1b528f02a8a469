import re

from sqlmodel import Session

from auth.security import create_verification_token
from models import Role, User

from conftest import PASSWORD


def _link_token(notifier, path):
    _to, _subject, html = notifier.sent[-1]
    return re.search(rf"/{path}/([\w\-\.]+)", html).group(1)


def _register(client, email="nueva@naxine.com"):
    return client.post(
        "/auth/register",
        json={"name": "Nueva", "email": email, "password": "clave123", "role": "administrador"},
    )


def test_register_always_creates_usuario(client, notifier):
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["role"] == Role.USUARIO.value
    assert body["email_verified"] is False
    assert notifier.sent[-1][0] == "nueva@naxine.com"


def test_register_duplicate_email(client):
    _register(client)
    assert _register(client).status_code == 400


def test_login_requires_verified_email(client, notifier):
    _register(client)

    blocked = client.post("/auth/login", json={"email": "nueva@naxine.com", "password": "clave123"})
    assert blocked.status_code == 401

    token = _link_token(notifier, "verify-email")
    assert client.get(f"/auth/verify-email/{token}").status_code == 200

    response = client.post("/auth/login", json={"email": "nueva@naxine.com", "password": "clave123"})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["last_access"] is not None

    profile = client.get("/auth/profile", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert profile.json()["email"] == "nueva@naxine.com"


def test_login_wrong_password(client, factory):
    user = factory.user()
    response = client.post("/auth/login", json={"email": user.email, "password": "incorrecta"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Credenciales inválidas"


def test_login_inactive_account(client, factory):
    user = factory.user(is_active=False)
    response = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 401


def test_invalid_verification_token(client):
    assert client.get("/auth/verify-email/no-sirve").status_code == 400


def test_resend_verification(client, notifier):
    _register(client)
    before = len(notifier.sent)

    response = client.post("/auth/resend-verification", json={"email": "nueva@naxine.com"})
    assert response.status_code == 200
    assert len(notifier.sent) == before + 1


def test_update_profile_and_change_password(client, factory):
    user = factory.user()
    headers = factory.headers(user)

    renamed = client.put("/auth/profile", json={"name": "Nombre Nuevo"}, headers=headers)
    assert renamed.json()["name"] == "Nombre Nuevo"

    wrong = client.put(
        "/auth/change-password",
        json={"current_password": "otra", "new_password": "nueva123"},
        headers=headers,
    )
    assert wrong.status_code == 401

    changed = client.put(
        "/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "nueva123"},
        headers=headers,
    )
    assert changed.status_code == 200
    login = client.post("/auth/login", json={"email": user.email, "password": "nueva123"})
    assert login.status_code == 200


def test_password_reset_flow(client, factory, notifier, engine, settings):
    user = factory.user()

    assert client.post("/auth/password/forgot", json={"email": user.email}).status_code == 200
    token = _link_token(notifier, "reset-password")

    # un token de verificación de correo no sirve para restablecer
    verification = create_verification_token(settings, user.email)
    rejected = client.post("/auth/password/reset", json={"token": verification, "new_password": "otra123"})
    assert rejected.status_code == 400

    response = client.post("/auth/password/reset", json={"token": token, "new_password": "otra123"})
    assert response.status_code == 200
    assert client.post("/auth/login", json={"email": user.email, "password": "otra123"}).status_code == 200

    with Session(engine) as session:
        assert session.get(User, user.id).hashed_password != user.hashed_password


def test_forgot_password_unknown_email_does_not_leak(client, notifier):
    response = client.post("/auth/password/forgot", json={"email": "nadie@naxine.com"})
    assert response.status_code == 200
    assert notifier.sent == []


def test_logout(client):
    assert client.post("/auth/logout").status_code == 200


def test_reset_token_cannot_be_replayed(client, factory, notifier):
    user = factory.user()
    client.post("/auth/password/forgot", json={"email": user.email})
    token = _link_token(notifier, "reset-password")

    first = client.post("/auth/password/reset", json={"token": token, "new_password": "otra123"})
    assert first.status_code == 200

    replay = client.post("/auth/password/reset", json={"token": token, "new_password": "robada1"})
    assert replay.status_code == 400
    assert client.post("/auth/login", json={"email": user.email, "password": "otra123"}).status_code == 200


def test_reset_token_dies_after_password_change(client, factory, notifier):
    user = factory.user()
    client.post("/auth/password/forgot", json={"email": user.email})
    token = _link_token(notifier, "reset-password")

    client.put(
        "/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "nueva123"},
        headers=factory.headers(user),
    )
    response = client.post("/auth/password/reset", json={"token": token, "new_password": "otra123"})
    assert response.status_code == 400


def test_verification_link_works_once(client, notifier):
    _register(client)
    token = _link_token(notifier, "verify-email")

    assert client.get(f"/auth/verify-email/{token}").status_code == 200
    assert client.get(f"/auth/verify-email/{token}").status_code == 400


def test_resend_invalidates_previous_verification_link(client, notifier):
    _register(client)
    old = _link_token(notifier, "verify-email")
    client.post("/auth/resend-verification", json={"email": "nueva@naxine.com"})
    new = _link_token(notifier, "verify-email")

    assert old != new
    assert client.get(f"/auth/verify-email/{old}").status_code == 400
    assert client.get(f"/auth/verify-email/{new}").status_code == 200


def test_unissued_verification_token_is_rejected(client, settings):
    _register(client)
    unissued = create_verification_token(settings, "nueva@naxine.com")
    assert client.get(f"/auth/verify-email/{unissued}").status_code == 400
