import smtplib

import pytest
from sqlmodel import Session

from access.decisions import Scope
from config import AUTH_MODE_COGNITO, get_settings
from models import Client, Payment, Professional, Rating, User
from notifications import LogNotifier, SmtpNotifier, build_notifier, password_reset_email, verification_email
from store import StorageError, Store


def test_empty_scope_returns_nothing(engine, factory):
    factory.client()
    with Session(engine) as session:
        assert Store(session).find_all(Client, scope=Scope.nothing()) == []
        assert len(Store(session).find_all(Client)) == 1


def test_scope_filters_query(engine, factory):
    own = factory.client()
    factory.client()
    with Session(engine) as session:
        found = Store(session).find_all(Client, scope=Scope.within("id", [own.id]))
    assert [c.id for c in found] == [own.id]


def test_duplicate_email_is_a_conflict(engine, factory):
    existing = factory.user()
    with Session(engine) as session:
        with pytest.raises(StorageError) as exc:
            Store(session).create(User(email=existing.email, name="Copia"))
    assert exc.value.conflict is True


def test_storage_conflict_maps_to_409(client, factory):
    admin = factory.admin()
    user = factory.user()
    factory.client(user=user)
    # el usuario todavía tiene perfil de cliente
    response = client.delete(f"/users/{user.id}", headers=factory.headers(admin))
    assert response.status_code == 409
    assert response.json()["detail"] == "Conflicto al eliminar"


def test_professional_with_payments_cannot_be_deleted(client, engine, factory):
    admin = factory.admin()
    professional = factory.professional()
    payment = factory.payment(professional)

    response = client.delete(f"/professionals/{professional.id}", headers=factory.headers(admin))
    assert response.status_code == 409
    with Session(engine) as session:
        assert session.get(Payment, payment.id) is not None
        assert session.get(Professional, professional.id) is not None


def test_foreign_keys_are_enforced(engine, factory):
    professional = factory.professional()
    with Session(engine) as session:
        with pytest.raises(StorageError) as exc:
            Store(session).create(Payment(professional_id=professional.id + 100, balance=1, sales=1, commission=0))
    assert exc.value.conflict is True


def test_total_sums_column(engine, factory):
    professional = factory.professional()
    factory.payment(professional, net=10.0)
    factory.payment(professional, net=15.5)
    with Session(engine) as session:
        assert Store(session).total(Payment.net) == 25.5


def test_average_of_column(engine, factory):
    professional = factory.professional()
    author = factory.client()
    with Session(engine) as session:
        assert Store(session).average(Rating.score) is None
    factory.rating(author, professional, score=2)
    factory.rating(author, professional, score=5)
    with Session(engine) as session:
        assert Store(session).average(Rating.score, Rating.professional_id == professional.id) == 3.5


def test_missing_jwt_secret_warns(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "")
    monkeypatch.setenv("AUTH_MODE", "local")
    with pytest.warns(RuntimeWarning):
        settings = get_settings()
    assert settings.jwt_secret


def test_invalid_auth_mode(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "x")
    monkeypatch.setenv("AUTH_MODE", "ldap")
    with pytest.raises(ValueError):
        get_settings()


def test_cognito_urls(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "x")
    monkeypatch.setenv("AUTH_MODE", AUTH_MODE_COGNITO)
    monkeypatch.setenv("COGNITO_REGION", "us-east-1")
    monkeypatch.setenv("COGNITO_USER_POOL_ID", "us-east-1_abc")
    settings = get_settings()
    assert settings.cognito_jwks_url == (
        "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_abc/.well-known/jwks.json"
    )


def test_log_notifier_is_default(settings):
    assert isinstance(build_notifier(settings), LogNotifier)


def test_smtp_failure_does_not_raise(monkeypatch):
    def broken_smtp(*args, **kwargs):
        raise OSError("sin red")

    monkeypatch.setattr(smtplib, "SMTP", broken_smtp)
    notifier = SmtpNotifier("smtp.naxine.com", 587, "", "", "no-reply@naxine.com")
    assert notifier.send("alguien@naxine.com", "Hola", "<p>hola</p>") is False


def test_email_templates_escape_user_name():
    subject, html = verification_email("<script>alert(1)</script>", "http://localhost:3000/verify-email/abc")
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html

    _subject, html = password_reset_email('Ana "la jefa" <b>', "http://localhost:3000/reset-password/abc")
    assert "<b>" not in html
    assert "&lt;b&gt;" in html
