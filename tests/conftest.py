import itertools
from datetime import datetime
from functools import lru_cache

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from access.policy import PolicyEngine
from access.principal import Principal
from auth.security import create_access_token, get_password_hash
from config import AUTH_MODE_LOCAL, Settings
from database import create_db_and_tables
from main import create_app
from models import Appointment, Client, Payment, Price, Professional, Rating, Role, User
from notifications import LogNotifier
from store import Store

PASSWORD = "secreto123"


@lru_cache(maxsize=None)
def _password_hash() -> str:
    return get_password_hash(PASSWORD)


class Factory:
    """Crea registros en sesiones cortas para no retener el lock de SQLite."""

    def __init__(self, engine, settings: Settings):
        self.engine = engine
        self.settings = settings
        self._seq = itertools.count(1)

    def _save(self, record):
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        return record

    def user(self, role: Role = Role.USUARIO, **fields) -> User:
        n = next(self._seq)
        data = {
            "email": f"persona{n}@naxine.com",
            "name": f"Persona {n}",
            "role": role,
            "email_verified": True,
            "is_active": True,
            "hashed_password": _password_hash(),
        }
        data.update(fields)
        return self._save(User(**data))

    def admin(self, **fields) -> User:
        return self.user(role=Role.ADMINISTRADOR, **fields)

    def client(self, user: User = None, **fields) -> Client:
        user = user or self.user()
        data = {"full_name": user.name, "user_id": user.id}
        data.update(fields)
        return self._save(Client(**data))

    def professional(self, user: User = None, **fields) -> Professional:
        user = user or self.user(role=Role.PROFESIONISTA)
        data = {
            "full_name": user.name,
            "email": user.email,
            "specialty": "nutricion",
            "user_id": user.id,
        }
        data.update(fields)
        return self._save(Professional(**data))

    def appointment(self, client: Client, professional: Professional, **fields) -> Appointment:
        data = {
            "client_id": client.id,
            "professional_id": professional.id,
            "order_number": f"ORD-{next(self._seq)}",
            "date": datetime(2024, 5, 10, 9, 0),
        }
        data.update(fields)
        return self._save(Appointment(**data))

    def rating(self, client: Client, professional: Professional, **fields) -> Rating:
        data = {
            "client_id": client.id,
            "professional_id": professional.id,
            "product": "consulta",
            "score": 5,
        }
        data.update(fields)
        return self._save(Rating(**data))

    def payment(self, professional: Professional, **fields) -> Payment:
        data = {
            "professional_id": professional.id,
            "balance": 1000.0,
            "sales": 800.0,
            "commission": 80.0,
            "net": 720.0,
        }
        data.update(fields)
        return self._save(Payment(**data))

    def price(self, **fields) -> Price:
        data = {"session_number": 1, "package_name": "Paquete básico"}
        data.update(fields)
        return self._save(Price(**data))

    def owner_of(self, record) -> User:
        with Session(self.engine) as session:
            return session.get(User, record.user_id)

    def token(self, user: User) -> str:
        return create_access_token(self.settings, user)

    def headers(self, user: User) -> dict:
        return {"Authorization": f"Bearer {self.token(user)}"}


def principal_for(user: User) -> Principal:
    return Principal(subject=str(user.id), role=user.role, email=user.email, user_id=user.id)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'naxine.db'}",
        auth_mode=AUTH_MODE_LOCAL,
        jwt_secret="test-secret",
        token_confirmation_secret="test-confirmation-secret",
        frontend_url="http://localhost:3000",
    )


@pytest.fixture
def notifier():
    return LogNotifier()


@pytest.fixture
def app(settings, notifier):
    app = create_app(settings, notifier=notifier)
    create_db_and_tables(app.state.engine)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def engine(app):
    return app.state.engine


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def factory(engine, settings):
    return Factory(engine, settings)


@pytest.fixture
def authorize(engine):
    """Evalúa una decisión en una sesión propia, como lo haría una petición."""
    policy_engine = PolicyEngine()

    def _authorize(resource, operation, principal, target_id=None):
        with Session(engine) as session:
            return policy_engine.authorize(Store(session), resource, operation, principal, target_id)

    return _authorize
