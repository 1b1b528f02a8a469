import pytest

from access.decisions import Allow, AllowWithScope, Deny, DenyReason, Operation, Resource, Scope
from access.principal import Principal
from models import Role

from conftest import principal_for


def test_admin_is_allowed_everywhere(factory, authorize):
    admin = factory.admin()
    client = factory.client()
    principal = principal_for(admin)

    for resource in (Resource.CLIENT, Resource.SESSION, Resource.PAYMENT, Resource.PRICE):
        for operation in (Operation.READ_MANY, Operation.DELETE, Operation.MODERATE):
            decision = authorize(resource, operation, principal, client.id)
            assert isinstance(decision, Allow)


def test_role_not_listed_is_forbidden_before_lookup(factory, authorize):
    user = factory.user()
    # el registro ni siquiera existe: el rol se evalúa primero
    decision = authorize(Resource.PRICE, Operation.DELETE, principal_for(user), 9999)
    assert decision == Deny(DenyReason.FORBIDDEN)


def test_non_admin_missing_target_is_not_found(factory, authorize):
    user = factory.user()
    factory.client(user=user)
    decision = authorize(Resource.CLIENT, Operation.READ_ONE, principal_for(user), 9999)
    assert isinstance(decision, Deny)
    assert decision.reason == DenyReason.NOT_FOUND


def test_usuario_reads_only_own_client(factory, authorize):
    user = factory.user()
    own = factory.client(user=user)
    other = factory.client()
    principal = principal_for(user)

    assert isinstance(authorize(Resource.CLIENT, Operation.READ_ONE, principal, own.id), Allow)
    denied = authorize(Resource.CLIENT, Operation.READ_ONE, principal, other.id)
    assert denied.reason == DenyReason.FORBIDDEN


def test_usuario_without_client_gets_empty_session_scope(factory, authorize):
    user = factory.user()
    decision = authorize(Resource.SESSION, Operation.READ_MANY, principal_for(user))
    assert decision == AllowWithScope(Scope.nothing())


def test_session_scope_for_professional_is_own_id(factory, authorize):
    professional = factory.professional()
    user = professional.user_id
    principal = Principal(subject=str(user), role=Role.PROFESIONISTA, user_id=user)

    decision = authorize(Resource.SESSION, Operation.READ_MANY, principal)
    assert decision == AllowWithScope(Scope.where(professional_id=professional.id))


def test_inactive_professional_hidden_from_usuario(factory, authorize):
    user = factory.user()
    inactive = factory.professional(active=False)
    active = factory.professional()
    principal = principal_for(user)

    denied = authorize(Resource.PROFESSIONAL, Operation.READ_ONE, principal, inactive.id)
    assert denied.reason == DenyReason.FORBIDDEN
    assert isinstance(authorize(Resource.PROFESSIONAL, Operation.READ_ONE, principal, active.id), Allow)

    listing = authorize(Resource.PROFESSIONAL, Operation.READ_MANY, principal)
    assert listing == AllowWithScope(Scope.where(active=True))


def test_professional_sees_only_served_clients(factory, authorize):
    professional = factory.professional()
    served = factory.client()
    stranger = factory.client()
    factory.appointment(served, professional)
    principal = Principal(
        subject=str(professional.user_id),
        role=Role.PROFESIONISTA,
        user_id=professional.user_id,
    )

    assert isinstance(authorize(Resource.CLIENT, Operation.READ_ONE, principal, served.id), Allow)
    assert authorize(Resource.CLIENT, Operation.READ_ONE, principal, stranger.id).reason == DenyReason.FORBIDDEN
    listing = authorize(Resource.CLIENT, Operation.READ_MANY, principal)
    assert listing.scope.matches(served)
    assert not listing.scope.matches(stranger)


def test_professional_without_sessions_lists_no_clients(factory, authorize):
    professional = factory.professional()
    principal = Principal(
        subject=str(professional.user_id),
        role=Role.PROFESIONISTA,
        user_id=professional.user_id,
    )
    assert authorize(Resource.CLIENT, Operation.READ_MANY, principal) == AllowWithScope(Scope.nothing())


def test_session_create_forces_own_professional(factory, authorize):
    professional = factory.professional()
    principal = Principal(
        subject=str(professional.user_id),
        role=Role.PROFESIONISTA,
        user_id=professional.user_id,
    )
    decision = authorize(Resource.SESSION, Operation.CREATE, principal)
    assert decision == Allow(assign={"professional_id": professional.id})


def test_session_update_pins_owner(factory, authorize):
    professional = factory.professional()
    appointment = factory.appointment(factory.client(), professional)
    principal = Principal(
        subject=str(professional.user_id),
        role=Role.PROFESIONISTA,
        user_id=professional.user_id,
    )
    decision = authorize(Resource.SESSION, Operation.UPDATE, principal, appointment.id)
    assert decision.assign == {"professional_id": professional.id}


def test_rating_create_forces_client_id(factory, authorize):
    user = factory.user()
    own = factory.client(user=user)
    decision = authorize(Resource.RATING, Operation.CREATE, principal_for(user))
    assert decision == Allow(assign={"client_id": own.id})


def test_rating_create_requires_client_profile(factory, authorize):
    user = factory.user()
    decision = authorize(Resource.RATING, Operation.CREATE, principal_for(user))
    assert decision.reason == DenyReason.FORBIDDEN


@pytest.mark.parametrize("role", [Role.USUARIO, Role.PROFESIONISTA])
def test_user_read_one_is_self_only(factory, authorize, role):
    user = factory.user(role=role)
    other = factory.user()
    principal = principal_for(user)

    assert isinstance(authorize(Resource.USER, Operation.READ_ONE, principal, user.id), Allow)
    assert authorize(Resource.USER, Operation.READ_ONE, principal, other.id).reason == DenyReason.FORBIDDEN


def test_stateless_principal_owns_nothing(factory, authorize):
    client = factory.client()
    principal = Principal(subject="cognito-sub", role=Role.USUARIO, email="externo@naxine.com")

    assert authorize(Resource.CLIENT, Operation.READ_ONE, principal, client.id).reason == DenyReason.FORBIDDEN
    assert authorize(Resource.SESSION, Operation.READ_MANY, principal) == AllowWithScope(Scope.nothing())


def test_last_administrator_cannot_be_deleted(factory, authorize):
    admin = factory.admin()
    decision = authorize(Resource.USER, Operation.DELETE, principal_for(admin), admin.id)
    assert decision.reason == DenyReason.LAST_ADMINISTRATOR


def test_administrator_can_be_deleted_when_another_remains(factory, authorize):
    admin = factory.admin()
    other = factory.admin()
    assert isinstance(authorize(Resource.USER, Operation.DELETE, principal_for(admin), other.id), Allow)


def test_scope_matches_and_clauses():
    scope = Scope.where(client_id=7)
    assert scope.matches(type("R", (), {"client_id": 7})())
    assert not scope.matches(type("R", (), {"client_id": 8})())
    assert Scope.within("client_id", []) == Scope.nothing()
    assert not Scope.nothing().matches(object())


def test_professional_stats_only_for_owner(factory, authorize):
    professional = factory.professional()
    other = factory.professional()
    principal = principal_for(factory.owner_of(professional))

    assert isinstance(authorize(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, principal, professional.id), Allow)
    assert authorize(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, principal, other.id).reason == DenyReason.FORBIDDEN
    assert authorize(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, principal, 9999).reason == DenyReason.NOT_FOUND

    usuario = principal_for(factory.user())
    assert authorize(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, usuario, professional.id).reason == DenyReason.FORBIDDEN


@pytest.mark.parametrize("role", [Role.USUARIO, Role.PROFESIONISTA])
def test_client_moderation_is_admin_only(factory, authorize, role):
    user = factory.user(role=role)
    own = factory.client(user=user)
    decision = authorize(Resource.CLIENT, Operation.MODERATE, principal_for(user), own.id)
    assert decision.reason == DenyReason.FORBIDDEN
