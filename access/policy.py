"""
Motor de políticas de autorización.

Para cada terna (recurso, operación, principal) decide ``Allow``,
``AllowWithScope`` o ``Deny``. Las reglas viven en la tabla ``POLICIES``; los
routers no contienen lógica de roles ni de propiedad.

Precedencia:
    1. ``administrador`` puede todo (salvo la guarda del último administrador).
    2. Si el rol no aparece en la tabla para la operación: ``Deny(FORBIDDEN)``,
       antes de tocar el registro.
    3. Operaciones sobre un registro: se carga el registro (``NOT_FOUND`` si no
       existe) y se compara su llave foránea con el registro propio del
       principal.
    4. Listados: se devuelve un ``Scope``; sin registro propio el scope es vacío.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Type

from sqlmodel import SQLModel

from access.decisions import Allow, AllowWithScope, Decision, Deny, DenyReason, Operation, Resource, Scope
from access.principal import Principal
from access.resolver import resolve_owned_client, resolve_owned_professional, served_client_ids
from models import Appointment, Client, Payment, Price, Professional, Rating, Role, User
from store import Store

logger = logging.getLogger(__name__)

# tipos de regla
OPEN = "open"
ACTIVE_ONLY = "active_only"
SELF = "self"
OWN_CLIENT = "own_client"
OWN_PROFESSIONAL = "own_professional"
SERVED_CLIENTS = "served_clients"


@dataclass(frozen=True)
class Rule:
    kind: str
    field: str = "id"
    detail: str = "Acceso denegado"


@dataclass(frozen=True)
class ResourcePolicy:
    model: Type[SQLModel]
    not_found: str
    rules: Mapping[Operation, Mapping[Role, Rule]] = field(default_factory=dict)


USUARIO = Role.USUARIO
PROFESIONISTA = Role.PROFESIONISTA
ADMINISTRADOR = Role.ADMINISTRADOR

_own_client_session = Rule(OWN_CLIENT, "client_id")
_own_professional_session = Rule(OWN_PROFESSIONAL, "professional_id")
_rating_author = Rule(OWN_CLIENT, "client_id", "Solo los clientes pueden crear valoraciones")

POLICIES: Dict[Resource, ResourcePolicy] = {
    Resource.USER: ResourcePolicy(
        model=User,
        not_found="Usuario no encontrado",
        rules={
            Operation.READ_ONE: {USUARIO: Rule(SELF), PROFESIONISTA: Rule(SELF)},
        },
    ),
    Resource.CLIENT: ResourcePolicy(
        model=Client,
        not_found="Cliente no encontrado",
        rules={
            Operation.CREATE: {PROFESIONISTA: Rule(OPEN)},
            Operation.READ_ONE: {USUARIO: Rule(OWN_CLIENT), PROFESIONISTA: Rule(SERVED_CLIENTS)},
            Operation.READ_MANY: {USUARIO: Rule(OWN_CLIENT), PROFESIONISTA: Rule(SERVED_CLIENTS)},
            Operation.UPDATE: {USUARIO: Rule(OWN_CLIENT), PROFESIONISTA: Rule(SERVED_CLIENTS)},
        },
    ),
    Resource.PROFESSIONAL: ResourcePolicy(
        model=Professional,
        not_found="Profesional no encontrado",
        rules={
            Operation.READ_ONE: {USUARIO: Rule(ACTIVE_ONLY), PROFESIONISTA: Rule(OPEN)},
            Operation.READ_MANY: {USUARIO: Rule(ACTIVE_ONLY), PROFESIONISTA: Rule(ACTIVE_ONLY)},
            Operation.UPDATE: {PROFESIONISTA: Rule(OWN_PROFESSIONAL)},
        },
    ),
    Resource.SESSION: ResourcePolicy(
        model=Appointment,
        not_found="Sesión no encontrada",
        rules={
            Operation.CREATE: {PROFESIONISTA: _own_professional_session},
            Operation.READ_ONE: {USUARIO: _own_client_session, PROFESIONISTA: _own_professional_session},
            Operation.READ_MANY: {USUARIO: _own_client_session, PROFESIONISTA: _own_professional_session},
            Operation.UPDATE: {PROFESIONISTA: _own_professional_session},
        },
    ),
    Resource.RATING: ResourcePolicy(
        model=Rating,
        not_found="Valoración no encontrada",
        rules={
            Operation.CREATE: {USUARIO: _rating_author, PROFESIONISTA: _rating_author, ADMINISTRADOR: _rating_author},
            Operation.READ_ONE: {USUARIO: _own_client_session, PROFESIONISTA: _own_professional_session},
            Operation.READ_MANY: {USUARIO: _own_client_session, PROFESIONISTA: _own_professional_session},
        },
    ),
    Resource.PAYMENT: ResourcePolicy(
        model=Payment,
        not_found="Pago no encontrado",
        rules={
            Operation.READ_ONE: {PROFESIONISTA: _own_professional_session},
            Operation.READ_MANY: {PROFESIONISTA: _own_professional_session},
        },
    ),
    Resource.PRICE: ResourcePolicy(
        model=Price,
        not_found="Precio no encontrado",
        rules={
            Operation.CREATE: {PROFESIONISTA: Rule(OPEN)},
            Operation.READ_ONE: {USUARIO: Rule(OPEN), PROFESIONISTA: Rule(OPEN)},
            Operation.READ_MANY: {USUARIO: Rule(OPEN), PROFESIONISTA: Rule(OPEN)},
            Operation.UPDATE: {PROFESIONISTA: Rule(OPEN)},
        },
    ),
    Resource.PROFESSIONAL_STATS: ResourcePolicy(
        model=Professional,
        not_found="Profesional no encontrado",
        rules={
            Operation.READ_ONE: {PROFESIONISTA: Rule(OWN_PROFESSIONAL, detail="Solo puedes ver tus propias estadísticas")},
        },
    ),
}


class PolicyEngine:
    """Sin estado: todo lo que necesita llega en cada llamada."""

    def __init__(self, policies: Mapping[Resource, ResourcePolicy] = POLICIES):
        self.policies = policies

    def authorize(
        self,
        store: Store,
        resource: Resource,
        operation: Operation,
        principal: Principal,
        target_id: Optional[int] = None,
    ) -> Decision:
        policy = self.policies[resource]

        if principal.is_admin:
            return self._authorize_admin(store, resource, operation, principal, target_id)

        rule = policy.rules.get(operation, {}).get(principal.role)
        if rule is None:
            return self._deny(resource, operation, principal, DenyReason.FORBIDDEN)

        if operation == Operation.CREATE:
            return self._authorize_create(store, resource, principal, rule)

        if operation == Operation.READ_MANY:
            if rule.kind == OPEN:
                return Allow()
            return AllowWithScope(self._scope(store, principal, rule))

        if target_id is None:
            return self._deny(resource, operation, principal, DenyReason.NOT_FOUND, policy.not_found)
        target = store.get(policy.model, target_id)
        if target is None:
            return self._deny(resource, operation, principal, DenyReason.NOT_FOUND, policy.not_found)

        if not self._owns(store, principal, rule, target):
            return self._deny(resource, operation, principal, DenyReason.FORBIDDEN, rule.detail)

        if operation == Operation.UPDATE and rule.kind in (OWN_CLIENT, OWN_PROFESSIONAL) and rule.field != "id":
            # la llave foránea del dueño no se puede reasignar
            return Allow(assign={rule.field: getattr(target, rule.field)})
        return Allow()

    # ----------------- administrador ----------------- #

    def _authorize_admin(
        self,
        store: Store,
        resource: Resource,
        operation: Operation,
        principal: Principal,
        target_id: Optional[int],
    ) -> Decision:
        if resource == Resource.USER and operation == Operation.DELETE and target_id is not None:
            return self._guard_last_administrator(store, principal, target_id)

        if operation == Operation.CREATE:
            rule = self.policies[resource].rules.get(Operation.CREATE, {}).get(ADMINISTRADOR)
            if rule is not None and rule.kind == OWN_CLIENT:
                owned = resolve_owned_client(store, principal)
                if owned is not None:
                    return Allow(assign={rule.field: owned.id})
        return Allow()

    def _guard_last_administrator(self, store: Store, principal: Principal, target_id: int) -> Decision:
        """
        Evalúa la invariante del último administrador dentro de la transacción
        del llamador. Las filas de administradores quedan bloqueadas hasta que
        el router borre y confirme.
        """
        target = store.get(User, target_id)
        if target is None or target.role != Role.ADMINISTRADOR:
            return Allow()

        admins = store.lock_all(User, User.role == Role.ADMINISTRADOR)
        admin_ids = {admin.id for admin in admins}
        if target.id in admin_ids and len(admin_ids) <= 1:
            return self._deny(
                Resource.USER,
                Operation.DELETE,
                principal,
                DenyReason.LAST_ADMINISTRATOR,
                "No se puede eliminar el último administrador",
            )
        return Allow()

    # ----------------- reglas ----------------- #

    def _authorize_create(self, store: Store, resource: Resource, principal: Principal, rule: Rule) -> Decision:
        if rule.kind == OPEN:
            return Allow()

        owner = self._owned_record(store, principal, rule)
        if owner is None:
            return self._deny(resource, Operation.CREATE, principal, DenyReason.FORBIDDEN, rule.detail)
        return Allow(assign={rule.field: owner.id})

    def _owns(self, store: Store, principal: Principal, rule: Rule, target) -> bool:
        if rule.kind == OPEN:
            return True
        if rule.kind == ACTIVE_ONLY:
            return bool(target.active)
        if rule.kind == SELF:
            return principal.is_durable and getattr(target, rule.field) == principal.user_id

        owner = self._owned_record(store, principal, rule)
        if owner is None:
            return False
        if rule.kind == SERVED_CLIENTS:
            return getattr(target, rule.field) in served_client_ids(store, owner)
        return getattr(target, rule.field) == owner.id

    def _scope(self, store: Store, principal: Principal, rule: Rule) -> Scope:
        if rule.kind == ACTIVE_ONLY:
            return Scope.where(active=True)
        if rule.kind == SELF:
            if not principal.is_durable:
                return Scope.nothing()
            return Scope.where(**{rule.field: principal.user_id})

        owner = self._owned_record(store, principal, rule)
        if owner is None:
            return Scope.nothing()
        if rule.kind == SERVED_CLIENTS:
            return Scope.within(rule.field, served_client_ids(store, owner))
        return Scope.where(**{rule.field: owner.id})

    @staticmethod
    def _owned_record(store: Store, principal: Principal, rule: Rule):
        if rule.kind == OWN_CLIENT:
            return resolve_owned_client(store, principal)
        if rule.kind in (OWN_PROFESSIONAL, SERVED_CLIENTS):
            return resolve_owned_professional(store, principal)
        return None

    @staticmethod
    def _deny(
        resource: Resource,
        operation: Operation,
        principal: Principal,
        reason: DenyReason,
        detail: str = "Acceso denegado",
    ) -> Deny:
        logger.info(
            "Acceso denegado (%s): %s %s por %s [%s]",
            reason.value,
            operation.value,
            resource.value,
            principal.subject,
            principal.role.value,
        )
        return Deny(reason=reason, detail=detail)
