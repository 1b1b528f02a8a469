from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Iterable, List, Mapping, Tuple, Union


class Resource(str, Enum):
    USER = "usuario"
    CLIENT = "cliente"
    PROFESSIONAL = "profesional"
    SESSION = "sesion"
    RATING = "valoracion"
    PAYMENT = "pago"
    PRICE = "precio"
    PROFESSIONAL_STATS = "estadisticas_profesional"


class Operation(str, Enum):
    CREATE = "create"
    READ_ONE = "read_one"
    READ_MANY = "read_many"
    UPDATE = "update"
    DELETE = "delete"
    # cambios administrativos de estado (rol, activo)
    MODERATE = "moderate"


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_TOKEN = "invalid_token"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    LAST_ADMINISTRATOR = "last_administrator"


@dataclass(frozen=True)
class Scope:
    """
    Predicado de filtrado para listados, expresado sólo como datos.

    ``equals`` son pares (campo, valor); ``members`` son pares (campo,
    valores permitidos). ``empty`` indica que el listado debe quedar vacío
    sin consultar la base de datos.
    """

    equals: Tuple[Tuple[str, Any], ...] = ()
    members: Tuple[Tuple[str, FrozenSet[Any]], ...] = ()
    empty: bool = False

    @classmethod
    def nothing(cls) -> "Scope":
        return cls(empty=True)

    @classmethod
    def where(cls, **equals: Any) -> "Scope":
        return cls(equals=tuple(sorted(equals.items())))

    @classmethod
    def within(cls, field_name: str, values: Iterable[Any]) -> "Scope":
        values = frozenset(values)
        if not values:
            return cls.nothing()
        return cls(members=((field_name, values),))

    def clauses(self, model) -> List[Any]:
        clauses = [getattr(model, name) == value for name, value in self.equals]
        clauses.extend(getattr(model, name).in_(sorted(values)) for name, values in self.members)
        return clauses

    def matches(self, record) -> bool:
        if self.empty:
            return False
        if any(getattr(record, name) != value for name, value in self.equals):
            return False
        return all(getattr(record, name) in values for name, values in self.members)


@dataclass(frozen=True)
class Allow:
    # campos que el router debe forzar al crear (p. ej. client_id propio)
    assign: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AllowWithScope:
    scope: Scope


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    detail: str = "Acceso denegado"


Decision = Union[Allow, AllowWithScope, Deny]
