import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Type, TypeVar

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from access.decisions import Scope
from database import get_session

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class StorageError(Exception):
    """Fallo de la capa de persistencia (conexión, restricciones, etc.)."""

    def __init__(self, message: str, *, conflict: bool = False):
        super().__init__(message)
        self.conflict = conflict


class Store:
    """
    CRUD genérico sobre una sesión de SQLModel.

    Los routers y el motor de políticas sólo hablan con la base de datos a
    través de esta clase; nunca arman SQL crudo.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            self.session.rollback()
            logger.error("Violación de integridad al %s: %s", action, exc.orig)
            raise StorageError(f"Conflicto al {action}", conflict=True) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Error de almacenamiento al %s: %s", action, exc)
            raise StorageError(f"Error de almacenamiento al {action}") from exc

    # ----------------- lecturas ----------------- #

    def get(self, model: Type[ModelT], record_id: Any) -> Optional[ModelT]:
        with self._guard("leer"):
            return self.session.get(model, record_id)

    def find_one(self, model: Type[ModelT], *criteria) -> Optional[ModelT]:
        with self._guard("leer"):
            return self.session.exec(select(model).where(*criteria)).first()

    def find_all(
        self,
        model: Type[ModelT],
        *criteria,
        scope: Optional[Scope] = None,
        order_by=None,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        if scope is not None and scope.empty:
            # nunca se consulta con un filtro nulo: equivaldría a no filtrar
            return []

        statement = select(model)
        if scope is not None:
            statement = statement.where(*scope.clauses(model))
        if criteria:
            statement = statement.where(*criteria)
        if order_by is not None:
            statement = statement.order_by(order_by)
        if limit is not None:
            statement = statement.limit(limit)

        with self._guard("listar"):
            return list(self.session.exec(statement).all())

    def count(self, model: Type[ModelT], *criteria) -> int:
        statement = select(func.count()).select_from(model)
        if criteria:
            statement = statement.where(*criteria)
        with self._guard("contar"):
            return int(self.session.exec(statement).one())

    def total(self, column, *criteria) -> float:
        statement = select(func.coalesce(func.sum(column), 0))
        if criteria:
            statement = statement.where(*criteria)
        with self._guard("sumar"):
            return float(self.session.exec(statement).one())

    def average(self, column, *criteria) -> Optional[float]:
        statement = select(func.avg(column))
        if criteria:
            statement = statement.where(*criteria)
        with self._guard("promediar"):
            value = self.session.exec(statement).one()
        return None if value is None else round(float(value), 2)

    def lock_all(self, model: Type[ModelT], *criteria) -> List[ModelT]:
        """Lee y bloquea (FOR UPDATE) las filas dentro de la transacción actual."""
        statement = select(model).where(*criteria).with_for_update()
        with self._guard("bloquear"):
            return list(self.session.exec(statement).all())

    # ----------------- escrituras ----------------- #

    def create(self, record: ModelT) -> ModelT:
        with self._guard("crear"):
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
        return record

    def update(self, record: ModelT, data: Mapping[str, Any], *, commit: bool = True) -> ModelT:
        for key, value in data.items():
            setattr(record, key, value)
        with self._guard("actualizar"):
            self.session.add(record)
            if commit:
                self.session.commit()
                self.session.refresh(record)
        return record

    def delete(self, record: SQLModel, *, commit: bool = True) -> None:
        with self._guard("eliminar"):
            self.session.delete(record)
            if commit:
                self.session.commit()

    def commit(self) -> None:
        with self._guard("confirmar"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


def get_store(session: Session = Depends(get_session)) -> Store:
    return Store(session)
