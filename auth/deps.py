from dataclasses import dataclass
from typing import Optional, Union

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from access.decisions import Allow, AllowWithScope, Deny, DenyReason, Operation, Resource, Scope
from access.policy import PolicyEngine
from access.principal import Principal
from auth.gate import AuthError, AuthGate
from store import Store, get_store

# auto_error=False: la ausencia de token la resuelve el gate (Unauthenticated)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

DENY_STATUS = {
    DenyReason.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    DenyReason.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    DenyReason.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    DenyReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    DenyReason.LAST_ADMINISTRATOR: status.HTTP_400_BAD_REQUEST,
}


def get_auth_gate(request: Request) -> AuthGate:
    return request.app.state.auth_gate


def get_policy_engine(request: Request) -> PolicyEngine:
    return request.app.state.policy_engine


def get_notifier(request: Request):
    return request.app.state.notifier


def get_settings(request: Request):
    return request.app.state.settings


def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    store: Store = Depends(get_store),
    gate: AuthGate = Depends(get_auth_gate),
) -> Principal:
    """
    Obtiene el principal de la petición a partir del bearer token.
    """
    try:
        return gate.authenticate(store, token)
    except AuthError as exc:
        raise HTTPException(
            status_code=DENY_STATUS[exc.reason],
            detail=exc.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


@dataclass
class Access:
    """Principal, store y motor de políticas de una petición."""

    principal: Principal
    store: Store
    engine: PolicyEngine

    def enforce(
        self,
        resource: Resource,
        operation: Operation,
        target_id: Optional[int] = None,
    ) -> Union[Allow, AllowWithScope]:
        decision = self.engine.authorize(self.store, resource, operation, self.principal, target_id)
        if isinstance(decision, Deny):
            raise HTTPException(status_code=DENY_STATUS[decision.reason], detail=decision.detail)
        return decision

    def list_scope(self, resource: Resource) -> Optional[Scope]:
        """Autoriza un listado y devuelve su scope (None = sin filtrar)."""
        decision = self.enforce(resource, Operation.READ_MANY)
        if isinstance(decision, AllowWithScope):
            return decision.scope
        return None


def get_access(
    principal: Principal = Depends(get_current_principal),
    store: Store = Depends(get_store),
    engine: PolicyEngine = Depends(get_policy_engine),
) -> Access:
    return Access(principal=principal, store=store, engine=engine)
