import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from access.decisions import DenyReason
from access.principal import Principal
from config import AUTH_MODE_COGNITO, Settings
from models import Role, User
from store import StorageError, Store

logger = logging.getLogger(__name__)


class AuthError(Exception):
    def __init__(self, reason: DenyReason, detail: str):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


class TokenVerificationError(Exception):
    pass


# ----------------- verificadores ----------------- #

class LocalTokenVerifier:
    """Tokens firmados por este backend con un secreto HMAC."""

    requires_local_user = True

    def __init__(self, secret: str, algorithm: str, issuer: str, audience: str):
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer
        self._audience = audience

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                audience=self._audience,
                issuer=self._issuer,
            )
        except JWTError as exc:
            raise TokenVerificationError(str(exc)) from exc

    def find_user(self, store: Store, claims: Dict[str, Any]) -> Optional[User]:
        try:
            user_id = int(claims.get("sub"))
        except (TypeError, ValueError) as exc:
            raise TokenVerificationError("sub inválido") from exc
        return store.get(User, user_id)


class CognitoTokenVerifier:
    """
    Tokens emitidos por un user pool de AWS Cognito (RS256).

    Las llaves públicas (JWKS) se descargan la primera vez y se vuelven a
    pedir cuando llega un ``kid`` desconocido (rotación de llaves).
    """

    requires_local_user = False

    def __init__(self, issuer: str, jwks_url: str, app_client_id: Optional[str], timeout: float = 5.0):
        self._issuer = issuer
        self._jwks_url = jwks_url
        self._app_client_id = app_client_id
        self._timeout = timeout
        self._keys: Dict[str, Dict[str, Any]] = {}

    def _fetch_keys(self) -> Dict[str, Dict[str, Any]]:
        try:
            response = httpx.get(self._jwks_url, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("No se pudieron descargar las llaves de Cognito: %s", exc)
            raise TokenVerificationError("JWKS no disponible") from exc
        keys = {key["kid"]: key for key in response.json().get("keys", [])}
        logger.info("Llaves de Cognito descargadas: %d", len(keys))
        return keys

    def _key_for(self, kid: str) -> Dict[str, Any]:
        if kid not in self._keys:
            self._keys = self._fetch_keys()
        if kid not in self._keys:
            raise TokenVerificationError(f"kid desconocido: {kid}")
        return self._keys[kid]

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            header = jwt.get_unverified_header(token)
            key = self._key_for(header.get("kid", ""))
            claims = jwt.decode(
                token,
                key,
                algorithms=["RS256"],
                issuer=self._issuer,
                options={"verify_aud": False, "verify_at_hash": False},
            )
        except JWTError as exc:
            raise TokenVerificationError(str(exc)) from exc

        token_use = claims.get("token_use")
        if token_use not in ("id", "access"):
            raise TokenVerificationError(f"token_use inválido: {token_use}")
        if self._app_client_id:
            client_id = claims.get("aud") if token_use == "id" else claims.get("client_id")
            if client_id != self._app_client_id:
                raise TokenVerificationError("token emitido para otro cliente")
        return claims

    def find_user(self, store: Store, claims: Dict[str, Any]) -> Optional[User]:
        email = claims.get("email")
        if not email:
            return None
        return store.find_one(User, User.email == email)


# ----------------- claims -> principal ----------------- #

def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _role_from_claims(claims: Dict[str, Any]) -> Role:
    raw = claims.get("role") or claims.get("custom:role")
    if not raw:
        groups = claims.get("cognito:groups") or []
        raw = groups[0] if groups else None
    if not raw:
        return Role.USUARIO
    try:
        return Role(raw)
    except ValueError:
        logger.warning("Rol desconocido en el token (%s); se usa 'usuario'", raw)
        return Role.USUARIO


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    return Principal(
        subject=str(claims.get("sub", "")),
        role=_role_from_claims(claims),
        email=claims.get("email"),
        email_verified=_as_bool(claims.get("email_verified"), False),
        active=_as_bool(claims.get("is_active"), True),
    )


# ----------------- gate ----------------- #

class AuthGate:
    """
    Verifica el bearer token y arma el ``Principal`` de la petición.

    Se construye una vez al arrancar con una configuración inmutable y se
    inyecta en los endpoints.
    """

    def __init__(self, verifier):
        self.verifier = verifier

    def authenticate(self, store: Store, token: Optional[str]) -> Principal:
        if not token or not token.strip():
            raise AuthError(DenyReason.UNAUTHENTICATED, "Token no proporcionado")

        try:
            claims = self.verifier.verify(token.strip())
            principal = principal_from_claims(claims)
            user = self.verifier.find_user(store, claims)
        except TokenVerificationError as exc:
            logger.warning("Token rechazado: %s", exc)
            raise AuthError(DenyReason.INVALID_TOKEN, "Token inválido") from exc

        if user is None:
            if self.verifier.requires_local_user:
                logger.warning("Token válido para un usuario inexistente: sub=%s", principal.subject)
                raise AuthError(DenyReason.INVALID_TOKEN, "No se pudieron validar las credenciales")
            return principal

        if not user.is_active or not principal.active:
            raise AuthError(DenyReason.UNAUTHENTICATED, "Usuario inactivo")

        self._touch_last_access(store, user)
        # el rol y la verificación vigentes son los de la fila, no los del token
        return replace(
            principal,
            user_id=user.id,
            role=user.role,
            email_verified=user.email_verified,
            email=principal.email or user.email,
        )

    @staticmethod
    def _touch_last_access(store: Store, user: User) -> None:
        try:
            store.update(user, {"last_access": datetime.utcnow()})
        except StorageError as exc:
            # registrar el último acceso nunca tumba la petición
            store.rollback()
            logger.warning("No se pudo registrar el último acceso de %s: %s", user.id, exc)


def build_auth_gate(settings: Settings) -> AuthGate:
    if settings.auth_mode == AUTH_MODE_COGNITO:
        verifier = CognitoTokenVerifier(
            issuer=settings.cognito_issuer,
            jwks_url=settings.cognito_jwks_url,
            app_client_id=settings.cognito_app_client_id,
        )
    else:
        verifier = LocalTokenVerifier(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        )
    logger.info("Autenticación configurada en modo %s", settings.auth_mode)
    return AuthGate(verifier)
