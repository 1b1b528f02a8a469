import hashlib
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import uuid4

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from models import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

VERIFICATION_TOKEN_HOURS = 24
PASSWORD_RESET_SCOPE = "password_reset"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        # usuarios federados no tienen contraseña local
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(settings: Settings, user: User) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": str(user.id),
        "email": str(user.email),
        "role": user.role.value,
        "is_active": bool(user.is_active),
        "email_verified": bool(user.email_verified),
        "jti": str(uuid4()),
        "iat": now,
        "nbf": now,
        "exp": now + timedelta(minutes=settings.access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def password_fingerprint(hashed_password: Optional[str]) -> str:
    """Huella corta del hash vigente: cambia en cuanto cambia la contraseña."""
    return hashlib.sha256((hashed_password or "").encode("utf-8")).hexdigest()[:16]


def create_verification_token(
    settings: Settings,
    email: str,
    scope: str = "email_verification",
    fingerprint: Optional[str] = None,
) -> str:
    expire = datetime.utcnow() + timedelta(hours=VERIFICATION_TOKEN_HOURS)
    payload = {"email": email, "scope": scope, "jti": uuid4().hex, "exp": expire}
    if fingerprint is not None:
        payload["pwd"] = fingerprint
    return jwt.encode(payload, settings.token_confirmation_secret, algorithm="HS256")


def decode_verification_token(
    settings: Settings,
    token: str,
    scope: str = "email_verification",
) -> Optional[Dict[str, Any]]:
    """Devuelve los claims del token, o None si es inválido, expiró o es de otro tipo."""
    try:
        data = jwt.decode(token, settings.token_confirmation_secret, algorithms=["HS256"])
    except JWTError:
        return None
    if data.get("scope") != scope or not data.get("email"):
        return None
    return data
