from dataclasses import dataclass
from typing import Optional

from models import Role


@dataclass(frozen=True)
class Principal:
    """
    Identidad autenticada de una petición.

    Se construye en cada petición a partir de un token verificado y se
    descarta al terminar. ``user_id`` es None cuando el token viene del
    proveedor externo y no existe un usuario local con ese email.
    """

    subject: str
    role: Role = Role.USUARIO
    email: Optional[str] = None
    user_id: Optional[int] = None
    email_verified: bool = False
    active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMINISTRADOR

    @property
    def is_durable(self) -> bool:
        return self.user_id is not None
