from typing import Optional, Set

from access.principal import Principal
from models import Appointment, Client, Professional
from store import Store


def resolve_owned_client(store: Store, principal: Principal) -> Optional[Client]:
    """Cliente cuyo usuario dueño es el principal, o None."""
    if not principal.is_durable:
        return None
    return store.find_one(Client, Client.user_id == principal.user_id)


def resolve_owned_professional(store: Store, principal: Principal) -> Optional[Professional]:
    """Profesional cuyo usuario dueño es el principal, o None."""
    if not principal.is_durable:
        return None
    return store.find_one(Professional, Professional.user_id == principal.user_id)


def served_client_ids(store: Store, professional: Professional) -> Set[int]:
    # clientes con al menos una sesión con el profesional
    sessions = store.find_all(Appointment, Appointment.professional_id == professional.id)
    return {s.client_id for s in sessions}
