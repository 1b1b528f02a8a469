from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_

from access.decisions import Operation, Resource
from appointments.schemas import AppointmentRead
from auth.deps import Access, get_access
from models import Appointment, Client, Rating, User
from ratings.schemas import RatingRead
from .schemas import ClientCreate, ClientRead, ClientStatusUpdate, ClientUpdate

router = APIRouter(prefix="/clients", tags=["clients"])


def _get_client_or_404(access: Access, client_id: int) -> Client:
    client = access.store.get(Client, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Cliente no encontrado")
    return client


@router.post("/", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientCreate, access: Access = Depends(get_access)):
    access.enforce(Resource.CLIENT, Operation.CREATE)

    if not access.store.get(User, payload.user_id):
        raise HTTPException(status_code=400, detail="Usuario no encontrado")
    if access.store.find_one(Client, Client.user_id == payload.user_id):
        raise HTTPException(status_code=400, detail="El usuario ya tiene un perfil de cliente")

    return access.store.create(Client(**payload.model_dump()))


@router.get("/", response_model=List[ClientRead])
def list_clients(access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.CLIENT)
    return access.store.find_all(Client, scope=scope)


@router.get("/search/{query}", response_model=List[ClientRead])
def search_clients(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.CLIENT)
    pattern = f"%{query}%"
    return access.store.find_all(
        Client,
        or_(Client.full_name.like(pattern), Client.phone.like(pattern), Client.username.like(pattern)),
        scope=scope,
        limit=20,
    )


@router.get("/{client_id}", response_model=ClientRead)
def get_client(client_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.CLIENT, Operation.READ_ONE, client_id)
    return _get_client_or_404(access, client_id)


@router.put("/{client_id}", response_model=ClientRead)
def update_client(client_id: int, payload: ClientUpdate, access: Access = Depends(get_access)):
    decision = access.enforce(Resource.CLIENT, Operation.UPDATE, client_id)
    client = _get_client_or_404(access, client_id)
    data = {**payload.model_dump(exclude_unset=True), **decision.assign}
    return access.store.update(client, data)


@router.delete("/{client_id}")
def delete_client(client_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.CLIENT, Operation.DELETE, client_id)
    client = _get_client_or_404(access, client_id)
    access.store.delete(client)
    return {"detail": "Cliente eliminado"}


@router.get("/{client_id}/sessions", response_model=List[AppointmentRead])
def list_client_sessions(client_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.CLIENT, Operation.READ_ONE, client_id)
    _get_client_or_404(access, client_id)
    return access.store.find_all(
        Appointment,
        Appointment.client_id == client_id,
        scope=access.list_scope(Resource.SESSION),
        order_by=Appointment.date.desc(),
    )


@router.get("/{client_id}/ratings", response_model=List[RatingRead])
def list_client_ratings(client_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.CLIENT, Operation.READ_ONE, client_id)
    _get_client_or_404(access, client_id)
    return access.store.find_all(
        Rating,
        Rating.client_id == client_id,
        scope=access.list_scope(Resource.RATING),
        order_by=Rating.date.desc(),
    )


@router.patch("/{client_id}/status", response_model=ClientRead)
def update_client_status(client_id: int, payload: ClientStatusUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.CLIENT, Operation.MODERATE, client_id)
    client = _get_client_or_404(access, client_id)
    return access.store.update(client, {"status": payload.status})
