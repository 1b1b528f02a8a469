from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from models import Appointment, AppointmentStatus, Client, Professional
from .schemas import AppointmentCreate, AppointmentRead, AppointmentUpdate

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _get_appointment_or_404(access: Access, appointment_id: int) -> Appointment:
    appointment = access.store.get(Appointment, appointment_id)
    if not appointment:
        raise HTTPException(status_code=404, detail="Sesión no encontrada")
    return appointment


def _check_parties(access: Access, data: dict) -> None:
    if "client_id" in data and not access.store.get(Client, data["client_id"]):
        raise HTTPException(status_code=400, detail="Cliente no encontrado")
    if "professional_id" in data and not access.store.get(Professional, data["professional_id"]):
        raise HTTPException(status_code=400, detail="Profesional no encontrado")


@router.post("/", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
def create_appointment(payload: AppointmentCreate, access: Access = Depends(get_access)):
    decision = access.enforce(Resource.SESSION, Operation.CREATE)
    data = {**payload.model_dump(), **decision.assign}

    if data.get("professional_id") is None:
        raise HTTPException(status_code=400, detail="Se requiere el profesional de la sesión")
    _check_parties(access, data)

    return access.store.create(Appointment(**data))


@router.get("/", response_model=List[AppointmentRead])
def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(default=None, alias="status"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    access: Access = Depends(get_access),
):
    scope = access.list_scope(Resource.SESSION)

    criteria = []
    if status_filter is not None:
        criteria.append(Appointment.status == status_filter)
    if date_from is not None:
        criteria.append(Appointment.date >= date_from)
    if date_to is not None:
        criteria.append(Appointment.date <= date_to)

    return access.store.find_all(
        Appointment,
        *criteria,
        scope=scope,
        order_by=Appointment.date.desc(),
    )


@router.get("/search/{query}", response_model=List[AppointmentRead])
def search_appointments(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.SESSION)
    pattern = f"%{query}%"
    return access.store.find_all(
        Appointment,
        or_(
            Appointment.order_number.like(pattern),
            Appointment.product.like(pattern),
            Appointment.payment_method.like(pattern),
        ),
        scope=scope,
        order_by=Appointment.date.desc(),
        limit=20,
    )


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(appointment_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.SESSION, Operation.READ_ONE, appointment_id)
    return _get_appointment_or_404(access, appointment_id)


@router.put("/{appointment_id}", response_model=AppointmentRead)
def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    access: Access = Depends(get_access),
):
    decision = access.enforce(Resource.SESSION, Operation.UPDATE, appointment_id)
    appointment = _get_appointment_or_404(access, appointment_id)

    data = {**payload.model_dump(exclude_unset=True), **decision.assign}
    _check_parties(access, data)
    return access.store.update(appointment, data)


@router.delete("/{appointment_id}")
def delete_appointment(appointment_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.SESSION, Operation.DELETE, appointment_id)
    appointment = _get_appointment_or_404(access, appointment_id)
    access.store.delete(appointment)
    return {"detail": "Sesión eliminada"}
