from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from models import AppointmentStatus


class AppointmentCreate(BaseModel):
    client_id: int
    # un profesionista siempre queda como dueño de la sesión que crea
    professional_id: Optional[int] = None
    order_number: str
    date: datetime
    status: AppointmentStatus = AppointmentStatus.PENDIENTE
    actions: Optional[str] = None
    product: Optional[str] = None
    payment_method: Optional[str] = None


class AppointmentUpdate(BaseModel):
    client_id: Optional[int] = None
    professional_id: Optional[int] = None
    order_number: Optional[str] = None
    date: Optional[datetime] = None
    status: Optional[AppointmentStatus] = None
    actions: Optional[str] = None
    product: Optional[str] = None
    payment_method: Optional[str] = None


class AppointmentRead(BaseModel):
    id: int
    client_id: int
    professional_id: int
    order_number: str
    date: datetime
    status: AppointmentStatus
    actions: Optional[str]
    product: Optional[str]
    payment_method: Optional[str]
    model_config = ConfigDict(from_attributes=True)
