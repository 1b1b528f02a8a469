from typing import Optional
from pydantic import BaseModel, ConfigDict

from models import ClientStatus


class ClientCreate(BaseModel):
    user_id: int
    full_name: str
    phone: Optional[str] = None
    username: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    income: Optional[float] = None
    status: ClientStatus = ClientStatus.ACTIVO


class ClientUpdate(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    username: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    income: Optional[float] = None


class ClientStatusUpdate(BaseModel):
    status: ClientStatus


class ClientRead(BaseModel):
    id: int
    user_id: int
    full_name: str
    phone: Optional[str]
    username: Optional[str]
    city: Optional[str]
    postal_code: Optional[str]
    income: Optional[float]
    status: ClientStatus
    model_config = ConfigDict(from_attributes=True)
