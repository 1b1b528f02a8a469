from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

from models import PaymentStatus


class PaymentCreate(BaseModel):
    professional_id: int
    balance: float
    sales: float
    commission: float
    # si no se envía: ventas - comisión
    net: Optional[float] = None
    specialty: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDIENTE
    action: Optional[str] = None


class PaymentUpdate(BaseModel):
    balance: Optional[float] = None
    sales: Optional[float] = None
    commission: Optional[float] = None
    net: Optional[float] = None
    specialty: Optional[str] = None
    status: Optional[PaymentStatus] = None
    action: Optional[str] = None


class PaymentRead(BaseModel):
    id: int
    professional_id: int
    balance: float
    sales: float
    commission: float
    net: Optional[float]
    date: datetime
    specialty: Optional[str]
    status: PaymentStatus
    action: Optional[str]
    model_config = ConfigDict(from_attributes=True)
