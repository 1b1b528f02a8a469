from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from models import RatingStatus


class RatingCreate(BaseModel):
    # se ignora cuando el autor tiene perfil de cliente: siempre se usa el suyo
    client_id: Optional[int] = None
    professional_id: int
    product: str
    score: int = Field(ge=1, le=5)
    message: Optional[str] = None


class RatingUpdate(BaseModel):
    product: Optional[str] = None
    score: Optional[int] = Field(default=None, ge=1, le=5)
    message: Optional[str] = None
    status: Optional[RatingStatus] = None


class RatingRead(BaseModel):
    id: int
    client_id: int
    professional_id: int
    product: str
    score: int
    message: Optional[str]
    date: datetime
    status: RatingStatus
    model_config = ConfigDict(from_attributes=True)
