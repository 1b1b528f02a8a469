from datetime import datetime, time
from typing import Optional
from pydantic import BaseModel, ConfigDict


class PriceCreate(BaseModel):
    session_number: int
    package_name: str
    base_price: Optional[float] = None
    duration: Optional[str] = None
    modality: Optional[str] = None
    schedule: Optional[str] = None
    date: Optional[datetime] = None
    available_days: Optional[str] = None
    time_from: Optional[time] = None
    time_to: Optional[time] = None


class PriceUpdate(BaseModel):
    session_number: Optional[int] = None
    package_name: Optional[str] = None
    base_price: Optional[float] = None
    duration: Optional[str] = None
    modality: Optional[str] = None
    schedule: Optional[str] = None
    date: Optional[datetime] = None
    available_days: Optional[str] = None
    time_from: Optional[time] = None
    time_to: Optional[time] = None
    total_orders: Optional[int] = None
    total_revenue: Optional[float] = None


class PriceRead(BaseModel):
    id: int
    session_number: int
    package_name: str
    base_price: Optional[float]
    duration: Optional[str]
    modality: Optional[str]
    schedule: Optional[str]
    date: Optional[datetime]
    available_days: Optional[str]
    time_from: Optional[time]
    time_to: Optional[time]
    total_orders: int
    total_revenue: float
    model_config = ConfigDict(from_attributes=True)
