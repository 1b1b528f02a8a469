from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from auth.schemas import UserRead
from models import Role


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str
    role: Role = Role.USUARIO
    email_verified: bool = True


class UserUpdate(BaseModel):
    # rol y estado se cambian en sus propios endpoints
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    email_verified: Optional[bool] = None


class RoleUpdate(BaseModel):
    role: Role


class StatusUpdate(BaseModel):
    is_active: bool


class UserDetail(UserRead):
    client_id: Optional[int] = None
    professional_id: Optional[int] = None
