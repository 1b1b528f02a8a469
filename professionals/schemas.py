from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr


class ProfessionalCreate(BaseModel):
    user_id: int

    full_name: str
    email: EmailStr
    specialty: str
    phone: Optional[str] = None
    license_number: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    certifications: Optional[str] = None
    active: bool = True
    available: bool = True


class ProfessionalUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    specialty: Optional[str] = None
    phone: Optional[str] = None
    license_number: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    certifications: Optional[str] = None
    available: Optional[bool] = None


class ProfessionalRead(BaseModel):
    id: int
    user_id: int
    full_name: str
    email: str
    specialty: str
    phone: Optional[str]
    license_number: Optional[str]
    license_file_path: Optional[str]
    address: Optional[str]
    rating: float
    bio: Optional[str]
    photo_url: Optional[str]
    certifications: Optional[str]
    active: bool
    available: bool
    model_config = ConfigDict(from_attributes=True)


class ProfessionalStatusUpdate(BaseModel):
    active: bool
