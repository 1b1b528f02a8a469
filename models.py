from enum import Enum
from typing import Optional, List
from datetime import datetime, time
from sqlmodel import SQLModel, Field, Relationship


class Role(str, Enum):
    USUARIO = "usuario"
    PROFESIONISTA = "profesionista"
    ADMINISTRADOR = "administrador"


class ClientStatus(str, Enum):
    ACTIVO = "activo"
    INACTIVO = "inactivo"
    SUSPENDIDO = "suspendido"


class AppointmentStatus(str, Enum):
    PENDIENTE = "pendiente"
    COMPLETADA = "completada"
    CANCELADA = "cancelada"


class RatingStatus(str, Enum):
    PENDIENTE = "pendiente"
    APROBADA = "aprobada"
    RECHAZADA = "rechazada"


class PaymentStatus(str, Enum):
    PENDIENTE = "pendiente"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"


class UserBase(SQLModel):
    email: str = Field(index=True, unique=True)
    name: str
    role: Role = Field(default=Role.USUARIO)
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)


class User(UserBase, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    # None para identidades federadas (Cognito)
    hashed_password: Optional[str] = None
    verification_token: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_access: Optional[datetime] = None

    client: Optional["Client"] = Relationship(back_populates="user")
    professional: Optional["Professional"] = Relationship(back_populates="user")


class ClientBase(SQLModel):
    full_name: str
    phone: Optional[str] = None
    username: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    income: Optional[float] = None
    status: ClientStatus = Field(default=ClientStatus.ACTIVO)


class Client(ClientBase, table=True):
    __tablename__ = "clients"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, unique=True)

    user: User = Relationship(back_populates="client")
    appointments: List["Appointment"] = Relationship(back_populates="client")


class ProfessionalBase(SQLModel):
    full_name: str
    email: str
    phone: Optional[str] = None
    license_number: Optional[str] = None
    specialty: str
    address: Optional[str] = None
    rating: float = 0.0
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    certifications: Optional[str] = None
    license_file_path: Optional[str] = None
    active: bool = True
    available: bool = True


class Professional(ProfessionalBase, table=True):
    __tablename__ = "professionals"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, unique=True)

    user: User = Relationship(back_populates="professional")
    appointments: List["Appointment"] = Relationship(back_populates="professional")


class AppointmentBase(SQLModel):
    order_number: str
    date: datetime
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDIENTE)
    actions: Optional[str] = None
    product: Optional[str] = None
    payment_method: Optional[str] = None


class Appointment(AppointmentBase, table=True):
    """Sesión (cita) entre un cliente y un profesional."""

    __tablename__ = "sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="clients.id", index=True)
    professional_id: int = Field(foreign_key="professionals.id", index=True)

    client: Client = Relationship(back_populates="appointments")
    professional: Professional = Relationship(back_populates="appointments")


class RatingBase(SQLModel):
    product: str
    score: int = Field(ge=1, le=5)
    message: Optional[str] = None
    status: RatingStatus = Field(default=RatingStatus.PENDIENTE)


class Rating(RatingBase, table=True):
    __tablename__ = "ratings"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(foreign_key="clients.id", index=True)
    professional_id: int = Field(foreign_key="professionals.id", index=True)
    date: datetime = Field(default_factory=datetime.utcnow)


class PaymentBase(SQLModel):
    balance: float
    sales: float
    commission: float
    net: Optional[float] = None
    specialty: Optional[str] = None
    status: PaymentStatus = Field(default=PaymentStatus.PENDIENTE)
    action: Optional[str] = None


class Payment(PaymentBase, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    professional_id: int = Field(foreign_key="professionals.id", index=True)
    date: datetime = Field(default_factory=datetime.utcnow)


class PriceBase(SQLModel):
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


class Price(PriceBase, table=True):
    __tablename__ = "prices"

    id: Optional[int] = Field(default=None, primary_key=True)
    total_orders: int = 0
    total_revenue: float = 0.0
