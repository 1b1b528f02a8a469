from fastapi import APIRouter, Depends, HTTPException

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from models import (
    Appointment,
    AppointmentStatus,
    Client,
    Payment,
    PaymentStatus,
    Professional,
    Rating,
    RatingStatus,
    Role,
    User,
)

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/overview")
def overview(access: Access = Depends(get_access)):
    """
    Resumen para el panel del administrador: sólo conteos de lectura.
    """
    # el listado de usuarios es exclusivo del administrador
    access.enforce(Resource.USER, Operation.READ_MANY)
    store = access.store

    return {
        "users": {
            "total": store.count(User),
            "active": store.count(User, User.is_active == True),  # noqa: E712
            "administrators": store.count(User, User.role == Role.ADMINISTRADOR),
            "professionals": store.count(User, User.role == Role.PROFESIONISTA),
        },
        "clients": store.count(Client),
        "professionals": {
            "total": store.count(Professional),
            "active": store.count(Professional, Professional.active == True),  # noqa: E712
        },
        "sessions": {
            "total": store.count(Appointment),
            "pending": store.count(Appointment, Appointment.status == AppointmentStatus.PENDIENTE),
            "completed": store.count(Appointment, Appointment.status == AppointmentStatus.COMPLETADA),
        },
        "ratings": {
            "total": store.count(Rating),
            "pending": store.count(Rating, Rating.status == RatingStatus.PENDIENTE),
        },
        "payments": {
            "total": store.count(Payment),
            "completed_net": store.total(Payment.net, Payment.status == PaymentStatus.COMPLETADO),
        },
    }


@router.get("/profesional/{professional_id}")
def professional_overview(professional_id: int, access: Access = Depends(get_access)):
    """Resumen de un profesional: sus sesiones, valoraciones e ingresos."""
    access.enforce(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, professional_id)
    store = access.store
    if not store.get(Professional, professional_id):
        raise HTTPException(status_code=404, detail="Profesional no encontrado")

    sessions = Appointment.professional_id == professional_id
    ratings = Rating.professional_id == professional_id
    payments = Payment.professional_id == professional_id
    return {
        "sessions": {
            "total": store.count(Appointment, sessions),
            "completed": store.count(Appointment, sessions, Appointment.status == AppointmentStatus.COMPLETADA),
            "pending": store.count(Appointment, sessions, Appointment.status == AppointmentStatus.PENDIENTE),
        },
        "ratings": {
            "total": store.count(Rating, ratings),
            "average": store.average(Rating.score, ratings),
        },
        "payments": {
            "total": store.count(Payment, payments),
            "completed_net": store.total(Payment.net, payments, Payment.status == PaymentStatus.COMPLETADO),
        },
    }
