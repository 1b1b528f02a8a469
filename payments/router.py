import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from models import Payment, PaymentStatus, Professional
from .schemas import PaymentCreate, PaymentRead, PaymentUpdate

router = APIRouter(prefix="/payments", tags=["payments"])

logger = logging.getLogger("naxine.payments")


def _get_payment_or_404(access: Access, payment_id: int) -> Payment:
    payment = access.store.get(Payment, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Pago no encontrado")
    return payment


@router.post("/", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def create_payment(payload: PaymentCreate, access: Access = Depends(get_access)):
    access.enforce(Resource.PAYMENT, Operation.CREATE)

    if not access.store.get(Professional, payload.professional_id):
        raise HTTPException(status_code=400, detail="Profesional no encontrado")

    data = payload.model_dump()
    if data["net"] is None:
        data["net"] = data["sales"] - data["commission"]

    payment = access.store.create(Payment(**data))
    logger.info(
        "Pago %s registrado para profesional %s (neto %.2f)",
        payment.id,
        payment.professional_id,
        payment.net,
    )
    return payment


@router.get("/", response_model=List[PaymentRead])
def list_payments(
    status_filter: Optional[PaymentStatus] = Query(default=None, alias="status"),
    access: Access = Depends(get_access),
):
    scope = access.list_scope(Resource.PAYMENT)
    criteria = []
    if status_filter is not None:
        criteria.append(Payment.status == status_filter)
    return access.store.find_all(Payment, *criteria, scope=scope, order_by=Payment.date.desc())


@router.get("/search/{query}", response_model=List[PaymentRead])
def search_payments(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PAYMENT)
    pattern = f"%{query}%"
    return access.store.find_all(
        Payment,
        or_(Payment.specialty.like(pattern), Payment.action.like(pattern)),
        scope=scope,
        order_by=Payment.date.desc(),
        limit=20,
    )


@router.get("/profesional/{professional_id}/stats")
def professional_payment_stats(professional_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, professional_id)
    if not access.store.get(Professional, professional_id):
        raise HTTPException(status_code=404, detail="Profesional no encontrado")

    store = access.store
    of_professional = Payment.professional_id == professional_id
    completed = Payment.status == PaymentStatus.COMPLETADO
    return {
        "total": store.count(Payment, of_professional),
        "completed": store.count(Payment, of_professional, completed),
        "completed_net": store.total(Payment.net, of_professional, completed),
        "recent": [
            PaymentRead.model_validate(payment)
            for payment in store.find_all(Payment, of_professional, order_by=Payment.date.desc(), limit=5)
        ],
    }


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(payment_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PAYMENT, Operation.READ_ONE, payment_id)
    return _get_payment_or_404(access, payment_id)


@router.put("/{payment_id}", response_model=PaymentRead)
def update_payment(payment_id: int, payload: PaymentUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.PAYMENT, Operation.UPDATE, payment_id)
    payment = _get_payment_or_404(access, payment_id)
    return access.store.update(payment, payload.model_dump(exclude_unset=True))


@router.delete("/{payment_id}")
def delete_payment(payment_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PAYMENT, Operation.DELETE, payment_id)
    payment = _get_payment_or_404(access, payment_id)
    access.store.delete(payment)
    return {"detail": "Pago eliminado"}
