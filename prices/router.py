from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from models import Price
from .schemas import PriceCreate, PriceRead, PriceUpdate

router = APIRouter(prefix="/prices", tags=["prices"])


def _get_price_or_404(access: Access, price_id: int) -> Price:
    price = access.store.get(Price, price_id)
    if not price:
        raise HTTPException(status_code=404, detail="Precio no encontrado")
    return price


@router.post("/", response_model=PriceRead, status_code=status.HTTP_201_CREATED)
def create_price(payload: PriceCreate, access: Access = Depends(get_access)):
    access.enforce(Resource.PRICE, Operation.CREATE)
    return access.store.create(Price(**payload.model_dump()))


@router.get("/", response_model=List[PriceRead])
def list_prices(access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PRICE)
    return access.store.find_all(Price, scope=scope, order_by=Price.session_number)


@router.get("/search/{query}", response_model=List[PriceRead])
def search_prices(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PRICE)
    pattern = f"%{query}%"
    return access.store.find_all(
        Price,
        or_(Price.package_name.like(pattern), Price.modality.like(pattern), Price.schedule.like(pattern)),
        scope=scope,
        limit=20,
    )


@router.get("/rango/{min_price}/{max_price}", response_model=List[PriceRead])
def list_prices_in_range(min_price: float, max_price: float, access: Access = Depends(get_access)):
    if min_price > max_price:
        raise HTTPException(status_code=400, detail="El precio mínimo no puede ser mayor que el máximo")
    scope = access.list_scope(Resource.PRICE)
    return access.store.find_all(
        Price,
        Price.base_price >= min_price,
        Price.base_price <= max_price,
        scope=scope,
        order_by=Price.base_price,
    )


@router.get("/{price_id}", response_model=PriceRead)
def get_price(price_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PRICE, Operation.READ_ONE, price_id)
    return _get_price_or_404(access, price_id)


@router.put("/{price_id}", response_model=PriceRead)
def update_price(price_id: int, payload: PriceUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.PRICE, Operation.UPDATE, price_id)
    price = _get_price_or_404(access, price_id)
    return access.store.update(price, payload.model_dump(exclude_unset=True))


@router.delete("/{price_id}")
def delete_price(price_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PRICE, Operation.DELETE, price_id)
    price = _get_price_or_404(access, price_id)
    access.store.delete(price)
    return {"detail": "Precio eliminado"}
