from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from models import Client, Professional, Rating
from .schemas import RatingCreate, RatingRead, RatingUpdate

router = APIRouter(prefix="/ratings", tags=["ratings"])


def _get_rating_or_404(access: Access, rating_id: int) -> Rating:
    rating = access.store.get(Rating, rating_id)
    if not rating:
        raise HTTPException(status_code=404, detail="Valoración no encontrada")
    return rating


@router.post("/", response_model=RatingRead, status_code=status.HTTP_201_CREATED)
def create_rating(payload: RatingCreate, access: Access = Depends(get_access)):
    decision = access.enforce(Resource.RATING, Operation.CREATE)

    # el client_id del cuerpo sólo cuenta si el autor no tiene perfil de cliente
    data = {**payload.model_dump(), **decision.assign}
    if data.get("client_id") is None:
        raise HTTPException(status_code=400, detail="Se requiere el cliente de la valoración")
    if not access.store.get(Client, data["client_id"]):
        raise HTTPException(status_code=400, detail="Cliente no encontrado")
    if not access.store.get(Professional, data["professional_id"]):
        raise HTTPException(status_code=400, detail="Profesional no encontrado")

    return access.store.create(Rating(**data))


@router.get("/", response_model=List[RatingRead])
def list_ratings(access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.RATING)
    return access.store.find_all(Rating, scope=scope, order_by=Rating.date.desc())


@router.get("/search/{query}", response_model=List[RatingRead])
def search_ratings(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.RATING)
    pattern = f"%{query}%"
    return access.store.find_all(
        Rating,
        or_(Rating.message.like(pattern), Rating.product.like(pattern)),
        scope=scope,
        order_by=Rating.date.desc(),
        limit=20,
    )


@router.get("/profesional/{professional_id}/stats")
def professional_rating_stats(professional_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PROFESSIONAL_STATS, Operation.READ_ONE, professional_id)
    if not access.store.get(Professional, professional_id):
        raise HTTPException(status_code=404, detail="Profesional no encontrado")

    store = access.store
    of_professional = Rating.professional_id == professional_id
    return {
        "total": store.count(Rating, of_professional),
        "average": store.average(Rating.score, of_professional),
        "by_score": {score: store.count(Rating, of_professional, Rating.score == score) for score in range(1, 6)},
        "recent": [
            RatingRead.model_validate(rating)
            for rating in store.find_all(Rating, of_professional, order_by=Rating.date.desc(), limit=5)
        ],
    }


@router.get("/{rating_id}", response_model=RatingRead)
def get_rating(rating_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.RATING, Operation.READ_ONE, rating_id)
    return _get_rating_or_404(access, rating_id)


@router.put("/{rating_id}", response_model=RatingRead)
def update_rating(rating_id: int, payload: RatingUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.RATING, Operation.UPDATE, rating_id)
    rating = _get_rating_or_404(access, rating_id)
    return access.store.update(rating, payload.model_dump(exclude_unset=True))


@router.delete("/{rating_id}")
def delete_rating(rating_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.RATING, Operation.DELETE, rating_id)
    rating = _get_rating_or_404(access, rating_id)
    access.store.delete(rating)
    return {"detail": "Valoración eliminada"}
