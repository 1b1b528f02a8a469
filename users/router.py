from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from auth.security import get_password_hash
from models import Client, Professional, User
from .schemas import RoleUpdate, StatusUpdate, UserCreate, UserDetail, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_or_404(access: Access, user_id: int) -> User:
    user = access.store.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    return user


def _detail(access: Access, user: User) -> UserDetail:
    client = access.store.find_one(Client, Client.user_id == user.id)
    professional = access.store.find_one(Professional, Professional.user_id == user.id)
    return UserDetail.model_validate(user).model_copy(
        update={
            "client_id": client.id if client else None,
            "professional_id": professional.id if professional else None,
        }
    )


@router.post("/", response_model=UserDetail, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, access: Access = Depends(get_access)):
    access.enforce(Resource.USER, Operation.CREATE)

    if access.store.find_one(User, User.email == payload.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El email ya está registrado",
        )

    user = access.store.create(
        User(
            email=payload.email,
            name=payload.name,
            hashed_password=get_password_hash(payload.password),
            role=payload.role,
            email_verified=payload.email_verified,
            is_active=True,
        )
    )
    return _detail(access, user)


@router.get("/", response_model=List[UserDetail])
def list_users(access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.USER)
    users = access.store.find_all(User, scope=scope, order_by=User.created_at.desc())
    return [_detail(access, user) for user in users]


@router.get("/search/{query}", response_model=List[UserDetail])
def search_users(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.USER)
    pattern = f"%{query}%"
    users = access.store.find_all(
        User,
        or_(User.name.like(pattern), User.email.like(pattern)),
        scope=scope,
        limit=20,
    )
    return [_detail(access, user) for user in users]


@router.get("/{user_id}", response_model=UserDetail)
def get_user(user_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.USER, Operation.READ_ONE, user_id)
    return _detail(access, _get_user_or_404(access, user_id))


@router.put("/{user_id}", response_model=UserDetail)
def update_user(user_id: int, payload: UserUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.USER, Operation.UPDATE, user_id)
    user = _get_user_or_404(access, user_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("email") and data["email"] != user.email:
        if access.store.find_one(User, User.email == data["email"]):
            raise HTTPException(status_code=400, detail="El email ya está registrado")

    return _detail(access, access.store.update(user, data))


@router.put("/{user_id}/role", response_model=UserDetail)
def update_user_role(user_id: int, payload: RoleUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.USER, Operation.MODERATE, user_id)
    user = _get_user_or_404(access, user_id)
    return _detail(access, access.store.update(user, {"role": payload.role}))


@router.put("/{user_id}/status", response_model=UserDetail)
def update_user_status(user_id: int, payload: StatusUpdate, access: Access = Depends(get_access)):
    access.enforce(Resource.USER, Operation.MODERATE, user_id)
    user = _get_user_or_404(access, user_id)
    return _detail(access, access.store.update(user, {"is_active": payload.is_active}))


@router.delete("/{user_id}")
def delete_user(user_id: int, access: Access = Depends(get_access)):
    # la decisión bloquea las filas de administradores; el borrado se confirma
    # en la misma transacción
    access.enforce(Resource.USER, Operation.DELETE, user_id)
    user = _get_user_or_404(access, user_id)
    access.store.delete(user)
    return {"detail": "Usuario eliminado exitosamente"}
