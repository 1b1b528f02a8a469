import shutil
from pathlib import Path
from typing import List
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File
from sqlalchemy import or_

from access.decisions import Operation, Resource
from auth.deps import Access, get_access
from models import Professional, Rating, RatingStatus, Role, User
from ratings.schemas import RatingRead
from .schemas import ProfessionalCreate, ProfessionalRead, ProfessionalStatusUpdate, ProfessionalUpdate

router = APIRouter(prefix="/professionals", tags=["professionals"])

UPLOADS_DIR = Path("uploads/licenses")


def _get_professional_or_404(access: Access, professional_id: int) -> Professional:
    professional = access.store.get(Professional, professional_id)
    if not professional:
        raise HTTPException(status_code=404, detail="Profesional no encontrado")
    return professional


@router.post(
    "/",
    response_model=ProfessionalRead,
    status_code=status.HTTP_201_CREATED,
)
def create_professional(payload: ProfessionalCreate, access: Access = Depends(get_access)):
    access.enforce(Resource.PROFESSIONAL, Operation.CREATE)

    # 1) el usuario dueño debe existir y no tener ya un perfil profesional
    user = access.store.get(User, payload.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="Usuario no encontrado")
    if access.store.find_one(Professional, Professional.user_id == payload.user_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El usuario ya tiene un perfil profesional",
        )

    # 2) crear professional ligado al user
    professional = access.store.create(Professional(**payload.model_dump()))

    # 3) el usuario pasa a ser profesionista (los administradores conservan su rol)
    if user.role == Role.USUARIO:
        access.store.update(user, {"role": Role.PROFESIONISTA})

    return professional


@router.get("/", response_model=List[ProfessionalRead])
def list_professionals(access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PROFESSIONAL)
    return access.store.find_all(Professional, scope=scope)


@router.get("/specialty/{specialty}", response_model=List[ProfessionalRead])
def list_professionals_by_specialty(specialty: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PROFESSIONAL)
    return access.store.find_all(Professional, Professional.specialty == specialty, scope=scope)


@router.get("/disponibles", response_model=List[ProfessionalRead])
def list_available_professionals(access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PROFESSIONAL)
    return access.store.find_all(
        Professional,
        Professional.available == True,  # noqa: E712
        Professional.active == True,  # noqa: E712
        scope=scope,
    )


@router.get("/search/{query}", response_model=List[ProfessionalRead])
def search_professionals(query: str, access: Access = Depends(get_access)):
    scope = access.list_scope(Resource.PROFESSIONAL)
    pattern = f"%{query}%"
    return access.store.find_all(
        Professional,
        or_(
            Professional.full_name.like(pattern),
            Professional.specialty.like(pattern),
            Professional.email.like(pattern),
        ),
        scope=scope,
        limit=20,
    )


@router.get("/{professional_id}", response_model=ProfessionalRead)
def get_professional(professional_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PROFESSIONAL, Operation.READ_ONE, professional_id)
    return _get_professional_or_404(access, professional_id)


@router.get("/{professional_id}/ratings", response_model=List[RatingRead])
def list_professional_ratings(professional_id: int, access: Access = Depends(get_access)):
    # reseñas públicas: sólo las aprobadas de un profesional visible
    access.enforce(Resource.PROFESSIONAL, Operation.READ_ONE, professional_id)
    _get_professional_or_404(access, professional_id)
    return access.store.find_all(
        Rating,
        Rating.professional_id == professional_id,
        Rating.status == RatingStatus.APROBADA,
        order_by=Rating.date.desc(),
    )


@router.put("/{professional_id}", response_model=ProfessionalRead)
def update_professional(
    professional_id: int,
    payload: ProfessionalUpdate,
    access: Access = Depends(get_access),
):
    access.enforce(Resource.PROFESSIONAL, Operation.UPDATE, professional_id)
    professional = _get_professional_or_404(access, professional_id)
    return access.store.update(professional, payload.model_dump(exclude_unset=True))


@router.put("/{professional_id}/license", response_model=ProfessionalRead)
def upload_license(
    professional_id: int,
    license_file: UploadFile = File(...),
    access: Access = Depends(get_access),
):
    access.enforce(Resource.PROFESSIONAL, Operation.UPDATE, professional_id)
    professional = _get_professional_or_404(access, professional_id)

    # guardar archivo de cédula en disco
    UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
    ext = Path(license_file.filename or "").suffix  # .pdf, .jpg, etc.
    file_path = UPLOADS_DIR / f"{uuid4().hex}{ext}"

    with file_path.open("wb") as f:
        shutil.copyfileobj(license_file.file, f)

    return access.store.update(professional, {"license_file_path": str(file_path)})


@router.delete("/{professional_id}")
def delete_professional(professional_id: int, access: Access = Depends(get_access)):
    access.enforce(Resource.PROFESSIONAL, Operation.DELETE, professional_id)
    professional = _get_professional_or_404(access, professional_id)
    access.store.delete(professional)
    return {"detail": "Profesional eliminado"}


@router.patch("/{professional_id}/status", response_model=ProfessionalRead)
def update_professional_status(
    professional_id: int,
    payload: ProfessionalStatusUpdate,
    access: Access = Depends(get_access),
):
    access.enforce(Resource.PROFESSIONAL, Operation.MODERATE, professional_id)
    professional = _get_professional_or_404(access, professional_id)
    return access.store.update(professional, {"active": payload.active})
