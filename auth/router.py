import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from access.decisions import Operation, Resource
from config import Settings
from models import Role, User
from notifications import password_reset_email, verification_email
from store import Store, get_store
from .deps import Access, get_access, get_notifier, get_settings
from .schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    ProfileUpdate,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    UserRead,
)
from .security import (
    PASSWORD_RESET_SCOPE,
    create_access_token,
    create_verification_token,
    decode_verification_token,
    get_password_hash,
    password_fingerprint,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ----------------- helpers ----------------- #

def get_user_by_email(store: Store, email: str) -> Optional[User]:
    return store.find_one(User, User.email == email)


def _send_verification(notifier, settings: Settings, user: User) -> None:
    url = f"{settings.frontend_url}/verify-email/{user.verification_token}"
    subject, html = verification_email(user.name, url)
    notifier.send(user.email, subject, html)


def _own_user(access: Access) -> User:
    user_id = access.principal.user_id
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
    access.enforce(Resource.USER, Operation.READ_ONE, user_id)
    user = access.store.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")
    return user


# ----------------- endpoints ----------------- #

@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    notifier=Depends(get_notifier),
):
    if get_user_by_email(store, payload.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El correo electrónico ya está registrado",
        )

    # el rol siempre es 'usuario'; sólo un administrador puede cambiarlo
    user = store.create(
        User(
            name=payload.name,
            email=payload.email,
            hashed_password=get_password_hash(payload.password),
            role=Role.USUARIO,
            email_verified=False,
            is_active=True,
            verification_token=create_verification_token(settings, payload.email),
        )
    )
    _send_verification(notifier, settings, user)
    logger.info("Usuario registrado: %s", user.id)
    return user


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    user = get_user_by_email(store, payload.email)
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Credenciales inválidas")

    if not user.email_verified:
        raise HTTPException(
            status_code=401,
            detail="Por favor verifica tu correo electrónico antes de iniciar sesión",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=401,
            detail="Tu cuenta ha sido desactivada. Contacta al administrador.",
        )

    store.update(user, {"last_access": datetime.utcnow()})
    access_token = create_access_token(settings, user)
    return LoginResponse(access_token=access_token, user=UserRead.model_validate(user))


@router.post("/logout")
def logout():
    # Con JWT puro, el logout es del lado del cliente.
    return {"detail": "Logout exitoso. Borra el token en el cliente."}


@router.get("/verify-email/{token}")
def verify_email(
    token: str,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    claims = decode_verification_token(settings, token)
    if not claims:
        raise HTTPException(status_code=400, detail="Token inválido o expirado")

    user = get_user_by_email(store, claims["email"])
    if not user:
        raise HTTPException(status_code=400, detail="Usuario no encontrado")
    # sólo vale el último enlace emitido y una sola vez
    if user.verification_token != token:
        raise HTTPException(status_code=400, detail="Token inválido o expirado")

    store.update(
        user,
        {"email_verified": True, "verified_at": datetime.utcnow(), "verification_token": None},
    )
    return {"detail": "Email verificado exitosamente"}


@router.post("/resend-verification")
def resend_verification(
    payload: ResendVerificationRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    notifier=Depends(get_notifier),
):
    user = get_user_by_email(store, payload.email)
    if not user:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    if user.email_verified:
        raise HTTPException(status_code=400, detail="El email ya está verificado")

    store.update(user, {"verification_token": create_verification_token(settings, user.email)})
    _send_verification(notifier, settings, user)
    return {"detail": "Email de verificación reenviado"}


@router.post("/password/forgot")
def forgot_password(
    payload: ForgotPasswordRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
    notifier=Depends(get_notifier),
):
    user = get_user_by_email(store, payload.email)
    # misma respuesta exista o no el usuario, para no filtrar correos
    if user:
        reset_token = create_verification_token(
            settings,
            user.email,
            scope=PASSWORD_RESET_SCOPE,
            fingerprint=password_fingerprint(user.hashed_password),
        )
        subject, html = password_reset_email(user.name, f"{settings.frontend_url}/reset-password/{reset_token}")
        notifier.send(user.email, subject, html)
    return {"detail": "Si el correo existe, se envió un enlace de recuperación."}


@router.post("/password/reset")
def reset_password(
    payload: ResetPasswordRequest,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    claims = decode_verification_token(settings, payload.token, scope=PASSWORD_RESET_SCOPE)
    if not claims:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token inválido o expirado",
        )

    user = get_user_by_email(store, claims["email"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Usuario no encontrado",
        )
    # el enlace muere en cuanto cambia la contraseña
    if claims.get("pwd") != password_fingerprint(user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token inválido o expirado",
        )

    store.update(user, {"hashed_password": get_password_hash(payload.new_password)})
    return {"detail": "Contraseña actualizada correctamente"}


@router.get("/profile", response_model=UserRead)
def get_profile(access: Access = Depends(get_access)):
    return _own_user(access)


@router.put("/profile", response_model=UserRead)
def update_profile(payload: ProfileUpdate, access: Access = Depends(get_access)):
    user = _own_user(access)
    return access.store.update(user, payload.model_dump(exclude_unset=True, exclude_none=True))


@router.put("/change-password")
def change_password(payload: ChangePasswordRequest, access: Access = Depends(get_access)):
    user = _own_user(access)
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Contraseña actual incorrecta")

    access.store.update(user, {"hashed_password": get_password_hash(payload.new_password)})
    return {"detail": "Contraseña actualizada exitosamente"}
