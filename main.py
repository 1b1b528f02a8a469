# main.py
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import models  # noqa: F401  registra las tablas en SQLModel.metadata
from access.policy import PolicyEngine
from auth.gate import build_auth_gate
from config import Settings, get_settings
from database import build_engine, create_db_and_tables
from notifications import build_notifier
from store import StorageError

from auth.router import router as auth_router
from users.router import router as users_router
from clients.router import router as clients_router
from professionals.router import router as professionals_router
from appointments.router import router as appointments_router
from ratings.router import router as ratings_router
from payments.router import router as payments_router
from prices.router import router as prices_router
from stats.router import router as stats_router

logger = logging.getLogger("naxine")


def create_app(settings: Optional[Settings] = None, notifier=None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    app = FastAPI(
        title="NAXINE BACKEND",
        version="0.1.0",
    )

    # dependencias de larga vida: se construyen una vez y se inyectan con Depends
    app.state.settings = settings
    app.state.engine = build_engine(settings.database_url)
    app.state.auth_gate = build_auth_gate(settings)
    app.state.policy_engine = PolicyEngine()
    app.state.notifier = notifier or build_notifier(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(clients_router)
    app.include_router(professionals_router)
    app.include_router(appointments_router)
    app.include_router(ratings_router)
    app.include_router(payments_router)
    app.include_router(prices_router)
    app.include_router(stats_router)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        if exc.conflict:
            return JSONResponse(status_code=409, content={"detail": str(exc)})
        return JSONResponse(status_code=500, content={"detail": "Error de almacenamiento"})

    @app.on_event("startup")
    def on_startup():
        create_db_and_tables(app.state.engine)
        logger.info("API lista (modo de autenticación: %s)", settings.auth_mode)

    @app.get("/", tags=["health"])
    def root():
        return {"message": "OK, API corriendo"}

    return app


app = create_app()
