import logging
from typing import Generator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=False, pool_pre_ping=True)

    # check_same_thread=False: FastAPI ejecuta los endpoints síncronos en un threadpool
    engine = create_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    # SQLite no soporta SELECT ... FOR UPDATE; cada transacción toma el lock de
    # escritura al iniciar para que los escritores concurrentes se serialicen.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        # SQLite no aplica las llaves foráneas salvo que se pida por conexión
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.info("Motor SQLite configurado con transacciones BEGIN IMMEDIATE")
    return engine


def get_session(request: Request) -> Generator[Session, None, None]:
    with Session(request.app.state.engine) as session:
        yield session


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
