# booking_engine/db.py

import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from .config import get_settings

logger = logging.getLogger(__name__)


def make_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # required for SQLite + FastAPI
    return create_engine(database_url, echo=echo, connect_args=connect_args)


_settings = get_settings()

# Engine = connection to the database
engine = make_engine(_settings.database_url, echo=_settings.database_echo)


def init_db(bind: Engine = engine) -> None:
    # imported for table registration
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind)
    logger.info("Database schema ready")


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
