# app/database.py
from typing import Any

from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection (production) / SQLite (local + tests)
#
# Postgres:
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_pre_ping=True: validate connections before using them
#
# SQLite:
# - check_same_thread=False: FastAPI runs sync endpoints in a
#   threadpool, so a connection may be used from another thread.
# ---------------------------------------------------------

db_url = settings.DATABASE_URL

engine_kwargs: dict[str, Any] = {"echo": False}  # set echo=True to debug SQL

if db_url.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"
    engine_kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=5)

engine = create_engine(db_url, **engine_kwargs)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
