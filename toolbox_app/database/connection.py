"""
Database engine and session management.

One relational store holds short links, click events and the catalogue.
SQLite by default, any SQLAlchemy URL (PostgreSQL in production) via settings.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from toolbox_app.config import settings


def _engine_kwargs(database_url: str) -> dict:
    """SQLite sessions are used from worker threads by the click tracker."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
