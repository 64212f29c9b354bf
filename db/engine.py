"""SQLAlchemy engine utilities."""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from config.settings import db_path


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


def get_engine(path: Path | None = None) -> Engine:
    """Return an engine bound to ``path`` (defaults to the configured ``babylog.db``)."""

    url = f"sqlite:///{path or db_path()}"
    return create_engine(
        url,
        connect_args={"check_same_thread": False},
        echo=False,
    )


_initialized_paths: set[Path] = set()


def init_db(engine: Engine | None = None) -> Engine:
    """Initialize database tables if they haven't been created."""

    if engine is None:
        engine = get_engine()

    path = Path(engine.url.database or "")
    if path not in _initialized_paths:
        from db import models  # noqa: F401 – side-effect import

        Base.metadata.create_all(engine)
        _initialized_paths.add(path)

    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
