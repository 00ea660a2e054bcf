# feedstore/core/database.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from contextlib import contextmanager
from loguru import logger
from ..core.config import get_settings
from ..core.errors import StorageFailure
from ..domain.db_models import Base
import os

_engine = None
_SessionLocal = None


def create_db_engine(url: str, timeout: float | None = None, echo: bool = False) -> Engine:
    """Create an engine; `timeout` bounds how long a call may wait on the store."""
    if url.startswith("sqlite"):
        db_path = url[len("sqlite:///"):] if url.startswith("sqlite:///") else ""
        if db_path and db_path != ":memory:":
            os.makedirs(os.path.dirname(db_path) if os.path.dirname(db_path) else ".", exist_ok=True)
        connect_args = {"check_same_thread": False}
        if timeout is not None:
            connect_args["timeout"] = timeout
        return create_engine(url, connect_args=connect_args, echo=echo)

    kwargs = {"echo": echo, "pool_pre_ping": True}
    if timeout is not None:
        kwargs["pool_timeout"] = timeout
    return create_engine(url, **kwargs)


def get_engine():
    """Get or create database engine"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(settings.DB_URL, timeout=settings.DB_TIMEOUT_SECONDS, echo=settings.DB_ECHO)
    return _engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_session_local():
    """Get or create session factory"""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = make_session_factory(get_engine())
    return _SessionLocal


def init_db(engine: Engine | None = None):
    """Initialize database tables"""
    engine = engine if engine is not None else get_engine()
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker | None = None):
    """One transaction: commit on success, roll back on any error."""
    SessionLocal = session_factory if session_factory is not None else get_session_local()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def transaction(session_factory: sessionmaker | None, action: str):
    """`session_scope` that reports any store error as StorageFailure."""
    try:
        with session_scope(session_factory) as session:
            yield session
    except SQLAlchemyError as exc:
        logger.error("{} failed: {}", action, exc)
        raise StorageFailure(f"{action} failed: {exc}") from exc
