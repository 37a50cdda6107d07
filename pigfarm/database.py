from __future__ import annotations

import logging
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base

from .errors import AppError, StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    return create_engine(
        database_url,
        connect_args=connect_args,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    # Results are handed back after commit/close, so keep them loaded
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def transaction(session_factory: sessionmaker):
    """
    One unit of work: commit on success, roll back on any error.

    Database errors come out as StorageError; application errors and
    anything else propagate unchanged after the rollback.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaction rolled back after database error")
        raise StorageError("Storage failure, no changes were saved") from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_session_factory(request: Request) -> sessionmaker:
    return request.app.state.session_factory


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
