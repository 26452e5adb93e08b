"""
Database configuration.
SQLite for development, PostgreSQL in production.
"""
import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import StoreError

logger = logging.getLogger(__name__)

# Connection URL
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite:///./data/cpd.db"  # default SQLite
)

# Engine: built once at import, shared by every request
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependency injection
def get_db():
    """Database session dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_operation(db, operation: str):
    """
    Run a block of store calls, rolling back and raising StoreError on failure

    Args:
        db: database session
        operation: name reported in logs and in the raised StoreError
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store operation failed: {operation}: {e}")
        raise StoreError(operation, e) from e
