"""
Database session management for SQLAlchemy.
Provides engine construction, connection pooling and table bootstrap.
"""
import logging
from typing import Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, pool_size: int = 10) -> Engine:
    """
    Create a SQLAlchemy engine.

    PostgreSQL gets a pre-pinged connection pool; SQLite (tests, local
    runs) shares a single connection so in-memory databases survive.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using them
        pool_size=pool_size,
        max_overflow=pool_size * 2,
        pool_recycle=3600,
    )


def create_session_factory(database_url: str, pool_size: int = 10) -> Tuple[Engine, sessionmaker]:
    """
    Build an engine and its session factory.

    Sessions do not expire objects on commit so records can be returned
    to callers after the session closes.
    """
    engine = create_db_engine(database_url, pool_size)
    factory = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
    return engine, factory


def init_db(engine: Engine) -> None:
    """
    Initialize database tables.

    NOTE: In production, use migrations instead.
    """
    from storage_lifecycle.models import Base

    logger.info("Initializing database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized successfully")


def check_db_connection(engine: Engine) -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection is successful, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check: FAILED - {e}")
        return False
