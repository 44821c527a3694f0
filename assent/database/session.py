# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Database session management.

Provides the engine, session factory and the get_db dependency for FastAPI.
"""
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from assent.config import settings

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_recycle=3600,  # Recycle connections after 1 hour
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency for getting database session.
    
    Yields:
        Session: Database session, closed after the request
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables on the configured engine.
    
    Assumptions:
    - Safe to call multiple times
    - Does not drop or modify existing tables
    """
    from assent.database.schema import init_db as create_tables
    
    create_tables(engine)
