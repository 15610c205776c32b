#!/usr/bin/env python
"""
fireflow/database.py

Sets up the SQLAlchemy database connection, session management, and the helper
that creates tables. Every backend resource (assets, flow records, debts,
interest settings, recurring schedules, linked ledgers) lives in this one
database, but each service call commits on its own: there is no transaction
spanning several resources, which is why the submission core carries its own
compensation logic.

Key Features:
- Loads environment variables from .env at project root
- Handles default SQLite or custom DB URLs
- Provides get_db() for FastAPI dependency injection
- Seeds the default tax settings row on startup (idempotent)
"""

import os
import logging
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

# ------------------------------------------------------------------
# 0) Logging Setup
# ------------------------------------------------------------------
logging.basicConfig(
    level=os.getenv("FIREFLOW_LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# 1) Environment Setup
# ------------------------------------------------------------------
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BASE_DIR)

dotenv_path = os.path.join(PROJECT_ROOT, ".env")
load_dotenv(dotenv_path=dotenv_path)
logger.debug(f"Loaded .env from: {dotenv_path}")

DATABASE_FILE_ENV = os.getenv("DATABASE_FILE", "fireflow/fireflow.db")
DATABASE_FILE = (
    DATABASE_FILE_ENV if os.path.isabs(DATABASE_FILE_ENV)
    else os.path.join(PROJECT_ROOT, DATABASE_FILE_ENV)
)

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_FILE}")
logger.debug(f"DATABASE_URL: {DATABASE_URL}")

# ------------------------------------------------------------------
# 2) SQLAlchemy Engine and Session Setup
# ------------------------------------------------------------------
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ------------------------------------------------------------------
# 3) FastAPI Dependency Injection
# ------------------------------------------------------------------
def get_db():
    """
    Provides a DB session for FastAPI routes. Yields a SessionLocal instance
    and closes it after use to prevent leaks.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ------------------------------------------------------------------
# 4) Table Initialization
# ------------------------------------------------------------------
def create_tables(bind=None):
    """
    Creates all tables (idempotent) and makes sure the single tax settings
    row exists so dividend withholding always has a rate to read.
    """
    bind = bind or engine
    if bind is engine and DATABASE_URL.startswith("sqlite"):
        db_dir = os.path.dirname(DATABASE_FILE)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir)
            logger.info(f"Created directory for database: {db_dir}")

    # Import models to register with Base.metadata
    from fireflow import models  # noqa: F401
    from fireflow.services import settings as settings_service

    Base.metadata.create_all(bind=bind)
    logger.debug("Executed Base.metadata.create_all")

    db = sessionmaker(bind=bind)()
    try:
        settings_service.ensure_tax_settings(db)
    except Exception as e:
        logger.error(f"Error during tax settings setup: {e}")
        db.rollback()
        raise
    finally:
        db.close()
    logger.info("Database tables created or verified.")


if __name__ == "__main__":
    create_tables()
