"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the local metadata store: versioned aspect
rows (the source of truth) and search documents (the derived projection).
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

LATEST_VERSION = 0


class AspectRow(Base):
    """One version of one aspect. Version 0 always holds the latest payload."""

    __tablename__ = "metadata_aspect"

    urn = Column(String, primary_key=True)
    aspect = Column(String, primary_key=True)
    version = Column(Integer, primary_key=True, default=LATEST_VERSION)
    entity_type = Column(String, nullable=False, index=True)
    metadata_json = Column(Text, nullable=False)
    system_metadata_json = Column(Text, nullable=True)
    created_on = Column(DateTime, nullable=False, default=datetime.now)
    created_by = Column(String, nullable=False)


class SearchDocument(Base):
    """Searchable projection of an entity, rebuilt from its aspects on write."""

    __tablename__ = "search_document"

    urn = Column(String, primary_key=True)  # raw urn string, not validated
    entity_type = Column(String, nullable=False, index=True)
    document_json = Column(Text, nullable=False, default="{}")
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


def get_engine(db_path: Path):
    return create_engine(f"sqlite:///{db_path}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(db_path)
    Base.metadata.create_all(engine)


def get_session_factory(db_path: Path):
    """
    Get a session factory bound to the database.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy sessionmaker
    """
    return sessionmaker(bind=get_engine(db_path))


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    return get_session_factory(db_path)()
