"""Database session management with connection pooling"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from savemate_engine.config import Settings, settings
from savemate_engine.infrastructure.database.models import Base


def engine_options(config: Settings) -> dict:
    """Pool arguments for create_engine, sized from settings"""
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": config.db_pool_size,
        "max_overflow": config.db_max_overflow,
        "pool_recycle": config.db_pool_recycle_seconds,
    }


engine = create_engine(settings.database_url, **engine_options(settings))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create tables that do not exist yet (used when settings.create_schema is on)"""
    Base.metadata.create_all(bind=engine)
