"""Engine and session factory. SQLite by default; any SQLAlchemy URL works."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from quickmed.core.config import settings

IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")


def enable_sqlite_foreign_keys(engine: Engine) -> Engine:
    """SQLite ignores ON DELETE rules unless each connection turns them on."""

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


if IS_SQLITE:
    # NullPool: one connection per session, safe across the threadpool
    from sqlalchemy.pool import NullPool
    engine = enable_sqlite_foreign_keys(create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    ))
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

# Stock code flushes explicitly before it aggregates
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
