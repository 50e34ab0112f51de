"""Database session management."""

from collections.abc import Generator
from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, settings


def new_engine(config: Optional[Settings] = None) -> Engine:
    """Create an engine for the configured database.

    SQLite needs ``check_same_thread`` off and foreign keys switched on per
    connection; other backends get a connection pool.
    """
    config = config or settings
    connect_args = {}

    if config.is_sqlite:
        connect_args = {"check_same_thread": False}
        pool_config = {"pool_pre_ping": True}
    else:
        pool_config = {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        }

    engine = create_engine(
        config.database_url,
        connect_args=connect_args,
        echo=config.sql_echo,
        **pool_config,
    )

    if config.is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = new_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
