from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from . import config


def make_engine(url: str, **kwargs):
    """Create an engine; SQLite gets foreign keys enforced and cross-thread use allowed."""
    if not url.startswith("sqlite"):
        return create_engine(url, future=True, **kwargs)

    # FastAPI runs sync handlers in a threadpool
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True, **kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = make_engine(config.get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()
