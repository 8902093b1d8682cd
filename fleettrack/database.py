from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from fleettrack import settings


def create_db_engine(url: Optional[str] = None) -> Engine:
    """Engine for ``url``, or for DATABASE_URL when not given."""
    url = url or settings.database_url()
    engine_kwargs = {"echo": settings.database_echo()}
    if url.startswith("sqlite"):
        # Sessions are handed across FastAPI's worker threads.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(url, **engine_kwargs)


engine = create_db_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
