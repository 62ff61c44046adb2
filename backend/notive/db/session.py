from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from notive.core.config import DATABASE_URL
from notive.db.base import Base


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL), pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db(bind=None) -> None:
    from notive.db import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

