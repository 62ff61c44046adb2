import re
from collections.abc import Generator
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notive.core.metrics import reset_metrics
from notive.db import models  # noqa: F401
from notive.db.base import Base
from notive.services.record_store import RecordStore


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class RecordingSender:
    def __init__(self) -> None:
        self.messages: list[dict] = []

    def send(self, email: str, subject: str, body: str) -> bool:
        self.messages.append({"email": email, "subject": subject, "body": body})
        return True

    def last_code(self) -> str:
        match = re.search(r"\b(\d{6})\b", self.messages[-1]["body"])
        assert match, self.messages[-1]["body"]
        return match.group(1)


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def session_factory() -> Generator[sessionmaker, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(session_factory) -> RecordStore:
    return RecordStore(session_factory)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()
