import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from tutorbooking.config import get_settings
from tutorbooking.db.session import Base
from tutorbooking.db import models


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
    )
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    session.add(models.CallType(slug="ripetizione", name="Ripetizione", duration_min=60, active=True))
    session.commit()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def configure(monkeypatch):
    """Apply environment overrides and rebuild the cached settings."""

    def apply(**env):
        for key, value in env.items():
            monkeypatch.setenv(key, str(value))
        get_settings.cache_clear()
        return get_settings()

    get_settings.cache_clear()
    yield apply
    get_settings.cache_clear()
