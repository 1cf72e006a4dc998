import os

os.environ.setdefault("FINANCE_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FINANCE_TOKEN_SECRET", "test-secret")
os.environ.setdefault("FINANCE_ADMIN_EMAILS", "admin@mail.com")
os.environ.setdefault("FINANCE_PASSWORD_METHOD", "pbkdf2:sha256:1000")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
