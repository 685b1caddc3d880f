from __future__ import annotations

import os
import tempfile
from datetime import datetime, timedelta
from typing import Generator

# Settings are read at import time; configure the environment first.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="oldjournal-storage-")
os.environ.pop("REDIS_URL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from oldjournal import models  # noqa: E402
from oldjournal.auth import create_access_token  # noqa: E402
from oldjournal.db import Base, enable_sqlite_foreign_keys  # noqa: E402
from oldjournal.deps import get_db  # noqa: E402
from oldjournal.main import app  # noqa: E402
from oldjournal.services.rate_limit import DatabaseRateLimiter, get_rate_limiter  # noqa: E402
from oldjournal.storage import LocalStorageAdapter, get_storage  # noqa: E402
from oldjournal.utils.visibility import Visibility  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


class FakeClock:
    """Controllable clock for rate limit windows."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2003, 3, 14, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def rate_limiter(clock: FakeClock) -> DatabaseRateLimiter:
    return DatabaseRateLimiter(session_factory=TestingSessionLocal, clock=clock)


@pytest.fixture()
def storage(tmp_path) -> LocalStorageAdapter:
    return LocalStorageAdapter(root=tmp_path / "storage", url_prefix="/files")


@pytest.fixture()
def client(rate_limiter: DatabaseRateLimiter, storage: LocalStorageAdapter) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============================================================================
# DATA HELPERS
# ============================================================================


def make_user(db: Session, handle: str, display_name: str | None = None) -> models.User:
    user = models.User(
        external_id=f"idp|{handle}",
        handle=handle,
        display_name=display_name or handle.title(),
        email=f"{handle}@example.com",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_entry(
    db: Session,
    owner: models.User,
    visibility: Visibility = Visibility.PUBLIC,
    subject: str | None = "Today",
    body_html: str = "<p>Nothing much happened.</p>",
) -> models.Entry:
    entry = models.Entry(owner_id=owner.id, subject=subject, body_html=body_html, visibility=visibility.value)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def follow(db: Session, follower: models.User, followee: models.User) -> None:
    db.add(models.Friendship(follower_id=follower.id, following_id=followee.id))
    db.commit()


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.external_id)}"}


@pytest.fixture()
def alice(db: Session) -> models.User:
    return make_user(db, "alice")


@pytest.fixture()
def bob(db: Session) -> models.User:
    return make_user(db, "bob")


@pytest.fixture()
def carol(db: Session) -> models.User:
    return make_user(db, "carol")
