import os
import tempfile
from datetime import datetime, timedelta

# Settings are read on first import of blogauth.config.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "blogauth-tests.log"))
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RUN_EMBEDDED_REAPER", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from blogauth.api.deps import get_session_service, get_token_codec  # noqa: E402
from blogauth.core.database import Base, build_engine, get_db  # noqa: E402
from blogauth.core.security import TokenCodec, utc_now  # noqa: E402
from blogauth.main import app as fastapi_app  # noqa: E402
from blogauth.schemas.user import UserCreate  # noqa: E402
from blogauth.services.session_service import SessionService  # noqa: E402
from blogauth.services.token_store import RefreshTokenStore  # noqa: E402


class ManualClock:
    """Naive-UTC clock that only moves when told to"""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return ManualClock(utc_now().replace(microsecond=0))


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def codec(clock):
    return TokenCodec(secret_key="test-secret-key", algorithm="HS256", clock=clock)


@pytest.fixture
def store(clock):
    return RefreshTokenStore(clock=clock)


@pytest.fixture
def service(codec, store):
    return SessionService(codec=codec, store=store)


@pytest.fixture
def alice():
    return UserCreate(
        username="alice",
        email="a@x.com",
        password="pw123",
        first_name="Alice",
        last_name="A",
    )


@pytest.fixture
def app(session_factory, service, codec):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_session_service] = lambda: service
    fastapi_app.dependency_overrides[get_token_codec] = lambda: codec
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # https so the Secure refresh cookie is kept and sent back
    return TestClient(app, base_url="https://testserver")
