import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ticketing.config import Settings, get_settings
from ticketing.db import Base, get_db, make_engine
from ticketing.main import app
from ticketing.security import TicketCodec
from tests.helpers import SESSION_SECRET, SIGNING_SECRET


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'ticketing.db'}",
        signing_secret=SIGNING_SECRET,
        session_jwt_secret=SESSION_SECRET,
        session_jwt_audience="authenticated",
        redis_url=None,
    )


@pytest.fixture
def session_factory(settings):
    engine = create_engine(settings.database_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def codec():
    return TicketCodec(SIGNING_SECRET)


@pytest_asyncio.fixture(scope="function")
async def client(settings, session_factory):
    # The app gets its own engine, configured like production, on the same database file
    app_engine = make_engine(settings.database_url)
    app_sessions = sessionmaker(autocommit=False, autoflush=False, bind=app_engine)

    def override_get_db():
        s = app_sessions()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test", timeout=10.0) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        app_engine.dispose()
