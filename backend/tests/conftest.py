import os
import shutil
import tempfile
import warnings
from uuid import uuid4

import pytest
from sqlalchemy import create_engine

# Set environment variables BEFORE importing app modules
_TEST_DIR = tempfile.mkdtemp(prefix="mywish-tests-")
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'global.db')}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-32-chars-minimum!!"
os.environ["MEDIA_ROOT"] = os.path.join(_TEST_DIR, "media")
os.environ["BACKEND_URL"] = "http://test"
os.environ["CONTENT_WEBHOOK_SECRET"] = "webhook-secret"

warnings.filterwarnings("ignore", category=DeprecationWarning)

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from mywish.core.security import create_access_token
from mywish.db.session import Base, get_db
from mywish.main import app
from mywish.models.models import User


@pytest.fixture
def anyio_backend():
    return "asyncio"


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TEST_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def session_factory(tmp_path):
    """Fresh SQLite database per test, wired into the app's ``get_db``."""
    db_path = tmp_path / "test.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield factory
    app.dependency_overrides.clear()
    engine.sync_engine.dispose()


@pytest.fixture
async def async_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def test_client():
    from fastapi.testclient import TestClient

    return TestClient(app)


async def create_user(factory, name: str | None = "Test User") -> User:
    async with factory() as session:
        user = User(email=f"user-{uuid4().hex}@mywish.app", name=name)
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


def event_payload(**overrides) -> dict:
    payload = {
        "name": "Chá de Panela",
        "event_type": "bridal_shower",
        "hosts": ["Ana Silva", "Ana Souza"],
        "is_public": True,
    }
    payload.update(overrides)
    return payload
