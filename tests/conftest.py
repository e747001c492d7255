import os
import tempfile
from datetime import date
from pathlib import Path

# must be set before onetask.config is imported
_TMP = Path(tempfile.mkdtemp(prefix="onetask-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest  # noqa: E402
from faker import Faker  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from onetask.auth.auth_router import account_book  # noqa: E402
from onetask.board.registry import WorkspaceRegistry  # noqa: E402
from onetask.main import app  # noqa: E402
from onetask.project.project_router import get_registry  # noqa: E402

TODAY = date(2024, 1, 10)  # a Wednesday

fake = Faker()


class ManualTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Collects timers and fires them only when the test says so."""

    def __init__(self):
        self.timers = []

    def call_later(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self):
        for timer in self.active:
            timer.fired = True
            timer.callback()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def calendar():
    """Days the app has seen; append one to move the clock forward."""
    return [TODAY]


@pytest.fixture
def registry(scheduler, calendar):
    test_registry = WorkspaceRegistry(account_book, scheduler=scheduler, clock=lambda: calendar[-1])
    app.dependency_overrides[get_registry] = lambda: test_registry
    yield test_registry
    app.dependency_overrides.pop(get_registry, None)


@pytest.fixture
async def client(registry):
    """Async HTTP client for the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


def _new_account():
    return {
        "name": fake.name(),
        "email": f"{fake.unique.user_name()}@mailbox.org",
        "password": fake.password(length=10),
    }


@pytest.fixture
def make_account():
    """Factory for sign-up payloads with unique emails."""
    return _new_account


@pytest.fixture
async def signed_up(client, make_account):
    """A fresh account; returns (account fields, auth headers, user json)."""
    account = make_account()
    response = await client.post("/api/users", json=account)
    assert response.status_code == 201
    body = response.json()
    headers = {"Authorization": f"Bearer {body['accessToken']}"}
    return account, headers, body["user"]
