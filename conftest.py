"""
pytest configuration – point the service at a throwaway SQLite file,
initialise tables, and hand out account factories and logged-in clients.
"""
import os
import uuid

_TEST_DB = "coaching_test.db"

os.environ.setdefault("COACH_JWT_SECRET", "test-secret-key-for-testing-only-0123456789abcdef")
os.environ.setdefault("COACH_DATABASE_URL", f"sqlite:///./{_TEST_DB}")
os.environ.setdefault("COACH_BCRYPT_ROUNDS", "4")
os.environ.setdefault("COACH_LOG_FORMAT", "text")
os.environ.setdefault("COACH_REGISTRATION_RATE_LIMIT", "1000/minute")

if os.path.exists(_TEST_DB):
    os.remove(_TEST_DB)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coaching.auth.core import hash_password  # noqa: E402
from coaching.auth.throttle import InMemoryCounterStore, RateLimiter  # noqa: E402
from coaching.database import Base, db_session, engine, init_db  # noqa: E402
from coaching.main import app  # noqa: E402
from coaching.models import Parent, User  # noqa: E402

ADMIN_PASSWORD = "changeme"
PASSWORD = "correct-pw"


@pytest.fixture(autouse=True, scope="session")
def create_tables():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def fresh_login_limiter():
    """Each test starts with empty login counters."""
    app.state.login_limiter = RateLimiter(InMemoryCounterStore())
    yield


def _unique(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_user():
    def _make(
        role: str = "teacher",
        username: str | None = None,
        password: str = PASSWORD,
        is_active: bool = True,
        teacher_id: int | None = None,
    ) -> User:
        username = username or _unique(role)
        with db_session() as session:
            user = User(
                username=username,
                email=f"{username}@example.com".lower(),
                first_name=role.title(),
                last_name="Tester",
                password_hash=hash_password(password),
                role=role,
                is_active=is_active,
                teacher_id=teacher_id,
            )
            session.add(user)
            session.flush()
            session.refresh(user)
            return user
    return _make


@pytest.fixture
def make_parent():
    def _make(
        username: str | None = None,
        password: str = PASSWORD,
        is_active: bool = True,
        children: list[int] | None = None,
    ) -> Parent:
        username = username or _unique("parent")
        with db_session() as session:
            kids = [session.get(User, cid) for cid in (children or [])]
            parent = Parent(
                username=username,
                email=f"{username}@example.com".lower(),
                first_name="Parent",
                last_name="Tester",
                phone="05551234567",
                password_hash=hash_password(password),
                is_active=is_active,
                children=kids,
            )
            session.add(parent)
            session.flush()
            session.refresh(parent)
            return parent
    return _make


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def login_as():
    """Return a TestClient holding a session cookie for the given credentials."""
    def _login(identifier: str, password: str = PASSWORD) -> TestClient:
        c = TestClient(app)
        resp = c.post("/auth/login", json={"username": identifier, "password": password})
        assert resp.status_code == 200, f"Login failed: {resp.text}"
        return c
    return _login


@pytest.fixture
def admin_client(login_as) -> TestClient:
    return login_as("admin", ADMIN_PASSWORD)
