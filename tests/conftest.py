import os
import sys
from pathlib import Path

# Configure settings before anything imports roster.core.config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PERMISSION_CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-access-secret-for-testing-only")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-for-testing-only")
# Cheap argon2 parameters keep the suite fast
os.environ.setdefault("PASSWORD_HASH_TIME_COST", "1")
os.environ.setdefault("PASSWORD_HASH_MEMORY_COST", "1024")
os.environ.setdefault("PASSWORD_HASH_PARALLELISM", "1")

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import roster.models  # noqa: E402,F401
from roster.db.base import Base  # noqa: E402
from roster.db.seeds.seed_roles import seed_roles  # noqa: E402
from roster.db.session import get_db  # noqa: E402
from roster.main import app  # noqa: E402
from roster.models.audit_log import AuditLog  # noqa: E402
from roster.models.role import Role  # noqa: E402
from roster.models.user import User  # noqa: E402
from roster.services.auth_service import ClientInfo  # noqa: E402

DEFAULT_PASSWORD = "password123"

# One in-memory database shared by the test session and the request threads
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema with default roles/permissions seeded."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    seed_roles(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db):
    return TestingSessionLocal


@pytest.fixture
def client(db):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def client_info():
    return ClientInfo(ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture
def make_user(db):
    """Insert a user directly with the given role name."""

    def _make_user(email, role="student", password=DEFAULT_PASSWORD):
        role_obj = db.query(Role).filter(Role.name == role).one()
        user = User(first_name="Test", last_name="User", email=email, role=role_obj)
        user.password = password
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def login_as(client):
    """Log in through the API and return the JSON body."""

    def _login(email, password=DEFAULT_PASSWORD, headers=None):
        response = client.post(
            "/api/auth/login",
            json={"email": email, "password": password},
            headers=headers or {},
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _login


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_header():
    return bearer


@pytest.fixture
def failing_audit_writes(monkeypatch):
    """Make every commit that carries an audit entry fail like a lock timeout."""
    real_commit = Session.commit

    def commit(self):
        if any(isinstance(obj, AuditLog) for obj in self.new):
            raise OperationalError("INSERT INTO audit_logs", {}, Exception("lock wait timeout exceeded"))
        return real_commit(self)

    monkeypatch.setattr(Session, "commit", commit)
