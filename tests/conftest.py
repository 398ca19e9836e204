"""
Shared fixtures: a throwaway SQLite database per test, a TestClient bound to
it, and factories for profiles, sessions and services.
"""

import os

os.environ.setdefault("AUTH_SECRET", "test-secret")

from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from taskmatch.core.constants import UserType  # noqa: E402
from taskmatch.core.security import AuthSession, hash_password  # noqa: E402
from taskmatch.db.base import Base, get_db, make_engine  # noqa: E402
from taskmatch.db.models.profile import Profile, ProviderProfile  # noqa: E402
from taskmatch.main import app  # noqa: E402
from taskmatch.services.lifecycle import LifecycleService  # noqa: E402

PASSWORD = "secret123"


def future_deadline(days=30):
    return date.today() + timedelta(days=days)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'taskmatch-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# --------------------------
# direct (service-layer) factories
# --------------------------
@pytest.fixture
def profile_factory(db):
    counter = {"n": 0}

    def create(role=UserType.CLIENT, full_name=None):
        counter["n"] += 1
        profile = Profile(
            email=f"{role.value}{counter['n']}@taskmatch.io",
            full_name=full_name or f"{role.value.title()} {counter['n']}",
            user_type=role.value,
            password_hash=hash_password(PASSWORD),
        )
        db.add(profile)
        db.flush()
        if role == UserType.PROVIDER:
            db.add(ProviderProfile(id=profile.id))
        db.commit()
        db.refresh(profile)
        return profile

    return create


def session_for(profile):
    return AuthSession(
        user_id=profile.id,
        email=profile.email,
        role=UserType(profile.user_type),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=15),
    )


@pytest.fixture
def client_session(profile_factory):
    return session_for(profile_factory(UserType.CLIENT, full_name="Carla Client"))


@pytest.fixture
def provider_session(profile_factory):
    return session_for(profile_factory(UserType.PROVIDER, full_name="Paulo Provider"))


@pytest.fixture
def second_provider_session(profile_factory):
    return session_for(profile_factory(UserType.PROVIDER, full_name="Rita Rival"))


@pytest.fixture
def lifecycle(db):
    return LifecycleService(db)


@pytest.fixture
def service_factory(lifecycle, client_session):
    def create(session=None, **overrides):
        fields = {
            "title": "Website",
            "description": "Landing page for a bakery",
            "category": "tecnologia",
            "budget": 500,
            "location": "Campinas",
            "deadline": future_deadline(),
        }
        fields.update(overrides)
        return lifecycle.create_service(session or client_session, **fields)

    return create


# --------------------------
# HTTP factories
# --------------------------
@pytest.fixture
def register(client):
    def create(email, user_type="client", full_name="Test User", password=PASSWORD):
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "full_name": full_name, "user_type": user_type},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {
            "user_id": body["session"]["user_id"],
            "access_token": body["access_token"],
            "refresh_token": body["refresh_token"],
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
        }

    return create


@pytest.fixture
def client_account(register):
    return register("carla@taskmatch.io", "client", "Carla Client")


@pytest.fixture
def provider_account(register):
    return register("paulo@taskmatch.io", "provider", "Paulo Provider")


@pytest.fixture
def second_provider_account(register):
    return register("rita@taskmatch.io", "provider", "Rita Rival")


@pytest.fixture
def service_payload():
    return {
        "title": "Website",
        "description": "Landing page for a bakery",
        "category": "tecnologia",
        "budget": 500,
        "location": "Campinas",
        "deadline": future_deadline().isoformat(),
    }


@pytest.fixture
def published_service(client, client_account, service_payload):
    response = client.post("/services", json=service_payload, headers=client_account["headers"])
    assert response.status_code == 201, response.text
    return response.json()
