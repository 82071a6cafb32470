import os
from datetime import date, timedelta

import pytest

# Must be set before the application modules read their settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from meditrack.main import app
from meditrack.core.database import get_db, get_redis, Base
from meditrack.core.session import SessionContext
from meditrack.core.security import UserRole

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

PASSWORD = "TestPassword123"

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    get_redis().flushall()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client():
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def tomorrow():
    return date.today() + timedelta(days=1)

def register_and_login(client, name, email, role):
    """Create a profile and return its id together with auth headers."""
    response = client.post("/api/v1/auth/register", json={
        "name": name,
        "email": email,
        "password": PASSWORD,
        "role": role,
    })
    assert response.status_code == 200, response.text
    login = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200, login.text
    tokens = login.json()
    return {
        "id": tokens["user"]["id"],
        "name": name,
        "headers": {"Authorization": f"Bearer {tokens['access_token']}"},
        "refresh_token": tokens["refresh_token"],
    }

@pytest.fixture
def doctor(client, test_db):
    return register_and_login(client, "Gregory House", "house@meditrack.com", "doctor")

@pytest.fixture
def other_doctor(client, test_db):
    return register_and_login(client, "Lisa Cuddy", "cuddy@meditrack.com", "doctor")

@pytest.fixture
def patient(client, test_db):
    return register_and_login(client, "Jane Doe", "jane@meditrack.com", "patient")

@pytest.fixture
def other_patient(client, test_db):
    return register_and_login(client, "John Roe", "john@meditrack.com", "patient")

def book(client, patient, doctor, day, time="10:00", note=""):
    return client.post("/api/v1/appointments", headers=patient["headers"], json={
        "doctor_id": doctor["id"],
        "date": day.isoformat(),
        "time": time,
        "note": note,
    })

def advance(client, doctor, appointment_id, *statuses):
    """Walk an appointment through ``statuses`` in order."""
    response = None
    for status in statuses:
        response = client.patch(
            f"/api/v1/appointments/{appointment_id}/status",
            headers=doctor["headers"],
            json={"status": status},
        )
        assert response.status_code == 200, response.text
    return response

@pytest.fixture
def completed_appointment(client, patient, doctor, tomorrow):
    response = book(client, patient, doctor, tomorrow)
    assert response.status_code == 201, response.text
    appointment_id = response.json()["id"]
    advance(client, doctor, appointment_id, "confirmed", "in_progress", "completed")
    return appointment_id

def context_for(user, role):
    return SessionContext(
        user_id=user["id"], name=user["name"],
        email=f"{user['name']}@meditrack.com", role=UserRole(role)
    )
