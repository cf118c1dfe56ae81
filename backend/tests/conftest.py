"""
Pytest configuration and shared fixtures.

Every test gets its own application built by ``create_app`` on a fresh
in-memory SQLite database. Workflow tests call the services directly on a
session from the application's session factory; HTTP contract tests go
through FastAPI's TestClient.
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from sims.config import Settings
from sims.main import create_app
from sims.services import catalog, identity as identity_service, profiles

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "adminpass123"


class FakeMailer:
    """Records messages instead of talking to an SMTP server."""

    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send(self, to, subject, body):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "body": body})
        return "<test-{}@sims.local>".format(len(self.sent))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        log_level="WARNING",
        jwt_secret="test-secret",
        bootstrap_admin_username=ADMIN_USERNAME,
        bootstrap_admin_email="admin@example.com",
        bootstrap_admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mailer(app):
    fake = FakeMailer()
    app.state.mailer = fake
    return fake


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def admin(db, settings):
    return identity_service.ensure_bootstrap_admin(db, settings)


def student_payload(roll_number, **overrides):
    data = {
        "roll_number": roll_number,
        "password": "studentpass1",
        "name": {"first_name": "Asha", "last_name": "Rao"},
        "date_of_birth": date(2004, 5, 17),
        "gender": "Female",
        "contact_info": {
            "email": "{}@example.com".format(roll_number.lower()),
            "phone": "555-123-4567",
            "address": {"city": "Pune", "country": "India"},
        },
        "academic": {"branch": "CSE", "semester": 3, "batch": "2023", "cgpa": 8.2, "backlog_count": 0},
    }
    data.update(overrides)
    return data


def faculty_payload(employee_id, **overrides):
    data = {
        "employee_id": employee_id,
        "password": "facultypass1",
        "first_name": "Ravi",
        "last_name": "Menon-{}".format(employee_id),
        "email": "{}@example.com".format(employee_id.lower()),
        "department": "Computer Science",
        "position": "Professor",
        "date_of_joining": date(2015, 7, 1),
    }
    data.update(overrides)
    return data


def course_payload(code, capacity=30, **overrides):
    data = {
        "course_code": code,
        "course_name": "Course {}".format(code),
        "department": "Computer Science",
        "credits": 4,
        "description": "An introductory course covering the fundamentals.",
        "semester": 1,
        "capacity": capacity,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_student(db, admin):
    def _make(roll_number, **overrides):
        return profiles.create_student(db, admin, student_payload(roll_number, **overrides))
    return _make


@pytest.fixture
def make_faculty(db, admin):
    def _make(employee_id, **overrides):
        return profiles.create_faculty(db, admin, faculty_payload(employee_id, **overrides))
    return _make


@pytest.fixture
def make_course(db, admin):
    def _make(code, capacity=30, **overrides):
        return catalog.create_course(db, admin, course_payload(code, capacity, **overrides))
    return _make


@pytest.fixture
def account_of(db):
    """Identity owning a Student or Faculty profile."""
    def _account(profile):
        kind = "student" if hasattr(profile, "roll_number") else "faculty"
        return identity_service.find_identity_for_profile(db, kind, profile.id)
    return _account


def login(client, username, password):
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": "Bearer {}".format(resp.json()["token"])}


@pytest.fixture
def admin_headers(client):
    return login(client, ADMIN_USERNAME, ADMIN_PASSWORD)
