"""
Test fixtures: the app runs against an in-memory mongomock database.
"""
import os
import time
import types

os.environ["SCHOOL_PORTAL_JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["SCHOOL_PORTAL_BCRYPT_ROUNDS"] = "4"

from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from school_portal.core.database import get_db
from school_portal.core.permissions import seed_rbac
from school_portal.core.security import get_password_hash
from school_portal.main import app

PASSWORD = "testpassword123"


@pytest.fixture
def mongo_db():
    database = mongomock.MongoClient()["school_portal_test"]
    seed_rbac(database)
    return database


@pytest.fixture
def client(mongo_db):
    app.dependency_overrides[get_db] = lambda: mongo_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(database, email, roles, first="Test", last="User"):
    doc = {
        "email": email,
        "hashed_password": get_password_hash(PASSWORD),
        "firstName": first,
        "lastName": last,
        "roles": roles,
        "isActive": True,
        "createdAt": datetime.now(timezone.utc),
    }
    doc["_id"] = database["users"].insert_one(doc).inserted_id
    return doc


def login(client, email, password=PASSWORD):
    resp = client.post("/auth/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def admin_headers(client, mongo_db):
    make_user(mongo_db, "admin@school.edu", ["admin"], "Ada", "Admin")
    return login(client, "admin@school.edu")


@pytest.fixture
def user_headers(client, mongo_db):
    make_user(mongo_db, "teacher@school.edu", ["user"], "Tom", "Teacher")
    return login(client, "teacher@school.edu")


@pytest.fixture
def session_clock(monkeypatch):
    """Moves the idle-session clock without touching the real time module."""
    clock = types.SimpleNamespace(now=time.time())
    monkeypatch.setattr(
        "school_portal.repositories.session_repository.time",
        types.SimpleNamespace(time=lambda: clock.now),
    )
    return clock


@pytest.fixture
def sample_form():
    return {
        "name": "Faculty Evaluation",
        "audience": "teaching",
        "semester": "1st Semester",
        "schoolYear": "2025-2026",
        "sections": [
            {"key": "A", "title": "A", "items": ["Q1", "Q2"]},
            {"key": "B", "title": "B", "items": ["Q3"]},
        ],
    }
