"""
SASM-IMS - Test Configuration and Fixtures
"""
import os
import tempfile

os.environ.pop("DATABASE_URL", None)
os.environ.pop("MONGO_URI", None)
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="sasm-uploads-"))

import mongomock
import pytest
from bson import ObjectId
from faker import Faker
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db, utcnow
from main import app
from schemas import Application
from security import create_token, hash_password

fake = Faker()

PASSWORD = "password123"


@pytest.fixture
def db():
    """A fresh in-memory database per test"""
    client = mongomock.MongoClient()
    database = client["sasm_ims_test"]
    ensure_indexes(database)
    yield database
    client.close()


@pytest.fixture
def client(db):
    """Test client with the database dependency overridden"""
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_token(user)}"}


@pytest.fixture
def make_user(db):
    """Factory inserting a user; the returned dict carries ready-made auth headers."""
    def _make(role="student", email=None, status="applicant", office_name=None, **extra):
        now = utcnow()
        doc = {
            "firstname": fake.first_name(),
            "lastname": fake.last_name(),
            "email": (email or f"{fake.unique.user_name()}@ubaguio.edu").lower(),
            "password_hash": hash_password(PASSWORD),
            "role": role,
            "status": status,
            "office_name": office_name,
            "created_at": now,
            "updated_at": now,
            **extra,
        }
        doc["_id"] = str(db["user"].insert_one(doc).inserted_id)
        doc["headers"] = auth_headers(doc)
        return doc
    return _make


@pytest.fixture
def student(make_user):
    return make_user("student", email=f"{fake.unique.user_name()}@s.ubaguio.edu")


@pytest.fixture
def hr(make_user):
    return make_user("hr")


@pytest.fixture
def office(make_user):
    return make_user("office", office_name="Library")


def application_payload(**overrides) -> dict:
    payload = {
        "position": "student_assistant",
        "firstname": fake.first_name(),
        "lastname": fake.last_name(),
        "email": f"{fake.user_name()}@gmail.com",
        "age": 20,
        "gender": "Female",
        "civil_status": "Single",
        "home_address": fake.address(),
        "home_contact": "09171234567",
        "emergency_contact": fake.name(),
        "emergency_contact_number": "09181234567",
        "agreed_to_terms": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_application(db):
    """Factory inserting an application for `user` directly in a given status."""
    def _make(user, status="pending", **overrides):
        fields = application_payload(
            firstname=user["firstname"], lastname=user["lastname"], email=user["email"]
        )
        fields.update(overrides)
        doc = Application(user_id=user["_id"], status=status, **fields).model_dump()
        now = utcnow()
        doc["created_at"] = now
        doc["updated_at"] = now
        doc["_id"] = db["application"].insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def make_scholar(db):
    def _make(user, application=None, office="Library", status="active", **overrides):
        now = utcnow()
        doc = {
            "user_id": user["_id"],
            "application_id": str(application["_id"]) if application else str(ObjectId()),
            "scholar_office": office,
            "scholar_type": (application or {}).get("position", "student_assistant"),
            "status": status,
            "deployed_by": str(ObjectId()),
            "deployed_at": now,
            "semester_start_date": now,
            "semester_months": 6,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(overrides)
        doc["_id"] = db["scholar"].insert_one(doc).inserted_id
        return doc
    return _make
