import os

# must be set before config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["GEOCODER_API_KEY"] = ""

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import config
import geocoder
import mailer
from database import ensure_indexes, get_db
from main import app

API = config.API_PREFIX


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    database = client["devcamper_test"]
    ensure_indexes(database, geo=False)
    yield database
    client.close()


@pytest.fixture
def client(db, monkeypatch, tmp_path):
    monkeypatch.setattr(config, "FILE_UPLOAD_PATH", str(tmp_path / "uploads"))
    monkeypatch.setattr(geocoder, "geocode", lambda address: None)
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send_email(to, subject, message):
        sent.append({"to": to, "subject": subject, "message": message})

    monkeypatch.setattr(mailer, "send_email", fake_send_email)
    return sent


@pytest.fixture
def make_user(client, db):
    """Register a user and return (auth headers, user json)."""
    def _make(name, role="user", password="123456"):
        email = f"{name.lower().replace(' ', '.')}@devcamper.io"
        resp = client.post(
            f"{API}/auth/register",
            json={
                "name": name,
                "email": email,
                "password": password,
                "role": "publisher" if role == "publisher" else "user",
            },
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        if role == "admin":
            db["user"].update_one({"_id": ObjectId(body["user"]["_id"])}, {"$set": {"role": "admin"}})
            body["user"]["role"] = "admin"
        # don't let the auth cookie leak into the next request
        client.cookies.clear()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]
    return _make


@pytest.fixture
def bootcamp_payload():
    def _payload(**overrides):
        payload = {
            "name": "Devworks Bootcamp",
            "description": "Devworks is a full stack JavaScript Bootcamp located in the heart of Boston",
            "website": "https://devworks.com",
            "phone": "(111) 111-1111",
            "email": "enroll@devworks.com",
            "address": "233 Bay State Rd Boston MA 02215",
            "careers": ["Web Development", "UI/UX", "Business"],
            "housing": True,
            "job_assistance": True,
        }
        payload.update(overrides)
        return payload
    return _payload


@pytest.fixture
def course_payload():
    def _payload(**overrides):
        payload = {
            "title": "Front End Web Development",
            "description": "All of the essentials to become a successful frontend web developer",
            "weeks": 8,
            "tuition": 8000,
            "minimum_skill": "beginner",
            "scholarships_available": True,
        }
        payload.update(overrides)
        return payload
    return _payload
