import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
for _name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER", "SMTP_HOST",
              "ADMIN_EMAIL", "ADMIN_PASSWORD"):
    os.environ.pop(_name, None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from academy import config, models, otp_service, seed
from academy.database import get_db, make_engine
from academy.main import app

ADMIN_EMAIL = "admin@academy.example.com"
ADMIN_PASSWORD = "AdminPass123"

engine = make_engine("sqlite://")
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    """Fresh schema, seeded catalog and achievements, empty rate limiters and storage per test."""
    monkeypatch.setattr(config, "OBJECT_STORAGE_DIR", str(tmp_path / "objects"))
    models.Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    seed.seed_catalog(session)
    seed.seed_achievements(session)
    session.close()
    otp_service.request_limiter.reset()
    otp_service.verify_limiter.reset()
    yield
    models.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_student(db):
    """Factory for students created straight in the database."""
    def _make(name="Student", email=None, phone=None, class_id="class-10"):
        student = models.StudentUser(name=name, email=email, phone=phone, class_id=class_id)
        db.add(student)
        db.commit()
        db.refresh(student)
        return student
    return _make


def login_student(client, identifier="9876543210", name="Asha", otp_type="phone"):
    r = client.post("/api/student/request-otp", json={"identifier": identifier, "name": name, "type": otp_type})
    assert r.status_code == 200, r.text
    code = r.json()["debug"]
    r = client.post("/api/student/verify-otp", json={"identifier": identifier, "otp": code, "type": otp_type})
    assert r.status_code == 200, r.text
    return r.json()["user"]


@pytest.fixture
def student_client():
    client = TestClient(app)
    client.student = login_student(client)
    return client


@pytest.fixture
def admin(db):
    return seed.seed_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD, "Test Admin")


@pytest.fixture
def admin_client(admin):
    client = TestClient(app)
    r = client.post("/api/admin/login", json={"username": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return client
