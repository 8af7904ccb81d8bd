# tests/test_auth_routes.py
from datetime import timedelta

from fastapi.testclient import TestClient

from academy import auth, models
from academy.main import app
from academy.models import utcnow

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD

STUDENT_EMAIL = "riya@example.com"
STUDENT_PASSWORD = "Secret123"


def _register(client, email=STUDENT_EMAIL, password=STUDENT_PASSWORD, name="Riya"):
    return client.post("/api/student/email-register", json={"email": email, "name": name, "password": password})


def test_password_hash_roundtrip():
    hashed = auth.get_password_hash("correct horse 1")
    assert hashed != "correct horse 1"
    assert auth.verify_password("correct horse 1", hashed)
    assert not auth.verify_password("wrong horse 1", hashed)
    assert not auth.verify_password("anything", None)
    assert not auth.verify_password("anything", "not-a-hash")


def test_session_token_rejects_tampering():
    token = auth.sign_session_id("abc")
    assert auth.read_session_id(token) == "abc"
    assert auth.read_session_id(token + "x") is None
    assert auth.read_session_id(None) is None


def test_check_email(client, admin):
    assert client.post("/api/student/check-email", json={"email": "nobody@example.com"}).json() == {
        "exists": False,
        "isAdmin": False,
    }
    assert client.post("/api/student/check-email", json={"email": ADMIN_EMAIL.upper()}).json() == {
        "exists": True,
        "isAdmin": True,
    }
    _register(client)
    assert client.post("/api/student/check-email", json={"email": STUDENT_EMAIL}).json() == {
        "exists": True,
        "isAdmin": False,
    }


def test_register_logs_student_in(client):
    r = _register(client)
    assert r.status_code == 201
    assert r.json()["user"]["email"] == STUDENT_EMAIL
    me = client.get("/api/student/me")
    assert me.status_code == 200
    assert me.json()["user"]["name"] == "Riya"


def test_register_conflict(client):
    assert _register(client).status_code == 201
    r = _register(TestClient(app), email=STUDENT_EMAIL.upper())
    assert r.status_code == 409


def test_register_weak_password(client):
    r = _register(client, password="lettersonly")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "password"


def test_register_name_is_trimmed_before_length_check(client):
    r = _register(client, name="   ")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "name"

    r = _register(client, name="  Riya  ")
    assert r.status_code == 201
    assert r.json()["user"]["name"] == "Riya"


def test_email_login_student(client):
    _register(client)
    fresh = TestClient(app)
    assert fresh.post("/api/student/email-login", json={"email": STUDENT_EMAIL, "password": "Wrong123"}).status_code == 401

    r = fresh.post("/api/student/email-login", json={"email": STUDENT_EMAIL, "password": STUDENT_PASSWORD})
    assert r.status_code == 200
    assert r.json()["role"] == "student"
    assert "admin" not in r.json()
    assert fresh.get("/api/student/me").status_code == 200


def test_email_login_prefers_admin(client, admin):
    r = client.post("/api/student/email-login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    assert r.json()["role"] == "admin"
    assert r.json()["admin"]["username"] == ADMIN_EMAIL
    assert client.get("/api/admin/me").json()["admin"]["fullName"] == "Test Admin"


def test_otp_only_student_cannot_password_login(client, make_student):
    make_student(email="otp@example.com")
    r = client.post("/api/student/email-login", json={"email": "otp@example.com", "password": "Secret123"})
    assert r.status_code == 401


def test_admin_login_rejects_bad_password(client, admin):
    r = client.post("/api/admin/login", json={"username": ADMIN_EMAIL, "password": "nope"})
    assert r.status_code == 401


def test_admin_gate_without_session(client):
    r = client.get("/api/admin/students")
    assert r.status_code == 401
    assert r.json() == {"message": "Unauthorized", "redirectTo": "/admin/login"}


def test_student_gate_without_session(client):
    r = client.get("/api/student/profile")
    assert r.status_code == 401
    assert r.json()["redirectTo"] == "/login"


def test_student_session_cannot_reach_admin(student_client):
    assert student_client.get("/api/admin/students").status_code == 401


def test_admin_session_cannot_reach_student(admin_client):
    r = admin_client.get("/api/student/me")
    assert r.status_code == 401
    assert r.json()["redirectTo"] == "/login"


def test_tampered_cookie_is_anonymous(student_client):
    student_client.cookies.clear()
    student_client.cookies.set("academy_session", "garbage")
    assert student_client.get("/api/student/me").status_code == 401


def test_logout_is_idempotent(client, student_client, db):
    assert client.post("/api/student/logout").status_code == 200

    assert student_client.post("/api/student/logout").status_code == 200
    assert db.query(models.SessionRecord).count() == 0
    assert student_client.get("/api/student/me").status_code == 401
    assert student_client.post("/api/student/logout").status_code == 200


def test_expired_session_is_removed(student_client, db):
    db.query(models.SessionRecord).update({models.SessionRecord.expires_at: utcnow() - timedelta(minutes=1)})
    db.commit()
    assert student_client.get("/api/student/me").status_code == 401
    assert db.query(models.SessionRecord).count() == 0


def test_authenticated_request_slides_expiry(student_client, db):
    record = db.query(models.SessionRecord).one()
    record.expires_at = utcnow() + timedelta(minutes=5)
    db.commit()

    assert student_client.get("/api/student/me").status_code == 200
    db.expire_all()
    assert db.query(models.SessionRecord).one().expires_at > utcnow() + timedelta(hours=23)


def test_deactivated_student_loses_session(student_client, db):
    db.query(models.StudentUser).update({models.StudentUser.is_active: False})
    db.commit()
    assert student_client.get("/api/student/me").status_code == 401
