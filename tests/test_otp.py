# tests/test_otp.py
from datetime import timedelta

from academy import models, otp_service
from academy.errors import DependencyError
from academy.models import utcnow

PHONE = "9876543210"
PHONE_E164 = "+919876543210"


def _request(client, identifier=PHONE, otp_type="phone", name="Asha"):
    return client.post("/api/student/request-otp", json={"identifier": identifier, "name": name, "type": otp_type})


def _verify(client, code, identifier=PHONE, otp_type="phone"):
    return client.post("/api/student/verify-otp", json={"identifier": identifier, "otp": code, "type": otp_type})


def _fixed_codes(monkeypatch, *codes):
    it = iter(codes)
    monkeypatch.setattr(otp_service, "generate_otp", lambda: next(it))


def test_generated_codes_are_six_digits():
    for _ in range(50):
        code = otp_service.generate_otp()
        assert len(code) == 6 and code.isdigit() and not code.startswith("0")


def test_unconfigured_channel_returns_debug_code(client):
    r = _request(client)
    assert r.status_code == 200
    assert r.json()["message"] == "OTP sent successfully"
    assert len(r.json()["debug"]) == 6


def test_verify_creates_student_with_pending_name(client, db):
    code = _request(client, name="Meera").json()["debug"]
    r = _verify(client, code)
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["name"] == "Meera"
    assert body["user"]["phone"] == PHONE_E164
    assert body["profileCompleted"] is False
    assert "academy_session" in r.cookies
    assert db.query(models.PendingVerification).count() == 0


def test_missing_name_defaults(client):
    code = _request(client, name=None).json()["debug"]
    assert _verify(client, code).json()["user"]["name"] == "Student"


def test_email_otp_normalizes_identifier(client):
    code = _request(client, identifier="  Asha@Example.com ", otp_type="email").json()["debug"]
    r = _verify(client, code, identifier="asha@example.com", otp_type="email")
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "asha@example.com"


def test_code_is_single_use(client):
    code = _request(client).json()["debug"]
    assert _verify(client, code).status_code == 200
    r = _verify(client, code)
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid or expired OTP"


def test_new_code_supersedes_older_one(client, monkeypatch):
    _fixed_codes(monkeypatch, "111111", "222222")
    _request(client)
    _request(client)
    assert _verify(client, "111111").status_code == 401
    assert _verify(client, "222222").status_code == 200


def test_expired_code_fails(client, db):
    code = _request(client).json()["debug"]
    db.query(models.Otp).update({models.Otp.expires_at: utcnow() - timedelta(seconds=1)})
    db.commit()
    assert _verify(client, code).status_code == 401


def test_existing_student_is_reused(client, db, make_student):
    existing = make_student(name="Kiran", phone=PHONE_E164)
    code = _request(client, name="Someone Else").json()["debug"]
    r = _verify(client, code)
    assert r.json()["user"]["id"] == existing.id
    assert r.json()["user"]["name"] == "Kiran"
    assert db.query(models.StudentUser).count() == 1


def test_request_rate_limited(client):
    for _ in range(3):
        assert _request(client).status_code == 200
    r = _request(client)
    assert r.status_code == 429
    # other identifiers have their own bucket
    assert _request(client, identifier="9123456780").status_code == 200


def test_verify_rate_limited(client):
    _request(client)
    for _ in range(5):
        assert _verify(client, "000000").status_code == 401
    assert _verify(client, "000000").status_code == 429


def test_phone_spellings_share_one_identity(client, db):
    code = _request(client, identifier="098765 43210").json()["debug"]
    first = _verify(client, code, identifier="+91 98765-43210").json()["user"]
    code = _request(client, identifier="919876543210").json()["debug"]
    second = _verify(client, code, identifier=PHONE).json()["user"]
    assert first["id"] == second["id"]
    assert first["phone"] == PHONE_E164
    assert db.query(models.StudentUser).count() == 1


def test_phone_spellings_share_one_rate_limit(client):
    for identifier in (PHONE, PHONE_E164, "+91 98765 43210"):
        assert _request(client, identifier=identifier).status_code == 200
    assert _request(client, identifier="919876543210").status_code == 429


def test_email_identifier_uses_same_rules_as_email_fields(client):
    assert _request(client, identifier="asha@school.test", otp_type="email").status_code == 400
    assert _request(client, identifier="asha@example", otp_type="email").status_code == 400


def test_invalid_identifier_rejected(client):
    r = _request(client, identifier="12ab")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "identifier"


def test_malformed_code_rejected_before_lookup(client):
    r = _verify(client, "12345")
    assert r.status_code == 400


def test_delivery_failure_persists_nothing(client, db, monkeypatch):
    def fail(phone, code, name):
        raise DependencyError("Failed to send OTP, please try again later")

    monkeypatch.setattr(otp_service, "send_sms_otp", fail)
    r = _request(client)
    assert r.status_code == 502
    assert db.query(models.Otp).count() == 0
    assert db.query(models.PendingVerification).count() == 0


def test_failed_resend_keeps_earlier_code(client, monkeypatch):
    code = _request(client).json()["debug"]

    def fail(phone, code, name):
        raise DependencyError()

    monkeypatch.setattr(otp_service, "send_sms_otp", fail)
    assert _request(client).status_code == 502
    assert _verify(client, code).status_code == 200


def test_cleanup_removes_expired_codes(db):
    db.add(models.Otp(identifier=PHONE, code="123456", type="phone", expires_at=utcnow() - timedelta(minutes=1)))
    db.add(models.Otp(identifier=PHONE, code="654321", type="phone", expires_at=utcnow() + timedelta(minutes=5)))
    db.commit()
    assert otp_service.cleanup_expired_otps(db) == 1
    assert db.query(models.Otp).count() == 1
