# tests/test_public_and_profile.py
from academy import models, seed

COMPLETE_PROFILE = {
    "dateOfBirth": "2008-04-12",
    "gender": "female",
    "address": "12 Park Street, Sector 4",
    "city": "New Delhi",
    "pincode": "110001",
    "classId": "class-11",
    "stream": "science",
    "fatherName": "Raj Sharma",
    "motherName": "Sunita Sharma",
    "parentPhone": "9811122233",
    "parentOccupation": "Engineer",
    "emergencyContact": "9811122244",
}


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_catalog(client):
    classes = client.get("/api/classes").json()
    assert [c["id"] for c in classes] == ["class-9", "class-10", "class-11", "class-12"]
    assert client.get("/api/classes/class-11").json()["streams"] == ["science", "commerce"]
    assert client.get("/api/classes/class-13").status_code == 404

    commerce = client.get("/api/classes/class-11/subjects", params={"stream": "commerce"}).json()
    assert {s["id"] for s in commerce} == {"economics-11", "accounts-11"}

    subject = client.get("/api/subjects/science-9").json()
    assert subject["chapterCount"] == 6
    assert len(client.get("/api/subjects/science-9/chapters").json()) == 6


def test_seed_all_is_repeatable(db):
    seed.seed_all(db)
    seed.seed_all(db)
    assert db.query(models.SchoolClass).count() == len(seed.CLASSES)
    assert db.query(models.Achievement).count() == len(seed.ACHIEVEMENTS)


def test_seed_admin_requires_credentials(db):
    assert seed.seed_admin(db, email="", password="") is None
    admin = seed.seed_admin(db, email="Boss@Academy.example.com", password="Pass1234")
    assert admin.username == "boss@academy.example.com"
    assert admin.hashed_password != "Pass1234"
    assert admin.role == "super_admin"


def test_contact_and_enrollment(client, db):
    r = client.post("/api/contact", json={
        "name": "Parent",
        "email": "parent@example.com",
        "phone": "9876543210",
        "message": "Please call me back",
    })
    assert r.status_code == 201
    assert db.query(models.ContactSubmission).count() == 1

    r = client.post("/api/enrollments", json={
        "studentName": "Asha",
        "studentEmail": "asha@example.com",
        "subjectId": "physics-11",
        "amount": 1299,
    })
    assert r.status_code == 201
    assert r.json()["enrollment"]["paymentStatus"] == "pending"

    r = client.post("/api/enrollments", json={
        "studentName": "Asha",
        "studentEmail": "asha@example.com",
        "subjectId": "missing",
        "amount": 1,
    })
    assert r.status_code == 404


def test_contact_validation_lists_fields(client):
    r = client.post("/api/contact", json={"name": "P", "email": "bad", "phone": "12", "message": ""})
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"name", "email", "phone", "message"} <= fields


def test_profile_update_and_complete(student_client):
    r = student_client.put("/api/student/profile", json={"city": "Noida", "parentEmail": ""})
    assert r.status_code == 200
    assert r.json()["city"] == "Noida"
    assert r.json()["profileCompleted"] is False

    r = student_client.put("/api/student/profile", json={"classId": "class-99"})
    assert r.status_code == 400

    r = student_client.post("/api/student/complete-profile", json=COMPLETE_PROFILE)
    assert r.status_code == 200
    body = r.json()
    assert body["profileCompleted"] is True
    assert body["state"] == "Delhi"
    assert body["classId"] == "class-11"
    assert student_client.get("/api/student/profile").json()["fatherName"] == "Raj Sharma"


def test_profile_update_rejects_null_or_blank_name(student_client):
    r = student_client.put("/api/student/profile", json={"name": None})
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "name"
    assert student_client.put("/api/student/profile", json={"name": "  "}).status_code == 400
    # nullable fields may still be cleared
    r = student_client.put("/api/student/profile", json={"city": None})
    assert r.status_code == 200
    assert r.json()["name"] == "Asha"


def test_complete_profile_requires_fields(student_client):
    incomplete = dict(COMPLETE_PROFILE)
    del incomplete["fatherName"]
    incomplete["pincode"] = "12"
    r = student_client.post("/api/student/complete-profile", json=incomplete)
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"fatherName", "pincode"} <= fields


def test_admin_student_listing(admin_client, make_student):
    make_student(name="Zara", class_id="class-9")
    make_student(name="Aman", class_id="class-10")
    assert [s["name"] for s in admin_client.get("/api/admin/students").json()] == ["Aman", "Zara"]
    assert [s["name"] for s in admin_client.get("/api/admin/students/class-9").json()] == ["Zara"]


def test_broadcast_reaches_class_and_everyone(admin_client, student_client):
    student_client.post("/api/student/complete-profile", json=COMPLETE_PROFILE)

    r = admin_client.post("/api/admin/notifications/broadcast", json={
        "type": "announcement", "title": "Holiday", "message": "Closed on Monday",
    })
    assert r.status_code == 201
    assert r.json()["classId"] is None
    admin_client.post("/api/admin/notifications/broadcast", json={
        "type": "announcement", "title": "Physics test", "message": "Friday", "classId": "class-11", "priority": "high",
    })
    admin_client.post("/api/admin/notifications/broadcast", json={
        "type": "announcement", "title": "Class 9 trip", "message": "Zoo", "classId": "class-9",
    })

    titles = {n["title"] for n in student_client.get("/api/student/notifications").json()}
    assert titles == {"Holiday", "Physics test"}


def test_achievement_catalog(client):
    codes = {a["code"] for a in client.get("/api/achievements").json()}
    assert {"first_login", "topper", "streak_7"} <= codes
