# tests/test_results.py
from academy import models, notifications, progress, results


def _payload(students, marks, **overrides):
    body = {
        "classId": "class-10",
        "examName": "Unit Test 1",
        "subject": "Mathematics",
        "examDate": "2024-07-15",
        "totalMarks": 100,
        "results": [{"studentId": s.id, "marks": m} for s, m in zip(students, marks)],
    }
    body.update(overrides)
    return body


def _earned_codes(db, student_id):
    return {
        e.achievement.code
        for e in db.query(models.EarnedAchievement).filter_by(student_id=student_id).all()
    }


def test_publish_ranks_and_grades_on_server(admin_client, db, make_student):
    s1, s2, s3 = make_student(name="S1"), make_student(name="S2"), make_student(name="S3")
    r = admin_client.post("/api/admin/results/publish", json=_payload([s1, s2, s3], [90, 75, 90]))
    assert r.status_code == 201, r.text

    rows = r.json()["results"]
    assert [(row["studentName"], row["rank"], row["grade"]) for row in rows] == [
        ("S1", 1, "A+"),
        ("S3", 2, "A+"),
        ("S2", 3, "B+"),
    ]
    assert rows[2]["percentage"] == 75.0


def test_publish_notifies_class_and_rewards(admin_client, db, make_student):
    top, low = make_student(name="Top"), make_student(name="Low")
    admin_client.post("/api/admin/results/publish", json=_payload([top, low], [95, 30]))

    notes = db.query(models.Notification).filter_by(type="result_published").all()
    assert len(notes) == 1
    assert notes[0].class_id == "class-10"
    assert notes[0].priority == "high"

    assert progress.get_or_create_progress(db, top.id).tests_passed == 1
    assert progress.get_or_create_progress(db, low.id).tests_passed == 0
    assert {"topper", "first_pass"} <= _earned_codes(db, top.id)
    assert "topper" not in _earned_codes(db, low.id)


def test_notification_failure_does_not_undo_publish(admin_client, db, make_student, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("notification store down")

    monkeypatch.setattr(notifications, "broadcast", boom)
    student = make_student()
    r = admin_client.post("/api/admin/results/publish", json=_payload([student], [80]))
    assert r.status_code == 201
    assert db.query(models.ResultPublication).count() == 1
    assert db.query(models.Notification).count() == 0


def test_marks_above_total_rejected(admin_client, db, make_student):
    student = make_student()
    r = admin_client.post("/api/admin/results/publish", json=_payload([student], [120]))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "results.0.marks"
    assert db.query(models.ResultPublication).count() == 0


def test_duplicate_student_rejected(admin_client, make_student):
    student = make_student()
    r = admin_client.post("/api/admin/results/publish", json=_payload([student, student], [50, 60]))
    assert r.status_code == 400


def test_unknown_student_or_class(admin_client, make_student):
    student = make_student()
    body = _payload([student], [50])
    body["results"].append({"studentId": 999, "marks": 10})
    assert admin_client.post("/api/admin/results/publish", json=body).status_code == 404

    body = _payload([student], [50], classId="class-99")
    assert admin_client.post("/api/admin/results/publish", json=body).status_code == 404


def test_empty_results_rejected(admin_client):
    r = admin_client.post("/api/admin/results/publish", json=_payload([], []))
    assert r.status_code == 400


def test_listing_and_latest(admin_client, make_student):
    assert admin_client.get("/api/admin/results/latest").status_code == 404

    student = make_student()
    admin_client.post("/api/admin/results/publish", json=_payload([student], [50], examName="First exam"))
    admin_client.post("/api/admin/results/publish", json=_payload([student], [60], examName="Second exam"))

    assert admin_client.get("/api/admin/results/latest").json()["examName"] == "Second exam"
    assert len(admin_client.get("/api/admin/results", params={"classId": "class-10"}).json()) == 2
    assert admin_client.get("/api/admin/results", params={"classId": "class-9"}).json() == []


def test_student_sees_own_results(admin_client, student_client, db):
    student = db.get(models.StudentUser, student_client.student["id"])
    admin_client.post("/api/admin/results/publish", json=_payload([student], [45]))

    rows = student_client.get("/api/student/results").json()
    assert len(rows) == 1
    assert rows[0]["grade"] == "D"
    assert rows[0]["rank"] == 1
    assert results.results_for_student(db, student.id)[0]["exam_name"] == "Unit Test 1"
