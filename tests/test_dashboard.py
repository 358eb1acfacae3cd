"""
Tests for the role-specific dashboard figures
"""
from services import notification_service


def test_hr(client, hr, make_user, make_application, make_scholar):
    make_application(make_user("student"))
    make_application(make_user("student"), status="trainee")
    make_scholar(make_user("student"))

    body = client.get("/dashboard/stats", headers=hr["headers"]).json()

    assert body["total_applications"] == 2
    assert body["applications"]["pending"] == 1
    assert body["applications"]["trainee"] == 1
    assert body["applications"]["on_hold"] == 0
    assert body["active_scholars"] == 1
    assert body["pending_leaves"] == 0
    assert body["pending_scholar_requests"] == 0


def test_office(client, db, office, make_user, make_scholar):
    mine = make_user("student")
    other = make_user("student")
    make_scholar(mine, office="Library")
    make_scholar(other, office="Registrar")
    db["leave"].insert_many([
        {"user_id": mine["_id"], "status": "pending"},
        {"user_id": other["_id"], "status": "pending"},
    ])
    db["dtr"].insert_one({"user_id": mine["_id"], "month": 3, "year": 2026, "status": "submitted"})

    body = client.get("/dashboard/stats", headers=office["headers"]).json()

    assert body == {"office_name": "Library", "scholars": 1, "pending_leaves": 1, "submitted_dtrs": 1}


def test_student(client, db, student, make_application):
    make_application(student, status="psychometric_scheduled")
    notification_service.create(db, student["_id"], "Hello", "World")

    body = client.get("/dashboard/stats", headers=student["headers"]).json()

    assert body["application"]["status"] == "psychometric_scheduled"
    assert body["progress"]["current_step"] == 1
    assert body["unread_notifications"] == 1


def test_student_without_application(client, student):
    body = client.get("/dashboard/stats", headers=student["headers"]).json()

    assert body == {"application": None, "progress": None, "unread_notifications": 0}
