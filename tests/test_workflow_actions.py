"""
Tests for the pipeline actions from review to the final decision
"""
from bson import ObjectId

from routes.workflow import TRAINEE_REQUIRED_HOURS


def _url(application, action):
    return f"/workflow/applications/{application['_id']}/{action}"


def _status(db, application):
    return db["application"].find_one({"_id": application["_id"]})["status"]


class TestFullPipeline:
    def test_from_review_to_accepted(self, client, db, hr, office, student, make_application):
        application = make_application(student, status="under_review")

        res = client.post(_url(application, "psychometric/schedule"), json={
            "test_date": "2026-11-03", "test_time": "09:00", "location": "Room 101",
        }, headers=hr["headers"])
        assert res.status_code == 200
        assert res.json()["application"]["psychometric_test_location"] == "Room 101"

        res = client.post(_url(application, "psychometric/score"),
                          json={"score": 88, "passed": True}, headers=hr["headers"])
        assert res.json()["application"]["status"] == "psychometric_passed"

        res = client.post(_url(application, "interview/schedule"), json={
            "interview_date": "2026-11-10", "interview_time": "14:30", "mode": "virtual",
            "link": "https://meet.example.org/abc",
        }, headers=office["headers"])
        assert res.json()["application"]["status"] == "interview_scheduled"

        res = client.post(_url(application, "interview/result"),
                          json={"score": 4, "passed": True}, headers=hr["headers"])
        assert res.json()["application"]["status"] == "interview_passed"

        res = client.post(_url(application, "trainee/set"),
                          json={"start_date": "2026-11-16", "office": "Library"}, headers=hr["headers"])
        body = res.json()["application"]
        assert body["status"] == "trainee"
        assert body["required_hours"] == TRAINEE_REQUIRED_HOURS
        assert body["completed_hours"] == 0

        res = client.put(_url(application, "trainee/hours"),
                         json={"completed_hours": TRAINEE_REQUIRED_HOURS}, headers=office["headers"])
        assert res.json()["application"]["status"] == "training_completed"
        assert res.json()["application"]["trainee_end_date"] is not None

        res = client.post(_url(application, "accept"),
                          json={"trainee_performance_rating": 5}, headers=hr["headers"])
        assert res.status_code == 200
        body = res.json()["application"]
        assert body["status"] == "accepted"
        assert body["trainee_performance_rating"] == 5

        user = db["user"].find_one({"_id": ObjectId(student["_id"])})
        assert user["status"] == "SA"

        actions = [e["action"] for e in body["timeline"]]
        assert actions == [
            "psychometric_test_scheduled",
            "psychometric_test_scored",
            "interview_scheduled",
            "interview_completed",
            "set_as_trainee",
            "training_completed",
            "application_accepted",
        ]
        assert db["notification"].count_documents({"user_id": student["_id"]}) == 7


class TestPsychometric:
    def test_requires_location_or_link(self, client, hr, student, make_application):
        application = make_application(student, status="under_review")

        res = client.post(_url(application, "psychometric/schedule"),
                          json={"test_date": "2026-11-03", "test_time": "09:00"}, headers=hr["headers"])

        assert res.status_code == 400
        assert res.json()["detail"] == "Either location or link is required"

    def test_requires_review_stage(self, client, db, hr, student, make_application):
        application = make_application(student)

        res = client.post(_url(application, "psychometric/schedule"), json={
            "test_date": "2026-11-03", "test_time": "09:00", "link": "https://test.example.org",
        }, headers=hr["headers"])

        assert res.status_code == 400
        assert _status(db, application) == "pending"

    def test_bad_time(self, client, hr, student, make_application):
        application = make_application(student, status="under_review")

        res = client.post(_url(application, "psychometric/schedule"), json={
            "test_date": "2026-11-03", "test_time": "25:00", "location": "Room 101",
        }, headers=hr["headers"])

        assert res.status_code == 422

    def test_failed_score(self, client, db, hr, student, make_application):
        application = make_application(student, status="psychometric_scheduled")

        res = client.post(_url(application, "psychometric/score"),
                          json={"score": 40, "passed": False}, headers=hr["headers"])

        assert res.json()["application"]["status"] == "psychometric_failed"
        note = db["notification"].find_one({"user_id": student["_id"]})
        assert note["type"] == "error"

    def test_student_cannot_schedule(self, client, student, make_application):
        application = make_application(student, status="under_review")

        res = client.post(_url(application, "psychometric/schedule"), json={
            "test_date": "2026-11-03", "test_time": "09:00", "location": "Room 101",
        }, headers=student["headers"])

        assert res.status_code == 403


class TestTraining:
    def test_trainee_creates_schedule(self, client, db, hr, student, make_application):
        application = make_application(student, status="interview_passed")

        client.post(_url(application, "trainee/set"), json={"start_date": "2026-11-16"}, headers=hr["headers"])

        schedule = db["schedule"].find_one({"user_id": student["_id"]})
        assert schedule["user_type"] == "trainee"
        assert schedule["application_id"] == str(application["_id"])
        assert db["user"].find_one({"_id": ObjectId(student["_id"])})["status"] == "trainee"

    def test_partial_hours(self, client, db, hr, student, make_application):
        application = make_application(student, status="trainee", required_hours=130, completed_hours=0)

        res = client.put(_url(application, "trainee/hours"), json={"completed_hours": 50}, headers=hr["headers"])

        body = res.json()["application"]
        assert body["status"] == "trainee"
        assert body["completed_hours"] == 50
        assert body["timeline"][-1]["action"] == "hours_updated"
        assert body["timeline"][-1]["notes"] == "Hours updated: 0 -> 50/130"

    def test_negative_hours(self, client, hr, student, make_application):
        application = make_application(student, status="trainee")

        res = client.put(_url(application, "trainee/hours"), json={"completed_hours": -1}, headers=hr["headers"])

        assert res.status_code == 422


class TestDecision:
    def test_accept_requires_academic_email(self, client, db, hr, make_user, make_application):
        applicant = make_user("student", email="someone@gmail.com")
        application = make_application(applicant, status="training_completed")

        res = client.post(_url(application, "accept"), headers=hr["headers"])

        assert res.status_code == 400
        assert _status(db, application) == "training_completed"

    def test_accept_without_body(self, client, db, hr, student, make_application):
        application = make_application(student, status="training_completed", position="student_marshal")

        res = client.post(_url(application, "accept"), headers=hr["headers"])

        assert res.status_code == 200
        assert db["user"].find_one({"_id": ObjectId(student["_id"])})["status"] == "SM"

    def test_office_cannot_accept(self, client, office, student, make_application):
        application = make_application(student, status="training_completed")

        res = client.post(_url(application, "accept"), headers=office["headers"])

        assert res.status_code == 403

    def test_reject(self, client, db, office, student, make_application):
        application = make_application(student, status="interview_scheduled")

        res = client.post(_url(application, "reject"),
                          json={"rejection_reason": "Schedule conflict"}, headers=office["headers"])

        body = res.json()["application"]
        assert body["status"] == "rejected"
        assert body["rejection_reason"] == "Schedule conflict"
        note = db["notification"].find_one({"user_id": student["_id"]})
        assert note["message"].endswith("Additional notes: Schedule conflict")

    def test_reject_blank_reason(self, client, hr, student, make_application):
        application = make_application(student)

        res = client.post(_url(application, "reject"), json={"rejection_reason": "   "}, headers=hr["headers"])

        assert res.status_code == 422

    def test_reject_closed(self, client, hr, student, make_application):
        application = make_application(student, status="withdrawn")

        res = client.post(_url(application, "reject"), json={"rejection_reason": "Late"}, headers=hr["headers"])

        assert res.status_code == 400
        assert res.json()["detail"] == "Application is already closed"
