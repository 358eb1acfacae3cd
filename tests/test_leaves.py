"""
Tests for leave requests and their effect on DTRs
"""
import os

from uploads import UPLOADS_DIR


def _leave_payload(**overrides):
    payload = {
        "name": "Ana Cruz",
        "school_dept": "SIT",
        "course_year": "BSIT 3",
        "type_of_leave": "Sick Leave",
        "date_from": "2026-03-09",
        "date_to": "2026-03-10",
        "days_hours": "2 days",
        "reasons": "Fever and flu",
    }
    payload.update(overrides)
    return payload


def _file(client, student, **overrides):
    return client.post("/leaves", json=_leave_payload(**overrides), headers=student["headers"]).json()


def _decide(client, reviewer, leave, status, **extra):
    return client.post(
        f"/leaves/{leave['_id']}/decision", json={"status": status, **extra}, headers=reviewer["headers"]
    )


class TestStudent:
    def test_file_leave(self, client, student):
        leave = _file(client, student)

        assert leave["status"] == "pending"
        assert leave["user_id"] == student["_id"]
        assert leave["allow_resubmit"] is False

    def test_date_range(self, client, student):
        res = client.post("/leaves", json=_leave_payload(date_from="2026-03-10", date_to="2026-03-09"),
                          headers=student["headers"])

        assert res.status_code == 400

    def test_mine(self, client, student, make_user):
        _file(client, student)
        _file(client, make_user("student"))

        assert len(client.get("/leaves/mine", headers=student["headers"]).json()) == 1

    def test_cancel_pending_only(self, client, office, student):
        pending = _file(client, student)
        decided = _file(client, student)
        _decide(client, office, decided, "approved")

        assert client.delete(f"/leaves/{pending['_id']}", headers=student["headers"]).status_code == 200
        assert client.delete(f"/leaves/{decided['_id']}", headers=student["headers"]).status_code == 400

    def test_upload_proof(self, client, db, student):
        leave = _file(client, student)

        res = client.post(
            f"/leaves/{leave['_id']}/proof",
            files={"file": ("note.pdf", b"%PDF-1.4 test", "application/pdf")},
            headers=student["headers"],
        )

        assert res.status_code == 200
        url = res.json()["proof_url"]
        assert url.startswith(f"/uploads/leave_{leave['_id']}_")
        assert os.path.exists(os.path.join(UPLOADS_DIR, url.rsplit("/", 1)[1]))

    def test_upload_proof_rejects_other_types(self, client, student):
        leave = _file(client, student)

        res = client.post(
            f"/leaves/{leave['_id']}/proof",
            files={"file": ("note.exe", b"MZ", "application/octet-stream")},
            headers=student["headers"],
        )

        assert res.status_code == 400


class TestDecision:
    def test_approval_marks_dtr_days(self, client, db, office, student):
        leave = _file(client, student)

        res = _decide(client, office, leave, "approved", remarks="Get well")

        assert res.status_code == 200
        assert res.json()["status"] == "approved"
        assert res.json()["decided_by"] == office["_id"]

        dtr = db["dtr"].find_one({"user_id": student["_id"], "month": 3, "year": 2026})
        marked = [e for e in dtr["entries"] if e["day"] in (9, 10)]
        assert all(e["status"] == "On Leave" for e in marked)
        assert all(e["excused_status"] == "excused" for e in marked)
        assert all(e["confirmation_status"] == "confirmed" for e in marked)
        assert all(e["excused_reason"] == "Sick Leave" for e in marked)

        note = db["notification"].find_one({"user_id": student["_id"]})
        assert note["title"] == "Leave Request Approved"
        assert note["message"].endswith("Remarks: Get well")

    def test_approval_keeps_existing_times(self, client, db, office, student):
        dtr = client.post("/dtr/get-or-create", json={"month": 3, "year": 2026}, headers=student["headers"]).json()
        client.put(f"/dtr/{dtr['_id']}/entries/9", json={"in1": "08:00", "out1": "10:00"},
                   headers=student["headers"])
        leave = _file(client, student)

        _decide(client, office, leave, "approved")

        stored = db["dtr"].find_one({"user_id": student["_id"], "month": 3})
        day_9 = next(e for e in stored["entries"] if e["day"] == 9)
        assert day_9["in1"] == "08:00"
        assert day_9["status"] == "On Leave"

    def test_decide_twice(self, client, office, student):
        leave = _file(client, student)
        _decide(client, office, leave, "disapproved")

        res = _decide(client, office, leave, "approved")

        assert res.status_code == 400

    def test_allow_resubmit_only_on_disapproval(self, client, hr, student):
        leave = _file(client, student)

        res = _decide(client, hr, leave, "approved", allow_resubmit=True)

        assert res.json()["allow_resubmit"] is False

    def test_student_cannot_decide(self, client, student):
        leave = _file(client, student)

        assert _decide(client, student, leave, "approved").status_code == 403

    def test_office_search(self, client, office, student):
        _file(client, student, reasons="Family emergency")
        _file(client, student, name="Ben Reyes")

        by_reason = client.get("/leaves/office?q=EMERGENCY", headers=office["headers"]).json()
        by_name = client.get("/leaves/office?q=ben", headers=office["headers"]).json()
        by_status = client.get("/leaves/office?status=approved", headers=office["headers"]).json()

        assert len(by_reason) == 1
        assert len(by_name) == 1
        assert by_status == []


class TestResubmit:
    def test_resubmit_allowed(self, client, office, student):
        leave = _file(client, student)
        _decide(client, office, leave, "disapproved", remarks="Attach proof", allow_resubmit=True)

        res = client.put(f"/leaves/{leave['_id']}", json=_leave_payload(reasons="Fever, with proof"),
                         headers=student["headers"])

        body = res.json()
        assert res.status_code == 200
        assert body["status"] == "pending"
        assert body["remarks"] is None
        assert body["decided_by"] is None
        assert body["allow_resubmit"] is False
        assert body["reasons"] == "Fever, with proof"

    def test_resubmit_not_allowed(self, client, office, student):
        leave = _file(client, student)
        _decide(client, office, leave, "disapproved")

        res = client.put(f"/leaves/{leave['_id']}", json=_leave_payload(), headers=student["headers"])

        assert res.status_code == 400

    def test_resubmit_pending(self, client, student):
        leave = _file(client, student)

        res = client.put(f"/leaves/{leave['_id']}", json=_leave_payload(), headers=student["headers"])

        assert res.status_code == 400
