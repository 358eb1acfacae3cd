"""
Tests for the data repair jobs and their command-line wrappers
"""
from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from scripts import (
    check_office_filter,
    create_staff_user,
    fix_all_schedules,
    fix_scholar_schedules,
    fix_service_duration,
    set_effectivity_date,
)
from services import maintenance
from services.scholar_service import END_OF_SEMESTER_REASON


@pytest.fixture
def connect_to(db, monkeypatch):
    """Point a script module's connect() at the test database."""
    def _patch(module):
        monkeypatch.setattr(module, "connect", lambda: (db.client, db))
    return _patch


def _archive(db, user, position="student_assistant", archived_at=None, created_at=None):
    archived_at = archived_at or datetime(2026, 5, 31, 12, 0)
    db["archived_application"].insert_one({
        "original_application_id": str(ObjectId()),
        "user_id": user["_id"],
        "position": position,
        "original_status": "accepted",
        "original_application": {"position": position, "created_at": created_at or datetime(2025, 12, 1)},
        "archived_reason": END_OF_SEMESTER_REASON,
        "archived_at": archived_at,
    })


class TestFixAllSchedules:
    def test_converts_accepted_trainees(self, db, make_user, make_application):
        accepted = make_user("student", status="SA")
        application = make_application(accepted, status="accepted", trainee_office="Library")
        trainee = make_user("student", status="trainee")
        make_application(trainee, status="trainee")
        for user in (accepted, trainee):
            db["schedule"].insert_one({"user_id": user["_id"], "user_type": "trainee"})

        summary = maintenance.fix_all_schedules(db)

        assert summary == {"checked": 2, "converted": 1, "kept_as_trainee": 1}
        scholar = db["scholar"].find_one({"user_id": accepted["_id"]})
        assert scholar["scholar_office"] == "Library"
        assert scholar["scholar_notes"] == maintenance.AUTO_CREATED_NOTE
        schedule = db["schedule"].find_one({"user_id": accepted["_id"]})
        assert schedule["user_type"] == "scholar"
        assert schedule["scholar_id"] == str(scholar["_id"])
        assert schedule["application_id"] == str(application["_id"])

        assert maintenance.fix_all_schedules(db) == {"checked": 1, "converted": 0, "kept_as_trainee": 1}

    def test_reuses_existing_scholar(self, db, make_user, make_application, make_scholar):
        user = make_user("student", status="SA")
        application = make_application(user, status="accepted")
        scholar = make_scholar(user, application)
        db["schedule"].insert_one({"user_id": user["_id"], "user_type": "trainee"})

        maintenance.fix_all_schedules(db)

        assert db["scholar"].count_documents({}) == 1
        assert db["schedule"].find_one({"user_id": user["_id"]})["scholar_id"] == str(scholar["_id"])

    def test_unknown_office(self, db, make_user, make_application):
        user = make_user("student", status="SA")
        make_application(user, status="accepted")
        db["schedule"].insert_one({"user_id": user["_id"], "user_type": "trainee"})

        maintenance.fix_all_schedules(db)

        assert db["scholar"].find_one({"user_id": user["_id"]})["scholar_office"] == "TBD"


class TestFixScholarSchedules:
    def test_summary(self, db, make_user, make_application, make_scholar):
        broken = make_user("student")
        broken_scholar = make_scholar(broken, make_application(broken, status="accepted"))
        db["schedule"].insert_one({"user_id": broken["_id"], "user_type": "trainee"})

        correct = make_user("student")
        correct_app = make_application(correct, status="accepted")
        correct_scholar = make_scholar(correct, correct_app)
        db["schedule"].insert_one({
            "user_id": correct["_id"], "user_type": "scholar",
            "scholar_id": str(correct_scholar["_id"]), "application_id": str(correct_app["_id"]),
        })

        make_scholar(make_user("student"))

        summary = maintenance.fix_scholar_schedules(db)

        assert summary == {"checked": 3, "fixed": 1, "already_correct": 1, "no_schedule": 1}
        fixed = db["schedule"].find_one({"user_id": broken["_id"]})
        assert fixed["scholar_id"] == str(broken_scholar["_id"])
        assert maintenance.fix_scholar_schedules(db)["fixed"] == 0


class TestFixServiceDuration:
    def test_credits_once(self, db, make_user):
        user = make_user("student", status="SA")
        _archive(db, user)

        first = maintenance.fix_service_duration(db)
        second = maintenance.fix_service_duration(db)

        assert first == {"success": 1, "skipped": 0, "errors": 0, "total": 1}
        assert second == {"success": 0, "skipped": 1, "errors": 0, "total": 1}
        user_data = db["user_data"].find_one({"user_id": user["_id"]})
        assert user_data["service_months"] == 6
        assert user_data["service_periods"][0]["start_date"] == datetime(2025, 12, 1)

    def test_skipped_run_leaves_user_data_alone(self, db, make_user):
        user = make_user("student", status="SA")
        _archive(db, user)
        maintenance.fix_service_duration(db)
        before = db["user_data"].find_one({"user_id": user["_id"]})

        maintenance.fix_service_duration(db)

        assert db["user_data"].find_one({"user_id": user["_id"]}) == before

    def test_separate_semesters_are_both_credited(self, db, make_user):
        user = make_user("student", status="SA")
        _archive(db, user, archived_at=datetime(2025, 12, 20))
        _archive(db, user, archived_at=datetime(2026, 5, 31))

        summary = maintenance.fix_service_duration(db)

        assert summary["success"] == 2
        assert db["user_data"].find_one({"user_id": user["_id"]})["service_months"] == 12

    def test_dedup_window(self, db, make_user):
        user = make_user("student", status="SA")
        archived_at = datetime(2026, 5, 31, 12, 0)
        _archive(db, user, archived_at=archived_at)
        maintenance.fix_service_duration(db)
        db["archived_application"].delete_many({})
        _archive(db, user, archived_at=archived_at + timedelta(seconds=30))

        assert maintenance.fix_service_duration(db)["skipped"] == 1

    def test_unknown_position(self, db, make_user):
        _archive(db, make_user("student"), position="janitor")

        assert maintenance.fix_service_duration(db) == {"success": 0, "skipped": 1, "errors": 0, "total": 1}

    def test_display_position_names(self):
        assert maintenance.scholar_type_for("Student Marshal") == "student_marshal"
        assert maintenance.scholar_type_for(None) is None


class TestEffectivityDate:
    def test_missing_and_set(self, db, make_user):
        without = make_user("student", status="SA")
        with_date = make_user("student", status="SM")
        make_user("student", status="applicant")
        db["user_data"].insert_one({"user_id": with_date["_id"], "effectivity_date": datetime(2026, 1, 5)})

        missing = maintenance.users_missing_effectivity_date(db)

        assert [str(u["_id"]) for u in missing] == [without["_id"]]
        assert maintenance.set_effectivity_date(db, missing) == 1
        assert maintenance.users_missing_effectivity_date(db) == []


class TestCheckOfficeFilter:
    def test_matches(self, db, office, make_user, make_scholar):
        make_scholar(make_user("student"), office="Library")

        report = maintenance.check_office_filter(db, "Library")

        assert report["office_user"]["_id"] == ObjectId(office["_id"])
        assert len(report["matches"]) == 1
        assert report["all_scholars"] == []

    def test_lists_all_scholars_when_nothing_matches(self, db, make_user, make_scholar):
        make_scholar(make_user("student"), office="library ")

        report = maintenance.check_office_filter(db, "Library")

        assert report["office_user"] is None
        assert report["matches"] == []
        assert report["all_scholars"][0]["office_matches"] is False


class TestScripts:
    def test_fix_all_schedules(self, db, connect_to):
        connect_to(fix_all_schedules)

        assert fix_all_schedules.main([]) == 0

    def test_fix_scholar_schedules(self, db, connect_to):
        connect_to(fix_scholar_schedules)

        assert fix_scholar_schedules.main([]) == 0

    def test_fix_service_duration(self, db, make_user, connect_to):
        user = make_user("student", status="SA")
        _archive(db, user)
        connect_to(fix_service_duration)

        assert fix_service_duration.main([]) == 0
        assert db["user_data"].find_one({"user_id": user["_id"]})["service_months"] == 6

    def test_set_effectivity_date_cancelled(self, db, make_user, connect_to):
        make_user("student", status="SA")
        connect_to(set_effectivity_date)

        assert set_effectivity_date.main([], ask=lambda prompt: "no") == 0
        assert db["user_data"].count_documents({}) == 0

    def test_set_effectivity_date_confirmed(self, db, make_user, connect_to):
        make_user("student", status="SA")
        connect_to(set_effectivity_date)

        assert set_effectivity_date.main(["--yes"]) == 0
        assert db["user_data"].count_documents({"effectivity_date": {"$ne": None}}) == 1

    def test_check_office_filter(self, db, office, connect_to):
        connect_to(check_office_filter)

        assert check_office_filter.main(["--office", "Library"]) == 0

    def test_create_staff_user(self, db, connect_to, monkeypatch):
        monkeypatch.delenv("STAFF_PASSWORD", raising=False)
        connect_to(create_staff_user)
        argv = ["--role", "hr", "--email", "HR.Head@ubaguio.edu", "--firstname", "Maria",
                "--lastname", "Santos"]

        assert create_staff_user.main(argv, ask_password=lambda prompt: "secret123") == 0
        user = db["user"].find_one({"email": "hr.head@ubaguio.edu"})
        assert user["role"] == "hr"
        assert user["password_hash"] != "secret123"

        assert create_staff_user.main(argv, ask_password=lambda prompt: "secret123") == 1

    def test_create_staff_user_short_password(self, db, connect_to, monkeypatch):
        monkeypatch.setenv("STAFF_PASSWORD", "123")
        connect_to(create_staff_user)

        argv = ["--role", "office", "--email", "lib@ubaguio.edu", "--firstname", "Lina",
                "--lastname", "Reyes", "--office", "Library"]
        assert create_staff_user.main(argv) == 1
        assert db["user"].count_documents({}) == 0

    def test_connection_failure(self, monkeypatch):
        def _fail():
            raise RuntimeError("DATABASE_URL (or MONGO_URI) is not set")
        monkeypatch.setattr(fix_all_schedules, "connect", _fail)

        assert fix_all_schedules.main([]) == 1
