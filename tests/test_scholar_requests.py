"""
Tests for office requests for additional scholars
"""


def _payload(**overrides):
    payload = {
        "total_scholars": 3,
        "male_scholars": 1,
        "female_scholars": 2,
        "scholar_type": "Student Assistant",
        "notes": "Enrollment season",
    }
    payload.update(overrides)
    return payload


def _create(client, office, **overrides):
    return client.post("/scholar-requests", json=_payload(**overrides), headers=office["headers"])


def test_create_notifies_hr(client, db, hr, office):
    res = _create(client, office)

    assert res.status_code == 200
    assert res.json()["status"] == "pending"
    assert res.json()["requested_by"] == office["_id"]
    note = db["notification"].find_one({"user_id": hr["_id"]})
    assert note["title"] == "New Scholar Request"
    assert note["message"].startswith("Library requested 3 Student Assistant(s)")


def test_totals_must_add_up(client, office):
    res = _create(client, office, total_scholars=4)

    assert res.status_code == 400
    assert res.json()["detail"] == "Total scholars must equal male plus female scholars"


def test_only_office_creates(client, hr):
    assert _create(client, hr).status_code == 403


def test_own_list_is_paginated(client, office, make_user):
    for _ in range(3):
        _create(client, office)
    _create(client, make_user("office", office_name="Registrar"))

    body = client.get("/scholar-requests?limit=2", headers=office["headers"]).json()

    assert body["total"] == 3
    assert body["page"] == 1
    assert body["total_pages"] == 2
    assert len(body["requests"]) == 2


def test_hr_lists_all(client, hr, office, make_user):
    _create(client, office)
    _create(client, make_user("office", office_name="Registrar"), scholar_type="Student Marshal")

    everything = client.get("/scholar-requests/all", headers=hr["headers"]).json()
    marshals = client.get("/scholar-requests/all?scholar_type=Student Marshal", headers=hr["headers"]).json()

    assert everything["total"] == 2
    assert marshals["total"] == 1


def test_review(client, db, hr, office):
    request = _create(client, office).json()

    res = client.patch(f"/scholar-requests/{request['_id']}/review",
                       json={"status": "approved", "review_notes": "Two from the pool"},
                       headers=hr["headers"])

    assert res.json()["status"] == "approved"
    assert res.json()["reviewed_by"] == hr["_id"]
    note = db["notification"].find_one({"user_id": office["_id"]})
    assert note["title"] == "Scholar Request Reviewed"
    assert note["message"].endswith("Notes: Two from the pool")

    again = client.patch(f"/scholar-requests/{request['_id']}/review",
                         json={"status": "rejected"}, headers=hr["headers"])
    assert again.status_code == 400


def test_read_access(client, hr, office, make_user):
    request = _create(client, office).json()
    other = make_user("office", office_name="Registrar")
    url = f"/scholar-requests/{request['_id']}"

    assert client.get(url, headers=office["headers"]).status_code == 200
    assert client.get(url, headers=hr["headers"]).status_code == 200
    assert client.get(url, headers=other["headers"]).status_code == 403


def test_delete(client, hr, office, make_user):
    request = _create(client, office).json()
    url = f"/scholar-requests/{request['_id']}"

    assert client.delete(url, headers=make_user("office")["headers"]).status_code == 403
    assert client.delete(url, headers=office["headers"]).status_code == 200
    assert client.get(url, headers=hr["headers"]).status_code == 404


def test_delete_reviewed(client, hr, office):
    request = _create(client, office).json()
    client.patch(f"/scholar-requests/{request['_id']}/review", json={"status": "rejected"},
                 headers=hr["headers"])

    res = client.delete(f"/scholar-requests/{request['_id']}", headers=office["headers"])

    assert res.status_code == 400
