"""
HTTP-level interview flow: resume versions, slot publishing, (re)assignment, feedback and
the HR decision gate.
"""
from datetime import timedelta

from backend.app.utils.datetimes import utcnow


def _signup(client, *, email: str, role: str, full_name: str = "Test User") -> dict:
    r = client.post(
        "/auth/signup",
        json={"email": email, "password": "Testpass123!", "role": role, "full_name": full_name},
    )
    assert r.status_code == 200, r.text
    return r.json()


def _auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _iso(dt) -> str:
    return dt.replace(microsecond=0).isoformat() + "Z"


def _publish(client, token: str, *, days: int = 2, hours: int = 0) -> dict:
    start = (utcnow() + timedelta(days=days, hours=hours)).replace(minute=0, second=0, microsecond=0)
    r = client.post(
        "/interviews/slots",
        json={"slots": [{"start_time": _iso(start), "end_time": _iso(start + timedelta(minutes=45))}]},
        headers=_auth_headers(token),
    )
    assert r.status_code == 201, r.text
    return r.json()["slots"][0]


def _upload(client, token: str, *, job_id: int, name: str = "Asha Rao", email: str = "a@x.com", overall: int = 82):
    return client.post(
        "/resumes",
        json={
            "file_name": "asha.pdf",
            "profile": {"name": name, "email": email, "skills": ["python", "sql"]},
            "job_id": job_id,
            "match": {"overall_match": overall, "skills_match": 90},
        },
        headers=_auth_headers(token),
    )


def _setup(client):
    hr = _signup(client, email="hr@x.com", role="HR", full_name="Hana")
    i = _signup(client, email="i@x.com", role="Interviewer", full_name="Ivan")
    j = _signup(client, email="j@x.com", role="Interviewer", full_name="Jade")
    r = client.post(
        "/jobs",
        json={
            "title": "Backend Engineer",
            "description": "Python services on FastAPI and MySQL",
            "interviewers": [i["user"]["id"], j["user"]["id"]],
        },
        headers=_auth_headers(hr["access_token"]),
    )
    assert r.status_code == 201, r.text
    return hr, i, j, r.json()["job"]


def test_full_interview_flow(client, meeting_issuer):
    hr, i, j, job = _setup(client)
    hr_h = _auth_headers(hr["access_token"])

    # Same email twice: second upload is v2 of the same chain.
    v1 = _upload(client, hr["access_token"], job_id=job["id"])
    assert v1.status_code == 201, v1.text
    assert v1.json()["version_number"] == 1
    assert v1.json()["is_duplicate"] is False
    v2 = _upload(client, hr["access_token"], job_id=job["id"], name="Asha R.")
    assert v2.status_code == 201, v2.text
    body = v2.json()
    assert body["is_duplicate"] is True
    assert body["version_number"] == 2
    assert body["root_id"] == v1.json()["resume"]["id"]
    assert body["evaluation"]["status"] == "accepted"
    evaluation_id = body["evaluation"]["id"]

    versions = client.get(f"/resumes/{body['resume']['id']}/versions", headers=hr_h).json()
    assert [v["version_number"] for v in versions["versions"]] == [2, 1]

    s = _publish(client, i["access_token"])
    t = _publish(client, j["access_token"], hours=2)

    free = client.get(f"/interviews/available-slots?job_id={job['id']}", headers=hr_h).json()["slots"]
    assert {x["id"] for x in free} == {s["id"], t["id"]}

    # Assign I on S.
    r = client.post(
        "/interviews/assign",
        json={"evaluation_id": evaluation_id, "interviewer_id": i["user"]["id"], "slot_id": s["id"]},
        headers=hr_h,
    )
    assert r.status_code == 200, r.text
    assignment = r.json()["assignment"]
    assert assignment["note"] == "Assigned"
    assert assignment["interview_join_url"] == "https://zoom.test/j/1"
    assert "warning" not in r.json()

    # Reassign to J on T: S goes back to the pool.
    r = client.put(
        f"/interviews/assign/{evaluation_id}",
        json={"interviewer_id": j["user"]["id"], "slot_id": t["id"]},
        headers=hr_h,
    )
    assert r.status_code == 200, r.text
    assert r.json()["assignment"]["note"] == "Reassigned"
    assert r.json()["assignment"]["released_slots"] == 1
    detail_id = r.json()["assignment"]["interview_details"][0]["id"]

    free = client.get("/interviews/available-slots", headers=hr_h).json()["slots"]
    assert [x["id"] for x in free] == [s["id"]]
    assert len(meeting_issuer.calls) == 2

    # I is no longer on the panel.
    assert client.get("/interviews/my-assignments", headers=_auth_headers(i["access_token"])).json()["assignments"] == []
    r = client.post(
        f"/interviews/details/{detail_id}/feedback",
        json={"status": "selected"},
        headers=_auth_headers(i["access_token"]),
    )
    assert r.status_code == 403, r.text

    mine = client.get("/interviews/my-assignments", headers=_auth_headers(j["access_token"])).json()["assignments"]
    assert [m["id"] for m in mine] == [detail_id]
    assert mine[0]["evaluation"]["interview_join_url"] == "https://zoom.test/j/2"

    r = client.post(
        f"/interviews/details/{detail_id}/feedback",
        json={"status": "rejected", "ratings": {"technical": 2}, "comments": "struggled with design"},
        headers=_auth_headers(j["access_token"]),
    )
    assert r.status_code == 200, r.text
    assert r.json()["interviewer_overall_status"] == "rejected"

    # Selecting against the panel needs a reason.
    r = client.post(f"/evaluations/{evaluation_id}/hr-decision", json={"status": "selected"}, headers=hr_h)
    assert r.status_code == 400, r.text
    assert r.json()["success"] is False

    r = client.post(
        f"/evaluations/{evaluation_id}/hr-decision",
        json={"status": "selected", "reason": "second opinion positive", "remarks": "offer L2"},
        headers=hr_h,
    )
    assert r.status_code == 200, r.text
    ev = r.json()["evaluation"]
    assert ev["hr_final_status"] == "selected"
    assert ev["hr_final_reason"] == "second opinion positive"

    history = client.get(f"/evaluations/{evaluation_id}/history", headers=hr_h).json()["history"]
    assert [(h["interviewer_id"], h["notes"]) for h in history] == [
        (i["user"]["id"], "Assigned"),
        (j["user"]["id"], "Reassigned"),
    ]
    assert history[1]["interviewer_status"] == "rejected"
    assert history[1]["hr_final_status"] == "selected"
    assert history[0]["interviewer_status"] == "pending"


def test_assign_conflict_returns_409(client):
    hr, i, _, job = _setup(client)
    hr_h = _auth_headers(hr["access_token"])
    first = _upload(client, hr["access_token"], job_id=job["id"]).json()["evaluation"]["id"]
    second = _upload(client, hr["access_token"], job_id=job["id"], name="Bo", email="b@x.com").json()["evaluation"]["id"]
    s = _publish(client, i["access_token"])

    body = {"interviewer_id": i["user"]["id"], "slot_id": s["id"]}
    assert client.post("/interviews/assign", json={"evaluation_id": first, **body}, headers=hr_h).status_code == 200
    r = client.post("/interviews/assign", json={"evaluation_id": second, **body}, headers=hr_h)
    assert r.status_code == 409, r.text
    assert r.json()["details"]["retryable"] is True


def test_meeting_link_failure_is_a_warning(client, meeting_issuer):
    meeting_issuer.fail = True
    hr, i, _, job = _setup(client)
    hr_h = _auth_headers(hr["access_token"])
    evaluation_id = _upload(client, hr["access_token"], job_id=job["id"]).json()["evaluation"]["id"]
    s = _publish(client, i["access_token"])

    r = client.post(
        "/interviews/assign",
        json={"evaluation_id": evaluation_id, "interviewer_id": i["user"]["id"], "slot_id": s["id"]},
        headers=hr_h,
    )
    assert r.status_code == 200, r.text
    assert "warning" in r.json()
    assert r.json()["assignment"]["interview_join_url"] is None

    slots = client.get("/interviews/my-slots", headers=_auth_headers(i["access_token"])).json()["slots"]
    assert slots[0]["is_booked"] is True
    assert slots[0]["evaluation_id"] == evaluation_id


def test_bulk_assignment_and_panel_slots(client):
    hr, i, j, job = _setup(client)
    hr_h = _auth_headers(hr["access_token"])
    evaluation_id = _upload(client, hr["access_token"], job_id=job["id"]).json()["evaluation"]["id"]
    s = _publish(client, i["access_token"])
    t = _publish(client, j["access_token"])

    ids = f"{i['user']['id']},{j['user']['id']}"
    shared = client.get(f"/interviews/panel-slots?interviewer_ids={ids}", headers=hr_h).json()["slots"]
    assert shared == [{"start_time": s["start_time"], "end_time": s["end_time"]}]
    assert client.get("/interviews/panel-slots?interviewer_ids=", headers=hr_h).status_code == 400

    r = client.post(
        "/interviews/assign/bulk",
        json={
            "evaluation_id": evaluation_id,
            "assignments": [
                {"interviewer_id": i["user"]["id"], "slot_id": s["id"]},
                {"interviewer_id": j["user"]["id"], "slot_id": t["id"]},
            ],
        },
        headers=hr_h,
    )
    assert r.status_code == 200, r.text
    assert r.json()["assignment"]["note"] == "Bulk assignment"

    ev = client.get(f"/evaluations/{evaluation_id}", headers=hr_h).json()["evaluation"]
    assert ev["panel"]["interviewers"] == 2
    assert ev["panel"]["overall"] == "pending"

    status = client.get("/interviews/assignment-status?email=A@x.com", headers=hr_h).json()
    assert status["has_active_assignment"] is True
    assert status["repaired"] == 0


def test_interviewer_slot_management(client):
    _, i, _, _ = _setup(client)
    i_h = _auth_headers(i["access_token"])
    day = (utcnow() + timedelta(days=3)).date().isoformat()

    r = client.post("/interviews/slots/generate", json={"date": day, "start_time": "10:00", "end_time": "12:00"}, headers=i_h)
    assert r.status_code == 201, r.text
    slots = r.json()["slots"]
    # 120 minutes: two 45-minute slots, the 30-minute tail is dropped.
    assert len(slots) == 2

    assert client.post("/interviews/slots/generate", json={"date": "03/04/2031"}, headers=i_h).status_code == 400
    r = client.post(
        "/interviews/slots",
        json={"slots": [{"start_time": "2031-01-01T10:00:00Z", "end_time": "2031-01-01T09:00:00Z"}]},
        headers=i_h,
    )
    assert r.status_code == 400, r.text

    assert client.delete(f"/interviews/slots/{slots[0]['id']}", headers=i_h).status_code == 200
    assert client.delete(f"/interviews/slots/{slots[0]['id']}", headers=i_h).status_code == 404
    remaining = client.get("/interviews/my-slots", headers=i_h).json()["slots"]
    assert [x["id"] for x in remaining] == [slots[1]["id"]]


def test_candidate_intake_window_and_slot_offer(client):
    hr, i, _, job = _setup(client)
    _publish(client, i["access_token"])
    payload = {
        "job_id": job["id"],
        "file_name": "cv.pdf",
        "profile": {"name": "Cara", "email": "cara@x.com"},
        "match": {"overall_match": 75},
    }

    r = client.post("/resumes/intake", json=payload)
    assert r.status_code == 201, r.text
    assert r.json()["can_select_slot"] is True
    assert len(r.json()["available_slots"]) == 1

    again = client.post("/resumes/intake", json=payload)
    assert again.status_code == 400, again.text

    weak = client.post(
        "/resumes/intake",
        json={**payload, "profile": {"name": "Dev", "email": "dev@x.com"}, "match": {"overall_match": 40}},
    )
    assert weak.status_code == 201, weak.text
    assert weak.json()["evaluation"]["status"] == "rejected"
    assert weak.json()["can_select_slot"] is False
    assert weak.json()["available_slots"] == []

    r = client.patch(f"/jobs/{job['id']}", json={"status": "On Hold"}, headers=_auth_headers(hr["access_token"]))
    assert r.status_code == 200, r.text
    closed = client.post(
        "/resumes/intake", json={**payload, "profile": {"name": "Eve", "email": "eve@x.com"}}
    )
    assert closed.status_code == 400, closed.text


def _intake(client, job_id: int, *, name: str, email: str, overall: int) -> dict:
    r = client.post(
        "/resumes/intake",
        json={
            "job_id": job_id,
            "file_name": "cv.pdf",
            "profile": {"name": name, "email": email},
            "match": {"overall_match": overall},
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_unmapped_job_offers_no_slots(client):
    hr, i, _, _ = _setup(client)
    _publish(client, i["access_token"])
    r = client.post(
        "/jobs",
        json={"title": "Data Analyst", "description": "SQL and dashboards"},
        headers=_auth_headers(hr["access_token"]),
    )
    assert r.status_code == 201, r.text

    body = _intake(client, r.json()["job"]["id"], name="Cara", email="cara@x.com", overall=88)
    assert body["can_select_slot"] is True
    assert body["available_slots"] == []


def test_candidate_books_offered_slot(client, meeting_issuer):
    hr, i, _, job = _setup(client)
    s = _publish(client, i["access_token"])
    offer = _intake(client, job["id"], name="Cara", email="cara@x.com", overall=75)
    evaluation_id = offer["evaluation"]["id"]
    assert [x["id"] for x in offer["available_slots"]] == [s["id"]]

    url = f"/resumes/intake/{evaluation_id}/book-slot"
    r = client.post(url, json={"job_id": job["id"], "slot_id": s["id"]})
    assert r.status_code == 200, r.text
    assignment = r.json()["assignment"]
    assert assignment["note"] == "Candidate self-scheduled"
    assert assignment["interview_details"][0]["interviewer_id"] == i["user"]["id"]
    assert assignment["interview_join_url"] == "https://zoom.test/j/1"
    assert "warning" not in r.json()
    assert len(meeting_issuer.calls) == 1

    slots = client.get("/interviews/my-slots", headers=_auth_headers(i["access_token"])).json()["slots"]
    assert slots[0]["is_booked"] is True
    assert slots[0]["evaluation_id"] == evaluation_id
    history = client.get(
        f"/evaluations/{evaluation_id}/history", headers=_auth_headers(hr["access_token"])
    ).json()["history"]
    assert [(h["assigned_by"], h["notes"]) for h in history] == [(hr["user"]["id"], "Candidate self-scheduled")]

    # A second pick for the same application is refused.
    again = client.post(url, json={"job_id": job["id"], "slot_id": s["id"]})
    assert again.status_code == 400, again.text
    # The evaluation must belong to the job in the request.
    assert client.post(url, json={"job_id": job["id"] + 1, "slot_id": s["id"]}).status_code == 404


def test_candidate_booking_requires_strong_match(client):
    _, i, _, job = _setup(client)
    s = _publish(client, i["access_token"])
    weak = _intake(client, job["id"], name="Dev", email="dev@x.com", overall=60)
    assert weak["can_select_slot"] is False

    r = client.post(
        f"/resumes/intake/{weak['evaluation']['id']}/book-slot",
        json={"job_id": job["id"], "slot_id": s["id"]},
    )
    assert r.status_code == 400, r.text
    assert "70" in r.json()["error"]
    slots = client.get("/interviews/my-slots", headers=_auth_headers(i["access_token"])).json()["slots"]
    assert slots[0]["is_booked"] is False


def test_candidate_booking_conflicts_and_mapping(client):
    _, i, _, job = _setup(client)
    outsider = _signup(client, email="k@x.com", role="Interviewer", full_name="Kim")
    s = _publish(client, i["access_token"])
    foreign = _publish(client, outsider["access_token"], hours=1)
    first = _intake(client, job["id"], name="Cara", email="cara@x.com", overall=80)["evaluation"]["id"]
    second = _intake(client, job["id"], name="Eve", email="eve@x.com", overall=91)["evaluation"]["id"]

    ok = client.post(f"/resumes/intake/{first}/book-slot", json={"job_id": job["id"], "slot_id": s["id"]})
    assert ok.status_code == 200, ok.text

    lost = client.post(f"/resumes/intake/{second}/book-slot", json={"job_id": job["id"], "slot_id": s["id"]})
    assert lost.status_code == 409, lost.text
    assert lost.json()["details"]["retryable"] is True

    unmapped = client.post(
        f"/resumes/intake/{second}/book-slot", json={"job_id": job["id"], "slot_id": foreign["id"]}
    )
    assert unmapped.status_code == 400, unmapped.text
    missing = client.post(f"/resumes/intake/{second}/book-slot", json={"job_id": job["id"], "slot_id": 9999})
    assert missing.status_code == 404, missing.text
