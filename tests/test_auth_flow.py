def _signup(client, *, email: str, password: str = "Testpass123!", role: str, full_name: str = "Test User"):
    return client.post(
        "/auth/signup",
        json={"email": email, "password": password, "role": role, "full_name": full_name},
    )


def _login(client, *, email: str, password: str = "Testpass123!", role: str | None = None):
    body = {"email": email, "password": password}
    if role is not None:
        body["role"] = role
    return client.post("/auth/login", json=body)


def _auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_signup_hr_success(client):
    r = _signup(client, email="hr@example.com", role="HR", full_name="Harriet")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["user"]["role"] == "HR"
    assert data["user"]["status"] == "active"
    assert isinstance(data.get("access_token"), str) and len(data["access_token"]) > 10


def test_signup_role_is_case_insensitive(client):
    r = _signup(client, email="int@example.com", role="interviewer")
    assert r.status_code == 200, r.text
    assert r.json()["user"]["role"] == "Interviewer"


def test_signup_rejects_unknown_role_and_duplicate_email(client):
    assert _signup(client, email="x@example.com", role="candidate").status_code == 400
    assert _signup(client, email="dup@example.com", role="HR").status_code == 200
    r = _signup(client, email="DUP@example.com", role="HR")
    assert r.status_code == 400, r.text
    assert r.json()["success"] is False


def test_login_role_mismatch_fails(client):
    _signup(client, email="i2@example.com", role="Interviewer")
    r = _login(client, email="i2@example.com", role="HR")
    assert r.status_code == 403, r.text


def test_login_invalid_credentials_fails(client):
    _signup(client, email="hr2@example.com", role="HR")
    r = _login(client, email="hr2@example.com", password="wrong", role="HR")
    assert r.status_code == 401, r.text


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    token = _signup(client, email="me@example.com", role="HR").json()["access_token"]
    r = client.get("/auth/me", headers=_auth_headers(token))
    assert r.status_code == 200, r.text
    assert r.json()["user"]["email"] == "me@example.com"


def test_logout_endpoint_exists(client):
    r = client.post("/auth/logout")
    assert r.status_code == 200, r.text
    assert "message" in r.json()


def test_interviewer_cannot_create_job(client):
    token = _signup(client, email="i3@example.com", role="Interviewer").json()["access_token"]
    r = client.post(
        "/jobs",
        json={"title": "SRE", "description": "A" * 20},
        headers=_auth_headers(token),
    )
    assert r.status_code == 403, r.text


def test_hr_can_create_job_and_validation_applies(client):
    token = _signup(client, email="hr3@example.com", role="HR").json()["access_token"]
    interviewer = _signup(client, email="i4@example.com", role="Interviewer").json()["user"]

    r = client.post("/jobs", json={"title": "SRE"}, headers=_auth_headers(token))
    assert r.status_code in (400, 422), r.text

    # Only active Interviewers can be mapped to a job.
    r = client.post(
        "/jobs",
        json={"title": "SRE", "description": "A" * 20, "interviewers": [interviewer["id"], 9999]},
        headers=_auth_headers(token),
    )
    assert r.status_code == 400, r.text

    r2 = client.post(
        "/jobs",
        json={"title": "Site Reliability Engineer", "description": "A" * 20, "interviewers": [interviewer["id"]]},
        headers=_auth_headers(token),
    )
    assert r2.status_code == 201, r2.text
    job = r2.json()["job"]
    assert job["status"] == "Open"
    assert job["interviewers"] == [interviewer["id"]]


def test_admin_deactivation_blocks_login_and_existing_token(client):
    admin = _signup(client, email="admin@example.com", role="Admin").json()
    hr = _signup(client, email="hr5@example.com", role="HR").json()
    interviewer = _signup(client, email="i5@example.com", role="Interviewer").json()

    # Only admins manage accounts.
    r = client.patch(
        f"/auth/users/{interviewer['user']['id']}/status",
        json={"status": "inactive"},
        headers=_auth_headers(hr["access_token"]),
    )
    assert r.status_code == 403, r.text

    r = client.patch(
        f"/auth/users/{interviewer['user']['id']}/status",
        json={"status": "inactive"},
        headers=_auth_headers(admin["access_token"]),
    )
    assert r.status_code == 200, r.text
    assert r.json()["user"]["status"] == "inactive"

    assert _login(client, email="i5@example.com").status_code == 403
    assert client.get("/auth/me", headers=_auth_headers(interviewer["access_token"])).status_code == 403

    listed = client.get("/auth/interviewers", headers=_auth_headers(hr["access_token"])).json()["interviewers"]
    assert interviewer["user"]["id"] not in [u["id"] for u in listed]


def test_admin_cannot_deactivate_self(client):
    admin = _signup(client, email="admin2@example.com", role="Admin").json()
    r = client.patch(
        f"/auth/users/{admin['user']['id']}/status",
        json={"status": "inactive"},
        headers=_auth_headers(admin["access_token"]),
    )
    assert r.status_code == 400, r.text
