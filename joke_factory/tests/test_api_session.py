from conftest import INSTRUCTOR_NAME, INSTRUCTOR_PASSWORD


def test_join_returns_waiting_participant(client):
    response = client.post("/v1/session/join", json={"display_name": "Ada"})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["display_name"] == "Ada"
    assert body["participant"]["status"] == "WAITING"
    assert body["participant"]["assigned_at"] is None
    assert body["assignment"] == {"role": None, "team_id": None}
    assert body["round_id"] is not None


def test_join_name_taken(client):
    client.post("/v1/session/join", json={"display_name": "Ada"})

    response = client.post("/v1/session/join", json={"display_name": "ADA"})

    assert response.status_code == 409
    assert response.json() == {
        "code": "NAME_TAKEN",
        "message": "Name already taken.",
        "details": {"display_name": "ADA"},
    }


def test_join_validation_error_shape(client):
    response = client.post("/v1/session/join", json={})

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "INVALID_REQUEST"
    assert body["details"]["fields"] == ["body.display_name"]


def test_me_round_trip(client):
    user_id = client.post("/v1/session/join", json={"display_name": "Ada"}).json()["user"]["user_id"]

    response = client.get("/v1/session/me", headers={"X-User-Id": str(user_id)})

    assert response.status_code == 200
    assert response.json()["user"] == {"user_id": user_id, "display_name": "Ada"}


def test_missing_and_unknown_identity(client):
    missing = client.get("/v1/session/me")
    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHENTICATED"

    garbage = client.get("/v1/session/me", headers={"X-User-Id": "not-a-number"})
    assert garbage.status_code == 401
    assert garbage.json()["code"] == "INVALID_SESSION"

    unknown = client.get("/v1/session/view", headers={"X-User-Id": "4242"})
    assert unknown.status_code == 401
    assert unknown.json()["code"] == "INVALID_SESSION"


def test_instructor_login(client):
    payload = {"display_name": INSTRUCTOR_NAME, "password": INSTRUCTOR_PASSWORD}

    first = client.post("/v1/session/instructor-login", json=payload)
    second = client.post("/v1/session/instructor-login", json=payload)

    assert first.status_code == 200
    body = first.json()
    assert body["assignment"]["role"] == "INSTRUCTOR"
    assert body["participant"]["status"] == "ASSIGNED"
    assert second.json()["user"]["user_id"] == body["user"]["user_id"]


def test_instructor_login_rejects_bad_credentials(client):
    wrong_password = client.post(
        "/v1/session/instructor-login",
        json={"display_name": INSTRUCTOR_NAME, "password": "nope"},
    )
    assert wrong_password.status_code == 401
    assert wrong_password.json()["code"] == "INVALID_CREDENTIALS"

    wrong_name = client.post(
        "/v1/session/instructor-login",
        json={"display_name": "Mallory", "password": INSTRUCTOR_PASSWORD},
    )
    assert wrong_name.status_code == 401


def test_instructor_login_name_collision(client):
    client.post("/v1/session/join", json={"display_name": "Fernanda2026"})

    response = client.post(
        "/v1/session/instructor-login",
        json={"display_name": "Fernanda2026", "password": INSTRUCTOR_PASSWORD},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "NAME_TAKEN"


def test_instructor_login_is_rate_limited(client):
    payload = {"display_name": "Mallory", "password": "guess"}
    for _ in range(8):
        assert client.post("/v1/session/instructor-login", json=payload).status_code == 401

    response = client.post("/v1/session/instructor-login", json=payload)

    assert response.status_code == 429
    assert response.json()["code"] == "TOO_MANY_ATTEMPTS"
    assert int(response.headers["Retry-After"]) >= 1


def test_instructor_endpoints_need_an_instructor(driver):
    player = driver.join("Ada")
    round_id = driver.round_id

    as_player = driver.client.post(
        f"/v1/instructor/rounds/{round_id}/start", headers=driver.headers(player)
    )
    assert as_player.status_code == 403
    assert as_player.json() == {"code": "FORBIDDEN", "message": "Instructor only.", "details": {}}

    anonymous = driver.client.post(f"/v1/instructor/rounds/{round_id}/start")
    assert anonymous.status_code == 401

    stats = driver.client.get(
        f"/v1/instructor/rounds/{round_id}/stats", headers=driver.headers(player)
    )
    assert stats.status_code == 403


def test_team_roster(driver):
    formed = driver.form_teams(customers=2, teams=1)
    team = formed["teams"][0]

    response = driver.client.get("/v1/session/team", headers=driver.headers(team["producer_id"]))

    assert response.status_code == 200
    body = response.json()
    assert body["team_id"] == team["team_id"]
    assert [m["user_id"] for m in body["members"]] == [
        team["producer_id"],
        team["quality_control_id"],
    ]

    customer = driver.client.get(
        "/v1/session/team", headers=driver.headers(formed["customers"][0])
    ).json()
    assert customer["team_id"] is None
    assert customer["members"] == []


def test_public_round_and_team_listing(client):
    rounds = client.get("/v1/rounds/active")
    teams = client.get("/v1/teams")

    assert rounds.status_code == 200
    assert [r["round_number"] for r in rounds.json()["rounds"]] == [1]
    assert len(teams.json()["teams"]) == 20
    assert teams.json()["teams"][0]["name"] == "Team 1"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_localhost_responses_are_not_cached(client):
    response = client.get("/v1/teams", headers={"host": "localhost"})
    assert response.headers["Cache-Control"].startswith("no-store")
