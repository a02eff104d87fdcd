import pytest

from joke_factory.data.roster_manager import RosterManager, feasible_customer_counts
from joke_factory.services.errors import Conflict, ValidationFailed


@pytest.mark.parametrize(
    "eligible, expected",
    [
        (2, []),
        (3, []),
        (4, [2]),
        (6, [2, 4]),
        (12, [2, 4, 6, 8, 10]),
        (13, [3, 5, 7, 9]),
        (40, [2, 4, 6, 8, 10]),
    ],
)
def test_feasible_customer_counts(eligible, expected):
    assert feasible_customer_counts(eligible) == expected


def test_feasible_customer_counts_respects_bounds():
    assert feasible_customer_counts(12, min_customers=4, max_customers=6) == [4, 6]


def test_join_rejects_duplicate_names_case_insensitively(db_session):
    roster = RosterManager(db_session)
    first = roster.join("  Ada ")
    assert first.display_name == "Ada"
    assert first.status == "WAITING"
    assert first.role is None

    with pytest.raises(Conflict) as excinfo:
        roster.join("ada")
    assert excinfo.value.code == "NAME_TAKEN"


def test_join_requires_a_name(db_session):
    with pytest.raises(ValidationFailed) as excinfo:
        RosterManager(db_session).join("   ")
    assert excinfo.value.code == "INVALID_REQUEST"


def test_auto_assign_is_deterministic(db_session):
    roster = RosterManager(db_session)
    ids = [roster.join(f"p{index}").user_id for index in range(6)]

    result = roster.auto_assign(2, 2)

    assert result["customers"] == ids[:2]
    first, second = result["teams"]
    assert (first["producer_id"], first["quality_control_id"]) == (ids[2], ids[3])
    assert (second["producer_id"], second["quality_control_id"]) == (ids[4], ids[5])
    assert first["team_id"] < second["team_id"]

    customer = roster.store.get_participant(ids[0])
    assert customer.role == "CUSTOMER"
    assert customer.team_id is None
    assert customer.status == "ASSIGNED"
    assert customer.assigned_at is not None
    producer = roster.store.get_participant(ids[2])
    assert producer.role == "PRODUCER"
    assert producer.team_id == first["team_id"]


@pytest.mark.parametrize("customers, teams", [(0, 3), (2, 0), (2, 1), (4, 2)])
def test_auto_assign_rejects_inconsistent_counts(db_session, customers, teams):
    roster = RosterManager(db_session)
    for index in range(6):
        roster.join(f"p{index}")

    with pytest.raises(ValidationFailed) as excinfo:
        roster.auto_assign(customers, teams)
    assert excinfo.value.code == "INVALID_TEAM_COUNTS"


def test_auto_assign_rejects_more_teams_than_exist(db_session):
    roster = RosterManager(db_session)
    team_count = roster.settings["team_count"]
    for index in range(2 + 2 * (team_count + 1)):
        roster.join(f"p{index}")

    with pytest.raises(ValidationFailed) as excinfo:
        roster.auto_assign(2, team_count + 1)
    assert excinfo.value.code == "INVALID_TEAM_COUNTS"


def test_assign_options_endpoint(driver):
    for index in range(6):
        driver.join(f"p{index}")

    response = driver.client.get(
        f"/v1/instructor/rounds/{driver.round_id}/assign/options",
        headers=driver.instructor,
    )

    assert response.status_code == 200
    assert response.json() == {"round_id": driver.round_id, "eligible_count": 6, "options": [2, 4]}


def test_assign_endpoint_requires_instructor(driver):
    player = driver.join("p0")
    response = driver.client.post(
        f"/v1/instructor/rounds/{driver.round_id}/assign",
        json={"customer_count": 2, "team_count": 1},
        headers=driver.headers(player),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_assign_endpoint_reports_invalid_counts(driver):
    for index in range(5):
        driver.join(f"p{index}")
    response = driver.instructor_post(
        f"/v1/instructor/rounds/{driver.round_id}/assign",
        json={"customer_count": 2, "team_count": 2},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "INVALID_TEAM_COUNTS"
    assert body["details"]["eligible_count"] == 5


def _patch(driver, user_id, payload):
    return driver.client.patch(
        f"/v1/instructor/rounds/{driver.round_id}/users/{user_id}",
        json=payload,
        headers=driver.instructor,
    )


def test_patch_assignment_normalises(driver):
    formed = driver.form_teams(customers=2, teams=1)
    producer_id = formed["teams"][0]["producer_id"]
    team_id = formed["teams"][0]["team_id"]

    response = _patch(driver, producer_id, {"role": "CUSTOMER", "team_id": team_id})
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "CUSTOMER"
    assert body["team_id"] is None
    assert body["status"] == "ASSIGNED"

    response = _patch(driver, producer_id, {"status": "WAITING"})
    body = response.json()
    assert (body["role"], body["team_id"], body["status"]) == (None, None, "WAITING")

    response = _patch(driver, producer_id, {"role": "PRODUCER", "team_id": team_id})
    body = response.json()
    assert (body["role"], body["team_id"], body["status"]) == ("JM", team_id, "ASSIGNED")


def test_patch_assignment_only_touches_present_fields(driver):
    formed = driver.form_teams(customers=2, teams=1)
    grader_id = formed["teams"][0]["quality_control_id"]
    team_id = formed["teams"][0]["team_id"]

    body = _patch(driver, grader_id, {"team_id": team_id + 1}).json()

    assert body["role"] == "QC"
    assert body["team_id"] == team_id + 1


def test_patch_assignment_guards(driver):
    formed = driver.form_teams(customers=2, teams=1)
    grader_id = formed["teams"][0]["quality_control_id"]

    response = _patch(driver, grader_id, {"role": "INSTRUCTOR"})
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"

    response = _patch(driver, driver.instructor_id, {"role": "CUSTOMER"})
    assert response.status_code == 403

    response = _patch(driver, grader_id, {"team_id": 999999})
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"

    response = _patch(driver, 999999, {"role": "CUSTOMER"})
    assert response.status_code == 404


def test_remove_participant(driver):
    player = driver.join("leaver")

    response = driver.client.delete(
        f"/v1/instructor/rounds/{driver.round_id}/users/{player}",
        headers=driver.instructor,
    )
    assert response.status_code == 200
    assert response.json() == {"deleted_user_id": player}

    me = driver.client.get("/v1/session/me", headers=driver.headers(player))
    assert me.status_code == 401
    assert me.json()["code"] == "INVALID_SESSION"


def test_removing_players_keeps_batches_sales_and_stats(driver):
    formed = driver.form_teams(customers=2, teams=1)
    team = formed["teams"][0]
    customer = formed["customers"][0]
    driver.start()
    batch = driver.submit_batch(
        team["producer_id"], team["team_id"], ["a", "b", "c", "d", "e"]
    ).json()["batch"]
    ratings = [
        {"joke_id": joke_id, "rating": score}
        for joke_id, score in zip(batch["joke_ids"], [5, 4, 3, 1, 2])
    ]
    assert driver.rate(team["quality_control_id"], batch["batch_id"], ratings).status_code == 200
    assert driver.buy(customer, batch["joke_ids"][0]).status_code == 200

    base = f"/v1/rounds/{driver.round_id}/teams/{team['team_id']}"
    stats_path = f"/v1/instructor/rounds/{driver.round_id}/stats"
    summary_before = driver.client.get(f"{base}/summary", headers=driver.instructor).json()
    batches_before = driver.client.get(f"{base}/batches", headers=driver.instructor).json()
    stats_before = driver.client.get(stats_path, headers=driver.instructor).json()

    for user_id in (team["producer_id"], customer):
        response = driver.client.delete(
            f"/v1/instructor/rounds/{driver.round_id}/users/{user_id}",
            headers=driver.instructor,
        )
        assert response.status_code == 200

    summary_after = driver.client.get(f"{base}/summary", headers=driver.instructor).json()
    batches_after = driver.client.get(f"{base}/batches", headers=driver.instructor).json()
    stats_after = driver.client.get(stats_path, headers=driver.instructor).json()

    assert summary_after == summary_before
    assert summary_after["points"] == 1
    assert summary_after["accepted_jokes"] == 3
    assert batches_after == batches_before
    assert batches_after["batches"][0]["status"] == "RATED"
    assert batches_after["batches"][0]["avg_score"] == 3.0
    assert stats_after == stats_before


def test_instructor_cannot_be_removed(driver):
    response = driver.client.delete(
        f"/v1/instructor/rounds/{driver.round_id}/users/{driver.instructor_id}",
        headers=driver.instructor,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "CANNOT_DELETE_INSTRUCTOR"


def test_lobby_groups_participants(driver):
    formed = driver.form_teams(customers=2, teams=1)
    driver.join("latecomer")

    response = driver.client.get(
        f"/v1/instructor/rounds/{driver.round_id}/lobby", headers=driver.instructor
    )

    assert response.status_code == 200
    lobby = response.json()
    assert lobby["summary"] == {
        "waiting": 1,
        "assigned": 4,
        "team_count": 20,
        "customer_count": 2,
        "eligible_count": 5,
    }
    assert [m["display_name"] for m in lobby["unassigned"]] == ["latecomer"]
    assert [m["user_id"] for m in lobby["customers"]] == formed["customers"]
    first_team = lobby["teams"][0]
    assert [m["role"] for m in first_team["members"]] == ["JM", "QC"]
    assert [m["display_name"] for m in lobby["instructors"]] == ["Charles2026"]


def test_rename_team(driver):
    teams = driver.client.get("/v1/teams").json()["teams"]
    team_id = teams[0]["id"]

    response = driver.client.patch(
        f"/v1/instructor/teams/{team_id}",
        json={"name": "  The Punchliners "},
        headers=driver.instructor,
    )

    assert response.status_code == 200
    assert response.json() == {"id": team_id, "name": "The Punchliners"}
    assert driver.client.get("/v1/teams").json()["teams"][0]["name"] == "The Punchliners"
