import pytest

JOKES = ["A", "B", "C", "D", "E"]


def _view(driver, user_id):
    response = driver.client.get("/v1/session/view", headers=driver.headers(user_id))
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def table(driver):
    formed = driver.form_teams(customers=2, teams=1)
    waiting = driver.join("latecomer")
    team = formed["teams"][0]
    return {
        "driver": driver,
        "team_id": team["team_id"],
        "producer": team["producer_id"],
        "grader": team["quality_control_id"],
        "customer": formed["customers"][0],
        "waiting": waiting,
    }


def test_unassigned_view(table):
    body = _view(table["driver"], table["waiting"])

    assert body["me"]["status"] == "WAITING"
    assert body["me"]["role"] is None
    assert body["view"]["kind"] == "unassigned"
    assert body["round"]["round_number"] == 1


def test_instructor_view(table):
    driver = table["driver"]
    body = _view(driver, driver.instructor_id)

    view = body["view"]
    assert view["kind"] == "instructor"
    assert view["lobby"]["summary"]["waiting"] == 1
    assert view["assign_options"]["eligible_count"] == 5
    assert view["stats"]["round_id"] == driver.round_id
    assert len(view["stats"]["leaderboard"]) == 20


def test_producer_and_quality_control_views(table):
    driver = table["driver"]
    driver.start()
    batch = driver.submit_batch(table["producer"], table["team_id"], JOKES).json()["batch"]

    producer = _view(driver, table["producer"])["view"]
    assert producer["kind"] == "producer"
    assert producer["team_id"] == table["team_id"]
    assert [b["batch_id"] for b in producer["batches"]] == [batch["batch_id"]]
    assert producer["team_summary"]["batches_created"] == 1
    assert {m["role"] for m in producer["team_members"]} == {"JM", "QC"}
    assert "market" not in producer

    grader = _view(driver, table["grader"])["view"]
    assert grader["kind"] == "quality_control"
    assert grader["queue_size"] == 1
    assert grader["next_batch"]["batch"]["batch_id"] == batch["batch_id"]
    assert [j["joke_text"] for j in grader["next_batch"]["jokes"]] == JOKES


def test_customer_view(table):
    driver = table["driver"]
    driver.start()
    batch = driver.submit_batch(table["producer"], table["team_id"], JOKES).json()["batch"]
    driver.rate(table["grader"], batch["batch_id"], [{"joke_id": batch["joke_ids"][0], "rating": 4}])
    driver.buy(table["customer"], batch["joke_ids"][0])

    view = _view(driver, table["customer"])["view"]

    assert view["kind"] == "customer"
    assert view["budget"]["remaining_budget"] == 9
    assert view["purchased_joke_ids"] == [batch["joke_ids"][0]]
    assert [item["is_bought_by_me"] for item in view["market"]] == [True]
    assert "lobby" not in view


def test_state_version_moves_only_on_writes(table):
    driver = table["driver"]
    before = _view(driver, table["waiting"])["state_version"]
    assert _view(driver, table["waiting"])["state_version"] == before

    driver.configure(batch_size=5, customer_budget=4)
    after_write = _view(driver, table["waiting"])["state_version"]
    assert after_write == before + 1

    rejected = driver.instructor_post(f"/v1/instructor/rounds/{driver.round_id}/end")
    assert rejected.status_code == 409
    assert _view(driver, table["waiting"])["state_version"] == after_write


def test_reveal_flag_is_visible_to_players(table):
    driver = table["driver"]
    driver.instructor_post(
        f"/v1/instructor/rounds/{driver.round_id}/popups", json={"is_popped_active": True}
    )

    assert _view(driver, table["producer"])["round"]["is_popped_active"] is True
