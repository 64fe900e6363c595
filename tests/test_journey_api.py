"""Journey API tests."""

from gymbro.core.config import settings
from gymbro.main import app


def _bootstrap(client, headers, source=None):
    body = {"source": source} if source else None
    r = client.post("/api/journey/stages/bootstrap", headers=headers, json=body)
    assert r.status_code == 200
    return r.json()


def _nodes(client, headers, **params):
    r = client.get("/api/journey", headers=headers, params=params)
    assert r.status_code == 200
    return r.json()["data"]


def test_journey_without_auth_returns_empty_shell(client):
    """Logged-out callers get an empty journey, not an error."""
    r = client.get("/api/journey")
    assert r.status_code == 200
    assert r.json() == {
        "ok": True,
        "auth": False,
        "data": {"chapters": [], "nodes": [], "total_points": 0, "total_badges": 0},
    }


def test_journey_with_bad_token_is_unauthorized(client):
    """A token that fails verification is rejected."""
    r = client.get("/api/journey", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_journey_before_bootstrap_lists_chapters_only(client, auth_headers):
    """A new user sees the seed chapters with no stage instances yet."""
    data = _nodes(client, auth_headers)
    assert [c["slug"] for c in data["chapters"]] == ["getting-started", "building-habits"]
    assert data["nodes"] == []
    assert data["source"] == "seed"
    assert data["active_stage_position"] is None


def test_bootstrap_is_idempotent(client, auth_headers):
    """The first bootstrap creates every seed stage; the second creates nothing."""
    first = _bootstrap(client, auth_headers)
    second = _bootstrap(client, auth_headers)
    assert first == {"ok": True, "existing": False, "created": 4, "source": "seed"}
    assert second == {"ok": True, "existing": True, "created": 0, "source": "seed"}


def test_bootstrap_requires_auth(client):
    """Only authenticated users can start a journey."""
    r = client.post("/api/journey/stages/bootstrap")
    assert r.status_code == 401


def test_journey_after_bootstrap(client, auth_headers):
    """Only the first stage is open; tasks carry live progress."""
    _bootstrap(client, auth_headers)
    data = _nodes(client, auth_headers)

    assert [n["code"] for n in data["nodes"]] == ["FOUNDATION", "MOMENTUM", "CONSISTENCY", "MAINTENANCE"]
    assert [n["status"] for n in data["nodes"]] == ["available", "locked", "locked", "locked"]
    assert data["active_stage_position"] == 0
    assert data["unlocked_up_to"] == -1
    assert data["total_points"] == 0
    assert data["total_badges"] == 0

    first = data["nodes"][0]
    assert first["points_total"] == 45
    assert first["completed_tasks"] == 0
    assert first["total_tasks"] == 3
    assert [t["code"] for t in first["tasks"]] == ["LOG_FIRST_MEAL", "LOG_3_MEALS_TODAY", "FIRST_WEIGH_IN"]
    assert all(t["progress"] == 0.0 and t["can_complete"] is False for t in first["tasks"])
    assert first["next_steps"] == ["Log 3 more meal(s) today", "1 more weigh-in(s)"]
    assert data["nodes"][1]["tasks"][0]["locked_by_stage"] is True


def test_task_progress_reflects_metrics(client, user_id, auth_headers, record_metrics):
    """Live task progress comes from the metrics snapshot."""
    _bootstrap(client, auth_headers)
    record_metrics(user_id, meals_logged_today=2)

    tasks = {t["code"]: t for t in _nodes(client, auth_headers)["nodes"][0]["tasks"]}

    assert tasks["LOG_FIRST_MEAL"]["can_complete"] is True
    assert tasks["LOG_FIRST_MEAL"]["progress"] == 1.0
    assert tasks["LOG_3_MEALS_TODAY"]["can_complete"] is False
    assert tasks["LOG_3_MEALS_TODAY"]["current"] == 2
    assert tasks["LOG_3_MEALS_TODAY"]["target"] == 3
    assert tasks["LOG_3_MEALS_TODAY"]["progress"] == round(2 / 3, 4)


def test_chapter_filter_by_slug(client, auth_headers):
    """Filtering by chapter returns only that chapter's stages."""
    _bootstrap(client, auth_headers)
    data = _nodes(client, auth_headers, chapter_slug="building-habits")
    assert [n["code"] for n in data["nodes"]] == ["CONSISTENCY", "MAINTENANCE"]
    assert data["selected_chapter_slug"] == "building-habits"
    assert len(data["chapters"]) == 2


def test_chapter_filter_by_id(client, auth_headers):
    """Chapter ids work like slugs."""
    _bootstrap(client, auth_headers)
    chapters = _nodes(client, auth_headers)["chapters"]
    data = _nodes(client, auth_headers, chapter_id=chapters[0]["id"])
    assert [n["code"] for n in data["nodes"]] == ["FOUNDATION", "MOMENTUM"]
    assert data["selected_chapter_id"] == chapters[0]["id"]


def test_unknown_chapter_returns_chapters_without_nodes(client, auth_headers):
    """An unknown chapter yields the chapter list and no nodes."""
    _bootstrap(client, auth_headers)
    data = _nodes(client, auth_headers, chapter_slug="does-not-exist")
    assert data["nodes"] == []
    assert len(data["chapters"]) == 2
    assert "message" in data


def test_personalized_journey_replaces_seed(client, auth_headers):
    """Once avatar stages exist, seed stages are hidden entirely."""
    _bootstrap(client, auth_headers)
    created = _bootstrap(client, auth_headers, source="avatar")
    assert created["created"] == 2

    data = _nodes(client, auth_headers)
    assert data["source"] == "avatar"
    assert [n["code"] for n in data["nodes"]] == ["AVATAR_START", "AVATAR_NEXT"]
    assert [c["slug"] for c in data["chapters"]] == ["avatar-path"]
    assert data["nodes"][0]["status"] == "available"


def test_complete_task_via_api(client, user_id, auth_headers, record_metrics):
    """The completion endpoint accepts camelCase ids and returns the outcome."""
    _bootstrap(client, auth_headers)
    node = _nodes(client, auth_headers)["nodes"][0]
    task_id = node["tasks"][0]["user_task_id"]
    record_metrics(user_id, meals_logged_today=1)

    r = client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={"stageInstanceId": node["user_stage_id"], "taskInstanceId": task_id},
    )
    assert r.status_code == 200
    assert r.json() == {
        "ok": True,
        "points_awarded": 10,
        "stage_completed": False,
        "unlocked_next": False,
        "already_completed": False,
    }

    again = client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={"stage_instance_id": node["user_stage_id"], "task_instance_id": task_id},
    )
    assert again.status_code == 200
    assert again.json()["already_completed"] is True
    assert again.json()["points_awarded"] == 0


def test_completion_refreshes_cached_journey(client, user_id, auth_headers, record_metrics):
    """A cached journey is rebuilt after a completion."""
    _bootstrap(client, auth_headers)
    node = _nodes(client, auth_headers)["nodes"][0]
    assert _nodes(client, auth_headers)["total_points"] == 0
    record_metrics(user_id, meals_logged_today=1)

    client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={"stageInstanceId": node["user_stage_id"], "taskInstanceId": node["tasks"][0]["user_task_id"]},
    )

    data = _nodes(client, auth_headers)
    assert data["total_points"] == 10
    assert data["nodes"][0]["completed_tasks"] == 1
    assert data["nodes"][0]["tasks"][0]["is_completed"] is True


def test_completion_errors_render_typed_payloads(client, user_id, auth_headers, record_metrics):
    """Errors come back as {ok: false, error, message, ...} with matching status codes."""
    _bootstrap(client, auth_headers)
    nodes = _nodes(client, auth_headers)["nodes"]
    first, second = nodes[0], nodes[1]
    record_metrics(user_id, meals_logged_today=1)

    not_met = client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={"stageInstanceId": first["user_stage_id"], "taskInstanceId": first["tasks"][1]["user_task_id"]},
    )
    assert not_met.status_code == 400
    body = not_met.json()
    assert body["ok"] is False
    assert body["error"] == "ConditionsNotMet"
    assert body["current"] == 1
    assert body["target"] == 3

    locked = client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={"stageInstanceId": second["user_stage_id"], "taskInstanceId": second["tasks"][0]["user_task_id"]},
    )
    assert locked.status_code == 403
    assert locked.json()["error"] == "stage_locked"

    missing = client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={"stageInstanceId": first["user_stage_id"], "taskInstanceId": 987654},
    )
    assert missing.status_code == 404
    assert missing.json()["error"] == "NotFound"


def test_completing_another_users_task_is_forbidden(client, auth_headers, token_for):
    """A stage owned by another user returns 403 Forbidden."""
    _bootstrap(client, auth_headers)
    node = _nodes(client, auth_headers)["nodes"][0]

    r = client.post(
        "/api/journey/stages/complete",
        headers=token_for("intruder"),
        json={"stageInstanceId": node["user_stage_id"], "taskInstanceId": node["tasks"][0]["user_task_id"]},
    )
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"


def test_completion_is_rate_limited(client, auth_headers):
    """The fourth completion attempt within a minute is throttled with Retry-After."""
    body = {"stageInstanceId": 1, "taskInstanceId": 999999}
    for _ in range(3):
        assert client.post("/api/journey/stages/complete", headers=auth_headers, json=body).status_code == 404

    r = client.post("/api/journey/stages/complete", headers=auth_headers, json=body)
    assert r.status_code == 429
    assert r.json()["error"] == "RateLimitExceeded"
    assert r.json()["limit"] == 3
    assert int(r.headers["Retry-After"]) >= 1


def test_complete_requires_auth(client):
    """Completion needs a bearer token."""
    r = client.post("/api/journey/stages/complete", json={"stageInstanceId": 1, "taskInstanceId": 1})
    assert r.status_code == 401


def test_refresh_completes_met_stage_and_unlocks_next(client, user_id, auth_headers, record_metrics):
    """Refreshing with metrics that meet the first stage completes it and opens the second."""
    _bootstrap(client, auth_headers)
    record_metrics(user_id, meals_logged_today=3, weigh_ins=1)

    r = client.post("/api/journey/stages/refresh", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"ok": True, "evaluated": 2, "advanced": 1, "completed": 1, "unlocked": 1}

    data = _nodes(client, auth_headers)
    assert [n["status"] for n in data["nodes"]] == ["completed", "available", "locked", "locked"]
    assert data["unlocked_up_to"] == 0
    assert data["active_stage_position"] == 1
    assert data["total_badges"] == 1
    assert data["chapters"][0]["state"] == "ACTIVE"


def test_completion_note_is_returned_in_journey(client, user_id, auth_headers, record_metrics):
    """A note sent with a completion comes back on the task."""
    _bootstrap(client, auth_headers)
    node = _nodes(client, auth_headers)["nodes"][0]
    assert node["tasks"][0]["note"] is None
    record_metrics(user_id, meals_logged_today=1)

    r = client.post(
        "/api/journey/stages/complete",
        headers=auth_headers,
        json={
            "stageInstanceId": node["user_stage_id"],
            "taskInstanceId": node["tasks"][0]["user_task_id"],
            "note": "Greek yogurt",
        },
    )
    assert r.status_code == 200

    assert _nodes(client, auth_headers)["nodes"][0]["tasks"][0]["note"] == "Greek yogurt"


def test_routes_use_configured_api_prefix(client):
    """Journey and points routes are mounted under the configured prefix."""
    paths = {route.path for route in app.routes}
    assert f"{settings.api_prefix}/journey" in paths
    assert f"{settings.api_prefix}/journey/stages/complete" in paths
    assert f"{settings.api_prefix}/points/feed" in paths
