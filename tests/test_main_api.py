import pytest
from fastapi.testclient import TestClient

import main


@pytest.fixture
def client(rank_context):
    main.app.dependency_overrides[main.get_context] = lambda: rank_context
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def test_rank_lookup_goes_pending_then_cached(client, rank_context, upstream):
    upstream.search_results[("Foo", "Bar")] = ["12345"]
    upstream.collect["12345"] = {"rankings": {"achievements": {"global": 4821}}}

    response = client.get("/ranks/Bar/Foo")
    assert response.status_code == 202
    assert response.json() == {"status": "pending", "player": "Foo@Bar", "metric": "Achievements"}

    assert rank_context.worker.wait_until_idle(timeout=5)

    response = client.get("/ranks/Bar/Foo")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cached"
    assert body["text"] == "=4821"
    assert body["color"]["name"] == "purple"


def test_refresh_clears_cached_ranks(client, rank_context, upstream):
    upstream.search_results[("Foo", "Bar")] = ["12345"]
    upstream.collect["12345"] = {"rankings": {"achievements": {"global": 4821}}}
    client.get("/ranks/Bar/Foo")
    assert rank_context.worker.wait_until_idle(timeout=5)

    assert client.post("/cache/refresh").json() == {"status": "cleared"}
    assert rank_context.rank_manager.cached_player_count() == 0
    assert client.get("/ranks/Bar/Foo").status_code == 202


def test_settings_can_be_read_and_patched(client, rank_context):
    assert client.get("/settings").json()["rank_metric"] == "Achievements"

    response = client.patch("/settings", json={"rank_metric": "Mounts", "rank_scope": "Server"})
    assert response.status_code == 200
    assert response.json()["rank_metric"] == "Mounts"
    assert rank_context.settings.rank_scope.value == "Server"


def test_invalid_settings_are_rejected(client):
    assert client.patch("/settings", json={"rank_metric": "Fish"}).status_code == 422
    assert client.patch("/settings", json={"colour": "red"}).status_code == 422


def test_disabled_display_short_circuits_lookups(client, upstream):
    client.patch("/settings", json={"rank_display_enabled": False})

    response = client.get("/ranks/Bar/Foo")

    assert response.json() == {"status": "disabled"}
    assert upstream.calls["search"] == 0


def test_health_reports_cache_state(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["cached_players"] == 0
    assert body["ranking_source"] == "FFXIVCollect"


def test_routes_fail_without_a_context():
    response = TestClient(main.app).get("/health")
    assert response.status_code == 503
