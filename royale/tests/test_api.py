"""
API integration tests.
Uses TestClient to avoid starting a server; storage and analysis are faked
through dependency overrides.
"""
from __future__ import annotations

import gc

import pytest
from fastapi.testclient import TestClient

from royale import api
from royale.api import app, get_analyzer
from royale.auth import create_access_token
from royale.standings import parse_standings_csv
from royale.storage import get_storage
from royale.tests.fakes import FakeStorage, ScriptedAnalyzer, analysis


@pytest.fixture
def fakes(db_path):
    storage = FakeStorage()
    analyzer = ScriptedAnalyzer()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_analyzer] = lambda: analyzer
    yield storage, analyzer
    app.dependency_overrides.clear()


@pytest.fixture
def client(fakes):
    return TestClient(app)


def _auth(role: str, team_id: str | None = None, user: str = "u1") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user, role, team_id=team_id)}"}


ADMIN = _auth("admin", user="admin-1")


@pytest.fixture
def tournament(client):
    resp = client.post("/tournaments", json={"name": "Summer Cup 2025", "total_matches": 6}, headers=ADMIN)
    assert resp.status_code == 200
    t = resp.json()
    teams = []
    for name in ("Alpha", "Bravo"):
        r = client.post(f"/tournaments/{t['id']}/teams", json={"name": name}, headers=ADMIN)
        assert r.status_code == 200
        teams.append(r.json())
    return t, teams


def test_create_requires_admin(client):
    assert client.post("/tournaments", json={"name": "X"}).status_code == 401
    assert client.post("/tournaments", json={"name": "X"}, headers={"Authorization": "Bearer junk"}).status_code == 401
    assert client.post("/tournaments", json={"name": "X"}, headers=_auth("player")).status_code == 403


def test_list_and_get_tournament(client, tournament):
    t, _ = tournament
    resp = client.get("/tournaments")
    assert resp.status_code == 200
    assert [x["id"] for x in resp.json()["tournaments"]] == [t["id"]]
    assert client.get(f"/tournaments/{t['id']}").json()["total_matches"] == 6
    assert client.get("/tournaments/missing").status_code == 404


def test_manual_entry_and_standings(client, tournament):
    t, (alpha, bravo) = tournament
    resp = client.post(
        f"/tournaments/{t['id']}/matches",
        json={"day": 1, "match_number": 1, "results": [
            {"team_id": alpha["id"], "placement": 1, "kills": 5},
            {"team_id": bravo["id"], "placement": 3, "kills": 2},
        ]},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert [r["points"] for r in resp.json()["records"]] == [15, 7]

    standings = client.get(f"/tournaments/{t['id']}/standings").json()["standings"]
    assert [(s["rank"], s["team_name"], s["total_points"]) for s in standings] == [(1, "Alpha", 15), (2, "Bravo", 7)]


def test_manual_entry_validation_is_400(client, tournament):
    t, (alpha, _) = tournament
    resp = client.post(
        f"/tournaments/{t['id']}/matches",
        json={"day": 1, "match_number": 1, "results": [{"team_id": alpha["id"], "placement": 40, "kills": 1}]},
        headers=ADMIN,
    )
    assert resp.status_code == 400
    assert "between 1 and 32" in resp.json()["detail"]


def test_daily_total_and_edit(client, tournament):
    t, (alpha, _) = tournament
    resp = client.post(
        f"/tournaments/{t['id']}/daily-totals",
        json={"team_id": alpha["id"], "day": 1, "kills": 8, "placement_points": 6},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    record = resp.json()
    assert (record["points"], record["placement"], record["kind"]) == (14, 0, "daily_total")

    resp = client.patch(f"/records/{record['id']}", json={"placement_points": 10}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["points"] == 18


def test_csv_download(client, tournament):
    t, (alpha, _) = tournament
    client.post(
        f"/tournaments/{t['id']}/matches",
        json={"day": 1, "match_number": 1, "results": [{"team_id": alpha["id"], "placement": 2, "kills": 4}]},
        headers=ADMIN,
    )
    resp = client.get(f"/tournaments/{t['id']}/standings.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="summer-cup-2025-standings-' in resp.headers["content-disposition"]
    rows = parse_standings_csv(resp.text)
    assert rows[0]["Team Name"] == "Alpha"
    assert rows[0]["Total Points"] == 10


def test_player_uploads_screenshots(client, tournament, fakes):
    t, (alpha, _) = tournament
    _, analyzer = fakes
    analyzer.results.extend([analysis(1, 4, [("Ace", 4, 700)]), analysis(None, None)])
    resp = client.post(
        f"/teams/{alpha['id']}/screenshots",
        data={"day": "1"},
        files=[
            ("files", ("a.png", b"\x89PNGa", "image/png")),
            ("files", ("b.png", b"\x89PNGb", "image/png")),
        ],
        headers=_auth("player", team_id=alpha["id"]),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["success_count"] == 1
    assert body["failure_count"] == 1
    assert body["errors"][0].startswith("Screenshot 2:")

    summary = client.get(f"/teams/{alpha['id']}/summary?day=1", headers=_auth("player", team_id=alpha["id"])).json()
    assert summary["uploads_for_day"] == 1
    assert summary["remaining_uploads"] == 5
    assert summary["mvp"]["player_name"] == "Ace"


def test_player_cannot_upload_for_other_team(client, tournament):
    t, (alpha, bravo) = tournament
    resp = client.post(
        f"/teams/{bravo['id']}/screenshots",
        data={"day": "1"},
        files=[("files", ("a.png", b"x", "image/png"))],
        headers=_auth("player", team_id=alpha["id"]),
    )
    assert resp.status_code == 403


def test_upload_over_quota_is_409(client, tournament):
    t, (alpha, _) = tournament
    for n in range(1, 6):
        client.post(
            f"/tournaments/{t['id']}/matches",
            json={"day": 1, "match_number": n, "results": [{"team_id": alpha["id"], "placement": 10, "kills": 0}]},
            headers=ADMIN,
        )
    resp = client.post(
        f"/teams/{alpha['id']}/screenshots",
        data={"day": "2"},
        files=[("files", ("a.png", b"x", "image/png")), ("files", ("b.png", b"y", "image/png"))],
        headers=ADMIN,
    )
    assert resp.status_code == 409
    assert resp.json()["remaining"] == 1


def test_close_tournament_and_history(client, tournament, fakes):
    t, (alpha, bravo) = tournament
    storage, _ = fakes
    client.put(
        f"/teams/{alpha['id']}/logo",
        files={"file": ("alpha.png", b"logo", "image/png")},
        headers=ADMIN,
    )
    assert len(storage.objects) == 1
    client.post(
        f"/tournaments/{t['id']}/matches",
        json={"day": 1, "match_number": 1, "results": [{"team_id": bravo["id"], "placement": 1, "kills": 3}]},
        headers=ADMIN,
    )

    assert client.post(f"/tournaments/{t['id']}/close", headers=_auth("player")).status_code == 403
    resp = client.post(f"/tournaments/{t['id']}/close", headers=ADMIN)
    assert resp.status_code == 200
    report = resp.json()
    assert report["success"] is True
    assert storage.objects == {}

    assert client.get(f"/tournaments/{t['id']}").status_code == 404
    history = client.get("/history").json()["history"]
    assert len(history) == 1
    assert history[0]["standings"][0]["team_name"] == "Bravo"
    one = client.get(f"/history/{report['history_id']}")
    assert one.status_code == 200
    assert one.json()["original_tournament_id"] == t["id"]
    assert client.get("/history/missing").status_code == 404


def test_close_leaves_no_lock_behind(client, tournament):
    t, _ = tournament
    assert client.post("/tournaments/missing/close", headers=ADMIN).status_code == 404
    assert client.post(f"/tournaments/{t['id']}/close", headers=ADMIN).status_code == 200
    gc.collect()
    assert "missing" not in api._close_locks
    assert t["id"] not in api._close_locks


def test_remove_team_cascades(client, tournament, fakes):
    t, (alpha, bravo) = tournament
    client.post(
        f"/tournaments/{t['id']}/matches",
        json={"day": 1, "match_number": 1, "results": [{"team_id": alpha["id"], "placement": 1, "kills": 3}]},
        headers=ADMIN,
    )
    resp = client.delete(f"/teams/{alpha['id']}", headers=ADMIN)
    assert resp.status_code == 200
    teams = client.get(f"/tournaments/{t['id']}/teams").json()["teams"]
    assert [x["id"] for x in teams] == [bravo["id"]]
    assert client.get(f"/tournaments/{t['id']}/records").json()["records"] == []
