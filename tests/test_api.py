import pytest
from fastapi.testclient import TestClient

from scoresheets import config, main
from scoresheets.catalog import SheetType


@pytest.fixture
def client(db_path, monkeypatch):
    monkeypatch.setattr(config, "DB_PATH", db_path)
    with TestClient(main.app) as c:
        yield c


def create(client, judge=1, team=1, sheet_type=SheetType.PRESENTATION):
    r = client.post("/api/sheets", json={"judgeId": judge, "teamId": team, "sheetType": int(sheet_type)})
    assert r.status_code == 201
    return r.json()["ScoreSheet"]


def all_scores(value=5, section=""):
    return {section: {str(i): value for i in range(1, 9)}}


def test_create_is_idempotent_per_judge_team_type(client):
    first = create(client)
    second = create(client)
    assert first["id"] == second["id"]
    assert first["isSubmitted"] is False
    assert first["field9"] == ""

    r = client.get(f"/api/mapping/{int(SheetType.PRESENTATION)}/1/1")
    assert r.json() == {"sheetId": first["id"]}
    assert client.get("/api/mapping/1/1/2").status_code == 404
    assert client.get("/api/mapping/99/1/1").status_code == 404


def test_sheet_view(client):
    sheet = create(client, sheet_type=SheetType.CHAMPIONSHIP)
    body = client.get(f"/api/sheets/{sheet['id']}").json()
    assert body["complete"] is False
    assert len(body["missing"]) == 16
    assert set(body["state"]) == {"machine_design", "presentation", "general_penalties", "run_penalties"}
    assert "9" not in body["state"]["run_penalties"]
    assert body["totals"]["total"] == 0


def test_save_then_submit_then_locked(client):
    sheet = create(client)
    r = client.post(f"/api/sheets/{sheet['id']}/save", json={"values": {"": {"1": 6}}})
    assert r.status_code == 200
    assert r.json()["sheet"]["field1"] == 6
    assert r.json()["complete"] is False

    r = client.post(f"/api/sheets/{sheet['id']}/submit", json={"values": {}})
    assert r.status_code == 422

    r = client.post(f"/api/sheets/{sheet['id']}/submit", json={"values": all_scores(7)})
    assert r.status_code == 200
    assert r.json()["sheet"]["isSubmitted"] is True

    r = client.post(f"/api/sheets/{sheet['id']}/save", json={"values": {"": {"1": 3}}})
    assert r.status_code == 409
    assert client.get(f"/api/sheets/{sheet['id']}").json()["sheet"]["field1"] == 7


def test_bad_values(client):
    sheet = create(client)
    assert client.post(f"/api/sheets/{sheet['id']}/save", json={"values": {"": {"1": 99}}}).status_code == 422
    assert client.post(f"/api/sheets/{sheet['id']}/save", json={"values": {"": {"12": 1}}}).status_code == 400
    assert client.get("/api/sheets/999").status_code == 404


def test_batch_routes(client):
    for team in (1, 3):
        create(client, judge=5, team=team)
    body = {"judgeId": 5, "sheetType": 1, "teamIds": [1, 2, 3]}

    loaded = client.post("/api/batch/load", json=body).json()
    assert [t["teamId"] for t in loaded["teams"]] == [1, 3]

    saved = client.post("/api/batch/save", json={**body, "values": {"1": all_scores(4, "presentation")}})
    assert saved.status_code == 200
    assert all(r["ok"] for r in saved.json()["results"])

    # team 3 never got scores, so only team 1 can be submitted
    r = client.post("/api/batch/submit", json=body)
    assert r.status_code == 207
    results = {x["teamId"]: x for x in r.json()["results"]}
    assert results[1]["ok"] is True
    assert results[3]["errorType"] == "ValidationError"


def test_dashboard_and_download(client):
    create(client, judge=2, team=1, sheet_type=SheetType.GENERAL_PENALTIES)
    sheet = create(client, judge=2, team=4, sheet_type=SheetType.GENERAL_PENALTIES)
    client.post(f"/api/sheets/{sheet['id']}/submit", json={"values": {"": {"1": 1}}})

    body = client.get("/api/judges/2/sheets").json()
    assert len(body["sheets"]) == 2
    assert body["allSubmitted"] is False
    row = next(s for s in body["sheets"] if s["teamId"] == 4)
    assert row["isSubmitted"] is True
    assert row["total"] == -5

    r = client.get(f"/api/judges/2/sheets/{int(SheetType.GENERAL_PENALTIES)}/download")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "team_1,team_4" in r.text.splitlines()[0]
    assert client.get("/api/judges/2/sheets/1/download").status_code == 404


def test_delete(client):
    sheet = create(client)
    assert client.delete(f"/api/sheets/{sheet['id']}").status_code == 200
    assert client.get(f"/api/sheets/{sheet['id']}").status_code == 404
    assert client.get("/api/mapping/1/1/1").status_code == 404


def test_judge_page_save_and_submit(client):
    sheet = create(client, sheet_type=SheetType.REDESIGN)
    r = client.get(f"/judge/sheet/{sheet['id']}")
    assert r.status_code == 200
    assert "Redesign Score Sheet" in r.text

    form = {f"q__redesign__{i}": "4" for i in range(1, 8)}
    form["q__redesign__9"] = "Good fix"
    r = client.post(f"/judge/sheet/{sheet['id']}", data={**form, "action": "save"}, follow_redirects=False)
    assert r.status_code == 303
    assert client.get(f"/api/sheets/{sheet['id']}").json()["sheet"]["field9"] == "Good fix"

    form["q__redesign__2"] = "9"
    r = client.post(f"/judge/sheet/{sheet['id']}", data={**form, "action": "submit"})
    assert r.status_code == 200
    assert "outside" in r.text
    assert client.get(f"/api/sheets/{sheet['id']}").json()["sheet"]["isSubmitted"] is False

    form["q__redesign__2"] = "5"
    r = client.post(f"/judge/sheet/{sheet['id']}", data={**form, "action": "submit"}, follow_redirects=False)
    assert r.status_code == 303
    page = client.get(f"/judge/sheet/{sheet['id']}").text
    assert "can no longer be edited" in page
