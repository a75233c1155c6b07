def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert "Ultimate Frisbee Ranking" in client.get("/").json()["message"]


def test_latest_seasons(client):
    response = client.get("/api/v1/rankings/seasons/latest")
    assert response.status_code == 200
    assert response.json()["general"] == "2023-24"


def test_category_ranking(client):
    response = client.get("/api/v1/rankings/beach_mixed", params={"season": "2023-24"})
    assert response.status_code == 200

    data = response.json()
    assert [e["team_id"] for e in data] == ["t1", "t2", "t3"]
    assert data[0]["total_points"] == 140.0
    assert data[0]["season_breakdown"]["2022-23"] == {
        "base_points": 50.0,
        "weighted_points": 40.0,
        "coefficient": 0.8,
    }


def test_general_ranking_with_limit(client):
    response = client.get("/api/v1/rankings/general", params={"limit": 1})
    assert response.status_code == 200
    # t3: 200 + (90 + 30) * 0.8
    assert response.json()[0]["team_id"] == "t3"
    assert len(response.json()) == 1


def test_club_variant(client):
    response = client.get("/api/v1/rankings/beach_mixed", params={"variant": "clubs"})
    assert response.status_code == 200
    assert response.json()[0]["club_name"] == "Ultimate Madrid"


def test_unknown_scope_rejected(client):
    assert client.get("/api/v1/rankings/indoor_open").status_code == 422


def test_invalid_season_is_bad_request(client):
    response = client.get("/api/v1/rankings/general", params={"season": "2023-25"})
    assert response.status_code == 400


def test_highlights(client):
    response = client.get("/api/v1/rankings/beach_mixed/highlights")
    assert response.status_code == 200
    data = response.json()
    assert data["leader"]["team_id"] == "t1"
    assert data["reference_season"] == "2023-24"


def test_highlights_without_data(client, fake_db):
    fake_db.tables["team_season_points"] = []
    assert client.get("/api/v1/rankings/general/highlights").status_code == 404


def test_compare(client):
    response = client.get(
        "/api/v1/rankings/beach_mixed/compare",
        params={"season_a": "2022-23", "season_b": "2023-24"},
    )
    assert response.status_code == 200
    assert response.json()["changes"][0]["team_id"] == "t1"


def test_compare_requires_both_seasons(client):
    response = client.get("/api/v1/rankings/beach_mixed/compare", params={"season_a": "2022-23"})
    assert response.status_code == 422


def test_team_ranking(client):
    response = client.get("/api/v1/rankings/beach_mixed/teams/t2", params={"season": "2023-24"})
    assert response.status_code == 200
    assert response.json()["ranking_position"] == 2

    assert client.get("/api/v1/rankings/beach_mixed/teams/zzz").status_code == 404


def test_team_history(client):
    response = client.get("/api/v1/rankings/beach_mixed/teams/t1/history")
    assert response.status_code == 200
    assert [h["season"] for h in response.json()] == ["2022-23", "2023-24"]
