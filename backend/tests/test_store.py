import pytest
from conftest import FakeSupabase, points_row
from ultimate_ranking.schemas.ranking import GENERAL, NO_REGION_LABEL, Category, RankSnapshot
from ultimate_ranking.services import store as store_module
from ultimate_ranking.services.store import RankingDataError, RankingStore, build_team_index


def test_fetch_season_points_maps_rows(store):
    rows = store.fetch_season_points(["2023-24"])
    by_team = {r.team_id: r for r in rows}

    assert set(by_team) == {"t1", "t2", "t3"}
    assert by_team["t1"].points.get(Category.BEACH_MIXED) == 100.0
    assert by_team["t3"].points.get(Category.GRASS_OPEN) == 200.0
    assert by_team["t3"].points.total() == 200.0


def test_fetch_season_points_skips_invalid_seasons(fake_db, store):
    fake_db.tables["team_season_points"].append(points_row("t1", "2023", beach_mixed=5))
    assert all(r.season != "2023" for r in store.fetch_season_points())


def test_reads_are_paged(monkeypatch, fake_db, store):
    monkeypatch.setattr(store_module, "PAGE_SIZE", 2)
    rows = store.fetch_season_points()

    assert len(rows) == 5
    assert fake_db.calls.count(("team_season_points", "select")) == 3


def test_read_failure_raises_data_error(fake_db, store):
    fake_db.fail_tables.add("team_season_points")
    with pytest.raises(RankingDataError) as excinfo:
        store.fetch_season_points()
    assert excinfo.value.table == "team_season_points"


def test_team_index_joins_regions(store):
    teams = store.fetch_team_index()
    assert teams["t1"].region_name == "Madrid"
    assert teams["t2"].is_filial
    assert teams["t2"].parent_team_id == "t1"
    assert teams["t3"].logo is None


def test_team_index_falls_back_to_parent_and_placeholders():
    team_rows = [
        {"id": "p", "name": "Parent", "regionId": "r1", "logo": "p.png", "isFilial": False},
        {"id": "f", "name": "Parent B", "isFilial": True, "parentTeamId": "p"},
        {"id": "x", "name": None, "regionId": "missing"},
    ]
    index = build_team_index(team_rows, [{"id": "r1", "name": "Madrid"}])

    assert index["f"].region_name == "Madrid"
    assert index["f"].logo == "p.png"
    assert index["x"].name == "Equipo desconocido"
    assert index["x"].region_name == NO_REGION_LABEL


def test_fetch_category_ranks(fake_db, store):
    fake_db.tables["team_season_rankings"] = [
        {"team_id": "t1", "season": "2022-23", "beach_mixed_rank": 2, "beach_mixed_points": 50},
        {"team_id": "t3", "season": "2022-23", "beach_mixed_rank": 1, "beach_mixed_points": 90},
        {"team_id": "t2", "season": "2022-23", "beach_mixed_rank": None, "beach_mixed_points": 0},
    ]
    snapshot = store.fetch_season_ranks("2022-23", Category.BEACH_MIXED)
    assert snapshot == {
        "t1": RankSnapshot(team_id="t1", rank=2, points=50),
        "t3": RankSnapshot(team_id="t3", rank=1, points=90),
    }


def test_fetch_general_ranks_uses_latest_subupdate(fake_db, store):
    fake_db.tables["team_season_rankings"] = [
        {
            "team_id": "t1",
            "season": "2022-23",
            "subupdate_1_global_rank": 2,
            "subupdate_1_global_points": 10,
            "subupdate_2_global_rank": 1,
            "subupdate_2_global_points": 30,
        },
    ]
    assert store.fetch_season_ranks("2022-23", GENERAL)["t1"].rank == 1
    assert store.fetch_season_ranks("2022-23", GENERAL, subupdate=1)["t1"].rank == 2
    assert store.fetch_season_ranks("2021-22", GENERAL) == {}


def test_tournament_counts(store):
    assert store.fetch_tournament_counts() == {"t1": 2, "t3": 1}


def test_upserts_are_chunked(monkeypatch):
    db = FakeSupabase()
    monkeypatch.setattr(store_module, "WRITE_CHUNK_SIZE", 2)
    records = [points_row(f"t{i}", "2023-24", beach_mixed=i) for i in range(5)]

    assert RankingStore(db).upsert_season_points(records) == 5
    assert db.calls.count(("team_season_points", "upsert")) == 3
    assert len(db.tables["team_season_points"]) == 5


def test_update_subupdate_ranks_merges_rows(fake_db, store):
    fake_db.tables["team_season_rankings"] = [
        {"team_id": "t1", "season": "2023-24", "beach_mixed_rank": 1}
    ]
    store.update_subupdate_ranks(
        "2023-24", 3, {"t1": RankSnapshot(team_id="t1", rank=4, points=12.5)}
    )
    row = fake_db.tables["team_season_rankings"][0]
    assert row["beach_mixed_rank"] == 1
    assert row["subupdate_3_global_rank"] == 4
    assert row["subupdate_3_global_points"] == 12.5


def test_write_failure_raises_data_error(fake_db, store):
    fake_db.fail_tables.add("regions")
    with pytest.raises(RankingDataError):
        store.update_region_coefficient("r1", 1.1)
