import pytest
from conftest import season_row
from ultimate_ranking.schemas.ranking import GENERAL, Category, RankSnapshot, TeamInfo
from ultimate_ranking.services.aggregator import (
    compare_rankings,
    compute_current_ranking,
    compute_highlights,
    compute_historical_ranking,
)

BM = Category.BEACH_MIXED

TEAMS = {
    "a": TeamInfo(id="a", name="Alpha", region_id="r1", region_name="Madrid"),
    "b": TeamInfo(id="b", name="Beta", region_id="r1", region_name="Madrid"),
    "c": TeamInfo(id="c", name="Gamma B", region_id="r2", region_name="Cataluña", is_filial=True),
    "d": TeamInfo(id="d", name="Delta", region_id="r2", region_name="Cataluña"),
    "e": TeamInfo(id="e", name="Epsilon", region_id="r1", region_name="Madrid"),
}

ROWS = [
    season_row("a", "2023-24", beach_mixed=500),
    season_row("a", "2022-23", beach_mixed=500),
    season_row("b", "2023-24", beach_mixed=300),
    season_row("b", "2022-23", beach_mixed=100),
    season_row("c", "2023-24", beach_mixed=450),
    season_row("c", "2022-23", beach_mixed=50),
    season_row("d", "2023-24", beach_mixed=200),
    season_row("e", "2010-11", beach_mixed=5000),
]

PREVIOUS = {
    "a": RankSnapshot(team_id="a", rank=1, points=800),
    "b": RankSnapshot(team_id="b", rank=2, points=150),
    "c": RankSnapshot(team_id="c", rank=3, points=60),
}


@pytest.fixture
def stats():
    ranking = compute_current_ranking(ROWS, BM, "2023-24", TEAMS, previous=PREVIOUS)
    historical = compute_historical_ranking(ROWS, BM, TEAMS)
    return compute_highlights(ranking, historical, ROWS, BM, "2023-24")


def test_leader(stats):
    # a: 500 + 400, c: 450 + 40, b: 300 + 80, d: 200
    assert stats.leader.team_id == "a"
    assert stats.total_teams == 4


def test_revelation_is_largest_points_gain(stats):
    # c gains 430, b gains 230, a gains 100
    assert stats.revelation.team_id == "c"


def test_biggest_riser(stats):
    # c goes from 3 to 2
    assert stats.biggest_riser.team_id == "c"
    assert stats.biggest_riser.position_change == 1


def test_best_filial(stats):
    assert stats.best_filial.team_id == "c"


def test_best_historical_uses_whole_dataset(stats):
    assert stats.best_historical.team_id == "e"


def test_new_teams(stats):
    assert [e.team_id for e in stats.new_teams] == ["d"]


def test_regions(stats):
    assert stats.most_active_region.name == "Madrid"
    assert stats.most_active_region.teams_count == 2
    # Cataluña: (490 + 200) / 2 = 345, Madrid: (900 + 380) / 2 = 640
    assert stats.most_competitive_region.name == "Madrid"
    assert stats.most_competitive_region.average_points == 640.0


def test_no_riser_without_positive_change():
    ranking = compute_current_ranking(
        ROWS, BM, "2023-24", TEAMS, previous={"a": RankSnapshot(team_id="a", rank=1, points=2000)}
    )
    stats = compute_highlights(ranking, [], ROWS, BM, "2023-24")
    assert stats.biggest_riser is None
    assert stats.revelation is None
    assert stats.best_historical is None


def test_empty_ranking_highlights():
    stats = compute_highlights([], [], [], GENERAL, "2023-24")
    assert stats.leader is None
    assert stats.total_teams == 0
    assert stats.new_teams == []
    assert stats.scope == "general"


def test_compare_rankings():
    first = compute_current_ranking(ROWS, BM, "2022-23", TEAMS, previous={})
    second = compute_current_ranking(ROWS, BM, "2023-24", TEAMS, previous={})
    changes = compare_rankings(first, second)
    by_team = {c.team_id: c for c in changes}

    # 2022-23: a 500, b 100, c 50; 2023-24: a 900, c 490, b 380, d 200
    assert by_team["c"].position_change == 1
    assert by_team["b"].position_change == -1
    assert by_team["d"].position_change == 0
    assert by_team["d"].points_change == 200.0
    assert changes[0].team_id == "c"
