import pytest
from conftest import season_row
from ultimate_ranking.schemas.ranking import Category, TeamInfo
from ultimate_ranking.services.aggregator import (
    club_name,
    compute_club_ranking,
    compute_current_ranking,
)

BM = Category.BEACH_MIXED


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Ultimate Madrid B", "Ultimate Madrid"),
        ("Ultimate Madrid E", "Ultimate Madrid"),
        ("Ultimate Madrid", "Ultimate Madrid"),
        ("Ultimate Madrid F", "Ultimate Madrid F"),
        ("Club B ", "Club"),
        ("Bilbao", "Bilbao"),
    ],
)
def test_club_name_strips_filial_suffix(name, expected):
    assert club_name(name) == expected


@pytest.fixture
def ranking():
    teams = {
        "m1": TeamInfo(id="m1", name="Madrid", region_name="Madrid", logo="m.png"),
        "m2": TeamInfo(id="m2", name="Madrid B", region_name="Madrid", is_filial=True),
        "m3": TeamInfo(id="m3", name="Madrid C", region_name="Madrid", is_filial=True),
        "b1": TeamInfo(id="b1", name="Bcn", region_name="Cataluña"),
    }
    rows = [
        season_row("m2", "2023-24", beach_mixed=300),
        season_row("b1", "2023-24", beach_mixed=250),
        season_row("m1", "2023-24", beach_mixed=100),
        season_row("m1", "2022-23", beach_mixed=100),
        season_row("m3", "2022-23", beach_mixed=10),
    ]
    return compute_current_ranking(
        rows, BM, "2023-24", teams, previous={}, tournament_counts={"m1": 2, "m2": 1, "b1": 4}
    )


def test_club_totals_are_sum_of_members(ranking):
    clubs = compute_club_ranking(ranking)
    madrid = next(c for c in clubs if c.club_name == "Madrid")

    members = [e for e in ranking if e.team_id in {"m1", "m2", "m3"}]
    assert madrid.total_points == pytest.approx(sum(e.total_points for e in members))
    assert madrid.teams_count == 3
    assert sorted(madrid.team_ids) == ["m1", "m2", "m3"]
    assert madrid.tournaments_count == 3


def test_club_main_team_is_non_filial(ranking):
    madrid = next(c for c in compute_club_ranking(ranking) if c.club_name == "Madrid")
    assert madrid.team_id == "m1"
    assert madrid.logo == "m.png"


def test_club_main_team_falls_back_to_first_member():
    teams = {
        "x2": TeamInfo(id="x2", name="Sevilla B", is_filial=True),
        "x3": TeamInfo(id="x3", name="Sevilla C", is_filial=True),
    }
    rows = [season_row("x3", "2023-24", beach_mixed=5), season_row("x2", "2023-24", beach_mixed=9)]
    ranking = compute_current_ranking(rows, BM, "2023-24", teams, previous={})

    clubs = compute_club_ranking(ranking)
    assert clubs[0].team_id == "x2"


def test_club_breakdown_sums_per_season(ranking):
    madrid = next(c for c in compute_club_ranking(ranking) if c.club_name == "Madrid")
    # 300 + 100 this season; 100 + 10 last season weighted 0.8
    assert madrid.season_breakdown["2023-24"].base_points == 400
    assert madrid.season_breakdown["2022-23"].base_points == 110
    assert madrid.season_breakdown["2022-23"].weighted_points == pytest.approx(88)
    assert madrid.season_breakdown["2022-23"].coefficient == 0.8


def test_clubs_sorted_by_total(ranking):
    clubs = compute_club_ranking(ranking)
    assert [c.club_name for c in clubs] == ["Madrid", "Bcn"]
    assert [c.ranking_position for c in clubs] == [1, 2]


def test_no_entries_no_clubs():
    assert compute_club_ranking([]) == []
