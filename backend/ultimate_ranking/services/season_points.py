"""
Batch recomputation of the derived ranking tables.

``team_season_points`` is rebuilt from raw tournament positions and
``team_season_rankings`` from the season points. The sync jobs run these after
results are entered.
"""

import logging
from typing import Iterable, Mapping, Optional, Sequence

from ultimate_ranking.schemas.ranking import (
    Category,
    CategoryPoints,
    RankSnapshot,
    SeasonPointsRow,
    SeasonPointsSummary,
    is_valid_season,
)
from ultimate_ranking.schemas.tournament import TournamentType
from ultimate_ranking.services.aggregator import rank_weighted_totals
from ultimate_ranking.services.scoring import NATIONAL_TYPES, calculate_position_points
from ultimate_ranking.services.seasons import (
    SUBUPDATE_WINDOW,
    format_season,
    season_window,
    subupdate_coefficient,
)

logger = logging.getLogger(__name__)


def tournament_season(tournament: dict) -> Optional[str]:
    """Season label of a tournament, derived from its year when the label is missing."""
    season = tournament.get("season")
    if is_valid_season(season):
        return season
    if tournament.get("year"):
        return format_season(int(tournament["year"]))
    return None


def position_points(
    position: dict,
    tournament: dict,
    region_coefficients: Optional[Mapping[str, float]] = None,
) -> float:
    """Stored points of a result, or the points table value when none were stored."""
    if position.get("points") is not None:
        return float(position["points"])

    coefficient = 1.0
    if region_coefficients and tournament.get("regionId") is not None:
        coefficient = region_coefficients.get(str(tournament["regionId"]), 1.0)
    return calculate_position_points(
        int(position["position"]), TournamentType(tournament["type"]), coefficient
    )


def aggregate_positions(
    positions: Iterable[dict],
    tournaments: Iterable[dict],
    region_coefficients: Optional[Mapping[str, float]] = None,
) -> list[SeasonPointsSummary]:
    """
    Sum raw tournament positions into per team, per season category points.

    Positions whose tournament is unknown or has no ranking category are skipped.
    """
    by_id = {str(t["id"]): t for t in tournaments}

    points: dict[tuple[str, str], dict[Category, float]] = {}
    played: dict[tuple[str, str], dict[Category, int]] = {}
    best: dict[tuple[str, str], dict[Category, int]] = {}

    skipped = 0
    for position in positions:
        tournament = by_id.get(str(position.get("tournamentId")))
        if tournament is None:
            skipped += 1
            continue

        category = Category.from_tournament(tournament.get("surface"), tournament.get("modality"))
        season = tournament_season(tournament)
        if category is None or season is None:
            skipped += 1
            continue

        key = (str(position["teamId"]), season)
        team_points = points.setdefault(key, {})
        team_points[category] = team_points.get(category, 0.0) + position_points(
            position, tournament, region_coefficients
        )

        team_played = played.setdefault(key, {})
        team_played[category] = team_played.get(category, 0) + 1

        team_best = best.setdefault(key, {})
        rank = int(position["position"])
        team_best[category] = min(team_best.get(category, rank), rank)

    if skipped:
        logger.warning(f"Skipped {skipped} positions without a usable tournament")

    summaries = []
    for (team_id, season), by_category in points.items():
        row = SeasonPointsRow(
            team_id=team_id,
            season=season,
            points=CategoryPoints(**{c.value: round(p, 2) for c, p in by_category.items()}),
        )
        summaries.append(
            SeasonPointsSummary(
                row=row,
                tournaments_played=played[(team_id, season)],
                best_position=best[(team_id, season)],
            )
        )
    return summaries


def _ranks(scored: Iterable[tuple[str, float]]) -> dict[str, RankSnapshot]:
    ranks = {}
    for team_id, total in scored:
        total = round(total, 2)
        if total <= 0:
            continue
        ranks[team_id] = RankSnapshot(team_id=team_id, rank=len(ranks) + 1, points=total)
    return ranks


def compute_category_ranks(
    rows: Sequence[SeasonPointsRow], season: str, category: Category
) -> dict[str, RankSnapshot]:
    """Rank of every team with weighted points in a category for a season."""
    return _ranks(
        (team_id, total) for team_id, total, _ in rank_weighted_totals(rows, category, season)
    )


def compute_season_rankings(rows: Sequence[SeasonPointsRow], season: str) -> list[dict]:
    """One ``team_season_rankings`` record per team with points in the season window."""
    window = set(season_window(season))
    team_ids = list(dict.fromkeys(r.team_id for r in rows if r.season in window))

    ranks = {category: compute_category_ranks(rows, season, category) for category in Category}

    records = []
    for team_id in team_ids:
        record = {"team_id": team_id, "season": season}
        for category in Category:
            snapshot = ranks[category].get(team_id)
            record[category.rank_column] = snapshot.rank if snapshot else None
            record[category.points_column] = snapshot.points if snapshot else 0
        records.append(record)
    return records


def compute_subupdate_global_ranks(
    rows: Sequence[SeasonPointsRow], season: str, subupdate: int
) -> dict[str, RankSnapshot]:
    """
    Global rank at an intra-season subupdate.

    Categories not yet played this season take their weights from the previous
    seasons instead, so the window here spans five seasons.
    """
    window = season_window(season, SUBUPDATE_WINDOW)
    index = {label: i for i, label in enumerate(window)}

    totals: dict[str, float] = {}
    for row in rows:
        if row.season not in index:
            continue
        season_index = index[row.season]
        weighted = sum(
            row.points.get(category) * subupdate_coefficient(season_index, subupdate, category)
            for category in Category
        )
        totals[row.team_id] = totals.get(row.team_id, 0.0) + weighted

    scored = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return _ranks(scored)


def compute_region_national_points(
    positions: Iterable[dict],
    tournaments: Iterable[dict],
    team_rows: Iterable[dict],
    region_ids: Iterable[str],
) -> dict[str, float]:
    """National (CE1/CE2) points earned by the teams of each region."""
    national = {
        str(t["id"]): t for t in tournaments if t.get("type") in {n.value for n in NATIONAL_TYPES}
    }
    team_regions = {str(t["id"]): t.get("regionId") for t in team_rows}

    totals = {str(region_id): 0.0 for region_id in region_ids}
    for position in positions:
        tournament = national.get(str(position.get("tournamentId")))
        if tournament is None:
            continue
        region_id = team_regions.get(str(position.get("teamId")))
        if region_id is None or str(region_id) not in totals:
            continue
        totals[str(region_id)] += position_points(position, tournament)
    return totals
