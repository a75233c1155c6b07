"""
Batch jobs that maintain the derived ranking tables.

Each job reads through a ``RankingStore``, recomputes one derived table for a
season and writes it back. ``sync_all`` runs them in dependency order.
"""

import logging

from ultimate_ranking.services.scoring import compute_regional_coefficients
from ultimate_ranking.services.season_points import (
    aggregate_positions,
    compute_region_national_points,
    compute_season_rankings,
    compute_subupdate_global_ranks,
    tournament_season,
)
from ultimate_ranking.services.seasons import SUBUPDATE_WINDOW, season_window
from ultimate_ranking.services.store import SUBUPDATES, RankingDataError, RankingStore

logger = logging.getLogger(__name__)


def _region_coefficients(store: RankingStore) -> dict[str, float]:
    return {str(r["id"]): float(r.get("coefficient") or 1.0) for r in store.fetch_regions()}


def sync_season_points(store: RankingStore, season: str) -> dict:
    """
    Rebuild ``team_season_points`` for a season from its tournament results.

    Teams that had points in the season but no longer have results are zeroed.
    """
    tournaments = [t for t in store.fetch_tournaments() if tournament_season(t) == season]
    positions = store.fetch_positions([t["id"] for t in tournaments]) if tournaments else []

    summaries = aggregate_positions(positions, tournaments, _region_coefficients(store))
    records = [summary.to_record() for summary in summaries]

    updated = {record["team_id"] for record in records}
    stale = [row for row in store.fetch_season_points([season]) if row.team_id not in updated]
    for row in stale:
        records.append(
            {
                "team_id": row.team_id,
                "season": season,
                **{column: 0 for column in row.points.to_columns()},
                "tournaments_played": {},
                "best_position": {},
            }
        )

    count = store.upsert_season_points(records)
    logger.info(f"Season points of {season}: {len(summaries)} teams, {len(stale)} zeroed")
    return {"season": season, "teams": count, "zeroed": len(stale)}


def sync_season_rankings(store: RankingStore, season: str) -> dict:
    """Recompute the per-category ranks of a season."""
    rows = store.fetch_season_points(season_window(season))
    records = compute_season_rankings(rows, season)
    count = store.upsert_season_rankings(records)
    logger.info(f"Category rankings of {season}: {count} teams")
    return {"season": season, "teams": count}


def sync_subupdate_rankings(store: RankingStore, season: str, subupdates=SUBUPDATES) -> dict:
    """Recompute the global rank of a season at each subupdate."""
    rows = store.fetch_season_points(season_window(season, SUBUPDATE_WINDOW))
    counts = {}
    for subupdate in subupdates:
        ranks = compute_subupdate_global_ranks(rows, season, subupdate)
        counts[subupdate] = store.update_subupdate_ranks(season, subupdate, ranks)
        logger.info(f"Subupdate {subupdate} of {season}: {counts[subupdate]} teams ranked")
    return {"season": season, "subupdates": counts}


def sync_regional_coefficients(store: RankingStore, season: str) -> dict:
    """
    Recompute every region's coefficient from the national points its teams
    earned in the four seasons ending at ``season``.
    """
    window = set(season_window(season))
    tournaments = [t for t in store.fetch_tournaments() if tournament_season(t) in window]
    positions = store.fetch_positions([t["id"] for t in tournaments]) if tournaments else []
    regions = store.fetch_regions()

    region_points = compute_region_national_points(
        positions, tournaments, store.fetch_teams(), [r["id"] for r in regions]
    )
    coefficients = compute_regional_coefficients(region_points)
    for region_id, coefficient in coefficients.items():
        store.update_region_coefficient(region_id, coefficient)
        logger.info(f"Region {region_id}: {region_points[region_id]} points, coefficient {coefficient}")

    return {"season": season, "coefficients": coefficients}


def refresh_after_results(store: RankingStore, season: str) -> None:
    """Bring the season points and category ranks of a season up to date."""
    try:
        sync_season_points(store, season)
        sync_season_rankings(store, season)
    except (RankingDataError, ValueError) as e:
        logger.error(f"Could not refresh rankings of {season}: {e}")


def sync_all(store: RankingStore, season: str) -> dict:
    """Run every job for a season, collecting errors instead of stopping."""
    results = {"season": season, "errors": []}
    jobs = (
        ("coefficients", sync_regional_coefficients),
        ("season_points", sync_season_points),
        ("rankings", sync_season_rankings),
        ("subupdates", sync_subupdate_rankings),
    )
    for name, job in jobs:
        try:
            results[name] = job(store, season)
        except RankingDataError as e:
            error_msg = f"Error running {name} for {season}: {e}"
            logger.error(error_msg)
            results["errors"].append(error_msg)
    return results
