"""
Tournament results. Points are derived from the position and the tournament
type when a result is written, scaled by the region coefficient for regional
tournaments. Every write refreshes the season points of the tournament's
season in the background.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query
from supabase import Client
from ultimate_ranking.api.deps import get_ranking_cache
from ultimate_ranking.core.auth import get_current_user_id
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.schemas.position import (
    PositionBulkCreate,
    PositionCreate,
    PositionResponse,
    PositionUpdate,
)
from ultimate_ranking.schemas.tournament import TournamentType
from ultimate_ranking.services.aggregator import RankingCache
from ultimate_ranking.services.scoring import calculate_position_points
from ultimate_ranking.services.season_points import tournament_season
from ultimate_ranking.services.store import RankingStore
from ultimate_ranking.sync.jobs import refresh_after_results

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_tournament(client: Client, tournament_id: str) -> dict:
    response = client.table("tournaments").select("*").eq("id", tournament_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return response.data[0]


def _get_position(client: Client, position_id: str) -> dict:
    response = client.table("positions").select("*").eq("id", position_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Position not found")
    return response.data[0]


def _team_names(client: Client, team_ids: list) -> dict[str, str]:
    if not team_ids:
        return {}
    teams = client.table("teams").select("id, name").in_("id", team_ids).execute()
    return {str(t["id"]): t["name"] for t in (teams.data or [])}


def _check_teams_exist(client: Client, team_ids: list[str]) -> None:
    missing = set(team_ids) - set(_team_names(client, team_ids))
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown teams: {', '.join(sorted(missing))}")


def _points_for(client: Client, tournament: dict, position: int) -> float:
    tournament_type = TournamentType(tournament["type"])
    coefficient = 1.0
    if tournament_type == TournamentType.REGIONAL and tournament.get("regionId"):
        region = (
            client.table("regions")
            .select("coefficient")
            .eq("id", tournament["regionId"])
            .execute()
        )
        if region.data:
            coefficient = float(region.data[0].get("coefficient") or 1.0)
        else:
            logger.warning(
                f"Region {tournament['regionId']} of tournament {tournament['id']} not found, "
                "using coefficient 1.0"
            )
    return calculate_position_points(position, tournament_type, coefficient)


def _check_free(
    client: Client,
    tournament_id: str,
    team_id: str,
    position: int,
    exclude_id: Optional[str] = None,
) -> None:
    """Positions and teams are unique within a tournament."""
    existing = (
        client.table("positions")
        .select("id, teamId, position")
        .eq("tournamentId", tournament_id)
        .execute()
    )
    for row in existing.data or []:
        if exclude_id is not None and str(row["id"]) == str(exclude_id):
            continue
        if row["position"] == position:
            raise HTTPException(
                status_code=400, detail=f"Position {position} is already assigned"
            )
        if str(row["teamId"]) == str(team_id):
            raise HTTPException(
                status_code=400, detail="Team already has a position in this tournament"
            )


def _after_write(
    client: Client,
    cache: RankingCache,
    background_tasks: BackgroundTasks,
    tournament: dict,
) -> None:
    cache.invalidate()
    season = tournament_season(tournament)
    if season is None:
        logger.warning(f"Tournament {tournament['id']} has no season, skipping the rankings refresh")
        return
    background_tasks.add_task(refresh_after_results, RankingStore(client), season)


@router.get("/", response_model=List[PositionResponse])
def list_positions(
    tournament_id: Optional[str] = Query(None),
    team_id: Optional[str] = Query(None),
    client: Client = Depends(get_supabase_client),
):
    query = client.table("positions").select("*")
    if tournament_id:
        query = query.eq("tournamentId", tournament_id)
    if team_id:
        query = query.eq("teamId", team_id)
    rows = query.order("position").execute().data or []

    names = _team_names(client, list({str(r["teamId"]) for r in rows}))
    return [PositionResponse.from_record(r, names.get(str(r["teamId"]))) for r in rows]


@router.get("/{position_id}", response_model=PositionResponse)
def get_position(position_id: str, client: Client = Depends(get_supabase_client)):
    row = _get_position(client, position_id)
    return PositionResponse.from_record(row, _team_names(client, [row["teamId"]]).get(str(row["teamId"])))


@router.post("/", response_model=PositionResponse)
def create_position(
    position_in: PositionCreate,
    background_tasks: BackgroundTasks,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    get_current_user_id(authorization)
    tournament = _get_tournament(client, position_in.tournament_id)
    _check_teams_exist(client, [position_in.team_id])
    _check_free(client, position_in.tournament_id, position_in.team_id, position_in.position)

    record = {
        "tournamentId": position_in.tournament_id,
        "teamId": position_in.team_id,
        "position": position_in.position,
        "points": _points_for(client, tournament, position_in.position),
    }
    response = client.table("positions").insert(record).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to create position")

    _after_write(client, cache, background_tasks, tournament)
    return PositionResponse.from_record(response.data[0])


@router.post("/bulk", response_model=List[PositionResponse])
def replace_tournament_positions(
    positions_in: PositionBulkCreate,
    background_tasks: BackgroundTasks,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """Replace all results of a tournament with the given final standings."""
    get_current_user_id(authorization)
    tournament = _get_tournament(client, positions_in.tournament_id)
    _check_teams_exist(client, [p.team_id for p in positions_in.positions])

    records = [
        {
            "tournamentId": positions_in.tournament_id,
            "teamId": p.team_id,
            "position": p.position,
            "points": _points_for(client, tournament, p.position),
        }
        for p in sorted(positions_in.positions, key=lambda p: p.position)
    ]

    previous = (
        client.table("positions")
        .select("*")
        .eq("tournamentId", positions_in.tournament_id)
        .execute()
    ).data or []

    client.table("positions").delete().eq("tournamentId", positions_in.tournament_id).execute()
    try:
        response = client.table("positions").insert(records).execute()
        if not response.data:
            raise HTTPException(status_code=500, detail="Failed to save positions")
    except Exception:
        # Put the old standings back before failing
        logger.error(
            f"Saving results of tournament {positions_in.tournament_id} failed, "
            f"restoring {len(previous)} previous positions"
        )
        if previous:
            client.table("positions").insert(previous).execute()
        raise

    _after_write(client, cache, background_tasks, tournament)
    return [PositionResponse.from_record(r) for r in response.data]


@router.put("/{position_id}", response_model=PositionResponse)
def update_position(
    position_id: str,
    position_in: PositionUpdate,
    background_tasks: BackgroundTasks,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    get_current_user_id(authorization)
    current = _get_position(client, position_id)
    tournament = _get_tournament(client, str(current["tournamentId"]))

    position = position_in.position if position_in.position is not None else current["position"]
    team_id = position_in.team_id or str(current["teamId"])
    if position_in.team_id:
        _check_teams_exist(client, [team_id])
    _check_free(client, str(current["tournamentId"]), team_id, position, exclude_id=position_id)

    record = {
        "teamId": team_id,
        "position": position,
        "points": _points_for(client, tournament, position),
    }
    response = client.table("positions").update(record).eq("id", position_id).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to update position")

    _after_write(client, cache, background_tasks, tournament)
    return PositionResponse.from_record(response.data[0])


@router.delete("/{position_id}")
def delete_position(
    position_id: str,
    background_tasks: BackgroundTasks,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    get_current_user_id(authorization)
    current = _get_position(client, position_id)
    tournament = _get_tournament(client, str(current["tournamentId"]))

    client.table("positions").delete().eq("id", position_id).execute()

    _after_write(client, cache, background_tasks, tournament)
    return {"message": f"Position {current['position']} deleted successfully"}
