import logging
from collections import Counter
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query
from supabase import Client
from ultimate_ranking.api.deps import get_ranking_cache
from ultimate_ranking.core.auth import get_current_user_id
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.schemas.ranking import Modality, Surface
from ultimate_ranking.schemas.tournament import (
    TournamentCreate,
    TournamentResponse,
    TournamentType,
    TournamentUpdate,
    tournament_to_record,
)
from ultimate_ranking.services.aggregator import RankingCache
from ultimate_ranking.services.season_points import tournament_season
from ultimate_ranking.services.store import RankingStore
from ultimate_ranking.sync.jobs import refresh_after_results

logger = logging.getLogger(__name__)

router = APIRouter()

SURFACE_LABELS = {Surface.GRASS: "Césped", Surface.BEACH: "Playa"}
MODALITY_LABELS = {Modality.OPEN: "Open", Modality.WOMEN: "Women", Modality.MIXED: "Mixto"}


def generate_tournament_name(
    tournament_type: TournamentType,
    surface: Surface,
    modality: Modality,
    season: str,
    region_name: Optional[str] = None,
) -> str:
    """Default name of a tournament, e.g. ``CE1 Playa Mixto 2024-25``."""
    prefix = tournament_type.value
    if tournament_type == TournamentType.REGIONAL and region_name:
        prefix = f"Regional {region_name}"
    return f"{prefix} {SURFACE_LABELS[surface]} {MODALITY_LABELS[modality]} {season}"


def _get_tournament(client: Client, tournament_id: str) -> dict:
    response = client.table("tournaments").select("*").eq("id", tournament_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return response.data[0]


def _region_names(client: Client) -> dict[str, str]:
    regions = client.table("regions").select("id, name").execute()
    return {str(r["id"]): r["name"] for r in (regions.data or [])}


def _to_response(row: dict, regions: dict[str, str], teams_count: int = 0) -> TournamentResponse:
    return TournamentResponse.from_record(
        row,
        region_name=regions.get(str(row.get("regionId"))),
        teams_count=teams_count,
    )


@router.get("/", response_model=List[TournamentResponse])
def list_tournaments(
    season: Optional[str] = Query(None),
    type: Optional[TournamentType] = Query(None),
    surface: Optional[Surface] = Query(None),
    modality: Optional[Modality] = Query(None),
    region_id: Optional[str] = Query(None),
    client: Client = Depends(get_supabase_client),
):
    query = client.table("tournaments").select("*")
    if season:
        query = query.eq("season", season)
    if type:
        query = query.eq("type", type.value)
    if surface:
        query = query.eq("surface", surface.value)
    if modality:
        query = query.eq("modality", modality.value)
    if region_id:
        query = query.eq("regionId", region_id)
    response = query.order("startDate").execute()
    tournaments = response.data or []

    counts = Counter()
    if tournaments:
        positions = (
            client.table("positions")
            .select("tournamentId")
            .in_("tournamentId", [t["id"] for t in tournaments])
            .execute()
        )
        counts = Counter(str(p["tournamentId"]) for p in (positions.data or []))

    regions = _region_names(client)
    return [_to_response(t, regions, counts.get(str(t["id"]), 0)) for t in tournaments]


@router.get("/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: str, client: Client = Depends(get_supabase_client)):
    tournament = _get_tournament(client, tournament_id)
    positions = (
        client.table("positions").select("id").eq("tournamentId", tournament_id).execute()
    )
    return _to_response(tournament, _region_names(client), len(positions.data or []))


@router.post("/", response_model=TournamentResponse)
def create_tournament(
    tournament_in: TournamentCreate,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """Create a tournament, naming it from its type, category and season when unnamed."""
    get_current_user_id(authorization)

    regions = _region_names(client)
    if tournament_in.region_id and tournament_in.region_id not in regions:
        raise HTTPException(status_code=400, detail="Region not found")

    record = tournament_to_record(tournament_in.model_dump())
    if not tournament_in.name:
        record["name"] = generate_tournament_name(
            tournament_in.type,
            tournament_in.surface,
            tournament_in.modality,
            tournament_in.season,
            regions.get(str(tournament_in.region_id)),
        )

    response = client.table("tournaments").insert(record).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to create tournament")

    cache.invalidate()
    return _to_response(response.data[0], regions)


@router.put("/{tournament_id}", response_model=TournamentResponse)
def update_tournament(
    tournament_id: str,
    tournament_in: TournamentUpdate,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    get_current_user_id(authorization)
    tournament = _get_tournament(client, tournament_id)

    changes = tournament_in.model_dump(exclude_unset=True)
    start = changes.get("start_date") or tournament.get("startDate")
    end = changes.get("end_date") or tournament.get("endDate")
    if start and end and str(start) > str(end):
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date")

    record = tournament_to_record(changes)
    if record:
        response = client.table("tournaments").update(record).eq("id", tournament_id).execute()
        if not response.data:
            raise HTTPException(status_code=500, detail="Failed to update tournament")
        tournament = response.data[0]
        cache.invalidate()

    return _to_response(tournament, _region_names(client))


@router.delete("/{tournament_id}")
def delete_tournament(
    tournament_id: str,
    background_tasks: BackgroundTasks,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """Delete a tournament with its results and refresh its season's points."""
    get_current_user_id(authorization)
    tournament = _get_tournament(client, tournament_id)

    client.table("positions").delete().eq("tournamentId", tournament_id).execute()
    client.table("tournaments").delete().eq("id", tournament_id).execute()

    cache.invalidate()
    season = tournament_season(tournament)
    if season is None:
        logger.warning(f"Tournament {tournament_id} has no season, skipping the rankings refresh")
    else:
        background_tasks.add_task(refresh_after_results, RankingStore(client), season)
    return {"message": f"Tournament '{tournament['name']}' deleted successfully"}
