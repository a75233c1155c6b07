from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from supabase import Client
from ultimate_ranking.api.deps import get_ranking_cache
from ultimate_ranking.core.auth import get_current_user_id
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.schemas.team import (
    INHERITED_FIELDS,
    TeamCreate,
    TeamResponse,
    TeamUpdate,
    team_to_record,
)
from ultimate_ranking.services.aggregator import RankingCache

router = APIRouter()


def _get_team(client: Client, team_id: str) -> dict:
    response = client.table("teams").select("*").eq("id", team_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Team not found")
    return response.data[0]


def _region_names(client: Client) -> dict[str, str]:
    regions = client.table("regions").select("id, name").execute()
    return {str(r["id"]): r["name"] for r in (regions.data or [])}


def _get_parent(client: Client, parent_team_id: str, team_id: Optional[str] = None) -> dict:
    """Parent team of a filial. Filials hang directly from a main team."""
    if team_id is not None and parent_team_id == team_id:
        raise HTTPException(status_code=400, detail="A team cannot be its own parent")

    response = client.table("teams").select("*").eq("id", parent_team_id).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Parent team not found")

    parent = response.data[0]
    if parent.get("isFilial"):
        raise HTTPException(status_code=400, detail="The parent team cannot be a filial")
    return parent


def _inherited_from(parent: dict) -> dict:
    """Display fields a filial copies from its parent, as table columns."""
    return team_to_record(
        {
            "region_id": parent.get("regionId"),
            "location": parent.get("location"),
            "email": parent.get("email"),
            "logo": parent.get("logo"),
        }
    )


@router.get("/", response_model=List[TeamResponse])
def list_teams(
    region_id: Optional[str] = Query(None),
    is_filial: Optional[bool] = Query(None),
    client: Client = Depends(get_supabase_client),
):
    query = client.table("teams").select("*")
    if region_id:
        query = query.eq("regionId", region_id)
    if is_filial is not None:
        query = query.eq("isFilial", is_filial)
    response = query.order("name").execute()

    regions = _region_names(client)
    return [
        TeamResponse.from_record(t, regions.get(str(t.get("regionId"))))
        for t in (response.data or [])
    ]


@router.get("/{team_id}", response_model=TeamResponse)
def get_team(team_id: str, client: Client = Depends(get_supabase_client)):
    team = _get_team(client, team_id)
    return TeamResponse.from_record(team, _region_names(client).get(str(team.get("regionId"))))


@router.get("/{team_id}/filials", response_model=List[TeamResponse])
def get_team_filials(team_id: str, client: Client = Depends(get_supabase_client)):
    _get_team(client, team_id)
    response = client.table("teams").select("*").eq("parentTeamId", team_id).execute()
    regions = _region_names(client)
    return [
        TeamResponse.from_record(t, regions.get(str(t.get("regionId"))))
        for t in (response.data or [])
    ]


@router.post("/", response_model=TeamResponse)
def create_team(
    team_in: TeamCreate,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """Create a team. Filials take region, location, email and logo from their parent."""
    get_current_user_id(authorization)

    existing = client.table("teams").select("id").eq("name", team_in.name).execute()
    if existing.data:
        raise HTTPException(status_code=400, detail="A team with this name already exists")

    record = team_to_record(team_in.model_dump())
    if team_in.is_filial:
        record.update(_inherited_from(_get_parent(client, team_in.parent_team_id)))

    response = client.table("teams").insert(record).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to create team")

    cache.invalidate()
    team = response.data[0]
    return TeamResponse.from_record(team, _region_names(client).get(str(team.get("regionId"))))


@router.put("/{team_id}", response_model=TeamResponse)
def update_team(
    team_id: str,
    team_in: TeamUpdate,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """
    Update a team.

    Edits to a main team's inherited fields are copied onto its filials; a
    filial's own copies are always refreshed from its parent.
    """
    get_current_user_id(authorization)
    team = _get_team(client, team_id)

    changes = team_in.model_dump(exclude_unset=True)
    is_filial = changes.get("is_filial", bool(team.get("isFilial")))
    parent_team_id = changes.get("parent_team_id", team.get("parentTeamId"))

    record = team_to_record(changes)
    if is_filial:
        if not parent_team_id:
            raise HTTPException(status_code=400, detail="A filial team requires a parent team")
        record.update(_inherited_from(_get_parent(client, parent_team_id, team_id)))
    else:
        record["parentTeamId"] = None

    response = client.table("teams").update(record).eq("id", team_id).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to update team")
    updated = response.data[0]

    inherited_changes = {k: v for k, v in changes.items() if k in INHERITED_FIELDS}
    if not is_filial and inherited_changes:
        client.table("teams").update(team_to_record(inherited_changes)).eq(
            "parentTeamId", team_id
        ).execute()

    cache.invalidate()
    return TeamResponse.from_record(
        updated, _region_names(client).get(str(updated.get("regionId")))
    )


@router.delete("/{team_id}")
def delete_team(
    team_id: str,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """Delete a team and its tournament results. Teams with filials cannot be deleted."""
    get_current_user_id(authorization)
    team = _get_team(client, team_id)

    filials = client.table("teams").select("id").eq("parentTeamId", team_id).execute()
    if filials.data:
        raise HTTPException(
            status_code=400,
            detail="Team has filial teams, delete or reassign them first",
        )

    # Delete in order (foreign key constraints)
    client.table("positions").delete().eq("teamId", team_id).execute()
    client.table("team_season_rankings").delete().eq("team_id", team_id).execute()
    client.table("team_season_points").delete().eq("team_id", team_id).execute()
    client.table("teams").delete().eq("id", team_id).execute()

    cache.invalidate()
    return {"message": f"Team '{team['name']}' deleted successfully"}
