from collections import Counter
from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException
from supabase import Client
from ultimate_ranking.api.deps import get_ranking_cache
from ultimate_ranking.core.auth import get_current_user_id
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.schemas.region import RegionCreate, RegionResponse, RegionUpdate
from ultimate_ranking.services.aggregator import RankingCache

router = APIRouter()


def _get_region(client: Client, region_id: str) -> dict:
    response = client.table("regions").select("*").eq("id", region_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Region not found")
    return response.data[0]


def _to_response(row: dict, teams_count: int = 0) -> RegionResponse:
    return RegionResponse(
        id=str(row["id"]),
        name=row["name"],
        code=row.get("code"),
        coefficient=row.get("coefficient") or 1.0,
        teams_count=teams_count,
    )


@router.get("/", response_model=List[RegionResponse])
def list_regions(client: Client = Depends(get_supabase_client)):
    """All regions with the number of teams in each."""
    regions = client.table("regions").select("*").order("name").execute()
    teams = client.table("teams").select("regionId").execute()
    counts = Counter(str(t["regionId"]) for t in (teams.data or []) if t.get("regionId"))
    return [_to_response(r, counts.get(str(r["id"]), 0)) for r in (regions.data or [])]


@router.get("/{region_id}", response_model=RegionResponse)
def get_region(region_id: str, client: Client = Depends(get_supabase_client)):
    region = _get_region(client, region_id)
    teams = client.table("teams").select("id").eq("regionId", region_id).execute()
    return _to_response(region, len(teams.data or []))


@router.post("/", response_model=RegionResponse)
def create_region(
    region_in: RegionCreate,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    get_current_user_id(authorization)

    existing = client.table("regions").select("id").eq("name", region_in.name).execute()
    if existing.data:
        raise HTTPException(status_code=400, detail="A region with this name already exists")

    response = client.table("regions").insert(region_in.model_dump()).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to create region")

    cache.invalidate()
    return _to_response(response.data[0])


@router.put("/{region_id}", response_model=RegionResponse)
def update_region(
    region_id: str,
    region_in: RegionUpdate,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    get_current_user_id(authorization)
    region = _get_region(client, region_id)

    changes = region_in.model_dump(exclude_unset=True)
    if not changes:
        return _to_response(region)

    response = client.table("regions").update(changes).eq("id", region_id).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to update region")

    cache.invalidate()
    return _to_response(response.data[0])


@router.delete("/{region_id}")
def delete_region(
    region_id: str,
    authorization: str = Header(None),
    client: Client = Depends(get_supabase_client),
    cache: RankingCache = Depends(get_ranking_cache),
):
    """Delete a region that no team or tournament belongs to."""
    get_current_user_id(authorization)
    region = _get_region(client, region_id)

    teams = client.table("teams").select("id").eq("regionId", region_id).execute()
    if teams.data:
        raise HTTPException(
            status_code=400,
            detail=f"Region has {len(teams.data)} teams, move them before deleting it",
        )

    tournaments = client.table("tournaments").select("id").eq("regionId", region_id).execute()
    if tournaments.data:
        raise HTTPException(
            status_code=400, detail="Region has tournaments, delete them before deleting it"
        )

    client.table("regions").delete().eq("id", region_id).execute()
    cache.invalidate()
    return {"message": f"Region '{region['name']}' deleted successfully"}
