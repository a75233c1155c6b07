"""
Rankings API endpoints: current, historical and club rankings per category or
for the general ranking, plus highlights, season comparisons and team history.
"""

from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from ultimate_ranking.api.deps import get_ranking_service
from ultimate_ranking.schemas.ranking import (
    ClubRankingEntry,
    HighlightStats,
    LatestSeasons,
    RankingEntry,
    ScopeName,
    SeasonComparison,
    TeamHistoryEntry,
    parse_scope,
)
from ultimate_ranking.services.rankings import RankingService, Variant

router = APIRouter()


def _bad_season(e: ValueError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(e))


@router.get("/seasons/latest", response_model=LatestSeasons)
async def get_latest_seasons(
    service: RankingService = Depends(get_ranking_service),
):
    """Most recent season with data, globally and per category."""
    return await service.get_latest_seasons()


@router.get(
    "/{scope}",
    response_model=Union[list[RankingEntry], list[ClubRankingEntry]],
)
async def get_ranking(
    scope: ScopeName,
    season: Optional[str] = Query(None, description="Reference season, e.g. 2024-25"),
    variant: Variant = Query("current", description="current, historical or clubs"),
    region_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: RankingService = Depends(get_ranking_service),
):
    """
    Ranking of a category (or ``general`` for all six combined).

    Defaults to the most recent season with data for the category.
    """
    try:
        return await service.get_ranking(
            parse_scope(scope),
            reference_season=season,
            variant=variant,
            region_id=region_id,
            limit=limit,
            offset=offset,
        )
    except ValueError as e:
        raise _bad_season(e)


@router.get("/{scope}/highlights", response_model=HighlightStats)
async def get_highlights(
    scope: ScopeName,
    season: Optional[str] = Query(None),
    service: RankingService = Depends(get_ranking_service),
):
    try:
        stats = await service.get_highlights(parse_scope(scope), reference_season=season)
    except ValueError as e:
        raise _bad_season(e)

    if stats is None:
        raise HTTPException(status_code=404, detail="No ranking data available")
    return stats


@router.get("/{scope}/compare", response_model=SeasonComparison)
async def compare_seasons(
    scope: ScopeName,
    season_a: str = Query(..., description="Earlier season"),
    season_b: str = Query(..., description="Later season"),
    service: RankingService = Depends(get_ranking_service),
):
    try:
        return await service.compare_seasons(season_a, season_b, parse_scope(scope))
    except ValueError as e:
        raise _bad_season(e)


@router.get("/{scope}/teams/{team_id}", response_model=RankingEntry)
async def get_team_ranking(
    scope: ScopeName,
    team_id: str,
    season: Optional[str] = Query(None),
    service: RankingService = Depends(get_ranking_service),
):
    try:
        entry = await service.get_team_ranking(team_id, parse_scope(scope), season)
    except ValueError as e:
        raise _bad_season(e)

    if entry is None:
        raise HTTPException(status_code=404, detail="Team not ranked")
    return entry


@router.get("/{scope}/teams/{team_id}/history", response_model=list[TeamHistoryEntry])
async def get_team_history(
    scope: ScopeName,
    team_id: str,
    service: RankingService = Depends(get_ranking_service),
):
    """Rank and points of a team in every season it was ranked."""
    return await service.get_team_history(team_id, parse_scope(scope))
