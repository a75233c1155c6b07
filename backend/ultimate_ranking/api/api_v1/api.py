from fastapi import APIRouter
from ultimate_ranking.api.api_v1.endpoints import (
    positions,
    rankings,
    regions,
    teams,
    tournaments,
)

api_router = APIRouter()

api_router.include_router(rankings.router, prefix="/rankings", tags=["rankings"])
api_router.include_router(teams.router, prefix="/teams", tags=["teams"])
api_router.include_router(regions.router, prefix="/regions", tags=["regions"])
api_router.include_router(
    tournaments.router, prefix="/tournaments", tags=["tournaments"]
)
api_router.include_router(positions.router, prefix="/positions", tags=["positions"])
