# Schemas package
from ultimate_ranking.schemas.position import (
    PositionBulkCreate,
    PositionCreate,
    PositionResponse,
    PositionUpdate,
)
from ultimate_ranking.schemas.ranking import (
    Category,
    CategoryPoints,
    ClubRankingEntry,
    HighlightStats,
    RankingEntry,
    SeasonPointsRow,
    TeamInfo,
)
from ultimate_ranking.schemas.region import RegionCreate, RegionResponse, RegionUpdate
from ultimate_ranking.schemas.team import TeamCreate, TeamResponse, TeamUpdate
from ultimate_ranking.schemas.tournament import (
    TournamentCreate,
    TournamentResponse,
    TournamentType,
    TournamentUpdate,
)

__all__ = [
    "Category",
    "CategoryPoints",
    "ClubRankingEntry",
    "HighlightStats",
    "RankingEntry",
    "SeasonPointsRow",
    "TeamInfo",
    "PositionBulkCreate",
    "PositionCreate",
    "PositionResponse",
    "PositionUpdate",
    "RegionCreate",
    "RegionResponse",
    "RegionUpdate",
    "TeamCreate",
    "TeamResponse",
    "TeamUpdate",
    "TournamentCreate",
    "TournamentResponse",
    "TournamentType",
    "TournamentUpdate",
]
