import re
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

UNKNOWN_TEAM_NAME = "Equipo desconocido"
NO_REGION_LABEL = "Sin región"

GENERAL = "general"

SEASON_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def is_valid_season(label: Optional[str]) -> bool:
    """True for labels like 2024-25 whose suffix is the following year."""
    match = SEASON_PATTERN.match(label or "")
    if not match:
        return False
    return (int(match.group(1)) + 1) % 100 == int(match.group(2))


class Surface(str, Enum):
    GRASS = "GRASS"
    BEACH = "BEACH"


class Modality(str, Enum):
    OPEN = "OPEN"
    WOMEN = "WOMEN"
    MIXED = "MIXED"


class Category(str, Enum):
    """A surface x modality ranking category."""

    BEACH_MIXED = "beach_mixed"
    BEACH_OPEN = "beach_open"
    BEACH_WOMEN = "beach_women"
    GRASS_MIXED = "grass_mixed"
    GRASS_OPEN = "grass_open"
    GRASS_WOMEN = "grass_women"

    @property
    def surface(self) -> Surface:
        return Surface(self.value.split("_")[0].upper())

    @property
    def modality(self) -> Modality:
        return Modality(self.value.split("_")[1].upper())

    @property
    def points_column(self) -> str:
        return f"{self.value}_points"

    @property
    def rank_column(self) -> str:
        return f"{self.value}_rank"

    @classmethod
    def from_tournament(
        cls, surface: Optional[str], modality: Optional[str]
    ) -> Optional["Category"]:
        """Category for a tournament's surface/modality, None if it has no ranking."""
        if not surface or not modality:
            return None
        value = f"{surface.lower()}_{modality.lower()}"
        for category in cls:
            if category.value == value:
                return category
        return None


# A ranking is computed either for one category or for all six combined
RankingScope = Union[Category, Literal["general"]]

ScopeName = Literal[
    "general",
    "beach_mixed",
    "beach_open",
    "beach_women",
    "grass_mixed",
    "grass_open",
    "grass_women",
]


def parse_scope(name: str) -> RankingScope:
    if name == GENERAL:
        return GENERAL
    return Category(name)


def scope_name(scope: RankingScope) -> str:
    return scope.value if isinstance(scope, Category) else scope


class CategoryPoints(BaseModel):
    """Point totals for the six ranking categories."""

    model_config = {"frozen": True}

    beach_mixed: float = 0.0
    beach_open: float = 0.0
    beach_women: float = 0.0
    grass_mixed: float = 0.0
    grass_open: float = 0.0
    grass_women: float = 0.0

    def get(self, category: Category) -> float:
        return getattr(self, category.value)

    def total(self) -> float:
        return sum(self.get(category) for category in Category)

    def points_for(self, scope: RankingScope) -> float:
        if scope == GENERAL:
            return self.total()
        return self.get(scope)

    def to_columns(self) -> dict[str, float]:
        return {c.points_column: self.get(c) for c in Category}

    @classmethod
    def from_row(cls, row: dict) -> "CategoryPoints":
        return cls(**{c.value: float(row.get(c.points_column) or 0) for c in Category})


class SeasonPointsRow(BaseModel):
    """Base points earned by one team in one season, per category."""

    model_config = {"frozen": True}

    team_id: str
    season: str
    points: CategoryPoints = CategoryPoints()

    @classmethod
    def from_row(cls, row: dict) -> "SeasonPointsRow":
        return cls(
            team_id=str(row["team_id"]),
            season=row["season"],
            points=CategoryPoints.from_row(row),
        )


class SeasonPointsSummary(BaseModel):
    """A season points row plus the per-category participation stats."""

    row: SeasonPointsRow
    tournaments_played: dict[Category, int] = {}
    best_position: dict[Category, int] = {}

    def to_record(self) -> dict:
        return {
            "team_id": self.row.team_id,
            "season": self.row.season,
            **self.row.points.to_columns(),
            "tournaments_played": {c.value: n for c, n in self.tournaments_played.items()},
            "best_position": {c.value: p for c, p in self.best_position.items()},
        }


class TeamInfo(BaseModel):
    """Display data of a team as needed by the ranking views."""

    model_config = {"frozen": True}

    id: str
    name: str = UNKNOWN_TEAM_NAME
    region_id: Optional[str] = None
    region_name: str = NO_REGION_LABEL
    logo: Optional[str] = None
    is_filial: bool = False
    parent_team_id: Optional[str] = None

    @classmethod
    def placeholder(cls, team_id: str) -> "TeamInfo":
        return cls(id=team_id)


class RankSnapshot(BaseModel):
    """A team's rank and points in a precomputed ranking snapshot."""

    model_config = {"frozen": True}

    team_id: str
    rank: int
    points: float = 0.0


class SeasonBreakdown(BaseModel):
    base_points: float
    weighted_points: float
    coefficient: float


class RankingEntry(BaseModel):
    team_id: str
    team_name: str
    region_id: Optional[str] = None
    region_name: str = NO_REGION_LABEL
    logo: Optional[str] = None
    is_filial: bool = False
    total_points: float
    ranking_position: int = 0
    position_change: int = 0
    points_change: float = 0.0
    previous_position: Optional[int] = None
    previous_points: Optional[float] = None
    tournaments_count: int = 0
    season_breakdown: dict[str, SeasonBreakdown] = {}


class ClubRankingEntry(BaseModel):
    club_name: str
    team_id: str  # Main team of the club
    team_ids: list[str]
    region_name: str = NO_REGION_LABEL
    logo: Optional[str] = None
    total_points: float
    tournaments_count: int = 0
    teams_count: int
    ranking_position: int = 0
    season_breakdown: dict[str, SeasonBreakdown] = {}


class RegionHighlight(BaseModel):
    name: str
    teams_count: int
    average_points: float


class HighlightStats(BaseModel):
    scope: str
    reference_season: str
    total_teams: int = 0
    leader: Optional[RankingEntry] = None
    revelation: Optional[RankingEntry] = None
    biggest_riser: Optional[RankingEntry] = None
    best_filial: Optional[RankingEntry] = None
    best_historical: Optional[RankingEntry] = None
    new_teams: list[RankingEntry] = []
    most_active_region: Optional[RegionHighlight] = None
    most_competitive_region: Optional[RegionHighlight] = None


class SeasonComparisonEntry(BaseModel):
    team_id: str
    team_name: str
    position_change: int
    points_change: float


class SeasonComparison(BaseModel):
    scope: str
    season_a: str
    season_b: str
    ranking_a: list[RankingEntry] = []
    ranking_b: list[RankingEntry] = []
    changes: list[SeasonComparisonEntry] = []


class TeamHistoryEntry(BaseModel):
    season: str
    rank: int
    points: float


class LatestSeasons(BaseModel):
    general: Optional[str] = None
    categories: dict[Category, Optional[str]] = Field(default_factory=dict)

    def for_scope(self, scope: RankingScope) -> Optional[str]:
        if scope == GENERAL:
            return self.general
        return self.categories.get(scope) or self.general
