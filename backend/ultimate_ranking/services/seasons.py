"""
Season labels and temporal coefficients.

Seasons are labelled ``YYYY-YY`` (``2023-24``). The current ranking weights
the four most recent seasons relative to a reference season; anything older
weighs nothing.
"""

from datetime import date
from typing import Iterable, Optional

from ultimate_ranking.schemas.ranking import (
    SEASON_PATTERN,
    Category,
    LatestSeasons,
    SeasonPointsRow,
    is_valid_season,
)

# Recency weights, most recent season first
SEASON_COEFFICIENTS = (1.0, 0.8, 0.5, 0.2)
SEASON_WINDOW = len(SEASON_COEFFICIENTS)

# A new season label starts being used in July
SEASON_START_MONTH = 7

# Categories already played in the current season at each subupdate
SUBUPDATE_PLAYED_CATEGORIES = {
    1: frozenset({Category.BEACH_MIXED}),
    2: frozenset({Category.BEACH_MIXED, Category.BEACH_OPEN, Category.BEACH_WOMEN}),
    3: frozenset(
        {
            Category.BEACH_MIXED,
            Category.BEACH_OPEN,
            Category.BEACH_WOMEN,
            Category.GRASS_MIXED,
        }
    ),
    4: frozenset(Category),
}

# Unplayed categories skip the current season and shift the weights one back
UNPLAYED_COEFFICIENTS = (0.0, 1.0, 0.8, 0.5, 0.2)
SUBUPDATE_WINDOW = len(UNPLAYED_COEFFICIENTS)


def season_start_year(season: str) -> int:
    if not is_valid_season(season):
        raise ValueError(f"Invalid season label: {season!r}")
    return int(SEASON_PATTERN.match(season).group(1))


def format_season(year: int) -> str:
    return f"{year}-{str(year + 1)[-2:]}"


def shift_season(season: str, offset: int) -> str:
    return format_season(season_start_year(season) + offset)


def previous_season(season: str) -> str:
    return shift_season(season, -1)


def season_window(reference_season: str, size: int = SEASON_WINDOW) -> list[str]:
    """The ``size`` seasons ending at the reference one, most recent first."""
    start = season_start_year(reference_season)
    return [format_season(start - i) for i in range(size)]


def season_coefficient(season: str, reference_season: str) -> float:
    years_ago = season_start_year(reference_season) - season_start_year(season)
    if 0 <= years_ago < SEASON_WINDOW:
        return SEASON_COEFFICIENTS[years_ago]
    return 0.0


def current_season(today: Optional[date] = None) -> str:
    today = today or date.today()
    year = today.year if today.month >= SEASON_START_MONTH else today.year - 1
    return format_season(year)


def subupdate_coefficient(season_index: int, subupdate: int, category: Category) -> float:
    """
    Weight of the season ``season_index`` places before the reference season
    for a category, at a given intra-season subupdate (1-4).
    """
    if subupdate not in SUBUPDATE_PLAYED_CATEGORIES:
        raise ValueError(f"Subupdate must be between 1 and 4, got {subupdate}")

    if category in SUBUPDATE_PLAYED_CATEGORIES[subupdate]:
        coefficients = SEASON_COEFFICIENTS
    else:
        coefficients = UNPLAYED_COEFFICIENTS

    if 0 <= season_index < len(coefficients):
        return coefficients[season_index]
    return 0.0


def most_recent_seasons(rows: Iterable[SeasonPointsRow]) -> LatestSeasons:
    """Most recent season with points, globally and for each category."""
    ordered = sorted(rows, key=lambda r: season_start_year(r.season), reverse=True)
    if not ordered:
        return LatestSeasons()

    latest = next((r.season for r in ordered if r.points.total() > 0), ordered[0].season)

    categories = {}
    for category in Category:
        categories[category] = next(
            (r.season for r in ordered if r.points.get(category) > 0), latest
        )

    return LatestSeasons(general=latest, categories=categories)
