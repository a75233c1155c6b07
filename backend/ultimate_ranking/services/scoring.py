# Federation scoring system
# Points awarded based on the final position in a tournament

from typing import Mapping

from ultimate_ranking.schemas.tournament import TournamentType

CE1_POINTS = {
    1: 1000,
    2: 850,
    3: 725,
    4: 625,
    5: 520,
    6: 450,
    7: 380,
    8: 320,
    9: 270,
    10: 230,
    11: 195,
    12: 165,
    13: 140,
    14: 120,
    15: 105,
    16: 90,
    17: 75,
    18: 65,
    19: 55,
    20: 46,
    21: 39,
    22: 34,
    23: 30,
    24: 27,
}

CE2_POINTS = {
    1: 230,
    2: 195,
    3: 165,
    4: 140,
    5: 120,
    6: 103,
    7: 86,
    8: 74,
    9: 63,
    10: 54,
    11: 46,
    12: 39,
    13: 34,
    14: 29,
    15: 25,
    16: 21,
    17: 18,
    18: 15,
    19: 13,
    20: 11,
    21: 9,
    22: 8,
    23: 7,
    24: 6,
}

REGIONAL_POINTS = {
    1: 140,
    2: 120,
    3: 100,
    4: 85,
    5: 72,
    6: 60,
    7: 50,
    8: 42,
    9: 35,
    10: 30,
    11: 25,
    12: 21,
    13: 18,
    14: 15,
    15: 13,
    16: 11,
    17: 9,
    18: 8,
    19: 7,
    20: 6,
    21: 5,
    22: 4,
    23: 3,
    24: 2,
}

POINTS_TABLES = {
    TournamentType.CE1: CE1_POINTS,
    TournamentType.CE2: CE2_POINTS,
    TournamentType.REGIONAL: REGIONAL_POINTS,
}

# National tournaments feed the regional coefficient
NATIONAL_TYPES = (TournamentType.CE1, TournamentType.CE2)

MIN_REGIONAL_COEFFICIENT = 0.8
MAX_REGIONAL_COEFFICIENT = 1.2


def get_points_for_position(position: int, tournament_type: TournamentType) -> int:
    """Get points for a given final position."""
    table = POINTS_TABLES[TournamentType(tournament_type)]
    return table.get(position, 0)


def calculate_position_points(
    position: int,
    tournament_type: TournamentType,
    regional_coefficient: float = 1.0,
) -> float:
    """Calculate the points of a result, scaling regional ones by the region coefficient."""
    base_points = get_points_for_position(position, tournament_type)
    if TournamentType(tournament_type) == TournamentType.REGIONAL:
        return round(base_points * regional_coefficient, 2)
    return float(base_points)


def compute_regional_coefficients(region_points: Mapping[str, float]) -> dict[str, float]:
    """
    Scale each region's aggregate national points linearly onto [0.8, 1.2].

    The region with most points gets 1.2 and the one with fewest 0.8. When every
    region has the same total there is nothing to scale and all get 1.0.
    """
    if not region_points:
        return {}

    lowest = min(region_points.values())
    highest = max(region_points.values())
    if highest == lowest:
        return {region_id: 1.0 for region_id in region_points}

    spread = MAX_REGIONAL_COEFFICIENT - MIN_REGIONAL_COEFFICIENT
    return {
        region_id: round(
            MIN_REGIONAL_COEFFICIENT + (points - lowest) / (highest - lowest) * spread,
            3,
        )
        for region_id, points in region_points.items()
    }
