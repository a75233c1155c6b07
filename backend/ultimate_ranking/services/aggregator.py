"""
Ranking point aggregation.

Pure functions turning per-season category point rows into ordered ranking
views: the current (4-season weighted) ranking, the historical all-time
ranking, the club ranking and the highlight statistics. Nothing here talks to
the data store; callers fetch the rows and pass them in.
"""

import logging
import re
from collections import OrderedDict
from typing import Callable, Hashable, Iterable, Mapping, Optional, Sequence

from ultimate_ranking.schemas.ranking import (
    NO_REGION_LABEL,
    ClubRankingEntry,
    HighlightStats,
    RankingEntry,
    RankingScope,
    RankSnapshot,
    RegionHighlight,
    SeasonBreakdown,
    SeasonComparisonEntry,
    SeasonPointsRow,
    TeamInfo,
    scope_name,
)
from ultimate_ranking.services.seasons import (
    previous_season,
    season_coefficient,
    season_start_year,
    season_window,
)

logger = logging.getLogger(__name__)

CLUB_SUFFIX_PATTERN = re.compile(r"\s+[B-E]$")


def _base_points_by_team(
    rows: Iterable[SeasonPointsRow],
    scope: RankingScope,
    seasons: Optional[Iterable[str]] = None,
) -> dict[str, dict[str, float]]:
    """Base points per team and season, in order of first appearance of each team."""
    allowed = set(seasons) if seasons is not None else None
    by_team: dict[str, dict[str, float]] = {}
    for row in rows:
        if allowed is not None and row.season not in allowed:
            continue
        team_seasons = by_team.setdefault(row.team_id, {})
        team_seasons[row.season] = team_seasons.get(row.season, 0.0) + row.points.points_for(scope)
    return by_team


def rank_weighted_totals(
    rows: Iterable[SeasonPointsRow],
    scope: RankingScope,
    reference_season: str,
) -> list[tuple[str, float, dict[str, SeasonBreakdown]]]:
    """
    Weighted 4-season totals for every team with points in the window.

    Returns ``(team_id, total_points, season_breakdown)`` tuples sorted by total
    descending. The sort is stable so tied teams keep their input order.
    """
    window = season_window(reference_season)
    scored = []
    for team_id, base_by_season in _base_points_by_team(rows, scope, window).items():
        breakdown = {}
        for season in window:
            if season not in base_by_season:
                continue
            base_points = base_by_season[season]
            coefficient = season_coefficient(season, reference_season)
            breakdown[season] = SeasonBreakdown(
                base_points=base_points,
                weighted_points=base_points * coefficient,
                coefficient=coefficient,
            )

        if sum(b.base_points for b in breakdown.values()) <= 0:
            continue

        total = sum(b.weighted_points for b in breakdown.values())
        scored.append((team_id, total, breakdown))

    scored.sort(key=lambda item: item[1], reverse=True)
    return scored


def derive_previous_snapshot(
    rows: Sequence[SeasonPointsRow],
    scope: RankingScope,
    reference_season: str,
) -> dict[str, RankSnapshot]:
    """Rank the season before the reference one from the same rows."""
    ranked = rank_weighted_totals(rows, scope, previous_season(reference_season))
    return {
        team_id: RankSnapshot(team_id=team_id, rank=position, points=total)
        for position, (team_id, total, _) in enumerate(ranked, start=1)
    }


def _team(teams: Mapping[str, TeamInfo], team_id: str) -> TeamInfo:
    team = teams.get(team_id)
    if team is None:
        logger.debug(f"No team record for {team_id}, using placeholder")
        return TeamInfo.placeholder(team_id)
    return team


def _entry(
    team: TeamInfo,
    total: float,
    position: int,
    breakdown: dict[str, SeasonBreakdown],
    tournaments_count: int,
) -> RankingEntry:
    return RankingEntry(
        team_id=team.id,
        team_name=team.name,
        region_id=team.region_id,
        region_name=team.region_name,
        logo=team.logo,
        is_filial=team.is_filial,
        total_points=total,
        ranking_position=position,
        points_change=total,
        tournaments_count=tournaments_count,
        season_breakdown=breakdown,
    )


def compute_current_ranking(
    rows: Sequence[SeasonPointsRow],
    scope: RankingScope,
    reference_season: str,
    teams: Mapping[str, TeamInfo],
    previous: Optional[Mapping[str, RankSnapshot]] = None,
    tournament_counts: Optional[Mapping[str, int]] = None,
) -> list[RankingEntry]:
    """
    Current ranking for a scope and reference season.

    Each team's total is the sum of its base points in the four seasons ending
    at the reference season, weighted 1.0, 0.8, 0.5 and 0.2 from the most
    recent one. Position and points changes are measured against ``previous``
    (the prior season's snapshot); when it is not given it is derived from the
    same rows.
    """
    if previous is None:
        previous = derive_previous_snapshot(rows, scope, reference_season)
    tournament_counts = tournament_counts or {}

    ranking = []
    for position, (team_id, total, breakdown) in enumerate(
        rank_weighted_totals(rows, scope, reference_season), start=1
    ):
        entry = _entry(
            _team(teams, team_id), total, position, breakdown, tournament_counts.get(team_id, 0)
        )

        prior = previous.get(team_id)
        if prior is not None:
            entry.previous_position = prior.rank
            entry.previous_points = prior.points
            entry.position_change = prior.rank - position
            entry.points_change = round(total - prior.points, 2)

        ranking.append(entry)

    return ranking


def compute_historical_ranking(
    rows: Sequence[SeasonPointsRow],
    scope: RankingScope,
    teams: Mapping[str, TeamInfo],
    tournament_counts: Optional[Mapping[str, int]] = None,
) -> list[RankingEntry]:
    """All-time ranking: unweighted sum of base points over every season with data."""
    tournament_counts = tournament_counts or {}

    scored = []
    for team_id, base_by_season in _base_points_by_team(rows, scope).items():
        total = sum(base_by_season.values())
        if total <= 0:
            continue
        breakdown = {
            season: SeasonBreakdown(base_points=points, weighted_points=points, coefficient=1.0)
            for season, points in sorted(
                base_by_season.items(), key=lambda item: season_start_year(item[0]), reverse=True
            )
        }
        scored.append((team_id, total, breakdown))

    scored.sort(key=lambda item: item[1], reverse=True)

    ranking = []
    for position, (team_id, total, breakdown) in enumerate(scored, start=1):
        entry = _entry(
            _team(teams, team_id), total, position, breakdown, tournament_counts.get(team_id, 0)
        )
        entry.points_change = 0.0
        ranking.append(entry)
    return ranking


def club_name(team_name: str) -> str:
    """Club a team belongs to: its name without a trailing B-E filial suffix."""
    return CLUB_SUFFIX_PATTERN.sub("", team_name.strip())


def compute_club_ranking(entries: Sequence[RankingEntry]) -> list[ClubRankingEntry]:
    """
    Group ranked teams into clubs and rank the clubs by summed points.

    The main team of a club is its first non-filial member, or its first member
    when all of them are filials.
    """
    clubs: dict[str, list[RankingEntry]] = {}
    for entry in entries:
        clubs.setdefault(club_name(entry.team_name), []).append(entry)

    club_entries = []
    for name, members in clubs.items():
        main = next((m for m in members if not m.is_filial), members[0])

        breakdown: dict[str, SeasonBreakdown] = {}
        for member in members:
            for season, item in member.season_breakdown.items():
                if season in breakdown:
                    current = breakdown[season]
                    breakdown[season] = SeasonBreakdown(
                        base_points=current.base_points + item.base_points,
                        weighted_points=current.weighted_points + item.weighted_points,
                        coefficient=current.coefficient,
                    )
                else:
                    breakdown[season] = item.model_copy()

        club_entries.append(
            ClubRankingEntry(
                club_name=name,
                team_id=main.team_id,
                team_ids=[m.team_id for m in members],
                region_name=main.region_name,
                logo=main.logo,
                total_points=sum(m.total_points for m in members),
                tournaments_count=sum(m.tournaments_count for m in members),
                teams_count=len(members),
                season_breakdown=breakdown,
            )
        )

    club_entries.sort(key=lambda c: c.total_points, reverse=True)
    for position, club in enumerate(club_entries, start=1):
        club.ranking_position = position
    return club_entries


def _region_highlights(ranking: Sequence[RankingEntry]) -> list[RegionHighlight]:
    by_region: dict[str, list[float]] = {}
    for entry in ranking:
        if entry.region_name == NO_REGION_LABEL:
            continue
        by_region.setdefault(entry.region_name, []).append(entry.total_points)

    return [
        RegionHighlight(
            name=name,
            teams_count=len(points),
            average_points=round(sum(points) / len(points), 2),
        )
        for name, points in by_region.items()
    ]


def _best(entries: Iterable[RankingEntry], key: Callable[[RankingEntry], float]):
    """First entry with the largest positive key, in rank order."""
    best = None
    for entry in entries:
        if key(entry) > 0 and (best is None or key(entry) > key(best)):
            best = entry
    return best


def compute_highlights(
    ranking: Sequence[RankingEntry],
    historical: Sequence[RankingEntry],
    rows: Sequence[SeasonPointsRow],
    scope: RankingScope,
    reference_season: str,
) -> HighlightStats:
    """
    Highlight statistics of a current ranking.

    ``historical`` is the all-time ranking over the whole dataset and ``rows``
    every season row known for the ranked teams, used to spot teams whose only
    season with points is the reference one.
    """
    stats = HighlightStats(
        scope=scope_name(scope),
        reference_season=reference_season,
        total_teams=len(ranking),
    )
    if not ranking:
        return stats

    stats.leader = ranking[0]

    with_previous = [e for e in ranking if e.previous_position is not None]
    stats.revelation = _best(with_previous, lambda e: e.points_change)
    stats.biggest_riser = _best(with_previous, lambda e: e.position_change)
    stats.best_filial = next((e for e in ranking if e.is_filial), None)
    stats.best_historical = historical[0] if historical else None

    seasons_with_points = {
        team_id: {season for season, points in by_season.items() if points > 0}
        for team_id, by_season in _base_points_by_team(rows, scope).items()
    }
    stats.new_teams = [
        e for e in ranking if seasons_with_points.get(e.team_id) == {reference_season}
    ]

    regions = _region_highlights(ranking)
    if regions:
        stats.most_active_region = max(regions, key=lambda r: r.teams_count)
        stats.most_competitive_region = max(regions, key=lambda r: r.average_points)

    return stats


def compare_rankings(
    first: Sequence[RankingEntry], second: Sequence[RankingEntry]
) -> list[SeasonComparisonEntry]:
    """
    Per-team change from ranking ``first`` to ranking ``second``, biggest rise first.

    Teams missing from ``first`` count as new: no position change and all of
    their points gained. Teams missing from ``second`` are left out.
    """
    earlier = {e.team_id: e for e in first}
    changes = []
    for entry in second:
        before = earlier.get(entry.team_id)
        if before is None:
            position_change, points_change = 0, entry.total_points
        else:
            position_change = before.ranking_position - entry.ranking_position
            points_change = round(entry.total_points - before.total_points, 2)
        changes.append(
            SeasonComparisonEntry(
                team_id=entry.team_id,
                team_name=entry.team_name,
                position_change=position_change,
                points_change=points_change,
            )
        )

    changes.sort(key=lambda c: c.position_change, reverse=True)
    return changes


class RankingCache:
    """
    Bounded LRU memo of computed ranking views.

    Keys combine the ranking variant, scope and reference season with a
    fingerprint of the input rows, so a changed input never hits a stale entry.
    ``invalidate`` drops everything after writes to the underlying data.
    """

    def __init__(self, maxsize: int = 64):
        self.maxsize = maxsize
        self._entries: OrderedDict[Hashable, object] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def fingerprint(
        rows: Iterable[SeasonPointsRow],
        teams: Optional[Mapping[str, TeamInfo]] = None,
        previous: Optional[Mapping[str, RankSnapshot]] = None,
        extra: Optional[Mapping[str, int]] = None,
    ) -> int:
        return hash(
            (
                tuple(rows),
                tuple(sorted(teams.items())) if teams else None,
                tuple(sorted(previous.items())) if previous is not None else None,
                tuple(sorted(extra.items())) if extra else None,
            )
        )

    def key(
        self, variant: str, scope: RankingScope, reference_season: Optional[str], fingerprint: int
    ) -> tuple:
        return (variant, scope_name(scope), reference_season, fingerprint)

    def get_or_compute(self, key: Hashable, compute: Callable[[], object]):
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self.misses += 1
        value = compute()
        self._entries[key] = value
        if len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)
        return value

    def invalidate(self) -> None:
        logger.debug(f"Dropping {len(self._entries)} cached rankings")
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries
