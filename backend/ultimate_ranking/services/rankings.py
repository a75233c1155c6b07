"""
Ranking service.

Fetches what a ranking view needs from the store concurrently, runs the pure
aggregation once everything has arrived and memoizes the result. Failing reads
fall back to slower paths (prior rank snapshot derived from season points,
season points recomputed from raw positions) and finally to empty views.
"""

import asyncio
import logging
from typing import Literal, Optional

from pydantic import BaseModel
from ultimate_ranking.schemas.ranking import (
    GENERAL,
    ClubRankingEntry,
    HighlightStats,
    LatestSeasons,
    RankingEntry,
    RankingScope,
    RankSnapshot,
    SeasonComparison,
    SeasonPointsRow,
    TeamHistoryEntry,
    TeamInfo,
    is_valid_season,
    scope_name,
)
from ultimate_ranking.services.aggregator import (
    RankingCache,
    compare_rankings,
    compute_club_ranking,
    compute_current_ranking,
    compute_highlights,
    compute_historical_ranking,
)
from ultimate_ranking.services.season_points import aggregate_positions
from ultimate_ranking.services.seasons import (
    most_recent_seasons,
    previous_season,
    season_start_year,
)
from ultimate_ranking.services.store import (
    SUBUPDATES,
    RankingDataError,
    RankingStore,
    subupdate_columns,
)

logger = logging.getLogger(__name__)

Variant = Literal["current", "historical", "clubs"]


class RankingContext(BaseModel):
    """Everything a ranking computation reads, fetched in one fan-out."""

    reference_season: Optional[str] = None
    rows: list[SeasonPointsRow] = []
    teams: dict[str, TeamInfo] = {}
    previous: Optional[dict[str, RankSnapshot]] = None
    tournament_counts: dict[str, int] = {}


def _check_season(season: Optional[str]) -> None:
    if season is not None and not is_valid_season(season):
        raise ValueError(f"Invalid season label: {season!r}")


class RankingService:
    def __init__(self, store: RankingStore, cache: RankingCache):
        self.store = store
        self.cache = cache

    async def load_season_points(self) -> list[SeasonPointsRow]:
        """
        All season point rows, recomputed from raw positions when the
        precomputed table cannot be read. Empty when both paths fail.
        """
        try:
            return await asyncio.to_thread(self.store.fetch_season_points)
        except RankingDataError as e:
            logger.warning(f"Season points unavailable ({e}), recomputing from positions")

        try:
            tournaments, positions = await asyncio.gather(
                asyncio.to_thread(self.store.fetch_tournaments),
                asyncio.to_thread(self.store.fetch_positions),
            )
        except RankingDataError as e:
            logger.error(f"Could not recompute season points from positions: {e}")
            return []

        return [summary.row for summary in aggregate_positions(positions, tournaments)]

    async def _load_context(
        self,
        scope: RankingScope,
        reference_season: Optional[str] = None,
        with_previous: bool = True,
    ) -> RankingContext:
        _check_season(reference_season)

        rows, teams, counts = await asyncio.gather(
            self.load_season_points(),
            asyncio.to_thread(self.store.fetch_team_index),
            asyncio.to_thread(self.store.fetch_tournament_counts),
            return_exceptions=True,
        )
        for result in (rows, teams, counts):
            if isinstance(result, BaseException) and not isinstance(result, RankingDataError):
                raise result

        if isinstance(teams, RankingDataError):
            logger.warning(f"Team records unavailable ({teams}), using placeholders")
            teams = {}
        if isinstance(counts, RankingDataError):
            logger.warning(f"Tournament counts unavailable ({counts}), counting 0")
            counts = {}

        if reference_season is None:
            reference_season = most_recent_seasons(rows).for_scope(scope)

        previous = None
        if with_previous and reference_season is not None:
            prior = previous_season(reference_season)
            try:
                previous = await asyncio.to_thread(self.store.fetch_season_ranks, prior, scope)
            except RankingDataError as e:
                logger.warning(f"Rank snapshot of {prior} unavailable ({e}), deriving it")
            else:
                if not previous:
                    logger.warning(f"No rank snapshot for {prior}, deriving it")
                    previous = None

        return RankingContext(
            reference_season=reference_season,
            rows=rows,
            teams=teams,
            previous=previous,
            tournament_counts=counts,
        )

    def _current(self, ctx: RankingContext, scope: RankingScope) -> list[RankingEntry]:
        key = self.cache.key(
            "current",
            scope,
            ctx.reference_season,
            RankingCache.fingerprint(ctx.rows, ctx.teams, ctx.previous, ctx.tournament_counts),
        )
        return self.cache.get_or_compute(
            key,
            lambda: compute_current_ranking(
                ctx.rows,
                scope,
                ctx.reference_season,
                ctx.teams,
                previous=ctx.previous,
                tournament_counts=ctx.tournament_counts,
            ),
        )

    def _historical(self, ctx: RankingContext, scope: RankingScope) -> list[RankingEntry]:
        key = self.cache.key(
            "historical",
            scope,
            None,
            RankingCache.fingerprint(ctx.rows, ctx.teams, extra=ctx.tournament_counts),
        )
        return self.cache.get_or_compute(
            key,
            lambda: compute_historical_ranking(
                ctx.rows, scope, ctx.teams, tournament_counts=ctx.tournament_counts
            ),
        )

    def _clubs(self, ctx: RankingContext, scope: RankingScope) -> list[ClubRankingEntry]:
        key = self.cache.key(
            "clubs",
            scope,
            ctx.reference_season,
            RankingCache.fingerprint(ctx.rows, ctx.teams, ctx.previous, ctx.tournament_counts),
        )
        return self.cache.get_or_compute(key, lambda: compute_club_ranking(self._current(ctx, scope)))

    async def get_ranking(
        self,
        scope: RankingScope,
        reference_season: Optional[str] = None,
        variant: Variant = "current",
        region_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list:
        """
        A ranking view. ``region_id`` keeps only the teams (or clubs whose main
        team is) of that region, with their national positions.
        """
        ctx = await self._load_context(
            scope, reference_season, with_previous=variant != "historical"
        )
        if ctx.reference_season is None:
            logger.info(f"No season data for {scope}, returning an empty ranking")
            return []

        if variant == "historical":
            ranking = self._historical(ctx, scope)
        elif variant == "clubs":
            ranking = self._clubs(ctx, scope)
        else:
            ranking = self._current(ctx, scope)

        if region_id is not None:
            ranking = [
                entry
                for entry in ranking
                if ctx.teams.get(entry.team_id, TeamInfo.placeholder(entry.team_id)).region_id
                == region_id
            ]

        end = offset + limit if limit is not None else None
        return ranking[offset:end]

    async def get_highlights(
        self, scope: RankingScope, reference_season: Optional[str] = None
    ) -> Optional[HighlightStats]:
        ctx = await self._load_context(scope, reference_season)
        if ctx.reference_season is None:
            return None

        key = self.cache.key(
            "highlights",
            scope,
            ctx.reference_season,
            RankingCache.fingerprint(ctx.rows, ctx.teams, ctx.previous, ctx.tournament_counts),
        )
        return self.cache.get_or_compute(
            key,
            lambda: compute_highlights(
                self._current(ctx, scope),
                self._historical(ctx, scope),
                ctx.rows,
                scope,
                ctx.reference_season,
            ),
        )

    async def get_team_ranking(
        self,
        team_id: str,
        scope: RankingScope,
        reference_season: Optional[str] = None,
    ) -> Optional[RankingEntry]:
        ranking = await self.get_ranking(scope, reference_season)
        return next((entry for entry in ranking if entry.team_id == team_id), None)

    async def compare_seasons(
        self, season_a: str, season_b: str, scope: RankingScope
    ) -> SeasonComparison:
        """Rankings of two seasons side by side, with each team's change from a to b."""
        _check_season(season_a)
        _check_season(season_b)

        ctx = await self._load_context(scope, season_a, with_previous=False)
        ranking_a = self._current(ctx, scope)
        ranking_b = self._current(ctx.model_copy(update={"reference_season": season_b}), scope)

        return SeasonComparison(
            scope=scope_name(scope),
            season_a=season_a,
            season_b=season_b,
            ranking_a=ranking_a,
            ranking_b=ranking_b,
            changes=compare_rankings(ranking_a, ranking_b),
        )

    async def get_team_history(
        self, team_id: str, scope: RankingScope
    ) -> list[TeamHistoryEntry]:
        """
        Rank and points of a team in every season, oldest first.

        Read from the precomputed snapshots; rebuilt from season points when
        those cannot be read or hold nothing for the team.
        """
        try:
            rows = await asyncio.to_thread(self.store.fetch_team_rankings, team_id)
            history = _history_from_snapshots(rows, scope)
            if history:
                return history
            logger.warning(f"No rank snapshots for team {team_id}, rebuilding history")
        except RankingDataError as e:
            logger.warning(f"Rank snapshots unavailable ({e}), rebuilding history")

        season_rows = await self.load_season_points()
        seasons = sorted(
            {r.season for r in season_rows if r.team_id == team_id}, key=season_start_year
        )

        history = []
        for season in seasons:
            ranking = compute_current_ranking(season_rows, scope, season, {}, previous={})
            entry = next((e for e in ranking if e.team_id == team_id), None)
            if entry is not None:
                history.append(
                    TeamHistoryEntry(
                        season=season,
                        rank=entry.ranking_position,
                        points=round(entry.total_points, 2),
                    )
                )
        return history

    async def get_latest_seasons(self) -> LatestSeasons:
        return most_recent_seasons(await self.load_season_points())


def _history_from_snapshots(rows: list[dict], scope: RankingScope) -> list[TeamHistoryEntry]:
    history = []
    for row in rows:
        if not is_valid_season(row.get("season")):
            continue

        if scope == GENERAL:
            columns = [subupdate_columns(n) for n in reversed(SUBUPDATES)]
        else:
            columns = [(scope.rank_column, scope.points_column)]

        for rank_column, points_column in columns:
            if row.get(rank_column) is not None:
                history.append(
                    TeamHistoryEntry(
                        season=row["season"],
                        rank=int(row[rank_column]),
                        points=float(row.get(points_column) or 0),
                    )
                )
                break

    history.sort(key=lambda h: season_start_year(h.season))
    return history
