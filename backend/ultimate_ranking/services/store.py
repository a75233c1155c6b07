"""
Reads and writes against the federation's Supabase tables.

Every read goes through ``RankingStore`` so that a failing query surfaces as a
single ``RankingDataError`` the ranking service knows how to fall back from.
"""

import logging
from collections import Counter
from typing import Callable, Iterable, Optional

from supabase import Client
from ultimate_ranking.schemas.ranking import (
    GENERAL,
    NO_REGION_LABEL,
    UNKNOWN_TEAM_NAME,
    RankingScope,
    RankSnapshot,
    SeasonPointsRow,
    TeamInfo,
    is_valid_season,
)

logger = logging.getLogger(__name__)

# PostgREST caps a response at 1000 rows by default
PAGE_SIZE = 1000
WRITE_CHUNK_SIZE = 500

SUBUPDATES = (1, 2, 3, 4)


class RankingDataError(Exception):
    """A read or write against the remote store failed."""

    def __init__(self, table: str, message: str):
        super().__init__(f"{table}: {message}")
        self.table = table


def subupdate_columns(subupdate: int) -> tuple[str, str]:
    return f"subupdate_{subupdate}_global_rank", f"subupdate_{subupdate}_global_points"


def build_team_index(
    team_rows: Iterable[dict], region_rows: Iterable[dict]
) -> dict[str, TeamInfo]:
    """
    Join team and region records into ``TeamInfo`` by team id.

    Filials missing their own region or logo show their parent's.
    """
    region_names = {str(r["id"]): r.get("name") or NO_REGION_LABEL for r in region_rows}
    by_id = {str(t["id"]): t for t in team_rows}

    index = {}
    for team_id, row in by_id.items():
        parent = by_id.get(str(row.get("parentTeamId"))) if row.get("parentTeamId") else None
        region_id = row.get("regionId") or (parent or {}).get("regionId")
        logo = row.get("logo") or (parent or {}).get("logo")

        region_name = NO_REGION_LABEL
        if region_id is not None:
            region_name = region_names.get(str(region_id), NO_REGION_LABEL)
            if str(region_id) not in region_names:
                logger.warning(f"Team {team_id} references unknown region {region_id}")

        index[team_id] = TeamInfo(
            id=team_id,
            name=row.get("name") or UNKNOWN_TEAM_NAME,
            region_id=str(region_id) if region_id is not None else None,
            region_name=region_name,
            logo=logo,
            is_filial=bool(row.get("isFilial")),
            parent_team_id=str(row["parentTeamId"]) if row.get("parentTeamId") else None,
        )
    return index


class RankingStore:
    def __init__(self, client: Client):
        self.client = client

    def _fetch_all(self, table: str, build: Callable) -> list[dict]:
        """Run a select built by ``build`` page by page until a short page comes back."""
        rows = []
        start = 0
        try:
            while True:
                response = (
                    build(self.client.table(table))
                    .range(start, start + PAGE_SIZE - 1)
                    .execute()
                )
                page = response.data or []
                rows.extend(page)
                if len(page) < PAGE_SIZE:
                    break
                start += PAGE_SIZE
        except Exception as e:
            logger.error(f"Error reading {table}: {e}")
            raise RankingDataError(table, str(e)) from e
        return rows

    def _write(self, table: str, run: Callable) -> None:
        try:
            run(self.client.table(table)).execute()
        except Exception as e:
            logger.error(f"Error writing {table}: {e}")
            raise RankingDataError(table, str(e)) from e

    # Reads

    def fetch_season_points(
        self,
        seasons: Optional[list[str]] = None,
        team_ids: Optional[list[str]] = None,
    ) -> list[SeasonPointsRow]:
        def build(table):
            query = table.select("*")
            if seasons:
                query = query.in_("season", seasons)
            if team_ids:
                query = query.in_("team_id", team_ids)
            return query.order("team_id").order("season")

        rows = []
        for row in self._fetch_all("team_season_points", build):
            if not is_valid_season(row.get("season")):
                logger.warning(
                    f"Skipping season points of team {row.get('team_id')} "
                    f"with invalid season {row.get('season')!r}"
                )
                continue
            rows.append(SeasonPointsRow.from_row(row))
        return rows

    def fetch_teams(self, team_ids: Optional[list[str]] = None) -> list[dict]:
        def build(table):
            query = table.select("id, name, regionId, logo, isFilial, parentTeamId, location, email")
            if team_ids:
                query = query.in_("id", team_ids)
            return query.order("name")

        return self._fetch_all("teams", build)

    def fetch_regions(self) -> list[dict]:
        return self._fetch_all("regions", lambda t: t.select("*").order("name"))

    def fetch_team_index(self, team_ids: Optional[list[str]] = None) -> dict[str, TeamInfo]:
        return build_team_index(self.fetch_teams(team_ids), self.fetch_regions())

    def fetch_season_ranks(
        self,
        season: str,
        scope: RankingScope,
        subupdate: Optional[int] = None,
    ) -> dict[str, RankSnapshot]:
        """
        Precomputed rank snapshot of a season.

        Categories read their ``{category}_rank`` pair. The general ranking reads
        the global rank of a subupdate, the latest populated one when none is given.
        """
        if scope != GENERAL:
            columns = [(scope.rank_column, scope.points_column)]
        elif subupdate is not None:
            columns = [subupdate_columns(subupdate)]
        else:
            columns = [subupdate_columns(n) for n in reversed(SUBUPDATES)]

        select = ", ".join(["team_id"] + [c for pair in columns for c in pair])
        rows = self._fetch_all(
            "team_season_rankings", lambda t: t.select(select).eq("season", season)
        )

        for rank_column, points_column in columns:
            snapshot = {
                str(r["team_id"]): RankSnapshot(
                    team_id=str(r["team_id"]),
                    rank=int(r[rank_column]),
                    points=float(r.get(points_column) or 0),
                )
                for r in rows
                if r.get(rank_column) is not None
            }
            if snapshot:
                return snapshot
        return {}

    def fetch_tournaments(self) -> list[dict]:
        """Every tournament. Callers resolve seasons with ``tournament_season``."""

        def build(table):
            return table.select("*").order("startDate")

        return self._fetch_all("tournaments", build)

    def fetch_positions(self, tournament_ids: Optional[list[str]] = None) -> list[dict]:
        def build(table):
            query = table.select("id, tournamentId, teamId, position, points")
            if tournament_ids:
                query = query.in_("tournamentId", tournament_ids)
            return query.order("id")

        return self._fetch_all("positions", build)

    def fetch_tournament_counts(self, team_ids: Optional[list[str]] = None) -> dict[str, int]:
        """Number of tournaments each team has a result in."""

        def build(table):
            query = table.select("teamId, tournamentId")
            if team_ids:
                query = query.in_("teamId", team_ids)
            return query.order("id")

        rows = self._fetch_all("positions", build)
        pairs = {(str(r["teamId"]), str(r["tournamentId"])) for r in rows}
        return dict(Counter(team_id for team_id, _ in pairs))

    def fetch_team_rankings(self, team_id: str) -> list[dict]:
        return self._fetch_all(
            "team_season_rankings",
            lambda t: t.select("*").eq("team_id", team_id).order("season"),
        )

    # Writes, used by the batch jobs

    def _upsert_chunked(self, table: str, records: list[dict], on_conflict: str) -> int:
        for start in range(0, len(records), WRITE_CHUNK_SIZE):
            chunk = records[start : start + WRITE_CHUNK_SIZE]
            self._write(table, lambda t: t.upsert(chunk, on_conflict=on_conflict))
        return len(records)

    def upsert_season_points(self, records: list[dict]) -> int:
        return self._upsert_chunked("team_season_points", records, "team_id,season")

    def upsert_season_rankings(self, records: list[dict]) -> int:
        return self._upsert_chunked("team_season_rankings", records, "team_id,season")

    def update_subupdate_ranks(
        self, season: str, subupdate: int, ranks: dict[str, RankSnapshot]
    ) -> int:
        rank_column, points_column = subupdate_columns(subupdate)
        records = [
            {
                "team_id": team_id,
                "season": season,
                rank_column: snapshot.rank,
                points_column: snapshot.points,
            }
            for team_id, snapshot in ranks.items()
        ]
        return self._upsert_chunked("team_season_rankings", records, "team_id,season")

    def update_region_coefficient(self, region_id: str, coefficient: float) -> None:
        self._write(
            "regions",
            lambda t: t.update({"coefficient": coefficient}).eq("id", region_id),
        )
