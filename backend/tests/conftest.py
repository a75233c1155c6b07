"""
Shared fixtures: an in-memory stand-in for the Supabase query builder, seeded
federation data, and a FastAPI test client wired to both.
"""

import itertools
import os
import time

# Settings are read when ultimate_ranking.core.config is first imported
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-that-is-at-least-32-bytes")

import jwt
import pytest
from fastapi.testclient import TestClient
from ultimate_ranking.api.deps import get_ranking_cache
from ultimate_ranking.core.config import settings
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.main import app
from ultimate_ranking.schemas.ranking import CategoryPoints, SeasonPointsRow
from ultimate_ranking.services.aggregator import RankingCache
from ultimate_ranking.services.store import RankingStore


# =============================================================================
# In-memory Supabase
# =============================================================================


class FakeResponse:
    def __init__(self, data):
        self.data = data


def _same(a, b) -> bool:
    return a == b or (a is not None and b is not None and str(a) == str(b))


def _sort_key(value):
    return (value is None, value if value is not None else 0)


class FakeQuery:
    """Records a PostgREST-style query and runs it against ``FakeSupabase.tables``."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.orders = []
        self.bounds = None
        self.max_rows = None

    # Operations

    def select(self, columns="*", **kwargs):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict=""):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    # Filters and modifiers

    def eq(self, column, value):
        self.filters.append(lambda r: _same(r.get(column), value))
        return self

    def neq(self, column, value):
        self.filters.append(lambda r: not _same(r.get(column), value))
        return self

    def in_(self, column, values):
        wanted = {str(v) for v in values}
        self.filters.append(lambda r: str(r.get(column)) in wanted)
        return self

    def gt(self, column, value):
        self.filters.append(lambda r: r.get(column) is not None and r.get(column) > value)
        return self

    def is_(self, column, value):
        if value == "null":
            self.filters.append(lambda r: r.get(column) is None)
        else:
            self.filters.append(lambda r: _same(r.get(column), value))
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def range(self, start, end):
        self.bounds = (start, end)
        return self

    # Execution

    def _matching(self):
        return [r for r in self.db.rows(self.table) if all(f(r) for f in self.filters)]

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.op))
        if self.table in self.db.fail_tables:
            raise RuntimeError(f"connection refused reading {self.table}")
        return getattr(self, f"_run_{self.op}")()

    def _run_select(self):
        rows = [dict(r) for r in self._matching()]
        for column, desc in reversed(self.orders):
            rows.sort(key=lambda r: _sort_key(r.get(column)), reverse=desc)
        if self.bounds is not None:
            rows = rows[self.bounds[0] : self.bounds[1] + 1]
        if self.max_rows is not None:
            rows = rows[: self.max_rows]
        return FakeResponse(rows)

    def _run_insert(self):
        records = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = [self.db.add(self.table, dict(r)) for r in records]
        return FakeResponse([dict(r) for r in inserted])

    def _run_upsert(self):
        records = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.on_conflict or "id").split(",") if k.strip()]
        written = []
        for record in records:
            existing = next(
                (
                    r
                    for r in self.db.rows(self.table)
                    if all(_same(r.get(k), record.get(k)) for k in keys)
                ),
                None,
            )
            if existing is not None:
                existing.update(record)
                written.append(dict(existing))
            else:
                written.append(dict(self.db.add(self.table, dict(record))))
        return FakeResponse(written)

    def _run_update(self):
        updated = []
        for row in self._matching():
            row.update(self.payload)
            updated.append(dict(row))
        return FakeResponse(updated)

    def _run_delete(self):
        doomed = self._matching()
        self.db.tables[self.table] = [
            r for r in self.db.rows(self.table) if not any(r is d for d in doomed)
        ]
        return FakeResponse([dict(r) for r in doomed])


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.fail_tables = set()
        self.calls = []
        self._ids = itertools.count(1)

    def rows(self, table: str) -> list[dict]:
        return self.tables.setdefault(table, [])

    def add(self, table: str, record: dict) -> dict:
        if table != "team_season_points" and table != "team_season_rankings":
            record.setdefault("id", f"{table}-{next(self._ids)}")
        self.rows(table).append(record)
        return record

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


# =============================================================================
# Seed data
# =============================================================================


def points_row(team_id, season, **points) -> dict:
    record = {"team_id": team_id, "season": season}
    record.update({f"{k}_points": v for k, v in points.items()})
    return record


def season_row(team_id, season, **points) -> SeasonPointsRow:
    return SeasonPointsRow(team_id=team_id, season=season, points=CategoryPoints(**points))


REGIONS = [
    {"id": "r1", "name": "Madrid", "code": "MAD", "coefficient": 1.2},
    {"id": "r2", "name": "Cataluña", "code": "CAT", "coefficient": 0.8},
]

TEAMS = [
    {
        "id": "t1",
        "name": "Ultimate Madrid",
        "regionId": "r1",
        "logo": "madrid.png",
        "location": "Madrid",
        "email": "club@madrid.es",
        "isFilial": False,
        "parentTeamId": None,
    },
    {
        "id": "t2",
        "name": "Ultimate Madrid B",
        "regionId": "r1",
        "logo": "madrid.png",
        "location": "Madrid",
        "email": "club@madrid.es",
        "isFilial": True,
        "parentTeamId": "t1",
    },
    {
        "id": "t3",
        "name": "Barcelona Frisbee",
        "regionId": "r2",
        "logo": None,
        "location": "Barcelona",
        "email": None,
        "isFilial": False,
        "parentTeamId": None,
    },
]

SEASON_POINTS = [
    points_row("t1", "2023-24", beach_mixed=100),
    points_row("t1", "2022-23", beach_mixed=50),
    points_row("t2", "2023-24", beach_mixed=80),
    points_row("t3", "2022-23", beach_mixed=90, grass_open=30),
    points_row("t3", "2023-24", grass_open=200),
]

TOURNAMENTS = [
    {
        "id": "c1",
        "name": "CE1 Playa Mixto 2023-24",
        "type": "CE1",
        "surface": "BEACH",
        "modality": "MIXED",
        "season": "2023-24",
        "year": 2023,
        "regionId": None,
        "startDate": "2023-09-10",
        "endDate": "2023-09-11",
        "is_finished": True,
    },
    {
        "id": "c2",
        "name": "Regional Madrid Césped Open 2023-24",
        "type": "REGIONAL",
        "surface": "GRASS",
        "modality": "OPEN",
        "season": "2023-24",
        "year": 2023,
        "regionId": "r1",
        "startDate": "2024-03-02",
        "endDate": "2024-03-03",
        "is_finished": True,
    },
]

POSITIONS = [
    {"id": "p1", "tournamentId": "c1", "teamId": "t1", "position": 1, "points": 1000},
    {"id": "p2", "tournamentId": "c1", "teamId": "t3", "position": 2, "points": 850},
    {"id": "p3", "tournamentId": "c2", "teamId": "t1", "position": 1, "points": 168},
]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase(
        {
            "regions": REGIONS,
            "teams": TEAMS,
            "team_season_points": SEASON_POINTS,
            "team_season_rankings": [],
            "tournaments": TOURNAMENTS,
            "positions": POSITIONS,
        }
    )


@pytest.fixture
def store(fake_db) -> RankingStore:
    return RankingStore(fake_db)


@pytest.fixture
def cache() -> RankingCache:
    return RankingCache(maxsize=16)


@pytest.fixture
def client(fake_db, cache):
    app.dependency_overrides[get_supabase_client] = lambda: fake_db
    app.dependency_overrides[get_ranking_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(sub="admin-user", expires_in=3600) -> str:
    payload = {"sub": sub, "aud": "authenticated", "exp": int(time.time()) + expires_in}
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {make_token()}"}
