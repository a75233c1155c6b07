from functools import lru_cache

from fastapi import Depends
from supabase import Client
from ultimate_ranking.core.config import settings
from ultimate_ranking.db.supabase import get_supabase_client
from ultimate_ranking.services.aggregator import RankingCache
from ultimate_ranking.services.rankings import RankingService
from ultimate_ranking.services.store import RankingStore


def get_store(client: Client = Depends(get_supabase_client)) -> RankingStore:
    return RankingStore(client)


@lru_cache(maxsize=1)
def get_ranking_cache() -> RankingCache:
    """Process-wide memo of computed rankings, shared by every request."""
    return RankingCache(maxsize=settings.RANKING_CACHE_SIZE)


def get_ranking_service(
    store: RankingStore = Depends(get_store),
    cache: RankingCache = Depends(get_ranking_cache),
) -> RankingService:
    return RankingService(store, cache)
