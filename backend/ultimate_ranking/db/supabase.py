from functools import lru_cache

from supabase import Client, create_client
from ultimate_ranking.core.config import settings


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Process-wide Supabase client, created on first use."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
