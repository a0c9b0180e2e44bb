"""
Database client singletons.

This module provides singleton instances for the Supabase connection,
ensuring one PostgREST session is reused across requests.
"""

from functools import lru_cache
from typing import Optional

from supabase import Client, ClientOptions, create_client

from config.settings import get_settings


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be created."""
    pass


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Get the singleton Supabase client instance.

    The PostgREST timeout comes from SUPABASE_TIMEOUT_SECONDS so a stalled
    store query fails the request instead of hanging it.

    Returns:
        Client: The Supabase client instance

    Raises:
        SupabaseClientError: If client cannot be created
    """
    try:
        settings = get_settings()
        return create_client(
            settings.supabase_url,
            settings.supabase_service_key,
            options=ClientOptions(
                postgrest_client_timeout=settings.supabase_timeout_seconds,
            ),
        )
    except Exception as e:
        raise SupabaseClientError(f"Failed to create Supabase client: {e}") from e


def get_supabase_client_optional() -> Optional[Client]:
    """
    Get the Supabase client, returning None if it cannot be created.

    Used by health checks to report "not configured" instead of failing.
    """
    try:
        return get_supabase_client()
    except SupabaseClientError:
        return None


def get_db() -> Client:
    """
    FastAPI dependency for getting the Supabase client.

    Usage:
        @router.get("/items")
        def get_items(db: Client = Depends(get_db)):
            ...
    """
    return get_supabase_client()

