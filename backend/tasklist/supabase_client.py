"""
Supabase client configuration.

get_async_supabase_client(access_token) - per-session async client used by
the remote store (PostgREST with RLS + Realtime channels).
"""

import os

from dotenv import find_dotenv, load_dotenv
from supabase import AsyncClient, AsyncClientOptions, acreate_client

_ = load_dotenv(find_dotenv())

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")


async def get_async_supabase_client(access_token: str | None = None) -> AsyncClient:
    """
    Create an async Supabase client.

    Args:
        access_token: The user's JWT (optional)

    Returns:
        AsyncClient instance

    Usage:
        - with access_token: PostgREST requests run as the user (RLS applies)
        - without: anon key only, relies on the client's own auth session
    """
    if not SUPABASE_URL or not SUPABASE_ANON_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

    options = AsyncClientOptions(auto_refresh_token=False, persist_session=False)
    client = await acreate_client(SUPABASE_URL, SUPABASE_ANON_KEY, options=options)
    if access_token:
        client.postgrest.auth(access_token)
        # Realtime joins carry this token, so change events honor RLS too
        await client.realtime.set_auth(access_token)
    return client
