"""
HTTP utilities with proper timeout and connection pooling.
"""

from pathlib import Path

import httpx
from platformdirs import user_cache_dir

from voice_companion.core.settings import HttpSettings

# Use platformdirs for cache directory
CACHE_DIR = Path(user_cache_dir("voice-companion", "voice-companion"))


def create_async_client(settings: HttpSettings | None = None, **kwargs) -> httpx.AsyncClient:
    """
    Create the shared async HTTP client used by every provider adapter.

    Args:
        settings: Timeout and pool limits; defaults when omitted
        **kwargs: Extra httpx.AsyncClient arguments (e.g. transport in tests)

    Returns:
        Configured httpx.AsyncClient
    """
    settings = settings or HttpSettings()
    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
    )
    timeout = httpx.Timeout(
        connect=settings.connect_timeout,
        read=settings.read_timeout,
        write=settings.write_timeout,
        pool=settings.pool_timeout,
    )
    return httpx.AsyncClient(limits=limits, timeout=timeout, **kwargs)
