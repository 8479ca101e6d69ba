"""
HTTP client utilities with connection pooling.
Provides the reusable httpx client used to reach the upstream completion API.
"""
import httpx
from config import Config


class HTTPClientManager:
    """Manages the shared httpx client with connection pooling."""

    _upstream_client: httpx.AsyncClient | None = None

    @classmethod
    def get_upstream_client(cls) -> httpx.AsyncClient:
        """
        Get or create a shared httpx client for upstream completion calls.

        Features:
        - Connection pooling (reuses TCP connections)
        - Read timeout applies per chunk, so long streams stay open

        Returns:
            Configured httpx.AsyncClient for upstream operations
        """
        if cls._upstream_client is None:
            limits = httpx.Limits(
                max_connections=100,
                max_keepalive_connections=20,
                keepalive_expiry=30.0
            )

            cls._upstream_client = httpx.AsyncClient(
                timeout=httpx.Timeout(Config.UPSTREAM_TIMEOUT, connect=10.0),
                limits=limits,
                http2=True
            )

        return cls._upstream_client

    @classmethod
    async def close_all(cls) -> None:
        """
        Close the managed client and clean up connections.
        """
        if cls._upstream_client is not None:
            await cls._upstream_client.aclose()
            cls._upstream_client = None
