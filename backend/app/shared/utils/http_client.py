"""
HTTP Client Manager with Connection Pooling

One pooled httpx.AsyncClient shared by every outbound HTTP caller:
- the advance controller calling the stage endpoints
- the Telegram bot client

Usage:
    from app.shared.utils.http_client import http_client_manager

    client = http_client_manager.get_client()
    response = await client.post(url, json=payload, timeout=20.0)
"""
import logging
from typing import Optional, Dict, Any

import httpx

logger = logging.getLogger(__name__)


# Default configuration
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_MAX_CONNECTIONS = 50
DEFAULT_MAX_KEEPALIVE_CONNECTIONS = 10
DEFAULT_KEEPALIVE_EXPIRY = 30.0  # seconds


class HTTPClientManager:
    """
    Singleton HTTP client manager with connection pooling.

    The client is created lazily on first use and closed on application
    shutdown. Callers pass per-request timeouts where a call needs more
    than the default (stage endpoints can run for minutes).
    """

    _instance: Optional['HTTPClientManager'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        # Prevent re-initialization
        if getattr(self, "_initialized", False):
            return

        self._initialized = True
        self._client: Optional[httpx.AsyncClient] = None
        self._config = {
            "timeout": DEFAULT_TIMEOUT,
            "connect_timeout": DEFAULT_CONNECT_TIMEOUT,
            "max_connections": DEFAULT_MAX_CONNECTIONS,
            "max_keepalive_connections": DEFAULT_MAX_KEEPALIVE_CONNECTIONS,
            "keepalive_expiry": DEFAULT_KEEPALIVE_EXPIRY,
        }

    def configure(self, **overrides: float) -> None:
        """
        Override pool settings. Must be called before first use or after close().
        """
        if self._client is not None:
            logger.warning("Cannot reconfigure while client is active. Call close() first.")
            return

        unknown = set(overrides) - set(self._config)
        if unknown:
            raise ValueError(f"Unknown HTTP client settings: {sorted(unknown)}")

        self._config.update(overrides)
        logger.info(f"HTTPClientManager configured: {self._config}")

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            timeout=self._config["timeout"],
            connect=self._config["connect_timeout"]
        )

        limits = httpx.Limits(
            max_connections=self._config["max_connections"],
            max_keepalive_connections=self._config["max_keepalive_connections"],
            keepalive_expiry=self._config["keepalive_expiry"]
        )

        return httpx.AsyncClient(timeout=timeout, limits=limits, follow_redirects=True)

    def get_client(self) -> httpx.AsyncClient:
        """Get the shared client, creating it on first access."""
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
            logger.info("HTTP client created with connection pooling")

        return self._client

    async def close(self) -> None:
        """Close the client and release all connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed, connections released")

    def is_active(self) -> bool:
        return self._client is not None and not self._client.is_closed

    def get_status(self) -> Dict[str, Any]:
        """Pool status for the health endpoint."""
        return {"active": self.is_active(), "config": dict(self._config)}


# Singleton instance
http_client_manager = HTTPClientManager()


# ============================================
# FastAPI LIFECYCLE HOOKS
# ============================================

async def startup_http_client():
    """Pre-warm the pool during FastAPI startup."""
    http_client_manager.get_client()
    logger.info("HTTP client pre-warmed during startup")


async def shutdown_http_client():
    """Release pooled connections during FastAPI shutdown."""
    await http_client_manager.close()
    logger.info("HTTP client shutdown complete")
