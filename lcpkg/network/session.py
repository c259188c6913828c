"""
Owns the aiohttp ClientSession shared by link probes and downloads.
"""

import asyncio
import logging

import aiohttp

from lcpkg import __version__

log = logging.getLogger(__name__)


class HttpSessionPool:
    """
    Lazily creates one ClientSession and hands it out until `close()` is called.
    """

    def __init__(self, max_connections: int = 8):
        """
        Args:
            max_connections: Maximum concurrent connections per host.
        """
        self.max_connections = max_connections
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> aiohttp.ClientSession:
        """Gets or creates the shared session."""
        async with self._lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                limit_per_host=self.max_connections,
                ttl_dns_cache=600,  # 10 minutes
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers={"User-Agent": f"lcpkg/{__version__}"},
            )
            log.debug(
                f"Created HTTP session with limit_per_host={self.max_connections}"
            )
            return self._session

    async def close(self) -> None:
        """Closes the shared session."""
        async with self._lock:
            if self._session and not self._session.closed:
                await self._session.close()
                log.debug("Shared HTTP session closed.")
            self._session = None
