"""
Checks whether a saved link is reachable and how large the package behind it is.
"""

import asyncio
import logging

import aiohttp

from lcpkg.models.link import LinkRecord, Reachability, utc_now
from lcpkg.utils.path import parse_package_url

from .session import HttpSessionPool

log = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


def parse_content_length(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        size = int(value.strip())
    except ValueError:
        return None
    return size if size >= 0 else None


class LinkProber:
    """Issues body-less HEAD requests against saved links. Never raises."""

    def __init__(self, session_pool: HttpSessionPool, timeout: float = 10.0):
        self.session_pool = session_pool
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def probe(self, record: LinkRecord) -> LinkRecord:
        """
        Returns a copy of `record` with fresh probe fields.

        `last_probed_at` is always set. A known size is only cleared when the
        URL itself is unusable; failed requests and responses without a
        Content-Length keep the previous size.
        """
        updates: dict = {"last_probed_at": utc_now()}

        url = parse_package_url(record.url)
        if url is None:
            log.debug(f"Link {record.short_id} has an invalid URL: {record.url!r}")
            updates.update(reachability=Reachability.UNREACHABLE, size_bytes=None)
            return record.model_copy(update=updates)

        try:
            session = await self.session_pool.get()
            async with session.head(
                url,
                allow_redirects=True,
                headers=NO_CACHE_HEADERS,
                timeout=self.timeout,
            ) as response:
                reachable = 200 <= response.status < 300
                updates["reachability"] = (
                    Reachability.REACHABLE if reachable else Reachability.UNREACHABLE
                )
                size = parse_content_length(response.headers.get("Content-Length"))
                if size is not None:
                    updates["size_bytes"] = size
                log.debug(
                    f"Probed {record.short_id}: HTTP {response.status}, size={size}"
                )
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            log.debug(f"Probe of {record.short_id} failed: {e!r}")
            updates["reachability"] = Reachability.UNREACHABLE

        return record.model_copy(update=updates)
